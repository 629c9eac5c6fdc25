"""
Chrome DevTools trace -> Profile conversion.

Chrome exports a flat list of trace events (`traceEvents`). This module
rebuilds the Firefox-style columnar layout from them so every analysis can
run unchanged:

- `M` metadata events give thread and process names
- `X` complete events become interval markers; `I`/`i` instant events and
  `R` marks become instant markers
- `ProfileChunk` events (V8 CPU profiler) are rebuilt into func/frame/stack
  tables and samples on the thread the matching `Profile` event names

Timestamps are microseconds in the trace and milliseconds in the Profile,
relative to `TracingStartedInBrowser` (or the earliest event).
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from .profile_types import Profile

logger = logging.getLogger(__name__)


CHROME_CATEGORY_MAP = {
    "devtools.timeline": "JavaScript",
    "disabled-by-default-devtools.timeline": "Other",
    "disabled-by-default-devtools.timeline.frame": "Graphics",
    "disabled-by-default-devtools.timeline.stack": "JavaScript",
    "v8": "JavaScript",
    "v8.execute": "JavaScript",
    "v8.compile": "JavaScript",
    "disabled-by-default-v8.gc": "GC / CC",
    "disabled-by-default-v8.cpu_profiler": "JavaScript",
    "blink": "Layout",
    "blink.user_timing": "UserTiming",
    "blink.console": "JavaScript",
    "loading": "Network",
    "net": "Network",
    "netlog": "Network",
    "gpu": "Graphics",
    "cc": "Graphics",
    "viz": "Graphics",
    "benchmark": "Other",
    "rail": "Other",
    "__metadata": "Other",
    "toplevel": "Other",
    "ipc": "IPC",
}

DEFAULT_CATEGORIES = [
    ("Idle", "transparent"),
    ("Other", "grey"),
    ("Layout", "purple"),
    ("JavaScript", "yellow"),
    ("GC / CC", "orange"),
    ("Network", "lightblue"),
    ("Graphics", "green"),
    ("DOM", "blue"),
    ("UserTiming", "yellow"),
    ("IPC", "lightgreen"),
]

EXTENSION_PREFIX = "chrome-extension://"
EXTENSION_ID_LENGTH = 32

# Firefox marker phases
PHASE_INSTANT = 0
PHASE_INTERVAL = 1


@dataclass
class _ThreadBuilder:
    pid: Any
    tid: Any
    name: str = ""
    process_name: str = ""

    marker_start: list = field(default_factory=list)
    marker_end: list = field(default_factory=list)
    marker_name: list = field(default_factory=list)
    marker_category: list = field(default_factory=list)
    marker_phase: list = field(default_factory=list)
    marker_data: list = field(default_factory=list)

    sample_stack: list = field(default_factory=list)
    sample_time: list = field(default_factory=list)
    sample_cpu_delta: list = field(default_factory=list)

    stack_frame: list = field(default_factory=list)
    stack_prefix: list = field(default_factory=list)
    stack_category: list = field(default_factory=list)

    frame_func: list = field(default_factory=list)
    frame_category: list = field(default_factory=list)

    func_name: list = field(default_factory=list)
    func_file: list = field(default_factory=list)
    func_line: list = field(default_factory=list)
    func_column: list = field(default_factory=list)

    func_index: dict = field(default_factory=dict)
    frame_index: dict = field(default_factory=dict)
    stack_index: dict = field(default_factory=dict)

    def add_marker(self, start: float, end: Optional[float], name_idx: int, cat_idx: int, data: Any) -> None:
        self.marker_start.append(start)
        self.marker_end.append(end)
        self.marker_name.append(name_idx)
        self.marker_category.append(cat_idx)
        self.marker_phase.append(PHASE_INSTANT if end is None else PHASE_INTERVAL)
        self.marker_data.append(data if data else None)

    @property
    def is_main(self) -> bool:
        return "Main" in self.name

    @property
    def process_type(self) -> str:
        if "Browser" in self.process_name:
            return "default"
        if "GPU" in self.process_name:
            return "gpu"
        if "Extension" in self.process_name:
            return "extension"
        return "tab"


def _event_id(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class ChromeConverter:
    """Single-use converter; call convert() once."""

    def __init__(self, events: list[dict[str, Any]], metadata: Optional[dict[str, Any]] = None):
        self.events = [e for e in events if isinstance(e, dict)]
        self.metadata = metadata or {}
        self.threads: dict[tuple, _ThreadBuilder] = {}
        self.process_names: dict[Any, str] = {}
        self.strings: list[str] = []
        self.string_index: dict[str, int] = {}
        self.category_index = {name: i for i, (name, _) in enumerate(DEFAULT_CATEGORIES)}
        self.extensions: list[str] = []
        self.min_time: Optional[float] = None
        self.max_time = 0.0

    # ------------------------------------------------------------------
    # interning / lookups
    # ------------------------------------------------------------------

    def intern(self, s: str) -> int:
        idx = self.string_index.get(s)
        if idx is None:
            idx = len(self.strings)
            self.string_index[s] = idx
            self.strings.append(s)
        return idx

    def thread(self, pid: Any, tid: Any) -> _ThreadBuilder:
        key = (str(pid), str(tid))
        builder = self.threads.get(key)
        if builder is None:
            builder = _ThreadBuilder(pid=pid, tid=tid)
            self.threads[key] = builder
        return builder

    def map_category(self, chrome_categories: str) -> int:
        """First comma-separated Chrome category with a known mapping, else Other."""
        for cat in (chrome_categories or "").split(","):
            mapped = CHROME_CATEGORY_MAP.get(cat.strip())
            if mapped is not None:
                return self.category_index[mapped]
        return self.category_index["Other"]

    def relative_ms(self, ts: float) -> float:
        return (ts - (self.min_time or 0.0)) / 1000.0

    # ------------------------------------------------------------------
    # passes
    # ------------------------------------------------------------------

    def parse_metadata_events(self) -> None:
        for evt in self.events:
            if evt.get('ph') != "M":
                continue
            args = evt.get('args') or {}
            name = args.get('name') if isinstance(args, dict) else None
            if not name:
                continue
            if evt.get('name') == "thread_name":
                self.thread(evt.get('pid'), evt.get('tid')).name = name
            elif evt.get('name') == "process_name":
                self.process_names[str(evt.get('pid'))] = name

    def find_time_origin(self) -> None:
        for evt in self.events:
            ts = evt.get('ts') or 0
            if evt.get('name') == "TracingStartedInBrowser" and ts > 0:
                self.min_time = float(ts)
                break
        tracing_start_found = self.min_time is not None

        for evt in self.events:
            ts = evt.get('ts') or 0
            if ts <= 0:
                continue
            if not tracing_start_found and (self.min_time is None or ts < self.min_time):
                self.min_time = float(ts)
            self.max_time = max(self.max_time, ts + (evt.get('dur') or 0))

    def process_marker_events(self) -> None:
        for evt in self.events:
            phase = evt.get('ph')
            if phase not in ("X", "I", "i", "R"):
                continue
            builder = self.thread(evt.get('pid'), evt.get('tid'))
            start = self.relative_ms(evt.get('ts') or 0)
            end = start + (evt.get('dur') or 0) / 1000.0 if phase == "X" else None
            builder.add_marker(
                start,
                end,
                self.intern(evt.get('name') or ""),
                self.map_category(evt.get('cat') or ""),
                evt.get('args') if isinstance(evt.get('args'), dict) else None,
            )

    def extract_cpu_profiles(self) -> None:
        targets = {}
        for evt in self.events:
            if evt.get('ph') == "P" and evt.get('name') == "Profile":
                event_id = _event_id(evt.get('id'))
                if event_id:
                    targets[event_id] = (evt.get('pid'), evt.get('tid'))

        for evt in self.events:
            if evt.get('name') != "ProfileChunk":
                continue
            data = ((evt.get('args') or {}).get('data')) or {}
            cpu_profile = data.get('cpuProfile') or {}
            if not cpu_profile.get('nodes') and not cpu_profile.get('samples'):
                continue
            pid, tid = targets.get(_event_id(evt.get('id')), (evt.get('pid'), evt.get('tid')))
            time_deltas = data.get('timeDeltas') or cpu_profile.get('timeDeltas') or []
            self.add_cpu_profile(self.thread(pid, tid), cpu_profile, time_deltas, evt.get('ts') or 0)

    def add_cpu_profile(self, builder: _ThreadBuilder, cpu_profile: dict, time_deltas: list, base_ts: float) -> None:
        node_stack: dict[Any, int] = {}
        for node in cpu_profile.get('nodes') or []:
            call_frame = node.get('callFrame') or {}
            func_idx = self.func_for(builder, call_frame)
            cat_idx = self.category_for_call_frame(call_frame)
            frame_idx = self.frame_for(builder, func_idx, cat_idx)
            prefix = node_stack.get(node.get('parent'), -1) if node.get('parent') else -1
            node_stack[node.get('id')] = self.stack_for(builder, frame_idx, prefix, cat_idx)

        current = self.relative_ms(base_ts)
        for i, node_id in enumerate(cpu_profile.get('samples') or []):
            delta_ms = (time_deltas[i] or 0) / 1000.0 if i < len(time_deltas) else 0.0
            builder.sample_stack.append(node_stack.get(node_id, -1))
            builder.sample_time.append(current)
            builder.sample_cpu_delta.append(int(delta_ms * 1000))
            current += delta_ms

    def func_for(self, builder: _ThreadBuilder, call_frame: dict) -> int:
        name = call_frame.get('functionName') or ""
        url = call_frame.get('url') or "(unknown)"
        line = call_frame.get('lineNumber') or 0
        key = (name, url, line)
        idx = builder.func_index.get(key)
        if idx is None:
            idx = len(builder.func_name)
            builder.func_index[key] = idx
            builder.func_name.append(self.intern(name))
            builder.func_file.append(self.intern(url))
            builder.func_line.append(line)
            builder.func_column.append(call_frame.get('columnNumber') or 0)
        return idx

    def frame_for(self, builder: _ThreadBuilder, func_idx: int, cat_idx: int) -> int:
        key = (func_idx, cat_idx)
        idx = builder.frame_index.get(key)
        if idx is None:
            idx = len(builder.frame_func)
            builder.frame_index[key] = idx
            builder.frame_func.append(func_idx)
            builder.frame_category.append(cat_idx)
        return idx

    def stack_for(self, builder: _ThreadBuilder, frame_idx: int, prefix: int, cat_idx: int) -> int:
        key = (frame_idx, prefix)
        idx = builder.stack_index.get(key)
        if idx is None:
            idx = len(builder.stack_frame)
            builder.stack_index[key] = idx
            builder.stack_frame.append(frame_idx)
            builder.stack_prefix.append(prefix)
            builder.stack_category.append(cat_idx)
        return idx

    def category_for_call_frame(self, call_frame: dict) -> int:
        url = call_frame.get('url') or ""
        name = call_frame.get('functionName') or ""
        if EXTENSION_PREFIX in url:
            self.note_extension(url)
            return self.category_index["Other"]
        if url.startswith("http") or url.startswith("file"):
            return self.category_index["JavaScript"]
        if call_frame.get('codeType') == "other" or name in ("(root)", "(program)"):
            return self.category_index["Other"]
        return self.category_index["JavaScript"]

    def note_extension(self, url: str) -> None:
        if not url.startswith(EXTENSION_PREFIX):
            return
        ext_id = url[len(EXTENSION_PREFIX):].split("/", 1)[0]
        if len(ext_id) == EXTENSION_ID_LENGTH and ext_id not in self.extensions:
            self.extensions.append(ext_id)

    # ------------------------------------------------------------------
    # output
    # ------------------------------------------------------------------

    def start_time_ms(self) -> float:
        raw = self.metadata.get('startTime')
        if not isinstance(raw, str) or not raw:
            return 0.0
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).timestamp() * 1000.0
        except ValueError:
            logger.debug("unparseable trace startTime %r", raw)
            return 0.0

    def build_thread(self, builder: _ThreadBuilder) -> dict[str, Any]:
        return {
            'name': builder.name,
            'isMainThread': builder.is_main,
            'processType': builder.process_type,
            'processName': builder.process_name,
            'pid': builder.pid,
            'tid': builder.tid,
            'samples': {
                'length': len(builder.sample_stack),
                'stack': builder.sample_stack,
                'time': builder.sample_time,
                'weightType': "samples",
                'threadCPUDelta': builder.sample_cpu_delta,
            },
            'markers': {
                'length': len(builder.marker_name),
                'name': builder.marker_name,
                'category': builder.marker_category,
                'startTime': builder.marker_start,
                'endTime': builder.marker_end,
                'phase': builder.marker_phase,
                'data': builder.marker_data,
            },
            'stackTable': {
                'length': len(builder.stack_frame),
                'frame': builder.stack_frame,
                'prefix': builder.stack_prefix,
                'category': builder.stack_category,
            },
            'frameTable': {
                'length': len(builder.frame_func),
                'func': builder.frame_func,
                'category': builder.frame_category,
            },
            'funcTable': {
                'length': len(builder.func_name),
                'name': builder.func_name,
                'fileName': builder.func_file,
                'isJS': [True] * len(builder.func_name),
                'resource': [-1] * len(builder.func_name),
                'lineNumber': builder.func_line,
                'columnNumber': builder.func_column,
            },
        }

    def convert(self) -> Profile:
        self.parse_metadata_events()
        self.find_time_origin()
        self.process_marker_events()
        self.extract_cpu_profiles()

        for (pid, _), builder in self.threads.items():
            builder.process_name = self.process_names.get(pid, "")

        threads = [self.build_thread(self.threads[key]) for key in sorted(self.threads)]
        duration = (self.max_time - (self.min_time or 0.0)) / 1000.0 if self.min_time is not None else 0.0

        data = {
            'meta': {
                'interval': 1.0,
                'startTime': self.start_time_ms(),
                'profilingStartTime': 0.0,
                'profilingEndTime': max(duration, 0.0),
                'product': "Chrome",
                'version': 1,
                'platform': "Chrome DevTools",
                'categories': [
                    {'name': name, 'color': color, 'subcategories': ["Other"]}
                    for name, color in DEFAULT_CATEGORIES
                ],
                'extensions': {
                    'length': len(self.extensions),
                    'id': list(self.extensions),
                    'name': list(self.extensions),
                    'baseURL': [f"{EXTENSION_PREFIX}{ext_id}/" for ext_id in self.extensions],
                },
                'sampleUnits': {'time': "ms", 'eventDelay': "ms", 'threadCPUDelta': "µs"},
            },
            'threads': threads,
            'shared': {'stringArray': self.strings},
        }
        logger.debug("converted Chrome trace: %d events, %d threads", len(self.events), len(threads))
        return Profile.model_validate(data)


def convert_chrome_trace(data: Any) -> Profile:
    """Convert a Chrome trace document (object with traceEvents, or a bare event list)."""
    if isinstance(data, list):
        return ChromeConverter(data).convert()
    events = data.get('traceEvents') or []
    return ChromeConverter(events, data.get('metadata') if isinstance(data.get('metadata'), dict) else None).convert()
