"""
Marker extraction.

Turns a thread's raw marker columns into ParsedMarker records and provides
the small filter/statistics helpers the analyses share.

Payloads are normalised so detectors only need to look at a handful of
well-known keys (sync, url, type, eventType, actor, name), regardless of
whether the trace came from Firefox or was converted from Chrome.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .profile_types import (
    Category,
    Profile,
    Thread,
    column_value,
    index_at,
    resolve_string,
)

logger = logging.getLogger(__name__)


# Marker names/types that analyses refer to by name
GC_MAJOR = "GCMajor"
GC_MINOR = "GCMinor"
GC_SLICE = "GCSlice"
DOM_EVENT = "DOMEvent"
STYLES = "Styles"
USER_TIMING = "UserTiming"
MAIN_THREAD_LONG_TASK = "MainThreadLongTask"
CHANNEL_MARKER = "ChannelMarker"
HOST_RESOLVER = "HostResolver"
JS_ACTOR_MESSAGE = "JSActorMessage"
FRAME_MESSAGE = "FrameMessage"
AWAKE = "Awake"
TEXT = "Text"
IPC = "IPC"


@dataclass(frozen=True)
class ParsedMarker:
    """A normalised marker. Duration is 0 for instant markers."""
    name: str
    type: str
    category: str
    start_time: float
    end_time: Optional[float] = None
    duration: float = 0.0
    phase: int = 0
    thread_name: str = ""
    thread_pid: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_duration(self) -> bool:
        return self.duration > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'type': self.type,
            'category': self.category,
            'start_time_ms': self.start_time,
            'end_time_ms': self.end_time,
            'duration_ms': self.duration,
            'phase': self.phase,
            'thread': self.thread_name,
            'pid': self.thread_pid,
            'data': self.data,
        }


@dataclass
class MarkerStats:
    total_count: int = 0
    by_type: Dict[str, int] = field(default_factory=dict)
    by_category: Dict[str, int] = field(default_factory=dict)
    total_duration: float = 0.0
    avg_duration: float = 0.0
    max_duration: float = 0.0
    min_duration: float = -1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'total_count': self.total_count,
            'by_type': dict(self.by_type),
            'by_category': dict(self.by_category),
            'total_duration_ms': self.total_duration,
            'avg_duration_ms': self.avg_duration,
            'max_duration_ms': self.max_duration,
            'min_duration_ms': self.min_duration,
        }


def normalize_payload(raw: Any) -> Dict[str, Any]:
    """
    Flatten a marker payload into a plain dict with well-known keys.

    - Chrome-shaped {"data": {...}} args are lifted to the top level
      without overwriting keys that already exist there.
    - Firefox network markers carry the URL as "URI"; it is copied to "url".
    - A Chrome event-dispatch payload's data.type becomes "eventType".
    """
    if not isinstance(raw, dict):
        return {}

    payload = dict(raw)
    nested = raw.get('data')
    if isinstance(nested, dict):
        for key, value in nested.items():
            if key == 'type':
                payload.setdefault('eventType', value)
                continue
            payload.setdefault(key, value)

    if 'url' not in payload:
        uri = payload.get('URI')
        if isinstance(uri, str):
            payload['url'] = uri

    return payload


def extract_markers(
    thread: Thread,
    categories: List[Category],
    shared_strings: Optional[List[str]] = None,
) -> List[ParsedMarker]:
    """
    Parse every marker of `thread`, preserving table order.

    Names resolve through the thread's string array, falling back to
    `shared_strings` when the thread has none.
    """
    table = thread.markers
    strings = thread.string_array or (shared_strings or [])
    parsed: List[ParsedMarker] = []

    for i in range(table.length):
        name = resolve_string(strings, index_at(table.name, i))

        cat_idx = index_at(table.category, i)
        category = categories[cat_idx].name if 0 <= cat_idx < len(categories) else "Unknown"

        start = column_value(table.start_time, i)
        start = float(start) if start is not None else 0.0
        end = column_value(table.end_time, i)
        duration = 0.0
        if end is not None:
            end = float(end)
            if end > start:
                duration = end - start

        data = normalize_payload(column_value(table.data, i))
        marker_type = data.get('type')
        if not isinstance(marker_type, str) or not marker_type:
            marker_type = name

        phase = column_value(table.phase, i)

        parsed.append(ParsedMarker(
            name=name,
            type=marker_type,
            category=category,
            start_time=start,
            end_time=end,
            duration=duration,
            phase=int(phase) if phase is not None else 0,
            thread_name=thread.name,
            thread_pid=thread.pid,
            data=data,
        ))

    return parsed


def extract_all_markers(profile: Profile) -> List[ParsedMarker]:
    """Markers of every thread, concatenated in thread order."""
    categories = profile.meta.categories
    shared = profile.shared.string_array
    markers: List[ParsedMarker] = []
    for thread in profile.threads:
        markers.extend(extract_markers(thread, categories, shared))
    logger.debug("extracted %d markers from %d threads", len(markers), len(profile.threads))
    return markers


# ============================================================================
# Filters
# ============================================================================

def filter_by_type(markers: List[ParsedMarker], marker_type: str) -> List[ParsedMarker]:
    """Markers whose type or name equals `marker_type`."""
    return [m for m in markers if m.type == marker_type or m.name == marker_type]


def filter_by_category(markers: List[ParsedMarker], category: str) -> List[ParsedMarker]:
    return [m for m in markers if m.category == category]


def filter_by_duration(markers: List[ParsedMarker], min_ms: float) -> List[ParsedMarker]:
    return [m for m in markers if m.duration >= min_ms]


def filter_by_name(markers: List[ParsedMarker], substring: str) -> List[ParsedMarker]:
    """Case-insensitive substring match on the marker name."""
    needle = substring.lower()
    return [m for m in markers if needle in m.name.lower()]


def get_marker_stats(markers: List[ParsedMarker]) -> MarkerStats:
    """
    Aggregate counts and duration statistics.

    Only positive durations contribute to total/max/min; the average is
    taken over all markers. min_duration stays -1 when no marker has a
    positive duration.
    """
    stats = MarkerStats(total_count=len(markers))

    for m in markers:
        stats.by_type[m.type] = stats.by_type.get(m.type, 0) + 1
        stats.by_category[m.category] = stats.by_category.get(m.category, 0) + 1

        if m.duration > 0:
            stats.total_duration += m.duration
            if m.duration > stats.max_duration:
                stats.max_duration = m.duration
            if stats.min_duration < 0 or m.duration < stats.min_duration:
                stats.min_duration = m.duration

    if stats.total_count > 0:
        stats.avg_duration = stats.total_duration / stats.total_count

    return stats
