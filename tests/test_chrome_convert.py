"""
Tests for Chrome trace conversion.

Validates:
- Time origin from TracingStartedInBrowser and duration from the last event
- Thread/process naming, main thread and process type
- Marker phases and category mapping
- CPU profile chunks rebuilt into stacks and samples
- chrome-extension:// ids discovered from call frames
"""

import pytest

from perfscope.analysis import analyze_call_tree, get_delimiter_markers
from perfscope.chrome_convert import ChromeConverter, convert_chrome_trace
from perfscope.markers import extract_all_markers

EXT_ID = "abcdefghijklmnop" * 2


def _trace():
    return [
        {'name': "process_name", 'ph': "M", 'pid': 1, 'tid': 0, 'args': {'name': "Browser"}},
        {'name': "thread_name", 'ph': "M", 'pid': 1, 'tid': 10, 'args': {'name': "CrBrowserMain"}},
        {'name': "process_name", 'ph': "M", 'pid': 2, 'tid': 0, 'args': {'name': "Renderer"}},
        {'name': "thread_name", 'ph': "M", 'pid': 2, 'tid': 20, 'args': {'name': "DedicatedWorker thread"}},
        {'name': "TracingStartedInBrowser", 'ph': "I", 'pid': 1, 'tid': 10, 'ts': 1000,
         'cat': "disabled-by-default-devtools.timeline"},
        {'name': "FunctionCall", 'ph': "X", 'pid': 1, 'tid': 10, 'ts': 2000, 'dur': 5000,
         'cat': "devtools.timeline"},
        {'name': "EventDispatch", 'ph': "X", 'pid': 1, 'tid': 10, 'ts': 2500, 'dur': 100,
         'cat': "devtools.timeline", 'args': {'data': {'type': "click"}}},
        {'name': "MajorGC", 'ph': "X", 'pid': 2, 'tid': 20, 'ts': 3000, 'dur': 200,
         'cat': "unknown,disabled-by-default-v8.gc"},
        {'name': "Profile", 'ph': "P", 'pid': 2, 'tid': 20, 'ts': 1500, 'id': "0x1"},
        {'name': "ProfileChunk", 'ph': "P", 'pid': 2, 'tid': 99, 'ts': 3000, 'id': "0x1", 'args': {'data': {
            'cpuProfile': {
                'nodes': [
                    {'id': 1, 'callFrame': {'functionName': "(root)", 'url': ""}},
                    {'id': 2, 'parent': 1, 'callFrame': {'functionName': "work", 'url': "https://a/app.js", 'lineNumber': 3}},
                    {'id': 3, 'parent': 2, 'callFrame': {'functionName': "bg", 'url': f"chrome-extension://{EXT_ID}/bg.js"}},
                ],
                'samples': [2, 2, 3],
            },
            'timeDeltas': [100, 200, 300],
        }}},
    ]


@pytest.fixture
def profile():
    return convert_chrome_trace({'traceEvents': _trace(), 'metadata': {'startTime': "2024-01-01T00:00:00Z"}})


def _thread(profile, name):
    return next(t for t in profile.threads if t.name == name)


class TestConversion:

    def test_meta(self, profile):
        assert profile.meta.product == "Chrome"
        assert profile.meta.platform == "Chrome DevTools"
        assert profile.meta.start_time == 1_704_067_200_000.0
        assert "JavaScript" in profile.category_names()

    def test_duration_from_origin(self, profile):
        # FunctionCall ends at 7000us; origin is 1000us
        assert profile.duration_ms == 6.0

    def test_threads(self, profile):
        main = _thread(profile, "CrBrowserMain")
        worker = _thread(profile, "DedicatedWorker thread")
        assert main.is_main_thread
        assert main.process_type == "default"
        assert main.process_name == "Browser"
        assert not worker.is_main_thread
        assert worker.process_type == "tab"
        assert [t.name for t in profile.threads] == ["CrBrowserMain", "DedicatedWorker thread"]

    def test_markers(self, profile):
        markers = {m.name: m for m in extract_all_markers(profile)}
        call = markers["FunctionCall"]
        assert call.start_time == 1.0
        assert call.duration == 5.0
        assert call.category == "JavaScript"
        assert markers["TracingStartedInBrowser"].end_time is None
        assert markers["MajorGC"].category == "GC / CC"

    def test_event_type_lifted(self, profile):
        dispatch = next(m for m in get_delimiter_markers(profile) if m.name == "EventDispatch")
        assert dispatch.data['eventType'] == "click"

    def test_cpu_profile_samples(self, profile):
        worker = _thread(profile, "DedicatedWorker thread")
        assert worker.samples.length == 3
        assert worker.samples.time == pytest.approx([2.0, 2.1, 2.3])
        assert worker.samples.thread_cpu_delta == [100, 200, 300]

    def test_call_tree_on_converted(self, profile):
        analysis = analyze_call_tree(profile, thread_name="DedicatedWorker thread")
        funcs = {f.name: f for f in analysis.top_functions}
        assert funcs["work"].self_time_ms == pytest.approx(0.3)
        assert funcs["work"].running_time_ms == pytest.approx(0.6)
        assert funcs["bg"].file == f"chrome-extension://{EXT_ID}/bg.js"
        assert analysis.hot_paths[0].path in ("(root) → work", "(root) → work → bg")

    def test_extension_detected(self, profile):
        assert profile.extension_count == 1
        assert profile.get_extension_base_urls() == {EXT_ID: f"chrome-extension://{EXT_ID}/"}


class TestEdgeCases:

    def test_bare_event_list(self):
        profile = convert_chrome_trace([
            {'name': "A", 'ph': "X", 'pid': 1, 'tid': 1, 'ts': 500, 'dur': 1500, 'cat': "blink"},
        ])
        # No TracingStartedInBrowser: origin is the earliest event
        [m] = extract_all_markers(profile)
        assert m.start_time == 0.0
        assert m.category == "Layout"
        assert profile.duration_ms == 1.5

    def test_short_extension_id_ignored(self):
        converter = ChromeConverter([])
        converter.note_extension("chrome-extension://short/bg.js")
        assert converter.extensions == []

    def test_unknown_category_is_other(self):
        converter = ChromeConverter([])
        assert converter.map_category("made-up") == converter.category_index["Other"]

    def test_empty_trace(self):
        profile = convert_chrome_trace({'traceEvents': []})
        assert profile.threads == []
        assert profile.duration_ms == 0.0

    def test_unparseable_start_time(self):
        profile = convert_chrome_trace({'traceEvents': [], 'metadata': {'startTime': "yesterday"}})
        assert profile.meta.start_time == 0.0
