"""
Tests for profile comparison and the single-profile overview.
"""

from perfscope.analysis import build_profile_summary, compare_profiles
from perfscope.analysis.compare import percent_change, summarize_profile
from perfscope.loader import BrowserType

from tests.fixtures.profiles import interval, make_profile, thread_dict


def _gc_profile(majors: int, duration_ms: float = 1000.0):
    markers = [interval("GCMajor", "GC / CC", i * 50.0, 10.0) for i in range(majors)]
    return make_profile([thread_dict(markers=markers)], duration_ms=duration_ms)


class TestSummarizeProfile:

    def test_counts(self):
        markers = [
            interval("GCMajor", "GC / CC", 0.0, 10.0),
            interval("GCMinor", "GC / CC", 20.0, 2.0),
            interval("IPCOut", "IPC", 30.0, 1.0, type="IPC", sync=True),
            interval("IPCOut", "IPC", 40.0, 1.0, type="IPC", sync=False),
            interval("Reflow", "Layout", 50.0, 1.0),
            interval("Script", "JavaScript", 60.0, 80.0),
        ]
        summary = summarize_profile(make_profile([thread_dict(markers=markers, stacks=[("a",)] * 7)]), "x")
        assert summary.name == "x"
        assert summary.gc_major_count == 1
        assert summary.gc_minor_count == 1
        assert summary.gc_total_time_ms == 12.0
        assert summary.sync_ipc_count == 1
        assert summary.layout_count == 1
        assert summary.long_task_count == 1
        assert summary.total_samples == 7


class TestCompareProfiles:

    def test_gc_regression(self):
        diff = compare_profiles(_gc_profile(2), _gc_profile(6))
        assert diff.changes.gc_major_change == 4
        assert diff.changes.gc_time_change_ms == 40.0
        assert diff.changes.gc_time_change_percent == 200.0
        assert "More major GC events" in diff.regressed
        assert "GC time increased by 200.0%" in diff.regressed
        assert "Duration similar" in diff.unchanged

    def test_improvement(self):
        diff = compare_profiles(_gc_profile(6, duration_ms=2000.0), _gc_profile(2, duration_ms=1000.0))
        assert "Duration reduced by 50.0%" in diff.improved
        assert "Fewer major GC events" in diff.improved
        assert diff.regressed == []

    def test_small_count_change_ignored(self):
        diff = compare_profiles(_gc_profile(2), _gc_profile(4))
        assert "More major GC events" not in diff.regressed

    def test_percent_change(self):
        assert percent_change(0.0, 0.0) == 0.0
        assert percent_change(0.0, 5.0) == 100.0
        assert percent_change(200.0, 150.0) == -25.0


class TestOverview:

    def test_summary(self):
        profile = make_profile(
            [thread_dict("GeckoMain", is_main=True, stacks=[("m",)] * 4, markers=[interval("A", "Other", 0.0, 1.0)])],
            duration_ms=2500.0,
            extensions=[("e@x", "Ext", "moz-extension://e/")],
        )
        overview = build_profile_summary(profile, BrowserType.FIREFOX)
        assert overview.browser_type == "firefox"
        assert overview.duration_seconds == 2.5
        assert overview.product == "Firefox"
        assert overview.cpu_name == "Test CPU"
        assert overview.logical_cpus == 8
        assert overview.main_thread_count == 1
        assert overview.extensions == {"e@x": "Ext"}
        assert overview.features == ["js", "stackwalk"]
        assert overview.total_markers == 1
        assert overview.total_samples == 4
        assert "JavaScript" in overview.categories

    def test_browser_as_string(self):
        assert build_profile_summary(make_profile(), "chrome").browser_type == "chrome"
        assert build_profile_summary(make_profile(), None).browser_type == "unknown"
