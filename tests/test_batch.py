"""
Tests for batch analysis across worker counts.

Profiles are served by an in-memory loader so no files are needed except for
the config-file tests.
"""

import pytest

from perfscope.analysis import BatchError, analyze_batch, load_batch_config, parse_inline_profiles
from perfscope.analysis.batch import parse_profile_entries, summarize_series
from perfscope.analysis.types import ProfileDataPoint, ProfileEntry
from perfscope.loader import BrowserType

from tests.fixtures.profiles import delimiter_profile, make_profile, thread_dict, worker_profile


def _two_worker_profile():
    return make_profile(
        [
            thread_dict("GeckoMain", stacks=[("main",)] * 10, is_main=True, tid=1),
            thread_dict("DOM Worker", stacks=[("w",)] * 50, tid=2),
            thread_dict("DOM Worker", stacks=[("w",)] * 50, tid=3),
        ],
        duration_ms=60.0,
    )


PROFILES = {
    "one.json": worker_profile(worker_samples=60, main_samples=20, duration_ms=100.0),
    "two.json": _two_worker_profile(),
    "delims.json": delimiter_profile(),
    "crypto.json": make_profile([thread_dict("DOM Worker", stacks=[("decryptBlock",)] * 8, tid=2)]),
}


def fake_loader(path):
    if path not in PROFILES:
        raise FileNotFoundError(path)
    return PROFILES[path], BrowserType.FIREFOX


class TestAnalyzeBatch:

    def test_series_and_summary(self):
        entries = [
            ProfileEntry(path="two.json", workers=2, label="firefox"),
            ProfileEntry(path="one.json", workers=1, label="firefox"),
        ]
        result = analyze_batch(entries, loader=fake_loader, max_workers=2)

        points = result.series["firefox"]
        assert [p.worker_count for p in points] == [1, 2]
        assert points[0].efficiency == pytest.approx(80.0)
        assert points[1].wall_clock_ms == 60.0
        assert points[1].speedup == pytest.approx(110.0 / 60.0)

        summary = result.summary
        assert summary.total_profiles == 2
        assert summary.labels == ["firefox"]
        assert summary.best_workers["firefox"] == 2
        assert summary.min_wall_clock["firefox"] == 60.0
        assert summary.peak_efficiency["firefox"] == pytest.approx(110.0 / 60.0 / 2 * 100)
        assert "firefox" not in summary.min_operation_time

    def test_operation_measured_with_last_end(self):
        entry = ProfileEntry(path="delims.json", workers=0, label="ui",
                             start_pattern="DOMEvent:click", end_pattern="Paint")
        result = analyze_batch([entry], loader=fake_loader)
        [point] = result.series["ui"]
        assert point.operation_time_ms == 40.0
        assert result.summary.min_operation_time["ui"] == 40.0

    def test_unmatched_patterns_leave_operation_unset(self):
        entry = ProfileEntry(path="delims.json", label="ui", start_pattern="Navigation", end_pattern="Paint")
        [point] = analyze_batch([entry], loader=fake_loader).series["ui"]
        assert point.operation_time_ms == 0.0

    def test_load_failure_aborts(self):
        entries = [ProfileEntry(path="one.json", workers=1, label="a"), ProfileEntry(path="missing.json", label="a")]
        with pytest.raises(BatchError, match="failed to load profile missing.json"):
            analyze_batch(entries, loader=fake_loader)

    def test_empty(self):
        result = analyze_batch([], loader=fake_loader)
        assert result.series == {}
        assert result.summary.total_profiles == 0

    def test_js_crypto_time(self):
        [point] = analyze_batch([ProfileEntry(path="crypto.json", workers=1, label="c")], loader=fake_loader).series["c"]
        assert point.crypto_time_ms == 8.0
        [point] = analyze_batch([ProfileEntry(path="one.json", workers=1, label="a")], loader=fake_loader).series["a"]
        assert point.crypto_time_ms == 0.0

    def test_json_keys(self):
        result = analyze_batch([ProfileEntry(path="one.json", workers=1, label="a")], loader=fake_loader)
        point = result.to_dict()['series']['a'][0]
        assert 'efficiency_percent' in point
        assert point['file_path'] == "one.json"


def test_summarize_series_multiple_labels():
    series = {
        "b": [ProfileDataPoint(worker_count=1, label="b", wall_clock_ms=50.0, efficiency=10.0, speedup=0.1)],
        "a": [
            ProfileDataPoint(worker_count=1, label="a", wall_clock_ms=100.0, efficiency=70.0, speedup=0.7),
            ProfileDataPoint(worker_count=4, label="a", wall_clock_ms=40.0, efficiency=60.0, speedup=2.4,
                             operation_time_ms=12.0),
        ],
    }
    summary = summarize_series(series, 3)
    assert summary.labels == ["a", "b"]
    assert summary.best_workers == {"a": 4, "b": 1}
    assert summary.peak_efficiency["a"] == 70.0
    assert summary.max_speedup["a"] == 2.4
    assert summary.min_operation_time == {"a": 12.0}


class TestInlineProfiles:

    def test_parse(self):
        entries = parse_inline_profiles("a.json:1:Firefox, b.json:4:Firefox")
        assert [(e.path, e.workers, e.label) for e in entries] == [("a.json", 1, "Firefox"), ("b.json", 4, "Firefox")]

    def test_path_with_colon(self):
        [entry] = parse_inline_profiles(r"C:\traces\a.json:2:Chrome")
        assert entry.path == r"C:\traces\a.json"
        assert entry.workers == 2

    @pytest.mark.parametrize("text,message", [
        ("a.json:1", "invalid profile entry"),
        ("a.json:x:L", "invalid worker count 'x'"),
        (":1:L", "invalid profile entry"),
        (" , ", "no profiles given"),
    ])
    def test_errors(self, text, message):
        with pytest.raises(BatchError, match=message):
            parse_inline_profiles(text)


class TestBatchConfig:

    def test_yaml_list(self, tmp_path):
        path = tmp_path / "batch.yaml"
        path.write_text(
            "- path: a.json\n"
            "  workers: 1\n"
            "  label: Firefox\n"
            "- path: b.json\n"
            "  workers: 4\n"
            "  label: Firefox\n"
            "  start_pattern: DOMEvent:click\n"
            "  end_pattern: Paint\n"
        )
        entries = load_batch_config(path)
        assert [e.workers for e in entries] == [1, 4]
        assert entries[1].start_pattern == "DOMEvent:click"

    def test_mapping_with_profiles(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text('{"profiles": [{"path": "a.json", "workers": 2, "label": "x"}]}')
        [entry] = load_batch_config(path)
        assert entry.workers == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(BatchError, match="failed to read batch config"):
            load_batch_config(tmp_path / "missing.yaml")

    def test_bad_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("- path: [unclosed\n")
        with pytest.raises(BatchError, match="failed to parse batch config"):
            load_batch_config(path)

    def test_bad_structure(self):
        with pytest.raises(BatchError, match="must be a list of profiles"):
            parse_profile_entries({'other': []})
        with pytest.raises(BatchError, match="expected a mapping"):
            parse_profile_entries(["a.json"])
        with pytest.raises(BatchError, match="invalid profile entry"):
            parse_profile_entries([{'workers': 1}])
