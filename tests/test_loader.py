"""
Tests for profile loading and browser detection.

Validates:
- Plain and gzip-compressed files (by suffix and by magic bytes)
- Firefox / Chrome detection and explicit browser selection
- Load failures are reported as ProfileLoadError
- Firefox fix-ups: timeDeltas -> time, missing profilingEndTime
"""

import gzip
import json

import pytest

from perfscope.loader import (
    BrowserType,
    ProfileLoadError,
    detect_browser_type,
    load_profile,
    parse_browser_type,
    profile_from_dict,
    read_profile_json,
)

from tests.fixtures.profiles import interval, profile_dict, thread_dict, write_profile


def _firefox(**kwargs):
    return profile_dict([thread_dict("GeckoMain", stacks=[("a",)] * 3, is_main=True,
                                     markers=[interval("Paint", "Graphics", 10.0, 40.0)])], **kwargs)


CHROME_EVENTS = [
    {'name': "thread_name", 'ph': "M", 'pid': 1, 'tid': 1, 'args': {'name': "CrRendererMain"}},
    {'name': "FunctionCall", 'ph': "X", 'pid': 1, 'tid': 1, 'ts': 1000, 'dur': 500, 'cat': "devtools.timeline"},
]


class TestBrowserDetection:

    def test_firefox(self):
        assert detect_browser_type(_firefox()) == BrowserType.FIREFOX

    def test_firefox_needs_threads(self):
        assert detect_browser_type({'meta': {}, 'threads': []}) == BrowserType.UNKNOWN

    def test_chrome_object_and_list(self):
        assert detect_browser_type({'traceEvents': CHROME_EVENTS}) == BrowserType.CHROME
        assert detect_browser_type(CHROME_EVENTS) == BrowserType.CHROME
        assert detect_browser_type([]) == BrowserType.UNKNOWN

    def test_other_documents(self):
        assert detect_browser_type({'hello': 1}) == BrowserType.UNKNOWN
        assert detect_browser_type("text") == BrowserType.UNKNOWN

    @pytest.mark.parametrize("value,expected", [
        ("firefox", BrowserType.FIREFOX),
        (" Chrome ", BrowserType.CHROME),
        ("auto", BrowserType.UNKNOWN),
        ("safari", BrowserType.UNKNOWN),
        (None, BrowserType.UNKNOWN),
        (BrowserType.CHROME, BrowserType.CHROME),
    ])
    def test_parse_browser_type(self, value, expected):
        assert parse_browser_type(value) == expected

    def test_str(self):
        assert str(BrowserType.FIREFOX) == "firefox"


class TestReadProfileJson:

    def test_plain(self, tmp_path):
        path = write_profile(tmp_path / "p.json", {'a': 1})
        assert read_profile_json(path) == {'a': 1}

    def test_gzip_suffix(self, tmp_path):
        path = write_profile(tmp_path / "p.json.gz", {'a': 2}, compress=True)
        assert read_profile_json(path) == {'a': 2}

    def test_gzip_magic_without_suffix(self, tmp_path):
        path = write_profile(tmp_path / "p.json", {'a': 3}, compress=True)
        assert read_profile_json(str(path)) == {'a': 3}

    def test_missing_file(self, tmp_path):
        with pytest.raises(ProfileLoadError, match="failed to read profile"):
            read_profile_json(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ProfileLoadError, match="failed to parse profile JSON"):
            read_profile_json(path)

    def test_corrupt_gzip(self, tmp_path):
        path = tmp_path / "bad.json.gz"
        path.write_bytes(b"\x1f\x8bnot really gzip")
        with pytest.raises(ProfileLoadError, match="failed to decompress profile"):
            read_profile_json(path)


class TestLoadProfile:

    def test_firefox_auto(self, tmp_path):
        path = write_profile(tmp_path / "ff.json", _firefox())
        profile, browser = load_profile(path)
        assert browser == BrowserType.FIREFOX
        assert profile.threads[0].name == "GeckoMain"
        assert profile.duration_ms == 1000.0

    def test_gzipped_firefox(self, tmp_path):
        path = write_profile(tmp_path / "ff.json.gz", _firefox(), compress=True)
        profile, browser = load_profile(path, "auto")
        assert browser == BrowserType.FIREFOX
        assert len(profile.threads) == 1

    def test_chrome_auto(self, tmp_path):
        path = write_profile(tmp_path / "trace.json", {'traceEvents': CHROME_EVENTS})
        profile, browser = load_profile(path)
        assert browser == BrowserType.CHROME
        assert profile.meta.product == "Chrome"
        assert profile.threads[0].name == "CrRendererMain"

    def test_explicit_browser(self, tmp_path):
        path = write_profile(tmp_path / "trace.json", CHROME_EVENTS)
        _, browser = load_profile(path, "chrome")
        assert browser == BrowserType.CHROME

    def test_undetectable(self, tmp_path):
        path = write_profile(tmp_path / "x.json", {'hello': "world"})
        with pytest.raises(ProfileLoadError, match="could not detect profile format"):
            load_profile(path)

    def test_forced_firefox_on_list(self, tmp_path):
        path = write_profile(tmp_path / "x.json", CHROME_EVENTS)
        with pytest.raises(ProfileLoadError, match="Firefox profile must be a JSON object"):
            load_profile(path, "firefox")


class TestProfileFromDict:

    def test_unrecognised(self):
        with pytest.raises(ProfileLoadError, match="unrecognised profile format"):
            profile_from_dict({'nothing': True})

    def test_validation_error_wrapped(self):
        data = _firefox()
        data['threads'][0]['samples']['stack'] = "not a list"
        with pytest.raises(ProfileLoadError, match="invalid firefox profile"):
            profile_from_dict(data)

    def test_time_deltas_rebuilt(self):
        data = _firefox()
        samples = data['threads'][0]['samples']
        del samples['time']
        samples['timeDeltas'] = [1.0, 2.0, 3.0]
        profile = profile_from_dict(data, "firefox")
        assert profile.threads[0].samples.time == [1.0, 3.0, 6.0]

    def test_profiling_end_time_derived(self):
        profile = profile_from_dict(_firefox(duration_ms=0.0))
        # Latest event is the Paint marker ending at 50ms
        assert profile.meta.profiling_end_time == 50.0
        assert profile.duration_ms == 50.0

    def test_round_trip_through_json(self):
        data = json.loads(json.dumps(_firefox()))
        assert profile_from_dict(data).meta.cpu_name == "Test CPU"

    def test_gzip_module_round_trip(self, tmp_path):
        path = tmp_path / "raw.gz"
        path.write_bytes(gzip.compress(json.dumps(_firefox()).encode('utf-8')))
        profile, _ = load_profile(path)
        assert profile.meta.product == "Firefox"
