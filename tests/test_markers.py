"""
Tests for marker extraction and filtering.

Validates:
- Names/categories resolve through the thread and shared string tables
- Unresolvable indices degrade to "" / "Unknown" instead of raising
- Payload normalisation (nested data, URI -> url, eventType)
- Filters and statistics
"""

from perfscope.markers import (
    extract_markers,
    extract_all_markers,
    filter_by_category,
    filter_by_duration,
    filter_by_name,
    filter_by_type,
    get_marker_stats,
    normalize_payload,
)
from perfscope.profile_types import Category, Profile, Thread

from tests.fixtures.profiles import interval, make_profile, marker, thread_dict


class TestExtractMarkers:

    def test_resolves_name_category_and_duration(self):
        profile = make_profile([thread_dict("GeckoMain", markers=[
            interval("GCMajor", "GC / CC", 10.0, 25.0, type="GCMajor"),
        ])])
        [m] = extract_all_markers(profile)
        assert m.name == "GCMajor"
        assert m.type == "GCMajor"
        assert m.category == "GC / CC"
        assert m.start_time == 10.0
        assert m.end_time == 35.0
        assert m.duration == 25.0
        assert m.thread_name == "GeckoMain"

    def test_instant_marker_has_zero_duration(self):
        profile = make_profile([thread_dict(markers=[marker("Awake", "Other", 5.0)])])
        [m] = extract_all_markers(profile)
        assert m.end_time is None
        assert m.duration == 0.0
        assert not m.is_duration

    def test_end_before_start_gives_zero_duration(self):
        profile = make_profile([thread_dict(markers=[marker("Odd", "Other", 50.0, 40.0)])])
        [m] = extract_all_markers(profile)
        assert m.duration == 0.0

    def test_type_falls_back_to_name(self):
        profile = make_profile([thread_dict(markers=[interval("Paint", "Graphics", 0.0, 1.0)])])
        [m] = extract_all_markers(profile)
        assert m.type == "Paint"

    def test_out_of_range_indices_degrade(self):
        thread = Thread.model_validate({
            'name': "T",
            'markers': {
                'length': 1,
                'name': [99],
                'category': [42],
                'startTime': [1.0],
                'endTime': [2.0],
                'data': [None],
            },
            'stringArray': ["only"],
        })
        [m] = extract_markers(thread, [Category(name="Other")])
        assert m.name == ""
        assert m.category == "Unknown"
        assert m.duration == 1.0

    def test_short_columns_do_not_raise(self):
        thread = Thread.model_validate({
            'name': "T",
            'markers': {'length': 2, 'name': [0], 'startTime': [1.0]},
            'stringArray': ["A"],
        })
        markers = extract_markers(thread, [])
        assert len(markers) == 2
        assert markers[1].name == ""
        assert markers[1].start_time == 0.0

    def test_shared_string_array_fallback(self):
        profile = Profile.model_validate({
            'meta': {'categories': [{'name': "Other"}]},
            'threads': [{
                'name': "T",
                'markers': {'name': [0], 'category': [0], 'startTime': [1.0], 'endTime': [3.0]},
            }],
            'shared': {'stringArray': ["SharedName"]},
        })
        [m] = extract_all_markers(profile)
        assert m.name == "SharedName"
        assert m.duration == 2.0

    def test_all_markers_in_thread_order(self):
        profile = make_profile([
            thread_dict("A", markers=[marker("First", "Other", 10.0)], tid=1),
            thread_dict("B", markers=[marker("Second", "Other", 1.0)], tid=2),
        ])
        assert [m.name for m in extract_all_markers(profile)] == ["First", "Second"]


class TestNormalizePayload:

    def test_non_dict_is_empty(self):
        assert normalize_payload(None) == {}
        assert normalize_payload("text") == {}

    def test_uri_copied_to_url(self):
        payload = normalize_payload({'type': "Network", 'URI': "https://a/b"})
        assert payload['url'] == "https://a/b"

    def test_nested_data_lifted_without_overwrite(self):
        payload = normalize_payload({'name': "outer", 'data': {'name': "inner", 'url': "u", 'type': "click"}})
        assert payload['name'] == "outer"
        assert payload['url'] == "u"
        assert payload['eventType'] == "click"
        assert 'type' not in payload


class TestFilters:

    def _markers(self):
        profile = make_profile([thread_dict(markers=[
            interval("GCMajor", "GC / CC", 0.0, 30.0, type="GCMajor"),
            interval("GCMinor", "GC / CC", 40.0, 2.0, type="GCMinor"),
            interval("Reflow", "Layout", 50.0, 8.0),
            marker("Awake", "Other", 60.0),
        ])])
        return extract_all_markers(profile)

    def test_by_type(self):
        assert [m.name for m in filter_by_type(self._markers(), "GCMinor")] == ["GCMinor"]

    def test_by_category(self):
        assert len(filter_by_category(self._markers(), "GC / CC")) == 2

    def test_by_duration(self):
        assert [m.name for m in filter_by_duration(self._markers(), 5.0)] == ["GCMajor", "Reflow"]

    def test_by_name_is_case_insensitive(self):
        assert len(filter_by_name(self._markers(), "gc")) == 2


class TestMarkerStats:

    def test_stats(self):
        profile = make_profile([thread_dict(markers=[
            interval("A", "Other", 0.0, 10.0),
            interval("B", "Other", 0.0, 30.0),
            marker("C", "Layout", 5.0),
        ])])
        stats = get_marker_stats(extract_all_markers(profile))
        assert stats.total_count == 3
        assert stats.total_duration == 40.0
        assert stats.max_duration == 30.0
        assert stats.min_duration == 10.0
        assert abs(stats.avg_duration - 40.0 / 3) < 1e-9
        assert stats.by_category == {"Other": 2, "Layout": 1}

    def test_empty(self):
        stats = get_marker_stats([])
        assert stats.total_count == 0
        assert stats.min_duration == -1.0
        assert stats.avg_duration == 0.0
