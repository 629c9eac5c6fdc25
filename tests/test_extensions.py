"""
Tests for per-extension activity attribution and impact scoring.
"""

import pytest

from perfscope.analysis import analyze_extensions
from perfscope.analysis.extensions import calculate_impact_score, match_extension
from perfscope.analysis.types import ExtensionReport
from perfscope.markers import extract_all_markers

from tests.fixtures.profiles import interval, make_profile, marker, thread_dict


EXTENSIONS = [
    ("alpha@test", "Alpha", "moz-extension://aaaa/"),
    ("beta@test", "Beta", "moz-extension://bbbb/"),
]


def _single(m, extensions=EXTENSIONS):
    profile = make_profile([thread_dict(markers=[m])], extensions=extensions)
    [parsed] = extract_all_markers(profile)
    return match_extension(parsed, profile.get_extension_base_urls())


class TestMatchExtension:

    def test_base_url_prefix(self):
        assert _single(interval("Load", "Network", 0.0, 5.0, url="moz-extension://bbbb/x.js")) == "beta@test"

    def test_unknown_extension_url_goes_to_first(self):
        assert _single(interval("Load", "Network", 0.0, 5.0, URI="moz-extension://zzzz/x.js")) == "alpha@test"

    def test_dom_event_target(self):
        m = interval("DOMEvent", "DOM", 0.0, 1.0, target="moz-extension://bbbb/popup.html#button")
        assert _single(m) == "beta@test"

    def test_webextension_actor(self):
        assert _single(interval("JSActorMessage", "IPC", 0.0, 1.0, actor="WebExtensionContent")) == "alpha@test"

    def test_conduits_port_only(self):
        assert _single(interval("JSActorMessage", "IPC", 0.0, 1.0, actor="Conduits", name="RunListener")) is None
        assert _single(interval("JSActorMessage", "IPC", 0.0, 1.0, actor="Conduits", name="PortMessage")) == "alpha@test"

    def test_frame_message(self):
        assert _single(interval("FrameMessage", "IPC", 0.0, 1.0, name="Extension:Ready")) == "alpha@test"

    def test_text_marker(self):
        assert _single(marker("Text", "Other", 0.0, None, name="load moz-extension://bbbb/bg.js")) == "beta@test"

    def test_unrelated(self):
        assert _single(interval("Load", "Network", 0.0, 5.0, url="https://example.com/")) is None

    def test_no_extensions(self):
        assert _single(interval("Load", "Network", 0.0, 5.0, url="moz-extension://aaaa/"), extensions=[]) is None


class TestAnalyzeExtensions:

    def test_report(self):
        markers = [
            interval("Load", "Network", 0.0, 300.0, url="moz-extension://aaaa/a.js"),
            interval("DOMEvent", "DOM", 10.0, 0.5, target="moz-extension://aaaa/popup.html"),
            interval("JSActorMessage", "IPC", 20.0, 2.0, actor="WebExtensionContent"),
            interval("Load", "Network", 30.0, 20_000.0, url="moz-extension://aaaa/too-long.js"),
            interval("Load", "Network", 40.0, 50.0, url="https://example.com/"),
        ]
        profile = make_profile([thread_dict(markers=markers)], extensions=EXTENSIONS)
        analysis = analyze_extensions(profile)

        assert analysis.total_extensions == 2
        # Beta has no activity and is left out
        [alpha] = analysis.extensions
        assert alpha.name == "Alpha"
        assert alpha.base_url == "moz-extension://aaaa/"
        assert alpha.markers_count == 3
        assert alpha.total_duration == 302.5
        assert alpha.dom_events == 1
        assert alpha.ipc_messages == 1
        assert [t.name for t in alpha.top_markers] == ["Load", "JSActorMessage"]
        assert alpha.impact_score == "low"
        assert analysis.total_duration == 302.5
        assert analysis.total_events == 3

    def test_sorted_by_duration(self):
        markers = [
            interval("Load", "Network", 0.0, 10.0, url="moz-extension://aaaa/a.js"),
            interval("Load", "Network", 0.0, 90.0, url="moz-extension://bbbb/b.js"),
        ]
        analysis = analyze_extensions(make_profile([thread_dict(markers=markers)], extensions=EXTENSIONS))
        assert [e.id for e in analysis.extensions] == ["beta@test", "alpha@test"]

    def test_no_extensions(self):
        analysis = analyze_extensions(make_profile([thread_dict(markers=[interval("Load", "Network", 0.0, 1.0)])]))
        assert analysis.total_extensions == 0
        assert analysis.extensions == []


@pytest.mark.parametrize("duration,count,ipc,expected", [
    (50.0, 10, 0, "low"),
    (600.0, 150, 0, "medium"),
    (1500.0, 600, 0, "high"),
    (200.0, 50, 120, "medium"),
])
def test_impact_score(duration, count, ipc, expected):
    report = ExtensionReport(id="x", total_duration=duration, markers_count=count, ipc_messages=ipc)
    assert calculate_impact_score(report) == expected
