"""
Per-extension activity report.
"""

import logging
from typing import Optional

from ..markers import (
    ParsedMarker,
    extract_all_markers,
    DOM_EVENT,
    JS_ACTOR_MESSAGE,
    FRAME_MESSAGE,
    TEXT,
)
from ..profile_types import Profile
from .types import ExtensionReport, ExtensionsAnalysis, MarkerSummary

logger = logging.getLogger(__name__)


EXTENSION_URL_SCHEMES = ("moz-extension://", "chrome-extension://")
MAX_MARKER_DURATION_MS = 10_000.0
TOP_MARKER_MIN_MS = 1.0
TOP_MARKER_LIMIT = 5


def _first(base_urls: dict[str, str]) -> Optional[str]:
    return next(iter(base_urls), None)


def match_extension(m: ParsedMarker, base_urls: dict[str, str]) -> Optional[str]:
    """
    Attribute a marker to an extension id.

    Checked in order: payload url (base URL prefix, then any extension
    scheme), DOM event target, WebExtensions/Conduits actor messages,
    extension frame messages, and Text markers naming an extension URL.
    Activity that is clearly extension-related but not tied to one id goes
    to the first extension.
    """
    if not base_urls:
        return None

    data = m.data
    url = data.get('url')
    if isinstance(url, str) and url:
        for ext_id, base_url in base_urls.items():
            if base_url and url.startswith(base_url):
                return ext_id
        if url.startswith(EXTENSION_URL_SCHEMES):
            return _first(base_urls)

    target = data.get('target')
    if isinstance(target, str):
        for ext_id, base_url in base_urls.items():
            if base_url and base_url in target:
                return ext_id

    msg_name = data.get('name') if isinstance(data.get('name'), str) else ""

    if JS_ACTOR_MESSAGE in (m.name, m.type):
        actor = data.get('actor')
        if isinstance(actor, str):
            if "WebExtension" in actor:
                return _first(base_urls)
            if actor == "Conduits" and "Port" in msg_name:
                return _first(base_urls)

    if FRAME_MESSAGE in (m.name, m.type):
        if any(token in msg_name for token in ("Extension", "WebExt", "addons")):
            return _first(base_urls)

    if TEXT in (m.name, m.type) and any(s in msg_name for s in EXTENSION_URL_SCHEMES):
        for ext_id, base_url in base_urls.items():
            if base_url and base_url in msg_name:
                return ext_id
        return _first(base_urls)

    return None


def calculate_impact_score(report: ExtensionReport) -> str:
    """Points for duration, event count and IPC volume: >=5 high, >=3 medium, else low."""
    score = 0

    if report.total_duration > 1000:
        score += 3
    elif report.total_duration > 500:
        score += 2
    elif report.total_duration > 100:
        score += 1

    if report.markers_count > 1000:
        score += 3
    elif report.markers_count > 500:
        score += 2
    elif report.markers_count > 100:
        score += 1

    if report.ipc_messages > 100:
        score += 2
    elif report.ipc_messages > 50:
        score += 1

    if score >= 5:
        return "high"
    if score >= 3:
        return "medium"
    return "low"


def analyze_extensions(profile: Profile) -> ExtensionsAnalysis:
    analysis = ExtensionsAnalysis(total_extensions=profile.extension_count)
    base_urls = profile.get_extension_base_urls()

    reports = {
        ext_id: ExtensionReport(id=ext_id, name=name, base_url=base_urls.get(ext_id, ""))
        for ext_id, name in profile.get_extensions().items()
    }
    if not reports:
        return analysis

    for m in extract_all_markers(profile):
        if m.duration < 0 or m.duration > MAX_MARKER_DURATION_MS:
            continue
        report = reports.get(match_extension(m, base_urls) or "")
        if report is None:
            continue

        report.markers_count += 1
        report.total_duration += m.duration
        if m.name == DOM_EVENT or "DOM" in m.category:
            report.dom_events += 1
        if "IPC" in m.name or "Message" in m.name:
            report.ipc_messages += 1
        if m.duration > TOP_MARKER_MIN_MS:
            report.top_markers.append(MarkerSummary(name=m.name, category=m.category, duration=m.duration))

    for report in reports.values():
        if report.markers_count == 0 and report.total_duration == 0:
            continue
        report.top_markers.sort(key=lambda s: s.duration, reverse=True)
        del report.top_markers[TOP_MARKER_LIMIT:]
        report.impact_score = calculate_impact_score(report)

        analysis.extensions.append(report)
        analysis.total_duration += report.total_duration
        analysis.total_events += report.markers_count

    analysis.extensions.sort(key=lambda r: r.total_duration, reverse=True)
    logger.debug("extensions: %d with activity", len(analysis.extensions))
    return analysis
