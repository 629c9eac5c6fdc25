"""
Bottleneck Detection

A fixed, ordered registry of independent detectors. Each detector is a pure
function `detector(markers, context) -> Optional[Bottleneck]` that looks at
the normalised markers of a profile and reports at most one finding.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..markers import (
    ParsedMarker,
    extract_all_markers,
    MAIN_THREAD_LONG_TASK,
    STYLES,
    CHANNEL_MARKER,
    HOST_RESOLVER,
    JS_ACTOR_MESSAGE,
    FRAME_MESSAGE,
)
from ..profile_types import Profile
from .types import Bottleneck, BottleneckReport, Severity

logger = logging.getLogger(__name__)


# Thresholds (ms unless noted)
LONG_TASK_THRESHOLD_MS = 50.0
LONG_TASK_MAX_MS = 10_000.0
GC_PAUSE_LONG_MS = 100.0
GC_FREQUENCY_HIGH_PER_SEC = 2.0
GC_MAX_MS = 5_000.0
GC_MIN_REPORTABLE_MS = 500.0
SYNC_IPC_THRESHOLD_MS = 10.0
SYNC_IPC_MAX_MS = 2_000.0
LAYOUT_THRASHING_WINDOW_MS = 100.0
LAYOUT_THRASHING_MIN_COUNT = 5
LAYOUT_MAX_MS = 1_000.0
NETWORK_BLOCKING_MS = 1_000.0
NETWORK_MAX_MS = 30_000.0
EXTENSION_MIN_TOTAL_MS = 100.0
EXTENSION_MIN_COUNT = 50

NO_BOTTLENECKS_SUMMARY = (
    "No significant performance bottlenecks detected. "
    "The profile shows healthy performance characteristics."
)

SEVERITY_PENALTY = {
    Severity.HIGH: 20,
    Severity.MEDIUM: 10,
    Severity.LOW: 5,
}


@dataclass
class DetectorContext:
    """Profile-level facts detectors need beyond the marker list."""
    duration_seconds: float = 0.0
    extension_base_urls: dict[str, str] = field(default_factory=dict)
    extension_names: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_profile(cls, profile: Profile) -> "DetectorContext":
        return cls(
            duration_seconds=profile.duration_seconds,
            extension_base_urls=profile.get_extension_base_urls(),
            extension_names=profile.get_extensions(),
        )


Detector = Callable[[list[ParsedMarker], DetectorContext], Optional[Bottleneck]]


def _summarise(selected: list[ParsedMarker]) -> tuple[float, float, float]:
    """(total, avg, max) duration of the selected markers."""
    total = sum(m.duration for m in selected)
    peak = max((m.duration for m in selected), default=0.0)
    avg = total / len(selected) if selected else 0.0
    return total, avg, peak


# ============================================================================
# Detectors
# ============================================================================

def detect_long_tasks(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    """MainThreadLongTask markers longer than 50ms (anything >=10s is a span marker, not a task)."""
    tasks = [
        m for m in markers
        if m.name == MAIN_THREAD_LONG_TASK and LONG_TASK_THRESHOLD_MS < m.duration < LONG_TASK_MAX_MS
    ]
    if not tasks:
        return None

    total, avg, peak = _summarise(tasks)
    if len(tasks) > 10 or peak > 200:
        severity = Severity.HIGH
    elif len(tasks) > 5 or peak > 100:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return Bottleneck(
        type="Long Tasks",
        severity=severity,
        count=len(tasks),
        total_duration=total,
        avg_duration=avg,
        max_duration=peak,
        description=f"{len(tasks)} tasks blocked the main thread for >{LONG_TASK_THRESHOLD_MS:.0f}ms",
        recommendation="Investigate long-running JavaScript and consider breaking into smaller chunks or using Web Workers",
        locations=[f"{m.duration:.2f}ms in {m.thread_name} thread" for m in tasks[:10]],
    )


def _is_gc_marker(m: ParsedMarker) -> bool:
    return m.name.startswith("GC") or m.name.startswith("V8.GC") or m.category == "GC / CC"


def detect_gc_pressure(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    """
    Frequent or long GC pauses.

    Rate is GC events per profile second. A finding that would only be LOW
    with less than 500ms of total GC time is not reported.
    """
    gc = [m for m in markers if _is_gc_marker(m) and 0 < m.duration < GC_MAX_MS]
    if not gc:
        return None

    total, avg, peak = _summarise(gc)
    rate = len(gc) / context.duration_seconds if context.duration_seconds > 0 else 0.0

    if rate > GC_FREQUENCY_HIGH_PER_SEC * 2 or peak > GC_PAUSE_LONG_MS * 2:
        severity = Severity.HIGH
    elif rate > GC_FREQUENCY_HIGH_PER_SEC or peak > GC_PAUSE_LONG_MS:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    if severity == Severity.LOW and total < GC_MIN_REPORTABLE_MS:
        logger.debug("GC pressure suppressed: %d events, %.1fms total", len(gc), total)
        return None

    if context.duration_seconds > 0:
        rate_text = f"{rate:.1f} GC events/sec"
    else:
        rate_text = f"{len(gc)} GC events (rate unavailable: profile has no duration)"

    return Bottleneck(
        type="GC Pressure",
        severity=severity,
        count=len(gc),
        total_duration=total,
        avg_duration=avg,
        max_duration=peak,
        description=f"{rate_text} with {total:.0f}ms total pause time (max: {peak:.2f}ms)",
        recommendation="Reduce object allocations, consider object pooling, and avoid creating unnecessary temporary objects",
        locations=[f"{m.name}: {m.duration:.2f}ms" for m in gc[:5]],
    )


def _is_sync_ipc(m: ParsedMarker) -> bool:
    if not (m.category == "IPC" or "IPC" in m.name):
        return False
    if m.duration <= 0 or m.duration > SYNC_IPC_MAX_MS:
        return False
    # Long IPC calls are treated as sync even without the flag
    return m.data.get('sync') is True or m.duration > SYNC_IPC_THRESHOLD_MS


def detect_sync_ipc(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    calls = [m for m in markers if _is_sync_ipc(m)]
    if not calls:
        return None

    total, avg, peak = _summarise(calls)
    if len(calls) > 20 or total > 500:
        severity = Severity.HIGH
    elif len(calls) > 10 or total > 200:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return Bottleneck(
        type="Synchronous IPC",
        severity=severity,
        count=len(calls),
        total_duration=total,
        avg_duration=avg,
        max_duration=peak,
        description=f"{len(calls)} synchronous IPC calls blocking threads for {total:.0f}ms total",
        recommendation="Consider using async IPC alternatives to avoid blocking the main thread",
        locations=[f"{m.duration:.2f}ms in {m.thread_name}" for m in calls[:5]],
    )


def detect_layout_thrashing(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    """
    Many layout/style recalculations in quick succession.

    Counts adjacent pairs (in marker order) that start less than 100ms apart;
    at least 5 eligible markers and 5 such pairs are required.
    """
    layout = [
        m for m in markers
        if (m.category == "Layout" or m.name == STYLES or "Reflow" in m.name)
        and 0 < m.duration < LAYOUT_MAX_MS
    ]
    if len(layout) < LAYOUT_THRASHING_MIN_COUNT:
        return None

    thrashing = sum(
        1 for prev, cur in zip(layout, layout[1:])
        if cur.start_time - prev.start_time < LAYOUT_THRASHING_WINDOW_MS
    )
    if thrashing < LAYOUT_THRASHING_MIN_COUNT:
        return None

    total, avg, peak = _summarise(layout)
    if thrashing > 50 or total > 1000:
        severity = Severity.HIGH
    elif thrashing > 20 or total > 500:
        severity = Severity.MEDIUM
    else:
        severity = Severity.LOW

    return Bottleneck(
        type="Layout Thrashing",
        severity=severity,
        count=thrashing,
        total_duration=total,
        avg_duration=avg,
        max_duration=peak,
        description=f"{thrashing} rapid layout recalculations detected, causing {total:.0f}ms of layout work",
        recommendation="Batch DOM reads and writes separately, use requestAnimationFrame for visual updates",
    )


def detect_network_blocking(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    slow = [
        m for m in markers
        if (m.category == "Network" or m.name in (CHANNEL_MARKER, HOST_RESOLVER))
        and NETWORK_BLOCKING_MS < m.duration < NETWORK_MAX_MS
    ]
    if not slow:
        return None

    total, avg, peak = _summarise(slow)
    severity = Severity.MEDIUM if len(slow) > 5 or peak > 5000 else Severity.LOW

    locations = []
    for m in slow[:5]:
        url = m.data.get('url')
        url = url if isinstance(url, str) else ""
        if len(url) > 50:
            url = url[:50] + "..."
        locations.append(f"{m.duration:.0f}ms: {url}")

    return Bottleneck(
        type="Network Blocking",
        severity=severity,
        count=len(slow),
        total_duration=total,
        avg_duration=avg,
        max_duration=peak,
        description=f"{len(slow)} slow network requests (>{NETWORK_BLOCKING_MS:.0f}ms each)",
        recommendation="Optimize slow requests, consider caching, or load resources asynchronously",
        locations=locations,
    )


def match_extension_marker(m: ParsedMarker, base_urls: dict[str, str]) -> Optional[str]:
    """
    Extension id a marker belongs to, or None.

    A marker belongs to an extension when its URL starts with the extension's
    base URL, or when it is an actor/frame message whose actor (or message
    name) mentions the extension id, the WebExtensions actor, or a Conduits
    port. Generic WebExtensions traffic is attributed to the first extension.
    """
    if not base_urls:
        return None

    url = m.data.get('url')
    if isinstance(url, str) and url:
        for ext_id, base_url in base_urls.items():
            if base_url and url.startswith(base_url):
                return ext_id

    if m.name in (JS_ACTOR_MESSAGE, FRAME_MESSAGE):
        refs = [v for v in (m.data.get('actor'), m.data.get('name')) if isinstance(v, str)]
        for ref in refs:
            for ext_id in base_urls:
                if ext_id and ext_id in ref:
                    return ext_id
        for ref in refs:
            if "WebExtension" in ref or "Conduits" in ref:
                return next(iter(base_urls))

    return None


def detect_extension_overhead(markers: list[ParsedMarker], context: DetectorContext) -> Optional[Bottleneck]:
    if not context.extension_base_urls:
        return None

    activity: dict[str, list[float]] = {}
    for m in markers:
        ext_id = match_extension_marker(m, context.extension_base_urls)
        if ext_id is None:
            continue
        entry = activity.setdefault(ext_id, [0, 0.0])
        entry[0] += 1
        entry[1] += m.duration

    total_count = sum(int(count) for count, _ in activity.values())
    total = sum(duration for _, duration in activity.values())
    if total_count == 0:
        return None
    if total < EXTENSION_MIN_TOTAL_MS and total_count < EXTENSION_MIN_COUNT:
        logger.debug("extension overhead below threshold: %d events, %.1fms", total_count, total)
        return None

    locations = []
    for ext_id, (count, duration) in activity.items():
        name = context.extension_names.get(ext_id) or ext_id
        locations.append(f"{name}: {int(count)} events, {duration:.0f}ms")

    return Bottleneck(
        type="Extension Overhead",
        severity=Severity.MEDIUM if total > 1000 else Severity.LOW,
        count=total_count,
        total_duration=total,
        avg_duration=total / total_count,
        description=f"{total_count} extension-related events consuming {total:.0f}ms",
        recommendation="Review extension activity, consider disabling extensions during performance-critical operations",
        locations=locations,
    )


DETECTORS: list[Detector] = [
    detect_long_tasks,
    detect_gc_pressure,
    detect_sync_ipc,
    detect_layout_thrashing,
    detect_network_blocking,
    detect_extension_overhead,
]


# ============================================================================
# Report
# ============================================================================

def run_detectors(markers: list[ParsedMarker], context: DetectorContext) -> list[Bottleneck]:
    findings = []
    for detector in DETECTORS:
        finding = detector(markers, context)
        logger.debug("%s -> %s", detector.__name__, finding.severity if finding else None)
        if finding is not None:
            findings.append(finding)
    return findings


def detect_bottlenecks(profile: Profile) -> list[Bottleneck]:
    """Run every detector over all markers of the profile, in registry order."""
    return run_detectors(extract_all_markers(profile), DetectorContext.from_profile(profile))


def calculate_score(bottlenecks: list[Bottleneck]) -> int:
    """100 minus 20/10/5 per high/medium/low finding, never below 0."""
    score = 100 - sum(SEVERITY_PENALTY[b.severity] for b in bottlenecks)
    return max(score, 0)


def generate_summary(bottlenecks: list[Bottleneck]) -> str:
    if not bottlenecks:
        return NO_BOTTLENECKS_SUMMARY

    parts = []
    for severity in (Severity.HIGH, Severity.MEDIUM, Severity.LOW):
        n = sum(1 for b in bottlenecks if b.severity == severity)
        if n:
            parts.append(f"{n} {severity} severity")

    return (
        f"Detected {len(bottlenecks)} bottleneck(s): {', '.join(parts)}. "
        "See details below for recommendations."
    )


def filter_by_severity(bottlenecks: list[Bottleneck], min_severity: Optional[Severity]) -> list[Bottleneck]:
    if min_severity is None:
        return list(bottlenecks)
    return [b for b in bottlenecks if b.severity >= min_severity]


def build_bottleneck_report(profile: Profile, min_severity=None) -> BottleneckReport:
    """
    Full bottleneck report. `min_severity` (Severity or 'low'/'medium'/'high')
    filters findings before score and summary are computed.
    """
    threshold = Severity.parse(min_severity) if min_severity else None
    findings = filter_by_severity(detect_bottlenecks(profile), threshold)
    return BottleneckReport(
        score=calculate_score(findings),
        summary=generate_summary(findings),
        bottlenecks=findings,
    )
