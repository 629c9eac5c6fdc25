"""
Thread contention analysis.

Approximates when each worker thread was running from its samples, then
looks for GC pauses that overlapped worker activity and for clusters of
synchronous IPC issued by several threads at nearly the same time.
"""

import logging
from dataclasses import dataclass

from ..markers import extract_markers, GC_MAJOR, GC_MINOR, GC_SLICE
from ..profile_types import Profile, sample_cpu_ms, sample_time_ms
from .threads import is_worker_thread
from .types import ContentionAnalysis, ContentionEvent

logger = logging.getLogger(__name__)


GC_MARKER_NAMES = (GC_MAJOR, GC_MINOR, GC_SLICE)
IPC_CLUSTER_WINDOW_MS = 10.0
MAX_EVENTS = 50
RECOMMEND_EVENT_COUNT = 5
RECOMMEND_IMPACT_MS = 100.0


@dataclass
class _Activity:
    thread_name: str
    start: float
    end: float


@dataclass
class _IPCCall:
    start: float
    duration: float
    thread_name: str


def contention_severity(impact_ms: float, duration_ms: float) -> str:
    """Severity band of total impact as a percentage of profile duration."""
    if duration_ms <= 0:
        return "unknown"
    percent = impact_ms / duration_ms * 100
    if percent > 10:
        return "high"
    if percent > 5:
        return "medium"
    if percent > 1:
        return "low"
    return "minimal"


def _cluster_ipc(calls: list[_IPCCall]) -> list[ContentionEvent]:
    """
    Cluster sync IPC calls starting within 10ms of a cluster's first call.
    Only clusters spanning more than one thread are reported; their calls
    are consumed.
    """
    calls = sorted(calls, key=lambda c: c.start)
    events: list[ContentionEvent] = []
    i = 0
    while i < len(calls):
        first = calls[i]
        threads = [first.thread_name]
        longest = first.duration
        j = i + 1
        while j < len(calls) and calls[j].start - first.start < IPC_CLUSTER_WINDOW_MS:
            if calls[j].thread_name not in threads:
                threads.append(calls[j].thread_name)
            longest = max(longest, calls[j].duration)
            j += 1

        if len(threads) > 1:
            events.append(ContentionEvent(
                type="ipc_wait",
                start_time=first.start,
                duration=longest,
                threads=threads,
                description=f"Sync IPC contention between {len(threads)} threads",
            ))
            i = j
        else:
            i += 1
    return events


def analyze_contention(profile: Profile) -> ContentionAnalysis:
    analysis = ContentionAnalysis()
    divisor = profile.cpu_delta_divisor()

    activities: list[_Activity] = []
    gc_markers = []
    ipc_calls: list[_IPCCall] = []

    for thread in profile.threads:
        if is_worker_thread(thread):
            for i in range(thread.samples.length):
                start = sample_time_ms(profile, thread, i)
                cpu = sample_cpu_ms(profile, thread, i, divisor)
                if cpu > 0:
                    activities.append(_Activity(thread.name, start, start + cpu))

        for m in extract_markers(thread, profile.meta.categories, profile.shared.string_array):
            if m.name in GC_MARKER_NAMES:
                gc_markers.append(m)
            if m.category == "IPC" and m.data.get('sync') is True:
                ipc_calls.append(_IPCCall(m.start_time, m.duration, thread.name))

    for gc in gc_markers:
        gc_end = gc.start_time + gc.duration
        affected: list[str] = []
        for a in activities:
            if a.start < gc_end and a.end > gc.start_time and a.thread_name not in affected:
                affected.append(a.thread_name)
        if not affected:
            continue
        analysis.events.append(ContentionEvent(
            type="gc_pause",
            start_time=gc.start_time,
            duration=gc.duration,
            threads=affected,
            description=f"{gc.name} paused {len(affected)} worker threads",
        ))
        analysis.gc_contention += 1
        analysis.total_impact_ms += gc.duration * len(affected)

    for event in _cluster_ipc(ipc_calls):
        analysis.events.append(event)
        analysis.ipc_contention += 1
        analysis.total_impact_ms += event.duration

    analysis.total_events = len(analysis.events)
    analysis.severity = contention_severity(analysis.total_impact_ms, profile.duration_ms)

    if analysis.gc_contention > RECOMMEND_EVENT_COUNT:
        analysis.recommendations.append(
            "High GC contention detected - consider reducing memory allocations in hot paths")
    if analysis.ipc_contention > RECOMMEND_EVENT_COUNT:
        analysis.recommendations.append(
            "Frequent sync IPC contention - consider using async messaging between threads")
    if analysis.total_impact_ms > RECOMMEND_IMPACT_MS:
        analysis.recommendations.append(
            f"Total contention impact: {analysis.total_impact_ms:.1f}ms - significant opportunity for optimization")
    if analysis.severity == "high":
        analysis.recommendations.append(
            "Consider profiling with GC/CC categories enabled for more detailed analysis")

    analysis.events.sort(key=lambda e: e.duration, reverse=True)
    del analysis.events[MAX_EVENTS:]

    logger.debug(
        "contention: %d gc, %d ipc, %.1fms impact",
        analysis.gc_contention, analysis.ipc_contention, analysis.total_impact_ms,
    )
    return analysis
