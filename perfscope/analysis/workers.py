"""
Worker thread utilisation and synchronisation analysis.
"""

import logging
from dataclasses import dataclass

from ..markers import extract_markers, JS_ACTOR_MESSAGE, FRAME_MESSAGE
from ..profile_types import Profile, thread_cpu_ms
from .categories import thread_category_times, rank_categories
from .threads import is_worker_thread, TOP_CATEGORY_LIMIT
from .types import SyncPoint, WorkerAnalysis, WorkerStats

logger = logging.getLogger(__name__)


SYNC_WINDOW_MS = 10.0
ACTIVE_WORKER_PERCENT = 5.0
IDLE_WORKER_PERCENT = 10.0
SYNC_WAIT_WARNING_MS = 100.0
SYNC_POINT_WARNING_COUNT = 5


@dataclass
class _MessageEvent:
    time: float
    thread_name: str
    is_sync: bool
    duration: float


def _find_sync_points(events: list[_MessageEvent]) -> list[SyncPoint]:
    """
    Group sync messages from different workers that start within 10ms of
    each other. Events absorbed into a sync point are not revisited.
    """
    events = sorted(events, key=lambda e: e.time)
    points: list[SyncPoint] = []
    i = 0
    while i < len(events):
        first = events[i]
        if not first.is_sync:
            i += 1
            continue

        threads = [first.thread_name]
        longest = first.duration
        j = i + 1
        while j < len(events) and events[j].time - first.time < SYNC_WINDOW_MS:
            if events[j].is_sync:
                if events[j].thread_name not in threads:
                    threads.append(events[j].thread_name)
                longest = max(longest, events[j].duration)
            j += 1

        if len(threads) > 1:
            points.append(SyncPoint(
                time=first.time,
                type="sync_message",
                description=f"Synchronous messaging between {len(threads)} workers",
                threads=threads,
                duration=longest,
            ))
            i = j
        else:
            i += 1
    return points


def analyze_workers(profile: Profile) -> WorkerAnalysis:
    """
    Per-worker CPU/idle split, messaging counts and sync waits, plus
    cross-worker sync points and warnings about starvation or blocking.
    """
    analysis = WorkerAnalysis()
    duration = profile.duration_ms
    events: list[_MessageEvent] = []

    for thread in profile.threads:
        if not is_worker_thread(thread):
            continue

        cpu = thread_cpu_ms(profile, thread)
        stats = WorkerStats(
            thread_name=thread.name,
            thread_id=thread.tid,
            process_id=thread.pid,
            cpu_time_ms=cpu,
            top_categories=rank_categories(thread_category_times(profile, thread), cpu, TOP_CATEGORY_LIMIT),
        )
        if duration > 0:
            stats.idle_time_ms = max(0.0, duration - cpu)
            stats.active_percent = cpu / duration * 100

        for m in extract_markers(thread, profile.meta.categories, profile.shared.string_array):
            is_sync = m.data.get('sync') is True
            if m.name in (JS_ACTOR_MESSAGE, FRAME_MESSAGE):
                stats.messages_sent += 1
                if is_sync:
                    stats.sync_wait_count += 1
                    stats.sync_wait_time_ms += m.duration
                events.append(_MessageEvent(m.start_time, thread.name, is_sync, m.duration))
            elif m.name == "postMessage":
                stats.messages_sent += 1

            if m.category == "IPC" and is_sync:
                stats.sync_wait_count += 1
                stats.sync_wait_time_ms += m.duration

        analysis.workers.append(stats)
        analysis.total_cpu_time_ms += stats.cpu_time_ms
        analysis.total_idle_time_ms += stats.idle_time_ms

    analysis.total_workers = len(analysis.workers)
    analysis.active_workers = sum(1 for w in analysis.workers if w.active_percent > ACTIVE_WORKER_PERCENT)

    busy_and_idle = analysis.total_cpu_time_ms + analysis.total_idle_time_ms
    if busy_and_idle > 0:
        analysis.overall_efficiency = analysis.total_cpu_time_ms / busy_and_idle * 100

    analysis.sync_points = _find_sync_points(events)

    if analysis.total_workers > 0 and analysis.active_workers == 0:
        analysis.warnings.append("All worker threads appear idle - check if work is being dispatched")
    for w in analysis.workers:
        if w.active_percent < IDLE_WORKER_PERCENT and w.cpu_time_ms > 0:
            analysis.warnings.append(
                f"Worker '{w.thread_name}' is mostly idle ({w.active_percent:.1f}% active) - possible worker starvation"
            )
        if w.sync_wait_time_ms > SYNC_WAIT_WARNING_MS:
            analysis.warnings.append(
                f"Worker '{w.thread_name}' spent {w.sync_wait_time_ms:.1f}ms in synchronous waits - consider async alternatives"
            )
    if len(analysis.sync_points) > SYNC_POINT_WARNING_COUNT:
        analysis.warnings.append(
            f"Detected {len(analysis.sync_points)} synchronization points - workers may be contending for shared resources"
        )

    analysis.workers.sort(key=lambda w: w.cpu_time_ms, reverse=True)
    logger.debug("workers: %d total, %d active", analysis.total_workers, analysis.active_workers)
    return analysis
