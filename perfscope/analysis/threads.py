"""
Thread classification and per-thread statistics.
"""

import logging

from ..markers import extract_markers, AWAKE
from ..profile_types import Profile, Thread, thread_cpu_ms
from .categories import thread_category_times, rank_categories
from .types import ThreadAnalysis, ThreadStats

logger = logging.getLogger(__name__)


# Browser-internal pools and worklets that are not web workers
WORKER_EXCLUDE_PATTERNS = (
    "threadpoolforegroundworker",
    "threadpoolbackgroundworker",
    "compositortileworker",
    "audioworklet",
    "paintworklet",
    "v8:profevntproc",
)

WORKER_INCLUDE_PATTERNS = (
    "dom worker",
    "dedicatedworker",
    "sharedworker",
    "serviceworker",
)

PARENT_PROCESS_TYPES = ("default", "parent")
CONTENT_PROCESS_TYPES = ("tab", "web")

TOP_CATEGORY_LIMIT = 5


def is_worker_thread(thread: Thread) -> bool:
    """True for web worker threads (Firefox DOM Worker, Chrome Dedicated/Shared/ServiceWorker)."""
    name = thread.name.lower()
    if any(p in name for p in WORKER_EXCLUDE_PATTERNS):
        return False
    if any(p in name for p in WORKER_INCLUDE_PATTERNS):
        return True
    return "worker" in name and not thread.is_main_thread


def _wake_stats(profile: Profile, thread: Thread) -> tuple[int, float]:
    """(number of Awake markers, mean gap between consecutive wakes)."""
    markers = extract_markers(thread, profile.meta.categories, profile.shared.string_array)
    times = sorted(m.start_time for m in markers if m.name == AWAKE or m.type == AWAKE)
    if len(times) < 2:
        return len(times), 0.0
    gaps = [b - a for a, b in zip(times, times[1:])]
    return len(times), sum(gaps) / len(gaps)


def analyze_threads(profile: Profile) -> ThreadAnalysis:
    analysis = ThreadAnalysis(total_threads=len(profile.threads))

    for thread in profile.threads:
        if thread.process_type in PARENT_PROCESS_TYPES:
            analysis.parent_process_threads += 1
        elif thread.process_type in CONTENT_PROCESS_TYPES:
            analysis.content_process_threads += 1
        if thread.is_main_thread:
            analysis.main_thread_count += 1

        cpu = thread_cpu_ms(profile, thread)
        wake_count, wake_interval = _wake_stats(profile, thread)

        analysis.threads.append(ThreadStats(
            name=thread.name,
            process_type=thread.process_type,
            process_name=thread.process_name,
            pid=thread.pid,
            tid=thread.tid,
            is_main_thread=thread.is_main_thread,
            cpu_time_ms=cpu,
            sample_count=thread.samples.length,
            marker_count=thread.markers.length,
            wake_count=wake_count,
            avg_wake_interval_ms=wake_interval,
            top_categories=rank_categories(thread_category_times(profile, thread), cpu, TOP_CATEGORY_LIMIT),
        ))

    analysis.threads.sort(key=lambda t: t.cpu_time_ms, reverse=True)
    return analysis
