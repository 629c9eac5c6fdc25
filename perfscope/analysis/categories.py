"""
Category breakdown: where sampled CPU time went, by profiler category.
"""

import logging
from typing import Optional

from ..profile_types import Profile, Thread, index_at, sample_cpu_ms
from .types import CategoryBreakdown, CategoryStats

logger = logging.getLogger(__name__)


def stack_category_index(thread: Thread, stack_idx: int) -> int:
    """
    Category index of a stack row.

    Converted Chrome profiles carry the category on the stack table; Firefox
    profiles often only have it on the frame table, reached via the stack's
    leaf frame.
    """
    stack_table = thread.stack_table
    if stack_table.category and stack_idx < len(stack_table.category):
        return index_at(stack_table.category, stack_idx)
    frame_idx = index_at(stack_table.frame, stack_idx)
    if frame_idx >= 0:
        return index_at(thread.frame_table.category, frame_idx)
    return -1


def rank_categories(times: dict[str, list], total: float, limit: Optional[int] = None) -> list[CategoryStats]:
    """Turn {name: [sample_count, time_ms]} into CategoryStats sorted by time."""
    stats = [
        CategoryStats(
            name=name,
            time_ms=time_ms,
            percent=(time_ms / total) * 100 if total > 0 else 0.0,
            sample_count=count,
        )
        for name, (count, time_ms) in times.items()
    ]
    stats.sort(key=lambda s: s.time_ms, reverse=True)
    return stats[:limit] if limit else stats


def thread_category_times(profile: Profile, thread: Thread) -> dict[str, list]:
    """{category name: [sample_count, cpu_ms]} for one thread's samples."""
    divisor = profile.cpu_delta_divisor()
    times: dict[str, list] = {}
    for i in range(thread.samples.length):
        stack_idx = index_at(thread.samples.stack, i)
        if stack_idx < 0 or stack_idx >= thread.stack_table.length:
            continue
        name = profile.category_name(stack_category_index(thread, stack_idx))
        entry = times.setdefault(name, [0, 0.0])
        entry[0] += 1
        entry[1] += sample_cpu_ms(profile, thread, i, divisor)
    return times


def analyze_categories(profile: Profile, thread_name: Optional[str] = None) -> CategoryBreakdown:
    """
    Time per category, globally and per thread.

    Global percentages are relative to the total sampled time; per-thread
    percentages are relative to that thread's own total.
    """
    global_times: dict[str, list] = {}
    by_thread: dict[str, list[CategoryStats]] = {}
    total = 0.0

    for thread in profile.threads:
        if thread_name and thread.name != thread_name:
            continue

        times = thread_category_times(profile, thread)
        thread_total = sum(t for _, t in times.values())
        total += thread_total

        for name, (count, time_ms) in times.items():
            entry = global_times.setdefault(name, [0, 0.0])
            entry[0] += count
            entry[1] += time_ms

        # Threads sharing a name share one entry
        if thread.name in by_thread:
            merged = {s.name: [s.sample_count, s.time_ms] for s in by_thread[thread.name]}
            for name, (count, time_ms) in times.items():
                entry = merged.setdefault(name, [0, 0.0])
                entry[0] += count
                entry[1] += time_ms
            times = merged
            thread_total = sum(t for _, t in times.values())
        by_thread[thread.name] = rank_categories(times, thread_total)

    return CategoryBreakdown(
        total_time_ms=total,
        categories=rank_categories(global_times, total),
        by_thread=by_thread,
    )
