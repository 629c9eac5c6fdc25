"""
Profile comparison.

Summarises two profiles with the same headline counts and classifies each
difference as an improvement, a regression, or no change. Lower is better
for every metric compared.
"""

import logging

from ..markers import extract_markers
from ..profile_types import Profile
from .types import DiffChanges, ProfileDiff, ProfileSummary

logger = logging.getLogger(__name__)


PERCENT_THRESHOLD = 5.0
COUNT_THRESHOLD = 2
LAYOUT_COUNT_THRESHOLD = 5
LONG_TASK_MS = 50.0


def summarize_profile(profile: Profile, name: str) -> ProfileSummary:
    summary = ProfileSummary(
        name=name,
        thread_count=len(profile.threads),
        extension_count=len(profile.meta.extensions.base_url),
    )
    if profile.duration_ms > 0:
        summary.duration_ms = profile.duration_ms

    for thread in profile.threads:
        summary.total_samples += thread.samples.length
        for m in extract_markers(thread, profile.meta.categories, profile.shared.string_array):
            if m.type == "GCMajor":
                summary.gc_major_count += 1
                summary.gc_total_time_ms += m.duration
            elif m.type == "GCMinor":
                summary.gc_minor_count += 1
                summary.gc_total_time_ms += m.duration
            elif m.type == "IPC":
                if m.data.get('sync') is True:
                    summary.sync_ipc_count += 1
            elif m.type in ("Reflow", "ForceReflow"):
                summary.layout_count += 1

            if m.duration > LONG_TASK_MS and (m.category == "JavaScript" or m.type == "eventProcessing"):
                summary.long_task_count += 1

    return summary


def percent_change(baseline: float, comparison: float) -> float:
    """Relative change in percent; growth from zero is reported as 100%."""
    if baseline == 0:
        return 0.0 if comparison == 0 else 100.0
    return (comparison - baseline) / baseline * 100


def _classify_percent(diff: ProfileDiff, label: str, change: float) -> None:
    if change < -PERCENT_THRESHOLD:
        diff.improved.append(f"{label} reduced by {abs(change):.1f}%")
    elif change > PERCENT_THRESHOLD:
        diff.regressed.append(f"{label} increased by {abs(change):.1f}%")
    else:
        diff.unchanged.append(f"{label} similar")


def _classify_count(diff: ProfileDiff, change: int, threshold: int, fewer: str, more: str) -> None:
    if change < -threshold:
        diff.improved.append(fewer)
    elif change > threshold:
        diff.regressed.append(more)


def compare_profiles(baseline: Profile, comparison: Profile) -> ProfileDiff:
    base = summarize_profile(baseline, "baseline")
    comp = summarize_profile(comparison, "comparison")

    changes = DiffChanges(
        duration_change_ms=comp.duration_ms - base.duration_ms,
        duration_change_percent=percent_change(base.duration_ms, comp.duration_ms),
        sample_count_change=comp.total_samples - base.total_samples,
        thread_count_change=comp.thread_count - base.thread_count,
        gc_major_change=comp.gc_major_count - base.gc_major_count,
        gc_minor_change=comp.gc_minor_count - base.gc_minor_count,
        gc_time_change_ms=comp.gc_total_time_ms - base.gc_total_time_ms,
        gc_time_change_percent=percent_change(base.gc_total_time_ms, comp.gc_total_time_ms),
        sync_ipc_change=comp.sync_ipc_count - base.sync_ipc_count,
        long_task_change=comp.long_task_count - base.long_task_count,
        layout_change=comp.layout_count - base.layout_count,
    )
    diff = ProfileDiff(baseline=base, comparison=comp, changes=changes)

    _classify_percent(diff, "Duration", changes.duration_change_percent)
    _classify_percent(diff, "GC time", changes.gc_time_change_percent)
    _classify_count(diff, changes.gc_major_change, COUNT_THRESHOLD,
                    "Fewer major GC events", "More major GC events")
    _classify_count(diff, changes.sync_ipc_change, COUNT_THRESHOLD,
                    "Fewer sync IPC calls", "More sync IPC calls")
    _classify_count(diff, changes.long_task_change, COUNT_THRESHOLD,
                    "Fewer long tasks", "More long tasks")
    _classify_count(diff, changes.layout_change, LAYOUT_COUNT_THRESHOLD,
                    "Fewer layout operations", "More layout operations")

    logger.debug("compare: %d improved, %d regressed", len(diff.improved), len(diff.regressed))
    return diff
