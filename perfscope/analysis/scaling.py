"""
Parallel scaling analysis.

Estimates how well work spread across web worker threads: total CPU work
(workers + main thread) over wall clock gives the achieved speedup, and the
speedup per worker gives the parallel efficiency.
"""

import logging

from ..profile_types import Profile, thread_cpu_ms
from .threads import is_worker_thread
from .types import ScalingAnalysis, ScalingComparison

logger = logging.getLogger(__name__)


# (upper efficiency bound, bottleneck type, recommendation), checked in order
EFFICIENCY_BANDS = (
    (30.0, "serialization", "Very low parallel efficiency - work may be serialized on main thread"),
    (50.0, "contention", "Medium parallel efficiency - possible contention or synchronization overhead"),
    (70.0, "overhead", "Good parallel efficiency with some overhead - consider reducing sync points"),
    (90.0, "minimal", "Good parallel efficiency - minor optimizations possible"),
)
NO_BOTTLENECK = ("none", "Excellent parallel efficiency")

NO_CHANGES = "No significant changes detected between profiles."


def classify_efficiency(efficiency: float) -> tuple[str, str]:
    """(bottleneck type, recommendation) for an efficiency percentage."""
    for bound, kind, recommendation in EFFICIENCY_BANDS:
        if efficiency < bound:
            return kind, recommendation
    return NO_BOTTLENECK


def analyze_scaling(profile: Profile) -> ScalingAnalysis:
    analysis = ScalingAnalysis(wall_clock_ms=profile.duration_ms)

    worker_cpu = 0.0
    main_cpu = 0.0
    for thread in profile.threads:
        cpu = thread_cpu_ms(profile, thread)
        if is_worker_thread(thread):
            analysis.worker_count += 1
            worker_cpu += cpu
        elif thread.is_main_thread:
            main_cpu += cpu

    analysis.total_work_ms = worker_cpu + main_cpu

    if analysis.wall_clock_ms > 0 and analysis.worker_count > 0:
        speedup = analysis.total_work_ms / analysis.wall_clock_ms
        analysis.theoretical_speedup = speedup
        analysis.actual_speedup = speedup
        analysis.efficiency = min(100.0, speedup / analysis.worker_count * 100)

    analysis.bottleneck_type, recommendation = classify_efficiency(analysis.efficiency)
    analysis.recommendations.append(recommendation)

    if analysis.worker_count == 0:
        analysis.recommendations.append(
            "No worker threads detected - consider using Web Workers for parallel processing")
    elif analysis.worker_count == 1 and analysis.total_work_ms > 100:
        analysis.recommendations.append(
            "Only 1 worker detected - additional workers may improve throughput")
    elif analysis.worker_count > 4 and analysis.efficiency < 50:
        analysis.recommendations.append(
            f"{analysis.worker_count} workers with low efficiency - consider reducing worker count or improving work distribution")

    logger.debug("scaling: %d workers, %.1f%% efficiency", analysis.worker_count, analysis.efficiency)
    return analysis


def describe_scaling_change(baseline: ScalingAnalysis, comparison: ScalingAnalysis) -> str:
    parts = []

    if comparison.worker_count != baseline.worker_count:
        parts.append(f"Worker count changed from {baseline.worker_count} to {comparison.worker_count}.")

    eff_diff = comparison.efficiency - baseline.efficiency
    if eff_diff > 5:
        parts.append(f"Parallel efficiency improved by {eff_diff:.1f}%.")
    elif eff_diff < -5:
        parts.append(f"Parallel efficiency decreased by {-eff_diff:.1f}%.")
    else:
        parts.append("Parallel efficiency remained stable.")

    wall_diff = comparison.wall_clock_ms - baseline.wall_clock_ms
    wall_percent = wall_diff / baseline.wall_clock_ms * 100 if baseline.wall_clock_ms > 0 else 0.0
    if wall_percent < -5:
        parts.append(f"Wall clock time improved by {-wall_percent:.1f}% ({-wall_diff:.1f}ms faster).")
    elif wall_percent > 5:
        parts.append(f"Wall clock time regressed by {wall_percent:.1f}% ({wall_diff:.1f}ms slower).")

    if comparison.bottleneck_type != baseline.bottleneck_type:
        parts.append(f"Bottleneck changed from '{baseline.bottleneck_type}' to '{comparison.bottleneck_type}'.")

    return " ".join(parts) if parts else NO_CHANGES


def compare_scaling(baseline: Profile, comparison: Profile) -> ScalingComparison:
    """Scaling of two profiles side by side, with the relative efficiency change."""
    base = analyze_scaling(baseline)
    comp = analyze_scaling(comparison)

    improvement = 0.0
    if base.efficiency > 0:
        improvement = (comp.efficiency - base.efficiency) / base.efficiency * 100

    return ScalingComparison(
        baseline=base,
        comparison=comp,
        improvement=improvement,
        analysis=describe_scaling_change(base, comp),
    )
