"""
Human-readable rendering of analysis results.

`format_*` functions return plain text reports; `markdown_*` functions return
markdown for the results that are commonly pasted into bug reports. The
`format_text` / `format_markdown` dispatchers pick the renderer by result
type.
"""

from typing import Any, Callable, Optional

from ..markers import MarkerStats, ParsedMarker
from .types import (
    BatchAnalysisResult,
    BottleneckReport,
    CallTreeAnalysis,
    CategoryBreakdown,
    ContentionAnalysis,
    CryptoAnalysis,
    DelimiterMarkersReport,
    ExtensionsAnalysis,
    JSCryptoAnalysis,
    OperationMeasurement,
    ProfileDiff,
    ProfileOverview,
    ScalingAnalysis,
    ScalingComparison,
    Severity,
    ThreadAnalysis,
    WorkerAnalysis,
)


WIDTH = 60
EVENT_DISPLAY_LIMIT = 10
LOCATION_DISPLAY_LIMIT = 5

SEVERITY_TAGS = {
    Severity.HIGH: "[HIGH]  ",
    Severity.MEDIUM: "[MEDIUM]",
    Severity.LOW: "[LOW]   ",
}
SEVERITY_ICONS = {
    Severity.HIGH: "🔴",
    Severity.MEDIUM: "🟡",
    Severity.LOW: "🟢",
}


def _heading(title: str, char: str = "=") -> list[str]:
    return [title, char * WIDTH]


def _truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[:width - 3] + "..."


def _bullets(items: list[str], indent: str = "  ") -> list[str]:
    return [f"{indent}- {item}" for item in items]


def _browser_title(browser_type: str) -> str:
    if not browser_type or browser_type == "unknown":
        return "Browser"
    return browser_type.title()


def _status_line(score: int) -> str:
    if score >= 80:
        return "Good performance, minor issues detected."
    if score >= 60:
        return "Moderate performance issues detected."
    return "Significant performance issues detected."


# ============================================================================
# Text
# ============================================================================

def format_profile_overview(overview: ProfileOverview) -> str:
    browser = _browser_title(overview.browser_type)
    lines = _heading(f"{browser} Profile Summary")
    lines += [
        "",
        "Overview:",
        f"  Browser:      {browser}",
        f"  Duration:     {overview.duration_seconds:.2f} seconds",
        f"  Platform:     {overview.platform} ({overview.os_cpu})",
        f"  Product:      {overview.product}",
        f"  Build ID:     {overview.build_id}",
        f"  CPU:          {overview.cpu_name}",
        f"  Cores:        {overview.physical_cpus} physical, {overview.logical_cpus} logical",
        "",
        "Profiling Data:",
        f"  Threads:      {overview.thread_count} total ({overview.main_thread_count} main)",
        f"  Markers:      {overview.total_markers}",
        f"  Samples:      {overview.total_samples}",
        "",
    ]
    if overview.features:
        lines.append("Features Captured:")
        lines += _bullets(overview.features)
        lines.append("")
    if overview.extension_count:
        lines.append(f"Extensions ({overview.extension_count}):")
        for ext_id, name in overview.extensions.items():
            lines += [f"  - {name}", f"    ID: {ext_id}"]
    return "\n".join(lines) + "\n"


def format_bottleneck_report(report: BottleneckReport, overview: Optional[ProfileOverview] = None) -> str:
    lines = _heading("Profile Bottleneck Analysis")
    lines.append("")
    if overview is not None:
        lines += [
            "Overview:",
            f"  Duration:          {overview.duration_seconds:.2f} seconds",
            f"  Platform:          {overview.platform} ({overview.cpu_name})",
        ]
    else:
        lines.append("Overview:")
    lines += [f"  Performance Score: {report.score}/100", "", "Summary:", f"  {report.summary}", ""]

    if report.bottlenecks:
        lines += ["Bottlenecks Detected:", "-" * WIDTH]
        for b in report.bottlenecks:
            lines += [
                "",
                f"{SEVERITY_TAGS[b.severity]} {b.type}",
                f"  Description: {b.description}",
                f"  Occurrences: {b.count}",
                f"  Total Duration: {b.total_duration:.2f} ms",
            ]
            if b.recommendation:
                lines.append(f"  Recommendation: {b.recommendation}")
        lines += ["", "Recommendations Summary:"]
        lines += [f"  {i}. {b.recommendation}" for i, b in enumerate(report.bottlenecks, 1) if b.recommendation]
    else:
        lines.append("No significant bottlenecks detected.")
    return "\n".join(lines) + "\n"


def format_markers(markers: list[ParsedMarker], stats: Optional[MarkerStats] = None) -> str:
    lines = _heading(f"Markers ({len(markers)})")
    if stats is not None and stats.total_count:
        lines += [
            "",
            f"Total Duration: {stats.total_duration:.2f}ms",
            f"Average:        {stats.avg_duration:.2f}ms",
            f"Min / Max:      {stats.min_duration:.2f}ms / {stats.max_duration:.2f}ms",
        ]
    if markers:
        lines += ["", f"{'Time':>10} {'Duration':>10}  {'Type':<20} {'Thread':<16} Name", "-" * WIDTH]
        for m in markers:
            lines.append(
                f"{m.start_time:8.2f}ms {m.duration:8.2f}ms  {_truncate(m.type, 20):<20} "
                f"{_truncate(m.thread_name, 16):<16} {m.name}"
            )
    return "\n".join(lines) + "\n"


def format_call_tree(analysis: CallTreeAnalysis) -> str:
    title = f"Call Tree Analysis (Total: {analysis.total_time_ms:.2f}ms, {analysis.total_samples} samples)"
    lines = _heading(title)
    if analysis.thread_name:
        lines.append(f"Thread: {analysis.thread_name}")
    lines += [
        "",
        "Top Functions by Self Time:",
        "-" * WIDTH,
        f"{'Function':<40} {'Self Time':>10} {'Self %':>8}",
        "-" * WIDTH,
    ]
    for f in analysis.top_functions:
        lines.append(f"{_truncate(f.name, 40):<40} {f.self_time_ms:8.2f}ms {f.self_percent:7.1f}%")

    lines += ["", "Hot Paths:", "-" * WIDTH]
    for hp in analysis.hot_paths[:EVENT_DISPLAY_LIMIT]:
        lines.append(f"{hp.percent:.1f}% ({hp.self_time_ms:.2f}ms): {hp.path}")
    return "\n".join(lines) + "\n"


def format_category_breakdown(breakdown: CategoryBreakdown) -> str:
    lines = _heading(f"Category Breakdown (Total: {breakdown.total_time_ms:.2f}ms)")
    lines += ["", f"{'Category':<25} {'Time':>12} {'Percent':>8} {'Samples':>8}", "-" * WIDTH]
    for c in breakdown.categories:
        lines.append(f"{_truncate(c.name, 25):<25} {c.time_ms:10.2f}ms {c.percent:7.1f}% {c.sample_count:8d}")

    if len(breakdown.by_thread) > 1:
        lines += ["", "By Thread:"]
        for thread_name, categories in breakdown.by_thread.items():
            top = ", ".join(f"{c.name} {c.percent:.1f}%" for c in categories[:3])
            lines.append(f"  {_truncate(thread_name, 30)}: {top}")
    return "\n".join(lines) + "\n"


def format_thread_analysis(analysis: ThreadAnalysis) -> str:
    lines = _heading(f"Thread Analysis ({analysis.total_threads} threads)")
    lines += [
        "",
        f"Main Threads:            {analysis.main_thread_count}",
        f"Parent Process Threads:  {analysis.parent_process_threads}",
        f"Content Process Threads: {analysis.content_process_threads}",
        "",
        f"{'Name':<25} {'CPU Time':>10} {'Samples':>8} {'Markers':>8} {'Wakes':>6}",
        "-" * WIDTH,
    ]
    for t in analysis.threads:
        lines.append(
            f"{_truncate(t.name, 25):<25} {t.cpu_time_ms:8.2f}ms {t.sample_count:8d} "
            f"{t.marker_count:8d} {t.wake_count:6d}"
        )
    return "\n".join(lines) + "\n"


def format_worker_analysis(analysis: WorkerAnalysis) -> str:
    lines = _heading(f"Worker Thread Analysis ({analysis.total_workers} workers, {analysis.active_workers} active)")
    lines += [
        "",
        f"Overall Efficiency: {analysis.overall_efficiency:.1f}%",
        f"Total CPU Time: {analysis.total_cpu_time_ms:.2f}ms",
        f"Total Idle Time: {analysis.total_idle_time_ms:.2f}ms",
        "",
    ]
    if analysis.workers:
        lines += [
            "Workers by CPU Time:",
            "-" * WIDTH,
            f"{'Name':<25} {'CPU Time':>10} {'Idle Time':>10} {'Active%':>8}",
            "-" * WIDTH,
        ]
        for w in analysis.workers:
            lines.append(
                f"{_truncate(w.thread_name, 25):<25} {w.cpu_time_ms:8.2f}ms "
                f"{w.idle_time_ms:8.2f}ms {w.active_percent:7.1f}%"
            )
    if analysis.sync_points:
        lines += ["", f"Synchronization Points: {len(analysis.sync_points)}"]
    if analysis.warnings:
        lines += ["", "Warnings:"] + _bullets(analysis.warnings)
    return "\n".join(lines) + "\n"


def format_contention_analysis(analysis: ContentionAnalysis) -> str:
    lines = _heading(f"Contention Analysis ({analysis.total_events} events, severity: {analysis.severity})")
    lines += [
        "",
        f"Total Impact: {analysis.total_impact_ms:.2f}ms",
        f"GC Contention Events: {analysis.gc_contention}",
        f"IPC Contention Events: {analysis.ipc_contention}",
        f"Lock Contention Events: {analysis.lock_contention}",
        "",
    ]
    if analysis.events:
        lines += ["Top Contention Events:", "-" * WIDTH]
        for e in analysis.events[:EVENT_DISPLAY_LIMIT]:
            lines.append(f"  {e.start_time:.2f}ms: {e.type} ({e.duration:.2f}ms, {len(e.threads)} threads)")
        if len(analysis.events) > EVENT_DISPLAY_LIMIT:
            lines += ["", f"  ... and {len(analysis.events) - EVENT_DISPLAY_LIMIT} more events"]
        lines.append("")
    if analysis.recommendations:
        lines += ["Recommendations:"] + _bullets(analysis.recommendations)
    return "\n".join(lines) + "\n"


def format_scaling_analysis(analysis: ScalingAnalysis) -> str:
    lines = _heading(f"Scaling Analysis ({analysis.worker_count} workers)")
    lines += [
        "",
        f"Wall Clock Time:       {analysis.wall_clock_ms:.2f}ms",
        f"Total CPU Work:        {analysis.total_work_ms:.2f}ms",
        f"Theoretical Speedup:   {analysis.theoretical_speedup:.2f}x",
        f"Actual Speedup:        {analysis.actual_speedup:.2f}x",
        f"Parallel Efficiency:   {analysis.efficiency:.1f}%",
        f"Bottleneck Type:       {analysis.bottleneck_type}",
        "",
    ]
    if analysis.recommendations:
        lines += ["Recommendations:"] + _bullets(analysis.recommendations)
    return "\n".join(lines) + "\n"


def format_scaling_comparison(comparison: ScalingComparison) -> str:
    base, comp = comparison.baseline, comparison.comparison
    lines = _heading("Scaling Comparison")
    lines += [
        "",
        "                        Baseline    Comparison    Change",
        "-" * WIDTH,
        f"Worker Count:           {base.worker_count:8d}    {comp.worker_count:10d}    "
        f"{comp.worker_count - base.worker_count:+d}",
        f"Wall Clock (ms):        {base.wall_clock_ms:8.1f}    {comp.wall_clock_ms:10.1f}    "
        f"{comp.wall_clock_ms - base.wall_clock_ms:+.1f}",
        f"Total Work (ms):        {base.total_work_ms:8.1f}    {comp.total_work_ms:10.1f}    "
        f"{comp.total_work_ms - base.total_work_ms:+.1f}",
        f"Efficiency (%):         {base.efficiency:8.1f}    {comp.efficiency:10.1f}    "
        f"{comp.efficiency - base.efficiency:+.1f}",
        "",
        f"Bottleneck:             {base.bottleneck_type:<10}  {comp.bottleneck_type:<10}",
        "",
        f"Overall Improvement: {comparison.improvement:+.1f}%",
        "",
        "Analysis:",
        f"  {comparison.analysis}",
    ]
    return "\n".join(lines) + "\n"


def format_extensions_analysis(analysis: ExtensionsAnalysis) -> str:
    lines = _heading(f"Extension Analysis ({analysis.total_extensions} installed, {len(analysis.extensions)} active)")
    lines += [
        "",
        f"Total Duration: {analysis.total_duration:.2f}ms",
        f"Total Events:   {analysis.total_events}",
    ]
    for ext in analysis.extensions:
        lines += [
            "",
            f"{ext.name or ext.id} [{ext.impact_score}]",
            f"  ID:           {ext.id}",
            f"  Duration:     {ext.total_duration:.2f}ms",
            f"  Events:       {ext.markers_count}",
            f"  DOM Events:   {ext.dom_events}",
            f"  IPC Messages: {ext.ipc_messages}",
        ]
        if ext.top_markers:
            lines.append("  Top Markers:")
            lines += [f"    - {m.name} ({m.category}): {m.duration:.2f}ms" for m in ext.top_markers]
    return "\n".join(lines) + "\n"


def _by_time(times: dict[str, float]) -> list[tuple[str, float]]:
    return sorted(times.items(), key=lambda kv: kv[1], reverse=True)


def _time_table(title: str, times: dict[str, float], width: int = 20) -> list[str]:
    if not times:
        return []
    lines = [title, "-" * 40]
    lines += [f"  {_truncate(name, width):<{width}} {t:.2f}ms" for name, t in _by_time(times)]
    return lines + [""]


def format_crypto_analysis(analysis: CryptoAnalysis) -> str:
    lines = _heading(f"Crypto Operation Analysis ({analysis.total_operations} samples)")
    lines += [
        "",
        f"Total Time: {analysis.total_time_ms:.2f}ms ({analysis.cpu_percent:.1f}% of sampled CPU)",
    ]
    if analysis.serialized:
        lines.append("Serialization: Possibly serialized (no parallel crypto detected)")
    lines.append("")
    lines += _time_table("Time by Operation:", analysis.by_operation)
    lines += _time_table("Time by Algorithm:", analysis.by_algorithm)
    lines += _time_table("Time by Thread:", analysis.by_thread, width=30)
    if analysis.top_operations:
        lines += [
            "Top Operations by Duration:",
            "-" * WIDTH,
            f"{'Operation':<15} {'Algorithm':<12} {'Duration':>10}  Thread",
            "-" * WIDTH,
        ]
        for op in analysis.top_operations[:EVENT_DISPLAY_LIMIT]:
            lines.append(
                f"{op.operation:<15} {op.algorithm or '-':<12} {op.duration:8.2f}ms  {_truncate(op.thread_name, 20)}"
            )
        if len(analysis.top_operations) > EVENT_DISPLAY_LIMIT:
            lines += ["", f"  ... and {len(analysis.top_operations) - EVENT_DISPLAY_LIMIT} more operations"]
        lines.append("")
    if analysis.warnings:
        lines += ["Warnings:"] + _bullets(analysis.warnings)
    return "\n".join(lines) + "\n"


def format_js_crypto_analysis(analysis: JSCryptoAnalysis) -> str:
    lines = _heading(f"JavaScript Crypto Analysis ({analysis.total_samples} samples)")
    lines += [
        "",
        f"Total Time:         {analysis.total_time_ms:.2f}ms ({analysis.cpu_percent:.1f}% of sampled CPU)",
        f"Worker Count:       {analysis.worker_count}",
    ]
    if analysis.worker_count:
        lines.append(f"Avg Time/Worker:    {analysis.avg_time_per_worker:.2f}ms")
    lines.append("")
    lines += _time_table("Time by Thread:", analysis.by_thread, width=30)
    if analysis.resources:
        lines += ["Crypto Resources:", "-" * WIDTH]
        for res in analysis.resources[:EVENT_DISPLAY_LIMIT]:
            lines.append(f"  {_truncate(res.name, 35):<35} {res.total_time:.2f}ms ({res.sample_count} samples)")
        if len(analysis.resources) > EVENT_DISPLAY_LIMIT:
            lines.append(f"  ... and {len(analysis.resources) - EVENT_DISPLAY_LIMIT} more resources")
        lines.append("")
    if analysis.top_functions:
        lines += [
            "Top Functions:",
            "-" * WIDTH,
            f"{'Function':<40} {'Time':>10} {'%':>6}",
            "-" * WIDTH,
        ]
        for fn in analysis.top_functions[:15]:
            lines.append(f"{_truncate(fn.name, 40):<40} {fn.total_time:8.2f}ms {fn.percent:5.1f}%")
        if len(analysis.top_functions) > 15:
            lines.append(f"  ... and {len(analysis.top_functions) - 15} more functions")
        lines.append("")
    if analysis.recommendations:
        lines += ["Recommendations:"] + _bullets(analysis.recommendations)
    return "\n".join(lines) + "\n"


def format_profile_diff(diff: ProfileDiff) -> str:
    base, comp, changes = diff.baseline, diff.comparison, diff.changes
    lines = _heading("Profile Comparison")
    lines += [
        "",
        f"{'Metric':<20} {'Baseline':>12} {'Comparison':>12} {'Change':>10}",
        "-" * WIDTH,
        f"{'Duration (ms)':<20} {base.duration_ms:12.1f} {comp.duration_ms:12.1f} "
        f"{changes.duration_change_percent:+9.1f}%",
        f"{'Samples':<20} {base.total_samples:12d} {comp.total_samples:12d} {changes.sample_count_change:+10d}",
        f"{'Threads':<20} {base.thread_count:12d} {comp.thread_count:12d} {changes.thread_count_change:+10d}",
        f"{'GC Major':<20} {base.gc_major_count:12d} {comp.gc_major_count:12d} {changes.gc_major_change:+10d}",
        f"{'GC Minor':<20} {base.gc_minor_count:12d} {comp.gc_minor_count:12d} {changes.gc_minor_change:+10d}",
        f"{'GC Time (ms)':<20} {base.gc_total_time_ms:12.1f} {comp.gc_total_time_ms:12.1f} "
        f"{changes.gc_time_change_percent:+9.1f}%",
        f"{'Sync IPC':<20} {base.sync_ipc_count:12d} {comp.sync_ipc_count:12d} {changes.sync_ipc_change:+10d}",
        f"{'Long Tasks':<20} {base.long_task_count:12d} {comp.long_task_count:12d} {changes.long_task_change:+10d}",
        f"{'Layout':<20} {base.layout_count:12d} {comp.layout_count:12d} {changes.layout_change:+10d}",
    ]
    for title, items in (("Improved", diff.improved), ("Regressed", diff.regressed), ("Unchanged", diff.unchanged)):
        if items:
            lines += ["", f"{title}:"] + _bullets(items)
    return "\n".join(lines) + "\n"


def format_delimiter_markers(report: DelimiterMarkersReport) -> str:
    lines = _heading(f"Delimiter Markers ({report.total_count} total)")
    if report.by_category:
        lines += ["", "By Category:"]
        lines += [f"  {name}: {count}" for name, count in sorted(report.by_category.items())]
    if report.by_type:
        lines += ["", "By Type:"]
        lines += [f"  {name}: {count}" for name, count in sorted(report.by_type.items())]
    if report.markers:
        lines += ["", f"{'#':>5} {'Time':>10} {'Duration':>10}  {'Type':<20} Name", "-" * WIDTH]
        for i, m in enumerate(report.markers):
            lines.append(f"{i:5d} {m.time_ms:8.2f}ms {m.duration_ms:8.2f}ms  {_truncate(m.type, 20):<20} {m.name}")
    return "\n".join(lines) + "\n"


def format_operation_measurement(measurement: OperationMeasurement) -> str:
    start, end = measurement.start_marker, measurement.end_marker
    lines = _heading("Operation Measurement")
    lines += [
        "",
        f"Start: {start.name} ({start.type}) at {start.time_ms:.2f}ms [{start.thread}]",
        f"End:   {end.name} ({end.type}) at {end.time_ms:.2f}ms [{end.thread}]",
        "",
        f"Operation Time: {measurement.operation_time_ms:.2f}ms",
    ]
    return "\n".join(lines) + "\n"


def format_batch_result(result: BatchAnalysisResult) -> str:
    summary = result.summary
    lines = _heading(f"Batch Analysis ({summary.total_profiles} profiles)")
    for label in summary.labels:
        lines += [
            "",
            f"{label}:",
            f"  {'Workers':>7} {'Wall Clock':>12} {'Operation':>12} {'Speedup':>8} {'Eff%':>7}",
        ]
        for p in result.series.get(label, []):
            operation = f"{p.operation_time_ms:10.2f}ms" if p.operation_time_ms > 0 else f"{'-':>12}"
            lines.append(
                f"  {p.worker_count:7d} {p.wall_clock_ms:10.2f}ms {operation} "
                f"{p.speedup:7.2f}x {p.efficiency:6.1f}%"
            )
        lines.append(
            f"  Best: {summary.best_workers.get(label, 0)} workers "
            f"({summary.min_wall_clock.get(label, 0.0):.2f}ms), "
            f"peak efficiency {summary.peak_efficiency.get(label, 0.0):.1f}%"
        )
        if label in summary.min_operation_time:
            lines.append(f"  Fastest operation: {summary.min_operation_time[label]:.2f}ms")
    return "\n".join(lines) + "\n"


# ============================================================================
# Markdown
# ============================================================================

def markdown_bottleneck_report(report: BottleneckReport, overview: Optional[ProfileOverview] = None) -> str:
    lines = ["# Profile Bottleneck Analysis", "", "## Overview", ""]
    if overview is not None:
        lines += [
            f"- **Duration**: {overview.duration_seconds:.2f} seconds",
            f"- **Platform**: {overview.platform} ({overview.cpu_name})",
        ]
    lines += [
        f"- **Performance Score**: {report.score}/100",
        "",
        f"**Status**: {_status_line(report.score)}",
        "",
        "## Summary",
        "",
        report.summary,
        "",
    ]

    if not report.bottlenecks:
        lines += ["## No Significant Bottlenecks Detected", "", "The profile shows good performance characteristics."]
        return "\n".join(lines) + "\n"

    lines += ["## Bottlenecks Detected", ""]
    for b in report.bottlenecks:
        lines += [
            f"### {SEVERITY_ICONS[b.severity]} {b.type} ({b.severity})",
            "",
            f"**Description**: {b.description}",
            "",
            f"- **Occurrences**: {b.count}",
            f"- **Total Duration**: {b.total_duration:.2f} ms",
        ]
        if b.recommendation:
            lines += ["", f"**Recommendation**: {b.recommendation}"]
        if b.locations:
            lines += ["", "**Locations**:"]
            lines += [f"- {loc}" for loc in b.locations[:LOCATION_DISPLAY_LIMIT]]
            if len(b.locations) > LOCATION_DISPLAY_LIMIT:
                lines.append(f"- ... and {len(b.locations) - LOCATION_DISPLAY_LIMIT} more")
        lines.append("")

    lines += ["## Recommendations Summary", ""]
    lines += [f"{i}. {b.recommendation}" for i, b in enumerate(report.bottlenecks, 1) if b.recommendation]
    return "\n".join(lines) + "\n"


def markdown_call_tree(analysis: CallTreeAnalysis) -> str:
    lines = ["# Call Tree Analysis", ""]
    if analysis.thread_name:
        lines.append(f"- **Thread**: {analysis.thread_name}")
    lines += [
        f"- **Total Time**: {analysis.total_time_ms:.2f} ms",
        f"- **Samples**: {analysis.total_samples}",
        "",
        "## Top Functions",
        "",
        "| Function | File | Self Time | Self % | Running Time | Total % |",
        "|----------|------|-----------|--------|--------------|---------|",
    ]
    for f in analysis.top_functions:
        lines.append(
            f"| `{f.name}` | {f.file} | {f.self_time_ms:.2f}ms | {f.self_percent:.1f}% | "
            f"{f.running_time_ms:.2f}ms | {f.total_percent:.1f}% |"
        )
    if analysis.hot_paths:
        lines += ["", "## Hot Paths", ""]
        for hp in analysis.hot_paths[:EVENT_DISPLAY_LIMIT]:
            lines.append(f"- **{hp.percent:.1f}%** ({hp.self_time_ms:.2f}ms): `{hp.path}`")
    return "\n".join(lines) + "\n"


def markdown_profile_overview(overview: ProfileOverview) -> str:
    browser = _browser_title(overview.browser_type)
    lines = [
        f"# {browser} Profile Summary",
        "",
        "## Overview",
        "",
        f"- **Browser**: {browser}",
        f"- **Duration**: {overview.duration_seconds:.2f} seconds",
        f"- **Platform**: {overview.platform} ({overview.os_cpu})",
        f"- **Product**: {overview.product} (Build: {overview.build_id})",
        f"- **CPU**: {overview.cpu_name} ({overview.physical_cpus} physical, {overview.logical_cpus} logical cores)",
        "",
        "## Profiling Data",
        "",
        f"- **Threads**: {overview.thread_count} total ({overview.main_thread_count} main threads)",
        f"- **Total Markers**: {overview.total_markers}",
        f"- **Total Samples**: {overview.total_samples}",
    ]
    if overview.features:
        lines += ["", "## Captured Features", ""] + [f"- {feature}" for feature in overview.features]
    if overview.extension_count:
        lines += ["", "## Extensions", "", f"**{overview.extension_count} extensions active during profiling:**", ""]
        lines += [f"- **{name}** (`{ext_id}`)" for ext_id, name in overview.extensions.items()]
    return "\n".join(lines) + "\n"


def markdown_worker_analysis(analysis: WorkerAnalysis) -> str:
    lines = [
        "# Worker Thread Analysis",
        "",
        "## Summary",
        "",
        f"- **Total Workers**: {analysis.total_workers}",
        f"- **Active Workers**: {analysis.active_workers}",
        f"- **Overall Efficiency**: {analysis.overall_efficiency:.1f}%",
        f"- **Total CPU Time**: {analysis.total_cpu_time_ms:.2f} ms",
        f"- **Total Idle Time**: {analysis.total_idle_time_ms:.2f} ms",
    ]
    if analysis.workers:
        lines += [
            "",
            "## Worker Details",
            "",
            "| Worker | CPU Time | Idle Time | Active % | Messages | Sync Waits |",
            "|--------|----------|-----------|----------|----------|------------|",
        ]
        for w in analysis.workers:
            lines.append(
                f"| {_truncate(w.thread_name, 20)} | {w.cpu_time_ms:.2f}ms | {w.idle_time_ms:.2f}ms | "
                f"{w.active_percent:.1f}% | {w.messages_sent} | {w.sync_wait_count} |"
            )
    if analysis.sync_points:
        lines += [
            "",
            "## Synchronization Points",
            "",
            f"Found **{len(analysis.sync_points)}** sync points where multiple workers blocked simultaneously.",
            "",
        ]
        for sp in analysis.sync_points[:EVENT_DISPLAY_LIMIT]:
            lines += [
                f"- **{sp.time:.2f}ms**: {sp.description} ({sp.duration:.2f}ms duration)",
                f"  - Threads: {', '.join(sp.threads)}",
            ]
        if len(analysis.sync_points) > EVENT_DISPLAY_LIMIT:
            lines += ["", f"... and {len(analysis.sync_points) - EVENT_DISPLAY_LIMIT} more sync points"]
    if analysis.warnings:
        lines += ["", "## Warnings", ""] + [f"- {w}" for w in analysis.warnings]
    return "\n".join(lines) + "\n"


def _markdown_time_table(title: str, column: str, times: dict[str, float]) -> list[str]:
    if not times:
        return []
    lines = ["", f"## {title}", "", f"| {column} | Time |", "|" + "-" * (len(column) + 2) + "|------|"]
    lines += [f"| {_truncate(name, 30)} | {t:.2f}ms |" for name, t in _by_time(times)]
    return lines


def markdown_crypto_analysis(analysis: CryptoAnalysis) -> str:
    lines = [
        "# Crypto Operation Analysis",
        "",
        "## Summary",
        "",
        f"- **Total Operations**: {analysis.total_operations}",
        f"- **Total Time**: {analysis.total_time_ms:.2f} ms",
        f"- **Share of Sampled CPU**: {analysis.cpu_percent:.1f}%",
    ]
    if analysis.serialized:
        lines.append("- **Serialization**: ⚠️ Possibly serialized (no parallel crypto detected)")
    lines += _markdown_time_table("Time by Operation", "Operation", analysis.by_operation)
    lines += _markdown_time_table("Time by Algorithm", "Algorithm", analysis.by_algorithm)
    lines += _markdown_time_table("Time by Thread", "Thread", analysis.by_thread)
    if analysis.top_operations:
        lines += [
            "",
            "## Top Operations by Duration",
            "",
            "| Operation | Algorithm | Duration | Thread |",
            "|-----------|-----------|----------|--------|",
        ]
        for op in analysis.top_operations[:EVENT_DISPLAY_LIMIT]:
            lines.append(
                f"| {op.operation} | {op.algorithm or '-'} | {op.duration:.2f}ms | {_truncate(op.thread_name, 20)} |"
            )
        if len(analysis.top_operations) > EVENT_DISPLAY_LIMIT:
            lines += ["", f"... and {len(analysis.top_operations) - EVENT_DISPLAY_LIMIT} more operations"]
    if analysis.warnings:
        lines += ["", "## Warnings", ""] + [f"- ⚠️ {w}" for w in analysis.warnings]
    return "\n".join(lines) + "\n"


def markdown_js_crypto_analysis(analysis: JSCryptoAnalysis) -> str:
    lines = [
        "# JavaScript Crypto Analysis",
        "",
        "## Summary",
        "",
        f"- **Total Time**: {analysis.total_time_ms:.2f} ms",
        f"- **Share of Sampled CPU**: {analysis.cpu_percent:.1f}%",
        f"- **Total Samples**: {analysis.total_samples}",
        f"- **Worker Count**: {analysis.worker_count}",
    ]
    if analysis.worker_count:
        lines.append(f"- **Avg Time/Worker**: {analysis.avg_time_per_worker:.2f} ms")
    lines += _markdown_time_table("Time by Thread", "Thread", analysis.by_thread)
    if analysis.resources:
        lines += [
            "",
            "## Crypto Resources",
            "",
            "| Resource | Thread | Time | Samples |",
            "|----------|--------|------|---------|",
        ]
        for res in analysis.resources[:15]:
            lines.append(
                f"| {_truncate(res.name, 30)} | {_truncate(res.thread_name, 15)} | "
                f"{res.total_time:.2f}ms | {res.sample_count} |"
            )
        if len(analysis.resources) > 15:
            lines += ["", f"... and {len(analysis.resources) - 15} more resources"]
    if analysis.top_functions:
        lines += [
            "",
            "## Top Functions",
            "",
            "| Function | Resource | Time | % |",
            "|----------|----------|------|---|",
        ]
        for fn in analysis.top_functions[:20]:
            lines.append(
                f"| {_truncate(fn.name, 35)} | {_truncate(fn.resource, 20)} | {fn.total_time:.2f}ms | {fn.percent:.1f}% |"
            )
        if len(analysis.top_functions) > 20:
            lines += ["", f"... and {len(analysis.top_functions) - 20} more functions"]
    if analysis.recommendations:
        lines += ["", "## Recommendations", ""] + [f"- 💡 {r}" for r in analysis.recommendations]
    return "\n".join(lines) + "\n"


# ============================================================================
# Dispatch
# ============================================================================

TEXT_FORMATTERS: dict[type, Callable[[Any], str]] = {
    ProfileOverview: format_profile_overview,
    BottleneckReport: format_bottleneck_report,
    CallTreeAnalysis: format_call_tree,
    CategoryBreakdown: format_category_breakdown,
    ThreadAnalysis: format_thread_analysis,
    WorkerAnalysis: format_worker_analysis,
    ContentionAnalysis: format_contention_analysis,
    ScalingAnalysis: format_scaling_analysis,
    ScalingComparison: format_scaling_comparison,
    ExtensionsAnalysis: format_extensions_analysis,
    CryptoAnalysis: format_crypto_analysis,
    JSCryptoAnalysis: format_js_crypto_analysis,
    ProfileDiff: format_profile_diff,
    DelimiterMarkersReport: format_delimiter_markers,
    OperationMeasurement: format_operation_measurement,
    BatchAnalysisResult: format_batch_result,
}

MARKDOWN_FORMATTERS: dict[type, Callable[[Any], str]] = {
    ProfileOverview: markdown_profile_overview,
    BottleneckReport: markdown_bottleneck_report,
    CallTreeAnalysis: markdown_call_tree,
    WorkerAnalysis: markdown_worker_analysis,
    CryptoAnalysis: markdown_crypto_analysis,
    JSCryptoAnalysis: markdown_js_crypto_analysis,
}


def format_text(result: Any) -> str:
    formatter = TEXT_FORMATTERS.get(type(result))
    if formatter is None:
        raise TypeError(f"no text formatter for {type(result).__name__}")
    return formatter(result)


def format_markdown(result: Any) -> str:
    """Markdown where a renderer exists, otherwise the plain text report in a code block."""
    formatter = MARKDOWN_FORMATTERS.get(type(result))
    if formatter is None:
        return f"```\n{format_text(result)}```\n"
    return formatter(result)
