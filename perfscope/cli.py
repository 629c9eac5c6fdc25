"""
perfscope command line.

    perfscope summary -p profile.json.gz
    perfscope bottlenecks -p profile.json --min-severity medium -o markdown
    perfscope measure -p trace.json --start DOMEvent:click --end Paint --find-last
    perfscope batch --profiles a.json:1:Firefox,b.json:4:Firefox
    perfscope serve --port 9000

Defaults come from PERFSCOPE_* environment variables (and `.env`); see
perfscope.settings.
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .analysis import (
    BatchError,
    MeasureOptions,
    MeasurementError,
    analyze_batch,
    analyze_call_tree,
    analyze_categories,
    analyze_contention,
    analyze_crypto,
    analyze_extensions,
    analyze_js_crypto,
    analyze_scaling,
    analyze_threads,
    analyze_workers,
    build_bottleneck_report,
    build_profile_summary,
    compare_profiles,
    compare_scaling,
    get_delimiter_markers_report,
    load_batch_config,
    measure_operation_advanced,
    measure_operation_by_index,
    parse_inline_profiles,
)
from .analysis.formatting import (
    format_bottleneck_report,
    format_markdown,
    format_markers,
    format_text,
    markdown_bottleneck_report,
)
from .loader import ProfileLoadError, load_profile
from .markers import (
    extract_all_markers,
    filter_by_category,
    filter_by_duration,
    filter_by_name,
    filter_by_type,
    get_marker_stats,
)
from .settings import BROWSERS, OUTPUT_FORMATS, AnalyzerSettings, settings_from_env

logger = logging.getLogger(__name__)


@dataclass
class _Output:
    """A command result with optional renderers overriding the type-based defaults."""
    result: Any
    text: Optional[Callable[[], str]] = None
    markdown: Optional[Callable[[], str]] = None
    json: Optional[Callable[[], Any]] = None


def render(output: _Output, output_format: str) -> str:
    if output_format == "json":
        payload = output.json() if output.json else output.result.to_dict()
        return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"
    if output_format == "markdown":
        return output.markdown() if output.markdown else format_markdown(output.result)
    return output.text() if output.text else format_text(output.result)


def _load(args: argparse.Namespace):
    if not args.profile:
        raise ValueError("--profile is required for this command")
    return load_profile(args.profile, args.browser)


# ============================================================================
# Commands
# ============================================================================

def cmd_summary(args: argparse.Namespace) -> _Output:
    profile, browser = _load(args)
    return _Output(build_profile_summary(profile, browser))


def cmd_bottlenecks(args: argparse.Namespace) -> _Output:
    profile, browser = _load(args)
    report = build_bottleneck_report(profile, args.min_severity)
    overview = build_profile_summary(profile, browser)
    return _Output(
        report,
        text=lambda: format_bottleneck_report(report, overview),
        markdown=lambda: markdown_bottleneck_report(report, overview),
    )


def cmd_markers(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    all_markers = extract_all_markers(profile)
    markers = all_markers
    if args.type:
        markers = filter_by_type(markers, args.type)
    if args.category:
        markers = filter_by_category(markers, args.category)
    if args.name:
        markers = filter_by_name(markers, args.name)
    if args.min_duration and args.min_duration > 0:
        markers = filter_by_duration(markers, args.min_duration)
    if args.limit and args.limit > 0:
        markers = markers[:args.limit]
    stats = get_marker_stats(markers)

    def as_text() -> str:
        return format_markers(markers, stats)

    return _Output(
        markers,
        text=as_text,
        markdown=lambda: f"```\n{as_text()}```\n",
        json=lambda: {
            "total_count": len(all_markers),
            "filtered": len(markers),
            "stats": stats.to_dict(),
            "markers": [m.to_dict() for m in markers],
        },
    )


def cmd_calltree(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_call_tree(profile, thread_name=args.thread, limit=args.limit))


def cmd_categories(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_categories(profile, args.thread))


def cmd_threads(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_threads(profile))


def cmd_workers(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_workers(profile))


def cmd_contention(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_contention(profile))


def cmd_crypto(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_crypto(profile, args.thread))


def cmd_jscrypto(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    return _Output(analyze_js_crypto(profile))


def cmd_scaling(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    if args.compare:
        other, _ = load_profile(args.compare, args.browser)
        return _Output(compare_scaling(profile, other))
    return _Output(analyze_scaling(profile))


def cmd_extensions(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    analysis = analyze_extensions(profile)
    if args.extension:
        analysis.extensions = [e for e in analysis.extensions if e.id == args.extension]
        analysis.total_duration = sum(e.total_duration for e in analysis.extensions)
        analysis.total_events = sum(e.markers_count for e in analysis.extensions)
    return _Output(analysis)


def cmd_compare(args: argparse.Namespace) -> _Output:
    baseline, _ = load_profile(args.baseline, args.browser)
    comparison, _ = load_profile(args.comparison, args.browser)
    return _Output(compare_profiles(baseline, comparison))


def cmd_delimiters(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    categories = args.categories.split(",") if args.categories else None
    return _Output(get_delimiter_markers_report(profile, categories, args.limit))


def cmd_measure(args: argparse.Namespace) -> _Output:
    profile, _ = _load(args)
    if args.start_index is not None or args.end_index is not None:
        if args.start_index is None or args.end_index is None:
            raise ValueError("--start-index and --end-index must be given together")
        return _Output(measure_operation_by_index(profile, args.start_index, args.end_index))

    if not args.start or not args.end:
        raise ValueError("--start and --end patterns are required (or --start-index/--end-index)")
    return _Output(measure_operation_advanced(profile, MeasureOptions(
        start_pattern=args.start,
        end_pattern=args.end,
        start_after_ms=args.start_after,
        end_before_ms=args.end_before,
        start_min_duration_ms=args.start_min_duration,
        end_min_duration_ms=args.end_min_duration,
        find_last=args.find_last,
    )))


def cmd_batch(args: argparse.Namespace) -> _Output:
    if args.config:
        entries = load_batch_config(args.config)
    elif args.profiles:
        entries = parse_inline_profiles(args.profiles)
    else:
        raise ValueError("either --config or --profiles is required")
    return _Output(analyze_batch(entries, max_workers=args.max_workers or None))


def cmd_serve(args: argparse.Namespace) -> None:
    import uvicorn
    from .server import app

    logger.info("serving tools on http://%s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port, log_level=args.log_level.lower())


# ============================================================================
# Parser
# ============================================================================

def build_parser(settings: Optional[AnalyzerSettings] = None) -> argparse.ArgumentParser:
    settings = settings or AnalyzerSettings()

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-p", "--profile", dest="profile", default=None,
                        help="Profile file (Firefox JSON or Chrome trace, optionally gzipped)")
    common.add_argument("-o", "--output", dest="output", choices=OUTPUT_FORMATS,
                        default=settings.output_format, help="Output format")
    common.add_argument("-b", "--browser", dest="browser", choices=BROWSERS,
                        default=settings.browser, help="Profile format (default: detect)")
    common.add_argument("--log-level", dest="log_level", default=settings.log_level,
                        help="Logging level (DEBUG, INFO, WARNING, ...)")

    parser = argparse.ArgumentParser(
        prog="perfscope",
        description="Analyze Firefox Profiler and Chrome DevTools performance profiles.",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    def add(name: str, handler: Callable, help_text: str) -> argparse.ArgumentParser:
        p = sub.add_parser(name, parents=[common], help=help_text, description=help_text)
        p.set_defaults(handler=handler)
        return p

    add("summary", cmd_summary, "Profile overview: environment, threads, extensions")

    p = add("bottlenecks", cmd_bottlenecks, "Detect performance bottlenecks and score the profile")
    p.add_argument("--min-severity", dest="min_severity", choices=("low", "medium", "high"), default=None)

    p = add("markers", cmd_markers, "List and filter markers")
    p.add_argument("--type", dest="type", default=None, help="Marker type or name (exact)")
    p.add_argument("--category", dest="category", default=None)
    p.add_argument("--name", dest="name", default=None, help="Case-insensitive name substring")
    p.add_argument("--min-duration", dest="min_duration", type=float, default=None, help="Minimum duration (ms)")
    p.add_argument("--limit", dest="limit", type=int, default=settings.marker_limit, help="0 = all")

    p = add("calltree", cmd_calltree, "Hot functions and hot paths from samples")
    p.add_argument("--thread", dest="thread", default=None, help="Restrict to threads with this name")
    p.add_argument("--limit", dest="limit", type=int, default=settings.call_tree_limit)

    p = add("categories", cmd_categories, "Time per profiler category")
    p.add_argument("--thread", dest="thread", default=None)

    add("threads", cmd_threads, "Per-thread CPU time and wake statistics")
    add("workers", cmd_workers, "Worker thread utilization and sync points")
    add("contention", cmd_contention, "GC, sync IPC and lock contention")

    p = add("crypto", cmd_crypto, "Crypto time by operation, algorithm and thread")
    p.add_argument("--thread", dest="thread", default=None)
    add("jscrypto", cmd_jscrypto, "Time in JavaScript crypto scripts and workers")

    p = add("scaling", cmd_scaling, "Parallel scaling efficiency")
    p.add_argument("--compare", dest="compare", default=None, help="Second profile to compare against")

    p = add("extensions", cmd_extensions, "Per-extension activity and impact")
    p.add_argument("--extension", dest="extension", default=None, help="Only this extension id")

    p = add("compare", cmd_compare, "Compare two profiles")
    p.add_argument("--baseline", dest="baseline", required=True)
    p.add_argument("--comparison", dest="comparison", required=True)

    p = add("delimiters", cmd_delimiters, "Markers usable as operation boundaries")
    p.add_argument("--categories", dest="categories", default=None, help="Comma-separated category names")
    p.add_argument("--limit", dest="limit", type=int, default=settings.marker_limit, help="0 = all")

    p = add("measure", cmd_measure, "Measure the time between two markers")
    p.add_argument("--start", dest="start", default=None, help="Start pattern, e.g. DOMEvent:click")
    p.add_argument("--end", dest="end", default=None, help="End pattern, e.g. Paint")
    p.add_argument("--find-last", dest="find_last", action="store_true", help="Use the last matching end marker")
    p.add_argument("--start-after", dest="start_after", type=float, default=None, help="ms")
    p.add_argument("--end-before", dest="end_before", type=float, default=None, help="ms")
    p.add_argument("--start-min-duration", dest="start_min_duration", type=float, default=None, help="ms")
    p.add_argument("--end-min-duration", dest="end_min_duration", type=float, default=None, help="ms")
    p.add_argument("--start-index", dest="start_index", type=int, default=None)
    p.add_argument("--end-index", dest="end_index", type=int, default=None)

    p = add("batch", cmd_batch, "Analyze several profiles across worker counts")
    p.add_argument("--config", dest="config", default=None, help="YAML/JSON list of profile entries")
    p.add_argument("--profiles", dest="profiles", default=None, help="path:workers:label,...")
    p.add_argument("--max-workers", dest="max_workers", type=int, default=settings.batch_max_workers,
                   help="Thread pool size (0 = CPU count)")

    p = add("serve", cmd_serve, "Run the HTTP tool server")
    p.add_argument("--host", dest="host", default=settings.server_host)
    p.add_argument("--port", dest="port", type=int, default=settings.server_port)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    settings = settings_from_env()
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        output = args.handler(args)
        if output is not None:
            sys.stdout.write(render(output, args.output))
    except (ProfileLoadError, BatchError, MeasurementError, ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
