"""
Shared tool handlers.

Used by server.py (FastAPI tool server); scripts can call them directly
with the same request bodies.

Each handler takes the JSON request body as a dict and returns a
JSON-serialisable dict. Missing or invalid request fields raise ValueError;
profile loading failures raise ProfileLoadError.
"""
import json
from typing import Any, Callable, Dict, List, Optional

from .loader import load_profile
from .markers import (
    extract_all_markers,
    filter_by_category,
    filter_by_duration,
    filter_by_name,
    filter_by_type,
    get_marker_stats,
)
from .analysis import (
    MeasureOptions,
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
    measure_operation_advanced,
    measure_operation_by_index,
)
from .analysis.batch import parse_profile_entries
from .analysis.calltree import DEFAULT_LIMIT


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not value or not isinstance(value, str):
        raise ValueError(f"Missing '{key}' field")
    return value


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _optional_number(data: Dict[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    return float(value)


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = _optional_number(data, key)
    return int(value) if value is not None else None


def _load(data: Dict[str, Any], key: str = 'path'):
    return load_profile(_require_str(data, key), data.get('browser') or "auto")


def handle_get_summary(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle get_summary tool.

    Args:
        data: Request body containing:
            - path: Profile file (required)
            - browser: auto | firefox | chrome (optional)
    """
    profile, browser = _load(data)
    return {**build_profile_summary(profile, browser).to_dict(), "success": True}


def handle_get_bottlenecks(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle get_bottlenecks tool.

    Args:
        data: Request body containing:
            - path: Profile file (required)
            - min_severity: low | medium | high (optional)
    """
    profile, _ = _load(data)
    report = build_bottleneck_report(profile, _optional_str(data, 'min_severity'))
    return {**report.to_dict(), "success": True}


def handle_get_markers(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle get_markers tool.

    Filters apply in order type, category, name, min_duration; `limit`
    truncates afterwards and the stats describe the returned markers.
    """
    profile, _ = _load(data)
    all_markers = extract_all_markers(profile)
    filtered = all_markers

    marker_type = _optional_str(data, 'type')
    if marker_type:
        filtered = filter_by_type(filtered, marker_type)
    category = _optional_str(data, 'category')
    if category:
        filtered = filter_by_category(filtered, category)
    name = _optional_str(data, 'name')
    if name:
        filtered = filter_by_name(filtered, name)
    min_duration = _optional_number(data, 'min_duration')
    if min_duration and min_duration > 0:
        filtered = filter_by_duration(filtered, min_duration)
    limit = _optional_int(data, 'limit')
    if limit and limit > 0:
        filtered = filtered[:limit]

    return {
        "total_count": len(all_markers),
        "filtered": len(filtered),
        "stats": get_marker_stats(filtered).to_dict(),
        "markers": [m.to_dict() for m in filtered],
        "success": True,
    }


def handle_analyze_extension(data: Dict[str, Any]) -> Dict[str, Any]:
    """Per-extension activity, optionally restricted to one `extension_id`."""
    profile, _ = _load(data)
    analysis = analyze_extensions(profile)

    extension_id = _optional_str(data, 'extension_id')
    if extension_id:
        analysis.extensions = [e for e in analysis.extensions if e.id == extension_id]
        analysis.total_duration = sum(e.total_duration for e in analysis.extensions)
        analysis.total_events = sum(e.markers_count for e in analysis.extensions)

    return {**analysis.to_dict(), "success": True}


def handle_analyze_profile(data: Dict[str, Any]) -> Dict[str, Any]:
    """Summary, bottleneck report and extension analysis in one response."""
    profile, browser = _load(data)
    return {
        "summary": build_profile_summary(profile, browser).to_dict(),
        "bottlenecks": build_bottleneck_report(profile).to_dict(),
        "extensions": analyze_extensions(profile).to_dict(),
        "success": True,
    }


def handle_get_call_tree(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    limit = _optional_int(data, 'limit')
    analysis = analyze_call_tree(
        profile,
        thread_name=_optional_str(data, 'thread'),
        limit=limit if limit and limit > 0 else DEFAULT_LIMIT,
    )
    return {**analysis.to_dict(), "success": True}


def handle_get_category_breakdown(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    breakdown = analyze_categories(profile, _optional_str(data, 'thread'))
    return {**breakdown.to_dict(), "success": True}


def handle_get_thread_analysis(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_threads(profile).to_dict(), "success": True}


def handle_compare_profiles(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle compare_profiles tool.

    Args:
        data: Request body containing:
            - baseline: Baseline profile file (required)
            - comparison: Comparison profile file (required)
    """
    baseline, _ = _load(data, 'baseline')
    comparison, _ = _load(data, 'comparison')
    return {**compare_profiles(baseline, comparison).to_dict(), "success": True}


def handle_analyze_workers(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_workers(profile).to_dict(), "success": True}


def handle_analyze_contention(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_contention(profile).to_dict(), "success": True}


def handle_analyze_crypto(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_crypto(profile, _optional_str(data, 'thread')).to_dict(), "success": True}


def handle_analyze_js_crypto(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_js_crypto(profile).to_dict(), "success": True}


def handle_analyze_scaling(data: Dict[str, Any]) -> Dict[str, Any]:
    profile, _ = _load(data)
    return {**analyze_scaling(profile).to_dict(), "success": True}


def handle_compare_scaling(data: Dict[str, Any]) -> Dict[str, Any]:
    baseline, _ = _load(data, 'baseline')
    comparison, _ = _load(data, 'comparison')
    return {**compare_scaling(baseline, comparison).to_dict(), "success": True}


def handle_batch_analyze(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle batch_analyze tool.

    Args:
        data: Request body containing:
            - profiles: List of profile entries, or the same list encoded as a
              JSON string (required). Each entry: {"path", "workers", "label",
              "start_pattern", "end_pattern", "start_min_duration",
              "end_min_duration"}
            - max_workers: Thread pool size (optional)
    """
    profiles = data.get('profiles')
    if not profiles:
        raise ValueError("Missing 'profiles' field")
    if isinstance(profiles, str):
        try:
            profiles = json.loads(profiles)
        except json.JSONDecodeError as e:
            raise ValueError(f"'profiles' is not valid JSON: {e}") from e

    entries = parse_profile_entries(profiles)
    result = analyze_batch(entries, max_workers=_optional_int(data, 'max_workers'))
    return {**result.to_dict(), "success": True}


def handle_get_delimiter_markers(data: Dict[str, Any]) -> Dict[str, Any]:
    """`categories` is a comma-separated string or a list; `limit` 0/absent returns all."""
    profile, _ = _load(data)
    categories = data.get('categories')
    if isinstance(categories, str):
        categories = categories.split(",")
    elif categories is not None and not isinstance(categories, list):
        raise ValueError("'categories' must be a string or a list")
    report = get_delimiter_markers_report(profile, categories, _optional_int(data, 'limit') or 0)
    return {**report.to_dict(), "success": True}


def handle_measure_operation(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Handle measure_operation tool.

    Index mode when both start_index and end_index are given; otherwise
    start_pattern and end_pattern are required and the optional bounds,
    minimum durations and find_last apply.
    """
    profile, _ = _load(data)

    start_index = _optional_int(data, 'start_index')
    end_index = _optional_int(data, 'end_index')
    if start_index is not None and end_index is not None:
        measurement = measure_operation_by_index(profile, start_index, end_index)
        return {**measurement.to_dict(), "success": True}

    options = MeasureOptions(
        start_pattern=_require_str(data, 'start_pattern'),
        end_pattern=_require_str(data, 'end_pattern'),
        start_after_ms=_optional_number(data, 'start_after_ms'),
        end_before_ms=_optional_number(data, 'end_before_ms'),
        start_min_duration_ms=_optional_number(data, 'start_min_duration'),
        end_min_duration_ms=_optional_number(data, 'end_min_duration'),
        find_last=bool(data.get('find_last', False)),
    )
    measurement = measure_operation_advanced(profile, options)
    return {**measurement.to_dict(), "success": True}


# name -> (handler, description, request fields)
TOOLS: Dict[str, tuple] = {
    'get_summary': (
        handle_get_summary,
        "Get a summary of the browser profile including duration, platform, threads, and extensions",
        ['path'],
    ),
    'get_bottlenecks': (
        handle_get_bottlenecks,
        "Detect performance bottlenecks including long tasks, GC pressure, sync IPC, "
        "layout thrashing, network blocking and extension overhead",
        ['path', 'min_severity'],
    ),
    'get_markers': (
        handle_get_markers,
        "Extract markers, optionally filtered by type, category, name or minimum duration",
        ['path', 'type', 'category', 'name', 'min_duration', 'limit'],
    ),
    'analyze_extension': (
        handle_analyze_extension,
        "Analyze extension performance impact including duration, events, DOM interactions, and IPC messages",
        ['path', 'extension_id'],
    ),
    'analyze_profile': (
        handle_analyze_profile,
        "Comprehensive analysis: summary, bottlenecks, and extension impact",
        ['path'],
    ),
    'get_call_tree': (
        handle_get_call_tree,
        "Hot functions by self time and running time, with hot paths",
        ['path', 'thread', 'limit'],
    ),
    'get_category_breakdown': (
        handle_get_category_breakdown,
        "Time spent per profiler category (JavaScript, Layout, GC / CC, Network, Graphics, DOM, ...)",
        ['path', 'thread'],
    ),
    'get_thread_analysis': (
        handle_get_thread_analysis,
        "Per-thread CPU time, sample counts, wake patterns, and category distribution",
        ['path'],
    ),
    'compare_profiles': (
        handle_compare_profiles,
        "Compare two profiles to identify performance improvements or regressions",
        ['baseline', 'comparison'],
    ),
    'analyze_workers': (
        handle_analyze_workers,
        "Worker thread CPU time, idle time, messaging, and synchronization points",
        ['path'],
    ),
    'analyze_contention': (
        handle_analyze_contention,
        "Thread contention: GC pauses overlapping workers, sync IPC blocking, and lock contention",
        ['path'],
    ),
    'analyze_crypto': (
        handle_analyze_crypto,
        "Crypto time by operation, algorithm and thread, with serialization and weak-hash warnings",
        ['path', 'thread'],
    ),
    'analyze_js_crypto': (
        handle_analyze_js_crypto,
        "Time in JavaScript crypto code (worker scripts, bundled libraries) per script, function and thread",
        ['path'],
    ),
    'analyze_scaling': (
        handle_analyze_scaling,
        "Parallel scaling efficiency: worker utilization, speedup, and bottleneck classification",
        ['path'],
    ),
    'compare_scaling': (
        handle_compare_scaling,
        "Compare parallel scaling efficiency between two profiles",
        ['baseline', 'comparison'],
    ),
    'batch_analyze': (
        handle_batch_analyze,
        "Analyze multiple profiles across worker counts and aggregate the results per label",
        ['profiles', 'max_workers'],
    ),
    'get_delimiter_markers': (
        handle_get_delimiter_markers,
        "List markers usable as operation start/end delimiters (input events, marks, style, paint, ...)",
        ['path', 'categories', 'limit'],
    ),
    'measure_operation': (
        handle_measure_operation,
        "Measure time between two marker patterns ('Type' or 'Type:subtype') or two delimiter indices",
        ['path', 'start_pattern', 'end_pattern', 'start_after_ms', 'end_before_ms',
         'start_index', 'end_index', 'find_last', 'start_min_duration', 'end_min_duration'],
    ),
}


def list_tools() -> List[Dict[str, Any]]:
    return [
        {"name": name, "description": description, "fields": fields}
        for name, (_, description, fields) in TOOLS.items()
    ]


def get_handler(name: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Raises KeyError for an unknown tool."""
    return TOOLS[name][0]
