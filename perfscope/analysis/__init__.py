"""
Analysis Package

Bottleneck detection, contention and scaling analysis, call trees,
delimiter-based operation timing, crypto time attribution and the
auxiliary per-profile reports.
"""

from .types import (
    Severity,
    Bottleneck,
    BottleneckReport,
    CallTreeAnalysis,
    CategoryBreakdown,
    ContentionAnalysis,
    ContentionEvent,
    CryptoAnalysis,
    DelimiterMarker,
    DelimiterMarkersReport,
    ExtensionsAnalysis,
    FunctionStats,
    HotPath,
    JSCryptoAnalysis,
    OperationMeasurement,
    ProfileDiff,
    ProfileEntry,
    ProfileOverview,
    ScalingAnalysis,
    ScalingComparison,
    ThreadAnalysis,
    WorkerAnalysis,
    BatchAnalysisResult,
)

from .bottlenecks import (
    detect_bottlenecks,
    calculate_score,
    generate_summary,
    filter_by_severity,
    build_bottleneck_report,
)
from .calltree import analyze_call_tree
from .categories import analyze_categories
from .threads import analyze_threads
from .workers import analyze_workers
from .contention import analyze_contention
from .scaling import analyze_scaling, compare_scaling
from .extensions import analyze_extensions
from .crypto import analyze_crypto
from .jscrypto import analyze_js_crypto
from .compare import compare_profiles
from .overview import build_profile_summary
from .delimiters import (
    MeasureOptions,
    MeasurementError,
    get_delimiter_markers,
    get_delimiter_markers_report,
    match_marker_pattern,
    measure_operation,
    measure_operation_advanced,
    measure_operation_last,
    measure_operation_by_index,
)
from .batch import BatchError, analyze_batch, load_batch_config, parse_inline_profiles

__all__ = [
    # Types
    'Severity',
    'Bottleneck',
    'BottleneckReport',
    'CallTreeAnalysis',
    'CategoryBreakdown',
    'ContentionAnalysis',
    'ContentionEvent',
    'CryptoAnalysis',
    'DelimiterMarker',
    'DelimiterMarkersReport',
    'ExtensionsAnalysis',
    'FunctionStats',
    'HotPath',
    'JSCryptoAnalysis',
    'OperationMeasurement',
    'ProfileDiff',
    'ProfileEntry',
    'ProfileOverview',
    'ScalingAnalysis',
    'ScalingComparison',
    'ThreadAnalysis',
    'WorkerAnalysis',
    'BatchAnalysisResult',
    'MeasureOptions',
    # Errors
    'MeasurementError',
    'BatchError',
    # Functions
    'detect_bottlenecks',
    'calculate_score',
    'generate_summary',
    'filter_by_severity',
    'build_bottleneck_report',
    'analyze_call_tree',
    'analyze_categories',
    'analyze_threads',
    'analyze_workers',
    'analyze_contention',
    'analyze_scaling',
    'compare_scaling',
    'analyze_extensions',
    'analyze_crypto',
    'analyze_js_crypto',
    'compare_profiles',
    'build_profile_summary',
    'get_delimiter_markers',
    'get_delimiter_markers_report',
    'match_marker_pattern',
    'measure_operation',
    'measure_operation_advanced',
    'measure_operation_last',
    'measure_operation_by_index',
    'analyze_batch',
    'load_batch_config',
    'parse_inline_profiles',
]
