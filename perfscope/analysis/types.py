"""
Analysis Result Types

Pydantic models for every analysis result. Field names follow the Python
side; serialisation aliases give the JSON keys used by the CLI and the tool
server (`to_dict()` dumps by alias).
"""

from enum import IntEnum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class Severity(IntEnum):
    """Ordered urgency of a finding: LOW < MEDIUM < HIGH."""
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    def __str__(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Parse 'high'/'medium'/'low' (any case). Anything else is LOW."""
        if isinstance(value, Severity):
            return value
        if isinstance(value, int) and value in (1, 2, 3):
            return cls(value)
        text = str(value or "").strip().lower()
        if text == "high":
            return cls.HIGH
        if text == "medium":
            return cls.MEDIUM
        return cls.LOW


class ResultModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True)


# ============================================================================
# Call tree
# ============================================================================

class FunctionStats(ResultModel):
    """Timing for one function (aggregated by name across threads)."""
    name: str
    file: str = ""
    self_time_ms: float = 0.0
    running_time_ms: float = 0.0
    self_percent: float = 0.0
    total_percent: float = 0.0
    sample_count: int = 0


class HotPath(ResultModel):
    """A rendered root->leaf call path and the time spent in it."""
    path: str
    self_time_ms: float = 0.0
    percent: float = 0.0
    count: int = 0


class CallTreeAnalysis(ResultModel):
    total_time_ms: float = 0.0
    total_samples: int = 0
    top_functions: list[FunctionStats] = Field(default_factory=list)
    hot_paths: list[HotPath] = Field(default_factory=list)
    thread_name: Optional[str] = None


# ============================================================================
# Bottlenecks
# ============================================================================

class Bottleneck(ResultModel):
    """One finding produced by a detector."""
    type: str
    severity: Severity = Severity.LOW
    count: int = 0
    total_duration: float = Field(0.0, serialization_alias='total_duration_ms')
    avg_duration: float = Field(0.0, serialization_alias='avg_duration_ms')
    max_duration: float = Field(0.0, serialization_alias='max_duration_ms')
    description: str = ""
    recommendation: str = ""
    locations: list[str] = Field(default_factory=list)

    @field_validator('severity', mode='before')
    @classmethod
    def parse_severity(cls, v):
        return Severity.parse(v)

    @field_serializer('severity')
    def serialize_severity(self, v: Severity) -> str:
        return str(v)


class BottleneckReport(ResultModel):
    score: int = 100
    summary: str = ""
    bottlenecks: list[Bottleneck] = Field(default_factory=list)


# ============================================================================
# Contention / scaling
# ============================================================================

class ContentionEvent(ResultModel):
    type: str
    start_time: float = Field(0.0, serialization_alias='start_time_ms')
    duration: float = Field(0.0, serialization_alias='duration_ms')
    threads: list[str] = Field(default_factory=list, serialization_alias='affected_threads')
    description: str = ""


class ContentionAnalysis(ResultModel):
    total_events: int = 0
    total_impact_ms: float = 0.0
    gc_contention: int = Field(0, serialization_alias='gc_contention_events')
    ipc_contention: int = Field(0, serialization_alias='ipc_contention_events')
    lock_contention: int = Field(0, serialization_alias='lock_contention_events')
    events: list[ContentionEvent] = Field(default_factory=list)
    severity: str = "minimal"
    recommendations: list[str] = Field(default_factory=list)


class ScalingAnalysis(ResultModel):
    worker_count: int = 0
    total_work_ms: float = 0.0
    wall_clock_ms: float = 0.0
    theoretical_speedup: float = 0.0
    actual_speedup: float = 0.0
    efficiency: float = Field(0.0, serialization_alias='parallel_efficiency_percent')
    bottleneck_type: str = ""
    recommendations: list[str] = Field(default_factory=list)


class ScalingComparison(ResultModel):
    baseline: ScalingAnalysis
    comparison: ScalingAnalysis
    improvement: float = Field(0.0, serialization_alias='improvement_percent')
    analysis: str = ""


# ============================================================================
# Delimiters
# ============================================================================

class DelimiterMarker(ResultModel):
    """A marker eligible to bound a measured operation."""
    time_ms: float
    duration_ms: float = 0.0
    name: str = ""
    type: str = ""
    category: str = ""
    thread: str = ""
    data: dict[str, Any] = Field(default_factory=dict)


class OperationMeasurement(ResultModel):
    start_marker: DelimiterMarker
    end_marker: DelimiterMarker
    operation_time_ms: float


class DelimiterMarkersReport(ResultModel):
    total_count: int = 0
    markers: list[DelimiterMarker] = Field(default_factory=list)
    by_type: dict[str, int] = Field(default_factory=dict)
    by_category: dict[str, int] = Field(default_factory=dict)


# ============================================================================
# Categories / threads / workers
# ============================================================================

class CategoryStats(ResultModel):
    name: str
    time_ms: float = 0.0
    percent: float = 0.0
    sample_count: int = 0


class CategoryBreakdown(ResultModel):
    total_time_ms: float = 0.0
    categories: list[CategoryStats] = Field(default_factory=list)
    by_thread: dict[str, list[CategoryStats]] = Field(default_factory=dict)


class ThreadStats(ResultModel):
    name: str
    process_type: str = ""
    process_name: str = ""
    pid: str = ""
    tid: str = ""
    is_main_thread: bool = False
    cpu_time_ms: float = 0.0
    sample_count: int = 0
    marker_count: int = 0
    wake_count: int = 0
    avg_wake_interval_ms: float = 0.0
    top_categories: list[CategoryStats] = Field(default_factory=list)


class ThreadAnalysis(ResultModel):
    total_threads: int = 0
    main_thread_count: int = 0
    parent_process_threads: int = 0
    content_process_threads: int = 0
    threads: list[ThreadStats] = Field(default_factory=list)


class WorkerStats(ResultModel):
    thread_name: str
    thread_id: str = ""
    process_id: str = ""
    cpu_time_ms: float = 0.0
    idle_time_ms: float = 0.0
    active_percent: float = 0.0
    messages_sent: int = 0
    messages_received: int = 0
    sync_wait_count: int = 0
    sync_wait_time_ms: float = 0.0
    top_categories: list[CategoryStats] = Field(default_factory=list)


class SyncPoint(ResultModel):
    time: float = Field(0.0, serialization_alias='time_ms')
    type: str = ""
    description: str = ""
    threads: list[str] = Field(default_factory=list, serialization_alias='threads_involved')
    duration: float = Field(0.0, serialization_alias='duration_ms')


class WorkerAnalysis(ResultModel):
    total_workers: int = 0
    active_workers: int = 0
    total_cpu_time_ms: float = 0.0
    total_idle_time_ms: float = 0.0
    overall_efficiency: float = Field(0.0, serialization_alias='overall_efficiency_percent')
    workers: list[WorkerStats] = Field(default_factory=list)
    sync_points: list[SyncPoint] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


# ============================================================================
# Extensions
# ============================================================================

class MarkerSummary(ResultModel):
    name: str
    category: str = ""
    duration: float = Field(0.0, serialization_alias='duration_ms')


class ExtensionReport(ResultModel):
    id: str
    name: str = ""
    base_url: str = ""
    total_duration: float = Field(0.0, serialization_alias='total_duration_ms')
    markers_count: int = 0
    dom_events: int = 0
    ipc_messages: int = 0
    impact_score: str = "low"
    top_markers: list[MarkerSummary] = Field(default_factory=list)


class ExtensionsAnalysis(ResultModel):
    total_extensions: int = 0
    total_duration: float = Field(0.0, serialization_alias='total_duration_ms')
    total_events: int = 0
    extensions: list[ExtensionReport] = Field(default_factory=list)


# ============================================================================
# Crypto
# ============================================================================

class CryptoOperation(ResultModel):
    """One crypto function on one thread, aggregated over its leaf samples."""
    operation: str
    algorithm: str = ""
    duration: float = Field(0.0, serialization_alias='duration_ms')
    thread_name: str = ""
    start_time: float = Field(0.0, serialization_alias='start_time_ms')
    function_name: str = ""
    sample_count: int = 0


class CryptoAnalysis(ResultModel):
    total_operations: int = 0
    total_time_ms: float = 0.0
    cpu_percent: float = 0.0
    by_operation: dict[str, float] = Field(default_factory=dict)
    by_algorithm: dict[str, float] = Field(default_factory=dict)
    by_thread: dict[str, float] = Field(default_factory=dict)
    top_operations: list[CryptoOperation] = Field(default_factory=list)
    serialized: bool = Field(False, serialization_alias='possibly_serialized')
    warnings: list[str] = Field(default_factory=list)


class JSCryptoResource(ResultModel):
    name: str
    url: str = ""
    total_time: float = Field(0.0, serialization_alias='total_time_ms')
    sample_count: int = 0
    thread_name: str = ""


class JSCryptoFunction(ResultModel):
    name: str
    resource: str = ""
    total_time: float = Field(0.0, serialization_alias='total_time_ms')
    sample_count: int = 0
    percent: float = 0.0


class JSCryptoAnalysis(ResultModel):
    total_time_ms: float = 0.0
    total_samples: int = 0
    cpu_percent: float = 0.0
    resources: list[JSCryptoResource] = Field(default_factory=list)
    top_functions: list[JSCryptoFunction] = Field(default_factory=list)
    by_thread: dict[str, float] = Field(default_factory=dict)
    worker_count: int = 0
    avg_time_per_worker: float = Field(0.0, serialization_alias='avg_time_per_worker_ms')
    recommendations: list[str] = Field(default_factory=list)


# ============================================================================
# Profile comparison / overview
# ============================================================================

class ProfileSummary(ResultModel):
    """Headline counts used when diffing two profiles."""
    name: str = ""
    duration_ms: float = 0.0
    total_samples: int = 0
    thread_count: int = 0
    gc_major_count: int = 0
    gc_minor_count: int = 0
    gc_total_time_ms: float = 0.0
    sync_ipc_count: int = 0
    long_task_count: int = 0
    layout_count: int = 0
    extension_count: int = 0


class DiffChanges(ResultModel):
    duration_change_ms: float = 0.0
    duration_change_percent: float = 0.0
    sample_count_change: int = 0
    thread_count_change: int = 0
    gc_major_change: int = 0
    gc_minor_change: int = 0
    gc_time_change_ms: float = 0.0
    gc_time_change_percent: float = 0.0
    sync_ipc_change: int = 0
    long_task_change: int = 0
    layout_change: int = 0


class ProfileDiff(ResultModel):
    baseline: ProfileSummary
    comparison: ProfileSummary
    changes: DiffChanges = Field(default_factory=DiffChanges)
    improved: list[str] = Field(default_factory=list)
    regressed: list[str] = Field(default_factory=list)
    unchanged: list[str] = Field(default_factory=list)


class ProfileOverview(ResultModel):
    """What the `summary` command reports about a single profile."""
    browser_type: str = "unknown"
    duration_seconds: float = 0.0
    platform: str = ""
    os_cpu: str = ""
    product: str = ""
    build_id: str = ""
    cpu_name: str = ""
    physical_cpus: int = 0
    logical_cpus: int = 0
    thread_count: int = 0
    main_thread_count: int = 0
    extension_count: int = 0
    extensions: dict[str, str] = Field(default_factory=dict)
    features: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    total_markers: int = 0
    total_samples: int = 0


# ============================================================================
# Batch
# ============================================================================

class ProfileEntry(ResultModel):
    """One profile in a batch run."""
    path: str
    workers: int = 0
    label: str = ""
    start_pattern: str = ""
    end_pattern: str = ""
    start_min_duration: float = 0.0
    end_min_duration: float = 0.0


class ProfileDataPoint(ResultModel):
    worker_count: int = 0
    label: str = ""
    file_path: str = ""
    wall_clock_ms: float = 0.0
    operation_time_ms: float = 0.0
    total_work_ms: float = 0.0
    efficiency: float = Field(0.0, serialization_alias='efficiency_percent')
    speedup: float = 0.0
    crypto_time_ms: float = 0.0


class BatchSummary(ResultModel):
    total_profiles: int = 0
    labels: list[str] = Field(default_factory=list)
    best_workers: dict[str, int] = Field(default_factory=dict)
    min_wall_clock: dict[str, float] = Field(default_factory=dict)
    min_operation_time: dict[str, float] = Field(default_factory=dict)
    max_speedup: dict[str, float] = Field(default_factory=dict)
    peak_efficiency: dict[str, float] = Field(default_factory=dict)


class BatchAnalysisResult(ResultModel):
    series: dict[str, list[ProfileDataPoint]] = Field(default_factory=dict)
    summary: BatchSummary = Field(default_factory=BatchSummary)
