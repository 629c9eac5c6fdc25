"""
Profile data type definitions using Pydantic

Models the Firefox Profiler "processed profile" JSON layout. Chrome DevTools
traces are converted into the same shape by chrome_convert before analysis.

Thread tables are columnar: each table is a set of parallel lists indexed by
row. Cross-table references are plain integer indices that are local to the
owning thread. Any index may be null, negative or out of range in real-world
traces, so every accessor here degrades to "unknown" instead of raising.
"""

from typing import List, Dict, Any, Optional
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator


class ProfileModel(BaseModel):
    """Base for all profile models: camelCase aliases, extra keys ignored, nulls -> defaults."""
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    @model_validator(mode='before')
    @classmethod
    def drop_null_fields(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ColumnTable(ProfileModel):
    """
    A columnar table. `length` is optional on the wire; when absent it is
    taken from the longest list column present.
    """
    length: int = 0

    @model_validator(mode='before')
    @classmethod
    def infer_length(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get('length') is None:
            columns = [v for v in data.values() if isinstance(v, list)]
            if columns:
                data = dict(data)
                data['length'] = max(len(c) for c in columns)
        return data


# ============================================================================
# Thread tables
# ============================================================================

class StackTable(ColumnTable):
    """Unique call stacks; `prefix` points at the parent stack row."""
    frame: List[Optional[int]] = Field(default_factory=list)
    prefix: List[Optional[int]] = Field(default_factory=list)
    category: List[Optional[int]] = Field(default_factory=list)
    subcategory: List[Optional[int]] = Field(default_factory=list)


class FrameTable(ColumnTable):
    func: List[Optional[int]] = Field(default_factory=list)
    category: List[Optional[int]] = Field(default_factory=list)
    subcategory: List[Optional[int]] = Field(default_factory=list)
    line: List[Optional[int]] = Field(default_factory=list)
    column: List[Optional[int]] = Field(default_factory=list)


class FuncTable(ColumnTable):
    name: List[Optional[int]] = Field(default_factory=list)
    file_name: List[Optional[int]] = Field(default_factory=list, alias='fileName')
    resource: List[Optional[int]] = Field(default_factory=list)
    is_js: List[Optional[bool]] = Field(default_factory=list, alias='isJS')
    line_number: List[Optional[int]] = Field(default_factory=list, alias='lineNumber')
    column_number: List[Optional[int]] = Field(default_factory=list, alias='columnNumber')


class ResourceTable(ColumnTable):
    name: List[Optional[int]] = Field(default_factory=list)
    lib: List[Optional[int]] = Field(default_factory=list)
    host: List[Optional[int]] = Field(default_factory=list)
    type: List[Optional[int]] = Field(default_factory=list)


class Samples(ColumnTable):
    """
    Periodic stack snapshots.

    `time` may be omitted in favour of `timeDeltas` (the loader rebuilds it).
    `threadCPUDelta` units come from meta.sampleUnits.threadCPUDelta.
    """
    stack: List[Optional[int]] = Field(default_factory=list)
    time: List[Optional[float]] = Field(default_factory=list)
    time_deltas: List[Optional[float]] = Field(default_factory=list, alias='timeDeltas')
    weight: List[Optional[float]] = Field(default_factory=list)
    weight_type: Optional[str] = Field(None, alias='weightType')
    thread_cpu_delta: List[Optional[float]] = Field(default_factory=list, alias='threadCPUDelta')


class Markers(ColumnTable):
    """Raw marker columns. `endTime` is null for instant markers."""
    name: List[Optional[int]] = Field(default_factory=list)
    category: List[Optional[int]] = Field(default_factory=list)
    start_time: List[Optional[float]] = Field(default_factory=list, alias='startTime')
    end_time: List[Optional[float]] = Field(default_factory=list, alias='endTime')
    phase: List[Optional[int]] = Field(default_factory=list)
    data: List[Any] = Field(default_factory=list)


class Thread(ProfileModel):
    """One captured execution context with its own tables."""
    name: str = ""
    is_main_thread: bool = Field(False, alias='isMainThread')
    process_type: str = Field("", alias='processType')
    process_name: str = Field("", alias='processName')
    process_startup_time: float = Field(0.0, alias='processStartupTime')
    register_time: float = Field(0.0, alias='registerTime')
    pid: str = ""
    tid: str = ""
    samples: Samples = Field(default_factory=Samples)
    markers: Markers = Field(default_factory=Markers)
    stack_table: StackTable = Field(default_factory=StackTable, alias='stackTable')
    frame_table: FrameTable = Field(default_factory=FrameTable, alias='frameTable')
    func_table: FuncTable = Field(default_factory=FuncTable, alias='funcTable')
    resource_table: ResourceTable = Field(default_factory=ResourceTable, alias='resourceTable')
    string_array: List[str] = Field(default_factory=list, alias='stringArray')

    @field_validator('pid', 'tid', 'process_type', mode='before')
    @classmethod
    def coerce_to_str(cls, v):
        """Firefox writes pid/tid as numbers or strings depending on version."""
        if isinstance(v, float) and v.is_integer():
            v = int(v)
        return str(v)


# ============================================================================
# Metadata
# ============================================================================

class Category(ProfileModel):
    name: str = ""
    color: str = ""
    subcategories: List[str] = Field(default_factory=list)


class ExtensionsInfo(ProfileModel):
    """Installed extensions as parallel id/name/baseURL columns."""
    length: int = 0
    id: List[str] = Field(default_factory=list)
    name: List[str] = Field(default_factory=list)
    base_url: List[str] = Field(default_factory=list, alias='baseURL')

    def count(self) -> int:
        return self.length or len(self.id)


class Configuration(ProfileModel):
    features: List[str] = Field(default_factory=list)
    threads: List[str] = Field(default_factory=list)
    interval: float = 0.0
    capacity: int = 0


class SampleUnits(ProfileModel):
    time: str = "ms"
    event_delay: str = Field("ms", alias='eventDelay')
    thread_cpu_delta: str = Field("µs", alias='threadCPUDelta')


class Meta(ProfileModel):
    interval: float = 1.0
    start_time: float = Field(0.0, alias='startTime')
    profiling_start_time: float = Field(0.0, alias='profilingStartTime')
    profiling_end_time: float = Field(0.0, alias='profilingEndTime')
    product: str = ""
    platform: str = ""
    oscpu: str = ""
    abi: str = ""
    toolkit: str = ""
    cpu_name: str = Field("", alias='CPUName')
    physical_cpus: int = Field(0, alias='physicalCPUs')
    logical_cpus: int = Field(0, alias='logicalCPUs')
    app_build_id: str = Field("", alias='appBuildID')
    update_channel: str = Field("", alias='updateChannel')
    version: int = 0
    extensions: ExtensionsInfo = Field(default_factory=ExtensionsInfo)
    categories: List[Category] = Field(default_factory=list)
    marker_schema: List[Dict[str, Any]] = Field(default_factory=list, alias='markerSchema')
    configuration: Configuration = Field(default_factory=Configuration)
    sample_units: Optional[SampleUnits] = Field(None, alias='sampleUnits')


class Shared(ProfileModel):
    string_array: List[str] = Field(default_factory=list, alias='stringArray')


class Profile(ProfileModel):
    """
    A complete captured trace. Built once by the loader and treated as
    read-only by every analysis.
    """
    meta: Meta = Field(default_factory=Meta)
    libs: List[Dict[str, Any]] = Field(default_factory=list)
    threads: List[Thread] = Field(default_factory=list)
    shared: Shared = Field(default_factory=Shared)

    @property
    def duration_ms(self) -> float:
        return self.meta.profiling_end_time - self.meta.profiling_start_time

    @property
    def duration_seconds(self) -> float:
        return self.duration_ms / 1000.0

    @property
    def extension_count(self) -> int:
        return self.meta.extensions.count()

    def get_extensions(self) -> Dict[str, str]:
        """Extension id -> display name."""
        ext = self.meta.extensions
        n = min(ext.count(), len(ext.id), len(ext.name))
        return {ext.id[i]: ext.name[i] for i in range(n)}

    def get_extension_base_urls(self) -> Dict[str, str]:
        """Extension id -> base URL (e.g. moz-extension://<uuid>/)."""
        ext = self.meta.extensions
        n = min(ext.count(), len(ext.id), len(ext.base_url))
        return {ext.id[i]: ext.base_url[i] for i in range(n)}

    def get_category(self, index: Optional[int]) -> Optional[Category]:
        if index is not None and 0 <= index < len(self.meta.categories):
            return self.meta.categories[index]
        return None

    def category_name(self, index: Optional[int]) -> str:
        category = self.get_category(index)
        return category.name if category is not None else "Unknown"

    def category_names(self) -> List[str]:
        return [c.name for c in self.meta.categories]

    def main_threads(self) -> List[Thread]:
        return [t for t in self.threads if t.is_main_thread]

    def strings_for(self, thread: Thread) -> List[str]:
        """The thread's own string array, or the profile-shared one when it has none."""
        return thread.string_array or self.shared.string_array

    def cpu_delta_divisor(self) -> float:
        """Divisor that converts a raw threadCPUDelta value to milliseconds."""
        unit = self.meta.sample_units.thread_cpu_delta if self.meta.sample_units else "µs"
        return 1_000_000.0 if unit == "ns" else 1000.0


# ============================================================================
# Index helpers
# ============================================================================

def column_value(column: List[Any], index: int) -> Any:
    """Row `index` of `column`, or None when the row does not exist."""
    if 0 <= index < len(column):
        return column[index]
    return None


def index_at(column: List[Optional[int]], index: int) -> int:
    """Integer reference stored at row `index`; -1 when missing or null."""
    value = column_value(column, index)
    if value is None:
        return -1
    return int(value)


def resolve_string(strings: List[str], index: Optional[int]) -> str:
    """Interned string lookup. Never raises; unresolved -> ''."""
    if index is None or index < 0 or index >= len(strings):
        return ""
    return strings[index]


def sample_cpu_ms(profile: Profile, thread: Thread, index: int, divisor: Optional[float] = None) -> float:
    """
    CPU time attributed to sample `index` in milliseconds.

    Uses the per-sample threadCPUDelta when present and positive, otherwise
    the fixed sampling interval.
    """
    delta = column_value(thread.samples.thread_cpu_delta, index)
    if delta is not None and delta > 0:
        return delta / (divisor if divisor else profile.cpu_delta_divisor())
    return profile.meta.interval


def sample_time_ms(profile: Profile, thread: Thread, index: int) -> float:
    """Sample timestamp, falling back to index x interval when times are absent."""
    value = column_value(thread.samples.time, index)
    if value is None:
        return index * profile.meta.interval
    return value


def thread_cpu_ms(profile: Profile, thread: Thread) -> float:
    """Total CPU time of all samples of a thread."""
    divisor = profile.cpu_delta_divisor()
    return sum(sample_cpu_ms(profile, thread, i, divisor) for i in range(thread.samples.length))
