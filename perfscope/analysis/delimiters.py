"""
Delimiter markers and operation timing.

A delimiter marker is a marker that can sensibly bound a user-visible
operation (an input event, a performance.mark(), a style/layout/paint pass,
a long task, a navigation). An operation is measured as the time between a
start marker and an end marker selected by pattern or by position.

Pattern syntax:
    "DOMEvent"                 any marker whose type or name is DOMEvent
    "DOMEvent:click"           ...whose payload type/eventType is "click"
    "UserTiming:decrypt-start" ...whose name or payload name contains the text
Matching is case-insensitive.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..markers import extract_markers
from ..profile_types import Profile
from .types import DelimiterMarker, DelimiterMarkersReport, OperationMeasurement

logger = logging.getLogger(__name__)


DELIMITER_TYPES = frozenset({
    "DOMEvent",
    "EventDispatch",
    "UserTiming",
    "Styles",
    "UpdateLayoutTree",
    "Reflow",
    "Paint",
    "Composite",
    "MainThreadLongTask",
    "Navigation",
    "Load",
})

DELIMITER_CATEGORIES = frozenset({"Layout", "Graphics", "DOM", "UserTiming"})


class MeasurementError(ValueError):
    """Raised when an operation cannot be measured with the given patterns or indices."""
    pass


@dataclass
class MeasureOptions:
    """
    Selection rules for measure_operation_advanced. Unset (None or 0)
    bounds and minimum durations do not filter.
    """
    start_pattern: str
    end_pattern: str
    start_after_ms: Optional[float] = None
    end_before_ms: Optional[float] = None
    start_min_duration_ms: Optional[float] = None
    end_min_duration_ms: Optional[float] = None
    find_last: bool = False


def is_delimiter_marker(marker_type: str, name: str, category: str) -> bool:
    return marker_type in DELIMITER_TYPES or name in DELIMITER_TYPES or category in DELIMITER_CATEGORIES


def get_delimiter_markers(profile: Profile, categories: Optional[Iterable[str]] = None) -> list[DelimiterMarker]:
    """All delimiter markers of the profile sorted by start time, optionally limited to `categories`."""
    wanted = {c.strip() for c in categories or [] if c and c.strip()}
    result: list[DelimiterMarker] = []

    for thread in profile.threads:
        for m in extract_markers(thread, profile.meta.categories, profile.shared.string_array):
            if not is_delimiter_marker(m.type, m.name, m.category):
                continue
            if wanted and m.category not in wanted:
                continue
            result.append(DelimiterMarker(
                time_ms=m.start_time,
                duration_ms=m.duration,
                name=m.name,
                type=m.type,
                category=m.category,
                thread=m.thread_name,
                data=m.data,
            ))

    # sort() is stable: equal start times keep thread/table order
    result.sort(key=lambda d: d.time_ms)
    return result


def _payload_str(marker: DelimiterMarker, key: str) -> Optional[str]:
    value = marker.data.get(key)
    return value if isinstance(value, str) else None


def match_marker_pattern(marker: DelimiterMarker, pattern: str) -> bool:
    main_type, sep, subtype = pattern.partition(":")
    main_type = main_type.lower()
    if marker.type.lower() != main_type and marker.name.lower() != main_type:
        return False
    if not sep:
        return True

    subtype = subtype.lower()
    checks = (
        lambda: (_payload_str(marker, 'type') or "").lower() == subtype,
        lambda: (_payload_str(marker, 'eventType') or "").lower() == subtype,
        lambda: subtype in marker.name.lower(),
        lambda: subtype in (_payload_str(marker, 'name') or "").lower(),
    )
    return any(check() for check in checks)


def _long_enough(marker: DelimiterMarker, min_duration: Optional[float]) -> bool:
    return not min_duration or marker.duration_ms >= min_duration


def measure_operation_advanced(profile: Profile, options: MeasureOptions) -> OperationMeasurement:
    """
    Time from the first start-pattern match to the first (or, with
    find_last, the last) end-pattern match strictly after it.

    Raises:
        MeasurementError: no delimiter markers, or no start/end match.
    """
    markers = get_delimiter_markers(profile)
    if not markers:
        raise MeasurementError("no delimiter markers found in profile")

    start = None
    for m in markers:
        if options.start_after_ms and m.time_ms < options.start_after_ms:
            continue
        if not _long_enough(m, options.start_min_duration_ms):
            continue
        if match_marker_pattern(m, options.start_pattern):
            start = m
            break
    if start is None:
        raise MeasurementError(f"no marker matching start pattern '{options.start_pattern}' found")

    end = None
    for m in markers:
        if m.time_ms <= start.time_ms:
            continue
        if options.end_before_ms and m.time_ms > options.end_before_ms:
            continue
        if not _long_enough(m, options.end_min_duration_ms):
            continue
        if match_marker_pattern(m, options.end_pattern):
            end = m
            if not options.find_last:
                break
    if end is None:
        raise MeasurementError(
            f"no marker matching end pattern '{options.end_pattern}' found after start marker"
        )

    logger.debug("measured %s -> %s: %.2fms", start.name, end.name, end.time_ms - start.time_ms)
    return OperationMeasurement(
        start_marker=start,
        end_marker=end,
        operation_time_ms=end.time_ms - start.time_ms,
    )


def measure_operation(
    profile: Profile,
    start_pattern: str,
    end_pattern: str,
    start_after_ms: Optional[float] = None,
    end_before_ms: Optional[float] = None,
) -> OperationMeasurement:
    return measure_operation_advanced(profile, MeasureOptions(
        start_pattern=start_pattern,
        end_pattern=end_pattern,
        start_after_ms=start_after_ms,
        end_before_ms=end_before_ms,
    ))


def measure_operation_last(
    profile: Profile,
    start_pattern: str,
    end_pattern: str,
    start_after_ms: Optional[float] = None,
    end_before_ms: Optional[float] = None,
) -> OperationMeasurement:
    """Like measure_operation, but ends at the last matching end marker."""
    return measure_operation_advanced(profile, MeasureOptions(
        start_pattern=start_pattern,
        end_pattern=end_pattern,
        start_after_ms=start_after_ms,
        end_before_ms=end_before_ms,
        find_last=True,
    ))


def measure_operation_by_index(profile: Profile, start_index: int, end_index: int) -> OperationMeasurement:
    """Measure between two positions of the sorted delimiter list (see get_delimiter_markers)."""
    markers = get_delimiter_markers(profile)
    last = len(markers) - 1
    if start_index < 0 or start_index > last:
        raise MeasurementError(f"start index {start_index} out of range (0-{last})")
    if end_index < 0 or end_index > last:
        raise MeasurementError(f"end index {end_index} out of range (0-{last})")
    if end_index <= start_index:
        raise MeasurementError(f"end index {end_index} must be greater than start index {start_index}")

    start, end = markers[start_index], markers[end_index]
    return OperationMeasurement(
        start_marker=start,
        end_marker=end,
        operation_time_ms=end.time_ms - start.time_ms,
    )


def get_delimiter_markers_report(
    profile: Profile,
    categories: Optional[Iterable[str]] = None,
    limit: int = 0,
) -> DelimiterMarkersReport:
    """Counts by type/category over all delimiter markers, plus the first `limit` of them (0 = all)."""
    markers = get_delimiter_markers(profile, categories)
    report = DelimiterMarkersReport(total_count=len(markers))
    for m in markers:
        report.by_type[m.type] = report.by_type.get(m.type, 0) + 1
        report.by_category[m.category] = report.by_category.get(m.category, 0) + 1
    report.markers = markers[:limit] if limit and limit > 0 else markers
    return report
