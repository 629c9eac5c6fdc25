"""
Batch Analysis

Runs the scaling and JavaScript crypto analyses (and, when patterns are
given, an operation measurement) over a set of profiles captured with
different worker counts, then groups the results into one series per label.

Profiles are loaded and analysed on a bounded thread pool; the first entry
that fails to load aborts the batch with BatchError.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import yaml
from pydantic import ValidationError

from ..loader import load_profile
from .delimiters import MeasureOptions, MeasurementError, measure_operation_advanced
from .jscrypto import analyze_js_crypto
from .scaling import analyze_scaling
from .types import BatchAnalysisResult, BatchSummary, ProfileDataPoint, ProfileEntry

logger = logging.getLogger(__name__)


class BatchError(Exception):
    """Raised when a batch cannot run: bad configuration or a profile that fails to load."""
    pass


def _analyze_entry(entry: ProfileEntry, loader: Callable) -> ProfileDataPoint:
    try:
        profile, _ = loader(entry.path)
    except Exception as e:
        raise BatchError(f"failed to load profile {entry.path}: {e}") from e

    scaling = analyze_scaling(profile)
    point = ProfileDataPoint(
        worker_count=entry.workers,
        label=entry.label,
        file_path=entry.path,
        wall_clock_ms=scaling.wall_clock_ms,
        total_work_ms=scaling.total_work_ms,
        efficiency=scaling.efficiency,
        speedup=scaling.actual_speedup,
        crypto_time_ms=analyze_js_crypto(profile).total_time_ms,
    )

    if entry.start_pattern and entry.end_pattern:
        try:
            measurement = measure_operation_advanced(profile, MeasureOptions(
                start_pattern=entry.start_pattern,
                end_pattern=entry.end_pattern,
                start_min_duration_ms=entry.start_min_duration,
                end_min_duration_ms=entry.end_min_duration,
                find_last=True,
            ))
            point.operation_time_ms = measurement.operation_time_ms
        except MeasurementError as e:
            logger.debug("no operation time for %s: %s", entry.path, e)

    return point


def summarize_series(series: dict[str, list[ProfileDataPoint]], total_profiles: int) -> BatchSummary:
    """Per-label best worker count, minimum wall clock/operation time, max speedup and peak efficiency."""
    summary = BatchSummary(total_profiles=total_profiles, labels=sorted(series))

    for label, points in series.items():
        if not points:
            continue

        best = points[0]
        for p in points[1:]:
            if p.wall_clock_ms < best.wall_clock_ms:
                best = p
        summary.best_workers[label] = best.worker_count
        summary.min_wall_clock[label] = best.wall_clock_ms
        summary.peak_efficiency[label] = max(0.0, *(p.efficiency for p in points))
        summary.max_speedup[label] = max(0.0, *(p.speedup for p in points))

        measured = [p.operation_time_ms for p in points if p.operation_time_ms > 0]
        if measured:
            summary.min_operation_time[label] = min(measured)

    return summary


def analyze_batch(
    entries: Iterable[ProfileEntry],
    loader: Callable = load_profile,
    max_workers: Optional[int] = None,
) -> BatchAnalysisResult:
    """
    Analyse every entry and aggregate by label.

    Args:
        entries: Profiles to analyse.
        loader: `path -> (Profile, BrowserType)`; replaced in tests.
        max_workers: Pool size; None or 0 uses min(CPU count, number of entries).

    Raises:
        BatchError: A profile failed to load.
    """
    entries = list(entries)
    if not entries:
        return BatchAnalysisResult()

    pool_size = min(max_workers or os.cpu_count() or 1, len(entries))
    logger.debug("batch: %d profiles on %d threads", len(entries), pool_size)

    points: list[ProfileDataPoint] = []
    with ThreadPoolExecutor(max_workers=pool_size) as executor:
        futures = [executor.submit(_analyze_entry, entry, loader) for entry in entries]
        try:
            for future in as_completed(futures):
                points.append(future.result())
        except BatchError:
            for future in futures:
                future.cancel()
            raise

    series: dict[str, list[ProfileDataPoint]] = {}
    for point in points:
        series.setdefault(point.label, []).append(point)
    for label in series:
        series[label].sort(key=lambda p: p.worker_count)

    return BatchAnalysisResult(series=series, summary=summarize_series(series, len(entries)))


def _entry_from_dict(raw: dict) -> ProfileEntry:
    try:
        return ProfileEntry.model_validate(raw)
    except ValidationError as e:
        raise BatchError(f"invalid profile entry {raw!r}: {e}") from e


def parse_profile_entries(items: Union[list, dict, None]) -> list[ProfileEntry]:
    """Entries from a decoded config: a list, or a mapping with a `profiles` list."""
    if isinstance(items, dict):
        items = items.get('profiles')
    if not isinstance(items, list):
        raise BatchError("batch config must be a list of profiles or a mapping with a 'profiles' list")
    entries = []
    for raw in items:
        if not isinstance(raw, dict):
            raise BatchError(f"invalid profile entry {raw!r}: expected a mapping")
        entries.append(_entry_from_dict(raw))
    return entries


def load_batch_config(path: Union[str, Path]) -> list[ProfileEntry]:
    """Read a YAML (or JSON, which YAML accepts) batch configuration file."""
    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except OSError as e:
        raise BatchError(f"failed to read batch config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise BatchError(f"failed to parse batch config {path}: {e}") from e
    return parse_profile_entries(config)


def parse_inline_profiles(text: str) -> list[ProfileEntry]:
    """
    Parse "path:workers:label,path:workers:label,...".

    The path may itself contain ':' (Windows drive letters), so the last two
    fields are split off from the right.
    """
    entries = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        parts = item.rsplit(":", 2)
        if len(parts) != 3 or not parts[0]:
            raise BatchError(f"invalid profile entry '{item}' (expected path:workers:label)")
        path, workers, label = parts
        try:
            worker_count = int(workers)
        except ValueError as e:
            raise BatchError(f"invalid worker count '{workers}' in '{item}'") from e
        entries.append(ProfileEntry(path=path, workers=worker_count, label=label))
    if not entries:
        raise BatchError("no profiles given")
    return entries
