"""
Call tree analysis.

Reconstructs per-function self time and running time from sampled stacks,
and ranks the hottest call paths.

Table indices are thread-local, so functions are aggregated across threads
by their resolved name: two different functions that share a name in
different threads end up in the same entry.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from ..profile_types import Profile, Thread, index_at, resolve_string, sample_cpu_ms
from .types import CallTreeAnalysis, FunctionStats, HotPath

logger = logging.getLogger(__name__)


DEFAULT_LIMIT = 20
MAX_STACK_DEPTH = 50
HOT_PATH_DEPTH = 5
MAX_NAME_LENGTH = 50
PATH_SEPARATOR = " → "
UNKNOWN_FUNCTION = "(unknown)"


@dataclass
class _FuncTotals:
    self_time: float = 0.0
    running_time: float = 0.0
    sample_count: int = 0
    file: str = ""


def function_for_frame(thread: Thread, strings: list[str], frame_idx: int) -> tuple[str, str]:
    """(function name, file name) of a frame; unresolvable frames are '(unknown)'."""
    if frame_idx < 0 or frame_idx >= thread.frame_table.length:
        return UNKNOWN_FUNCTION, ""
    func_idx = index_at(thread.frame_table.func, frame_idx)
    if func_idx < 0 or func_idx >= thread.func_table.length:
        return UNKNOWN_FUNCTION, ""
    name = resolve_string(strings, index_at(thread.func_table.name, func_idx)) or UNKNOWN_FUNCTION
    file_name = resolve_string(strings, index_at(thread.func_table.file_name, func_idx))
    return name, file_name


def walk_stack(thread: Thread, stack_idx: int, max_depth: int = MAX_STACK_DEPTH):
    """Yield frame indices from leaf to root along the prefix chain (bounded)."""
    stack_table = thread.stack_table
    current = stack_idx
    depth = 0
    while 0 <= current < stack_table.length and depth < max_depth:
        yield index_at(stack_table.frame, current)
        if current >= len(stack_table.prefix):
            break
        current = index_at(stack_table.prefix, current)
        depth += 1


def render_stack_path(thread: Thread, strings: list[str], stack_idx: int, max_depth: int = HOT_PATH_DEPTH) -> str:
    """Root->leaf rendering of the `max_depth` frames nearest the leaf."""
    names = []
    for frame_idx in walk_stack(thread, stack_idx, max_depth):
        if frame_idx < 0 or frame_idx >= thread.frame_table.length:
            continue
        func_idx = index_at(thread.frame_table.func, frame_idx)
        if func_idx < 0 or func_idx >= thread.func_table.length:
            continue
        name = resolve_string(strings, index_at(thread.func_table.name, func_idx)) or UNKNOWN_FUNCTION
        if len(name) > MAX_NAME_LENGTH:
            name = name[:MAX_NAME_LENGTH - 3] + "..."
        names.append(name)
    names.reverse()
    return PATH_SEPARATOR.join(names)


def analyze_call_tree(profile: Profile, thread_name: Optional[str] = None, limit: int = DEFAULT_LIMIT) -> CallTreeAnalysis:
    """
    Build function and hot-path statistics for all threads, or only those
    named `thread_name`.

    Self time credits each sample's CPU time to its leaf frame. Running time
    credits each unique stack's total time to every frame on its prefix
    chain. Hot paths are the top 2*limit stacks per thread, merged across
    threads by their rendered path. Never raises on malformed tables.
    """
    if limit <= 0:
        limit = DEFAULT_LIMIT

    analysis = CallTreeAnalysis(thread_name=thread_name or None)
    divisor = profile.cpu_delta_divisor()
    functions: dict[str, _FuncTotals] = {}
    paths: dict[str, list] = {}

    for thread in profile.threads:
        if thread_name and thread.name != thread_name:
            continue

        strings = profile.strings_for(thread)
        leaf_time: dict[int, float] = defaultdict(float)
        leaf_count: dict[int, int] = defaultdict(int)
        stack_time: dict[int, float] = defaultdict(float)
        stack_count: dict[int, int] = defaultdict(int)

        for i in range(thread.samples.length):
            stack_idx = index_at(thread.samples.stack, i)
            if stack_idx < 0:
                continue
            cpu = sample_cpu_ms(profile, thread, i, divisor)
            analysis.total_time_ms += cpu
            analysis.total_samples += 1

            frame_idx = index_at(thread.stack_table.frame, stack_idx)
            if frame_idx >= 0:
                leaf_time[frame_idx] += cpu
                leaf_count[frame_idx] += 1

            stack_time[stack_idx] += cpu
            stack_count[stack_idx] += 1

        running: dict[int, float] = defaultdict(float)
        for stack_idx, time_ms in stack_time.items():
            for frame_idx in walk_stack(thread, stack_idx):
                if frame_idx >= 0:
                    running[frame_idx] += time_ms

        for frame_idx, time_ms in leaf_time.items():
            name, file_name = function_for_frame(thread, strings, frame_idx)
            totals = functions.setdefault(name, _FuncTotals(file=file_name))
            totals.self_time += time_ms
            totals.sample_count += leaf_count[frame_idx]

        for frame_idx, time_ms in running.items():
            name, file_name = function_for_frame(thread, strings, frame_idx)
            functions.setdefault(name, _FuncTotals(file=file_name)).running_time += time_ms

        top_stacks = sorted(stack_time.items(), key=lambda kv: kv[1], reverse=True)[:limit * 2]
        for stack_idx, time_ms in top_stacks:
            path = render_stack_path(thread, strings, stack_idx)
            entry = paths.setdefault(path, [0.0, 0])
            entry[0] += time_ms
            entry[1] += stack_count[stack_idx]

    total = analysis.total_time_ms

    analysis.top_functions = sorted(
        (
            FunctionStats(
                name=name,
                file=t.file,
                self_time_ms=t.self_time,
                running_time_ms=t.running_time,
                self_percent=t.self_time / total * 100 if total > 0 else 0.0,
                total_percent=t.running_time / total * 100 if total > 0 else 0.0,
                sample_count=t.sample_count,
            )
            for name, t in functions.items()
        ),
        key=lambda f: f.self_time_ms,
        reverse=True,
    )[:limit]

    analysis.hot_paths = sorted(
        (
            HotPath(
                path=path,
                self_time_ms=time_ms,
                percent=time_ms / total * 100 if total > 0 else 0.0,
                count=count,
            )
            for path, (time_ms, count) in paths.items()
        ),
        key=lambda p: p.self_time_ms,
        reverse=True,
    )[:limit]

    logger.debug(
        "call tree: %d samples, %.1fms, %d functions",
        analysis.total_samples, total, len(functions),
    )
    return analysis
