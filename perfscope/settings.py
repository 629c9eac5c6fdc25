"""
Analyzer settings: runtime defaults for the CLI, the tool server and batch runs.

Detector thresholds are module constants in perfscope.analysis and are not
configurable here. Settings come from code defaults, then an optional dict
(API request body, config file), then PERFSCOPE_* environment variables
(a `.env` file in the working directory is loaded first).
"""

import os
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv


ENV_PREFIX = "PERFSCOPE_"

OUTPUT_FORMATS = ("text", "json", "markdown")
BROWSERS = ("auto", "firefox", "chrome")


@dataclass
class AnalyzerSettings:
    """
    Defaults shared by every entry point.

    Field names double as the lower-cased suffix of the PERFSCOPE_*
    environment variables (e.g. PERFSCOPE_SERVER_PORT).
    """

    # ── Reports ───────────────────────────────────────────────

    call_tree_limit: int = 20
    """Number of functions in the call tree report."""

    marker_limit: int = 0
    """Maximum markers listed by the markers/delimiters reports (0 = all)."""

    output_format: str = "text"
    """CLI output: text, json or markdown."""

    browser: str = "auto"
    """Profile format: auto (detect), firefox or chrome."""

    log_level: str = "WARNING"
    """Root logging level configured by the CLI."""

    # ── Tool server ───────────────────────────────────────────

    server_host: str = "127.0.0.1"
    """Interface the HTTP tool server binds to."""

    server_port: int = 9000
    """Port the HTTP tool server listens on."""

    # ── Batch ─────────────────────────────────────────────────

    batch_max_workers: int = 0
    """Thread pool size for batch analysis (0 = CPU count)."""


def _coerce(value: Any, target: type) -> Optional[Any]:
    """Convert `value` to `target`, or None when it does not fit."""
    if target is int:
        if isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return None
        return None
    if target is str:
        return value if isinstance(value, str) else None
    return None


def _validated(name: str, value: Any) -> bool:
    if name == 'output_format':
        return value in OUTPUT_FORMATS
    if name == 'browser':
        return value in BROWSERS
    if name in ('call_tree_limit', 'marker_limit', 'batch_max_workers'):
        return value >= 0
    if name == 'server_port':
        return 0 < value < 65536
    return True


def settings_from_dict(d: Optional[Mapping[str, Any]], base: Optional[AnalyzerSettings] = None) -> AnalyzerSettings:
    """
    Construct AnalyzerSettings from a dict (e.g. an API request body).

    Missing fields keep the value from `base` (or the defaults). Extra fields
    and values of the wrong type or out of range are ignored.
    """
    current = asdict(base or AnalyzerSettings())
    if not d:
        return AnalyzerSettings(**current)

    for f in fields(AnalyzerSettings):
        if f.name not in d:
            continue
        value = _coerce(d[f.name], type(current[f.name]))
        if value is None:
            continue
        if isinstance(value, str) and f.name in ('output_format', 'browser'):
            value = value.lower()
        if _validated(f.name, value):
            current[f.name] = value
    return AnalyzerSettings(**current)


def settings_from_env(
    environ: Optional[Mapping[str, str]] = None,
    dotenv_path: Optional[str] = None,
) -> AnalyzerSettings:
    """
    Settings from PERFSCOPE_* environment variables.

    Loads `.env` (or `dotenv_path`) into the process environment first,
    without overriding variables that are already set. Pass `environ` to
    read from a mapping instead (no .env loading).
    """
    if environ is None:
        load_dotenv(dotenv_path)
        environ = os.environ

    overrides: Dict[str, Any] = {}
    for f in fields(AnalyzerSettings):
        raw = environ.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw != "":
            overrides[f.name] = raw
    return settings_from_dict(overrides)
