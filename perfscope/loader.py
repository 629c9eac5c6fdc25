"""
Profile loading.

Reads a profile file from disk (plain JSON or gzip-compressed JSON), works
out which browser produced it, and returns a validated `Profile`. Chrome
traces are converted to the Firefox layout on the way in.
"""

import gzip
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Union

from pydantic import ValidationError

from .chrome_convert import convert_chrome_trace
from .profile_types import Profile

logger = logging.getLogger(__name__)


GZIP_MAGIC = b"\x1f\x8b"
GZIP_SUFFIXES = (".gz", ".gzip")


class BrowserType(str, Enum):
    FIREFOX = "firefox"
    CHROME = "chrome"
    UNKNOWN = "unknown"

    def __str__(self) -> str:
        return self.value


class ProfileLoadError(Exception):
    """Raised when a profile file cannot be read, decoded or recognised."""
    pass


def parse_browser_type(value: Union[str, BrowserType, None]) -> BrowserType:
    """Map a user-supplied browser name to BrowserType; anything unrecognised is UNKNOWN."""
    if isinstance(value, BrowserType):
        return value
    try:
        return BrowserType((value or "").strip().lower())
    except ValueError:
        return BrowserType.UNKNOWN


def detect_browser_type(data: Any) -> BrowserType:
    """
    Firefox profiles carry `meta` and a non-empty `threads` list; Chrome
    traces carry a non-empty `traceEvents` list (or are a bare event list).
    """
    if isinstance(data, list):
        return BrowserType.CHROME if data else BrowserType.UNKNOWN
    if not isinstance(data, dict):
        return BrowserType.UNKNOWN
    if isinstance(data.get('meta'), dict) and data.get('threads'):
        return BrowserType.FIREFOX
    if data.get('traceEvents'):
        return BrowserType.CHROME
    return BrowserType.UNKNOWN


def read_profile_json(path: Union[str, Path]) -> Any:
    """Read and decode a profile file, transparently handling gzip."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ProfileLoadError(f"failed to read profile {path}: {e}") from e

    if path.suffix.lower() in GZIP_SUFFIXES or raw[:2] == GZIP_MAGIC:
        try:
            raw = gzip.decompress(raw)
        except (OSError, EOFError) as e:
            raise ProfileLoadError(f"failed to decompress profile {path}: {e}") from e

    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ProfileLoadError(f"failed to parse profile JSON {path}: {e}") from e


def _fill_sample_times(thread: dict) -> None:
    """Rebuild samples.time from cumulative timeDeltas when only deltas were exported."""
    samples = thread.get('samples')
    if not isinstance(samples, dict) or samples.get('time'):
        return
    deltas = samples.get('timeDeltas')
    if not deltas:
        return
    times, current = [], 0.0
    for delta in deltas:
        current += delta or 0.0
        times.append(current)
    samples['time'] = times


def _latest_event_time(profile: Profile) -> float:
    latest = 0.0
    for thread in profile.threads:
        for t in thread.samples.time:
            if t is not None and t > latest:
                latest = t
        for column in (thread.markers.start_time, thread.markers.end_time):
            for t in column:
                if t is not None and t > latest:
                    latest = t
    return latest


def _firefox_profile(data: dict) -> Profile:
    for thread in data.get('threads') or []:
        if isinstance(thread, dict):
            _fill_sample_times(thread)

    profile = Profile.model_validate(data)

    meta = profile.meta
    if not meta.profiling_end_time:
        latest = _latest_event_time(profile)
        if latest > meta.profiling_start_time:
            meta.profiling_end_time = latest
    return profile


def profile_from_dict(data: Any, browser: Union[str, BrowserType] = BrowserType.UNKNOWN) -> Profile:
    """
    Build a Profile from decoded JSON. With browser UNKNOWN the format is
    detected from the document.

    Raises:
        ProfileLoadError: unrecognised format or invalid structure.
    """
    browser = parse_browser_type(browser)
    if browser == BrowserType.UNKNOWN:
        browser = detect_browser_type(data)

    try:
        if browser == BrowserType.FIREFOX:
            if not isinstance(data, dict):
                raise ProfileLoadError("Firefox profile must be a JSON object")
            return _firefox_profile(data)
        if browser == BrowserType.CHROME:
            if not isinstance(data, (dict, list)):
                raise ProfileLoadError("Chrome trace must be a JSON object or event list")
            return convert_chrome_trace(data)
    except ValidationError as e:
        raise ProfileLoadError(f"invalid {browser.value} profile: {e.error_count()} validation error(s)\n{e}") from e

    raise ProfileLoadError("unrecognised profile format (expected Firefox profile or Chrome trace)")


def load_profile(path: Union[str, Path], browser: Union[str, BrowserType] = "auto") -> tuple[Profile, BrowserType]:
    """
    Load a profile file and return it with the browser it came from.

    `browser` may be "auto" (detect), "firefox" or "chrome".
    """
    data = read_profile_json(path)

    requested = parse_browser_type(browser)
    detected = requested if requested != BrowserType.UNKNOWN else detect_browser_type(data)
    if detected == BrowserType.UNKNOWN:
        raise ProfileLoadError(f"could not detect profile format of {path}")

    profile = profile_from_dict(data, detected)
    logger.info(
        "loaded %s profile %s: %d threads, %.1fs",
        detected.value, path, len(profile.threads), profile.duration_seconds,
    )
    return profile, detected
