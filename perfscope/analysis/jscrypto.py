"""
JavaScript crypto analysis.

Attributes sampled time to crypto code running as JavaScript: worker
scripts and bundles such as OpenPGP.js or extension decryption workers.
Firefox embeds the script URL in the function name
("(root scope) moz-extension://.../seipdDecryptionWorker.min.js"); Chrome
traces carry it in the func table's file name. Native functions are never
counted.
"""

import logging
from dataclasses import dataclass

from ..profile_types import Profile, Thread, column_value, index_at, resolve_string, sample_cpu_ms
from .calltree import UNKNOWN_FUNCTION
from .crypto import is_crypto_function, leaf_function
from .types import JSCryptoAnalysis, JSCryptoFunction, JSCryptoResource

logger = logging.getLogger(__name__)


TOP_FUNCTIONS_LIMIT = 30
SIGNIFICANT_TIME_MS = 1000.0
SINGLE_WORKER_TIME_MS = 500.0
UNEVEN_RATIO = 0.5

CRYPTO_SCRIPT_PATTERNS = (
    "decrypt", "encrypt", "crypto", "seipd", "openpgp",
    "pgp", "aes", "rsa", "cipher", "webcrypto",
)

URL_SCHEMES = ("moz-extension://", "chrome-extension://")


def is_crypto_script(name: str) -> bool:
    """A .js/.mjs file or a worker whose name points at crypto code."""
    lower = name.lower()
    if ".js" not in lower and ".mjs" not in lower and "worker" not in lower:
        return False
    return any(p in lower for p in CRYPTO_SCRIPT_PATTERNS)


def resource_name(url: str) -> str:
    """Last path segment of a URL, without its query string."""
    if not any(scheme in url for scheme in URL_SCHEMES):
        url = url.split("?", 1)[0]
    return url.rsplit("/", 1)[-1]


def _strip_line_column(url: str) -> str:
    """Drop a trailing ':<line>:<column>' suffix."""
    head, sep, column = url.rpartition(":")
    if not sep or not column.isdigit():
        return url
    base, sep, line = head.rpartition(":")
    if not sep or not line.isdigit():
        return url
    return base


def script_from_function_name(func_name: str) -> str:
    """
    Script path embedded in a Firefox function name.

    Handles extension URLs (with line:column stripped), resource:// URLs
    and bundler paths under node_modules/ or ./src/. Anything else is
    returned unchanged.
    """
    for scheme in URL_SCHEMES:
        idx = func_name.find(scheme)
        if idx >= 0:
            return _strip_line_column(func_name[idx:])

    idx = func_name.find("resource://")
    if idx >= 0:
        return func_name[idx:]

    if "node_modules/" in func_name:
        suffixes = (".js", ".mjs")
    elif "./src/" in func_name:
        suffixes = (".js", ".ts")
    else:
        return func_name
    for part in reversed(func_name.split("/")):
        if part.endswith(suffixes):
            return part
    return func_name


@dataclass
class _ResourceTotals:
    name: str
    url: str
    thread_name: str
    total_time: float = 0.0
    samples: int = 0


@dataclass
class _FuncTotals:
    name: str
    resource: str
    total_time: float = 0.0
    samples: int = 0


def _crypto_js_functions(thread: Thread, strings: list[str]) -> dict[int, str]:
    """
    func index -> crypto script for the JS functions of a thread.

    A function counts when its own script is a crypto script, or when it
    has a crypto-sounding name and lives in a resource that holds one.
    """
    funcs = thread.func_table
    scripts: dict[int, str] = {}
    names: dict[int, str] = {}

    for func_idx in range(funcs.length):
        if column_value(funcs.is_js, func_idx) is not True:
            continue
        name_idx = index_at(funcs.name, func_idx)
        if name_idx < 0 or name_idx >= len(strings):
            continue
        name = names[func_idx] = strings[name_idx]

        file_name = resolve_string(strings, index_at(funcs.file_name, func_idx))
        if file_name and file_name != UNKNOWN_FUNCTION:
            if is_crypto_script(file_name):
                scripts[func_idx] = file_name
        elif is_crypto_script(name):
            scripts[func_idx] = script_from_function_name(name)

    crypto_resources: dict[int, str] = {}
    for func_idx, script in scripts.items():
        res_idx = index_at(funcs.resource, func_idx)
        if res_idx >= 0:
            crypto_resources[res_idx] = script

    result = dict(scripts)
    for func_idx, name in names.items():
        if func_idx in result:
            continue
        script = crypto_resources.get(index_at(funcs.resource, func_idx))
        if script is not None and is_crypto_function(name):
            result[func_idx] = script
    return result


def analyze_js_crypto(profile: Profile) -> JSCryptoAnalysis:
    """
    Sampled time in JavaScript crypto code, per script, function and thread.

    Worker threads are keyed by name and tid, so identically named workers
    stay separate in `by_thread`.
    """
    analysis = JSCryptoAnalysis()
    divisor = profile.cpu_delta_divisor()

    resources: dict[tuple[str, str], _ResourceTotals] = {}
    functions: dict[tuple[str, str], _FuncTotals] = {}
    workers: set[str] = set()
    sampled_ms = 0.0

    for thread in profile.threads:
        strings = profile.strings_for(thread)
        crypto_funcs = _crypto_js_functions(thread, strings)
        is_worker = "Worker" in thread.name
        thread_key = f"{thread.name} (tid:{thread.tid})" if is_worker else thread.name

        for i in range(thread.samples.length):
            stack_idx = index_at(thread.samples.stack, i)
            if stack_idx < 0:
                continue
            cpu = sample_cpu_ms(profile, thread, i, divisor)
            sampled_ms += cpu

            func_idx = leaf_function(thread, stack_idx)
            script = crypto_funcs.get(func_idx)
            if script is None:
                continue

            func_name = resolve_string(strings, index_at(thread.func_table.name, func_idx))
            script_name = resource_name(script)

            res = resources.get((script, thread.name))
            if res is None:
                res = resources[(script, thread.name)] = _ResourceTotals(script_name, script, thread.name)
            res.total_time += cpu
            res.samples += 1

            fn = functions.get((func_name, script_name))
            if fn is None:
                fn = functions[(func_name, script_name)] = _FuncTotals(func_name, script_name)
            fn.total_time += cpu
            fn.samples += 1

            analysis.by_thread[thread_key] = analysis.by_thread.get(thread_key, 0.0) + cpu
            analysis.total_time_ms += cpu
            analysis.total_samples += 1
            if is_worker:
                workers.add(thread.tid)

    total = analysis.total_time_ms
    analysis.worker_count = len(workers)
    if analysis.worker_count:
        analysis.avg_time_per_worker = total / analysis.worker_count
    if sampled_ms > 0:
        analysis.cpu_percent = total / sampled_ms * 100

    analysis.resources = sorted(
        (
            JSCryptoResource(name=r.name, url=r.url, total_time=r.total_time,
                             sample_count=r.samples, thread_name=r.thread_name)
            for r in resources.values()
        ),
        key=lambda r: r.total_time,
        reverse=True,
    )
    analysis.top_functions = sorted(
        (
            JSCryptoFunction(name=f.name, resource=f.resource, total_time=f.total_time,
                             sample_count=f.samples,
                             percent=f.total_time / total * 100 if total > 0 else 0.0)
            for f in functions.values()
        ),
        key=lambda f: f.total_time,
        reverse=True,
    )[:TOP_FUNCTIONS_LIMIT]

    if total > SIGNIFICANT_TIME_MS:
        analysis.recommendations.append(
            f"Significant JS crypto overhead: {total:.1f}ms - consider WebCrypto API for heavy operations")
    if analysis.worker_count == 1 and total > SINGLE_WORKER_TIME_MS:
        analysis.recommendations.append(
            "Only 1 crypto worker detected - consider adding more workers for parallelization")
    if analysis.worker_count > 1:
        busiest = max(analysis.by_thread.values())
        idlest = min(analysis.by_thread.values())
        if busiest > 0 and idlest / busiest < UNEVEN_RATIO:
            analysis.recommendations.append(
                "Uneven work distribution across workers - consider better load balancing")

    logger.debug(
        "js crypto: %d samples, %.1fms, %d workers",
        analysis.total_samples, total, analysis.worker_count,
    )
    return analysis
