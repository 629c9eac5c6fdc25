"""
Crypto operation analysis.

Finds samples whose leaf frame is a crypto function, either by its name
(SubtleCrypto methods, hash and cipher names) or by the file, resource or
shared library it belongs to (NSS, OpenSSL, BoringSSL, ...). Time is
aggregated per function and thread, then broken down by operation,
algorithm and thread.

Only the leaf frame of each sample is classified, so the reported time is
self time spent inside crypto code.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..profile_types import Profile, Thread, index_at, resolve_string, sample_cpu_ms, sample_time_ms
from .calltree import UNKNOWN_FUNCTION
from .types import CryptoAnalysis, CryptoOperation

logger = logging.getLogger(__name__)


TOP_OPERATIONS_LIMIT = 20
SIGNIFICANT_TIME_MS = 100.0
SERIALIZED_MIN_SAMPLES = 5

CRYPTO_KEYWORDS = (
    "crypto", "subtlecrypto", "encrypt", "decrypt", "digest",
    "sign", "verify", "hash", "pbkdf", "hmac", "aes", "rsa",
    "sha-", "sha1", "sha256", "sha384", "sha512", "md5",
    "derivebits", "derivekey", "generatekey", "importkey", "exportkey",
    "wrapkey", "unwrapkey",
)

CRYPTO_RESOURCE_KEYWORDS = (
    "crypto", "decrypt", "encrypt", "libcorecrypto", "libcommoncrypto",
    "openssl", "boringssl", "nss", "pgp", "gpg", "seipd",
)

CRYPTO_LIB_KEYWORDS = ("crypto", "ssl", "nss", "gpg")

# (substring, operation); first match wins, so longer patterns come first
OPERATION_PATTERNS = (
    ("derivebits", "deriveBits"),
    ("derivekey", "deriveKey"),
    ("generatekey", "generateKey"),
    ("importkey", "importKey"),
    ("exportkey", "exportKey"),
    ("unwrapkey", "unwrapKey"),
    ("wrapkey", "wrapKey"),
    ("encrypt", "encrypt"),
    ("decrypt", "decrypt"),
    ("digest", "digest"),
    ("verify", "verify"),
    ("sign", "sign"),
    ("pbkdf", "key derivation"),
    ("hmac", "HMAC"),
    ("hash", "hash"),
)

# (substring, algorithm); first match wins
ALGORITHM_PATTERNS = (
    ("ecdsa", "ECDSA"),
    ("ecdh", "ECDH"),
    ("pbkdf", "PBKDF2"),
    ("hmac", "HMAC"),
    ("sha-1", "SHA-1"),
    ("sha1", "SHA-1"),
    ("sha-256", "SHA-256"),
    ("sha256", "SHA-256"),
    ("sha-384", "SHA-384"),
    ("sha384", "SHA-384"),
    ("sha-512", "SHA-512"),
    ("sha512", "SHA-512"),
    ("md5", "MD5"),
    ("aes", "AES"),
    ("rsa", "RSA"),
)


def is_crypto_function(name: str) -> bool:
    lower = name.lower()
    return any(k in lower for k in CRYPTO_KEYWORDS)


def is_crypto_resource(name: str) -> bool:
    """File, resource or library name that belongs to crypto code."""
    lower = name.lower()
    return any(k in lower for k in CRYPTO_RESOURCE_KEYWORDS)


def extract_operation(name: str) -> str:
    lower = name.lower()
    for pattern, operation in OPERATION_PATTERNS:
        if pattern in lower:
            return operation
    if "crypto" in lower:
        return "crypto (generic)"
    return "unknown"


def extract_algorithm(name: str) -> str:
    """Algorithm named in a function name, or '' when none is recognisable."""
    lower = name.lower()
    for pattern, algorithm in ALGORITHM_PATTERNS:
        if pattern in lower:
            return algorithm
    return ""


def _qualified(func_name: str, owner: str, min_length: int = 0) -> str:
    if func_name and func_name != UNKNOWN_FUNCTION and len(func_name) > min_length:
        return f"{func_name} ({owner})"
    return owner


def _crypto_lib_names(profile: Profile) -> dict[int, str]:
    libs = {}
    for i, lib in enumerate(profile.libs):
        name = str(lib.get('name') or "")
        if any(k in name.lower() for k in CRYPTO_LIB_KEYWORDS):
            libs[i] = name
    return libs


def _crypto_functions(thread: Thread, strings: list[str], crypto_libs: dict[int, str]) -> dict[int, str]:
    """
    func index -> display name for every crypto function of a thread.

    Checked in order: function name, file name, resource name, then the
    shared library the resource maps to.
    """
    funcs = thread.func_table
    resources = thread.resource_table
    result = {}
    for func_idx in range(funcs.length):
        name_idx = index_at(funcs.name, func_idx)
        if name_idx < 0 or name_idx >= len(strings):
            continue
        name = strings[name_idx]

        if is_crypto_function(name):
            result[func_idx] = name
            continue

        file_name = resolve_string(strings, index_at(funcs.file_name, func_idx))
        if file_name and is_crypto_resource(file_name):
            result[func_idx] = _qualified(name, file_name)
            continue

        res_idx = index_at(funcs.resource, func_idx)
        if res_idx < 0 or res_idx >= resources.length:
            continue
        res_name = resolve_string(strings, index_at(resources.name, res_idx))
        if res_name and is_crypto_resource(res_name):
            result[func_idx] = _qualified(name, res_name)
            continue

        lib_name = crypto_libs.get(index_at(resources.lib, res_idx))
        if lib_name is not None:
            result[func_idx] = _qualified(name, lib_name, min_length=2)
    return result


def leaf_function(thread: Thread, stack_idx: int) -> int:
    """Func index of a stack's leaf frame; -1 when the tables do not resolve."""
    if stack_idx < 0 or stack_idx >= thread.stack_table.length:
        return -1
    frame_idx = index_at(thread.stack_table.frame, stack_idx)
    if frame_idx < 0 or frame_idx >= thread.frame_table.length:
        return -1
    return index_at(thread.frame_table.func, frame_idx)


@dataclass
class _Window:
    thread_name: str
    start: float
    end: float


def _overlaps_across_threads(windows: list[_Window]) -> bool:
    windows = sorted(windows, key=lambda w: w.start)
    for prev, cur in zip(windows, windows[1:]):
        if cur.thread_name != prev.thread_name and cur.start < prev.end:
            return True
    return False


def analyze_crypto(profile: Profile, thread_name: Optional[str] = None) -> CryptoAnalysis:
    """
    Crypto time per operation, algorithm and thread.

    `cpu_percent` is crypto time as a share of all sampled CPU time in the
    analysed threads. When crypto ran on several threads but never at the
    same time, the result is flagged as possibly serialized.
    """
    analysis = CryptoAnalysis()
    divisor = profile.cpu_delta_divisor()
    crypto_libs = _crypto_lib_names(profile)

    operations: dict[tuple[str, str], CryptoOperation] = {}
    windows: list[_Window] = []
    sampled_ms = 0.0

    for thread in profile.threads:
        if thread_name and thread.name != thread_name:
            continue
        crypto_funcs = _crypto_functions(thread, profile.strings_for(thread), crypto_libs)

        for i in range(thread.samples.length):
            stack_idx = index_at(thread.samples.stack, i)
            if stack_idx < 0:
                continue
            cpu = sample_cpu_ms(profile, thread, i, divisor)
            sampled_ms += cpu

            display = crypto_funcs.get(leaf_function(thread, stack_idx))
            if display is None:
                continue

            start = sample_time_ms(profile, thread, i)
            op = operations.get((display, thread.name))
            if op is None:
                op = operations[(display, thread.name)] = CryptoOperation(
                    operation=extract_operation(display),
                    algorithm=extract_algorithm(display),
                    thread_name=thread.name,
                    start_time=start,
                    function_name=display,
                )
            op.duration += cpu
            op.sample_count += 1
            windows.append(_Window(thread.name, start, start + cpu))

    for op in operations.values():
        analysis.total_operations += op.sample_count
        analysis.total_time_ms += op.duration
        analysis.by_operation[op.operation] = analysis.by_operation.get(op.operation, 0.0) + op.duration
        analysis.by_thread[op.thread_name] = analysis.by_thread.get(op.thread_name, 0.0) + op.duration
        if op.algorithm:
            analysis.by_algorithm[op.algorithm] = analysis.by_algorithm.get(op.algorithm, 0.0) + op.duration

    if sampled_ms > 0:
        analysis.cpu_percent = analysis.total_time_ms / sampled_ms * 100

    analysis.top_operations = sorted(operations.values(), key=lambda o: o.duration, reverse=True)
    del analysis.top_operations[TOP_OPERATIONS_LIMIT:]

    if len(analysis.by_thread) > 1 and len(windows) > 1:
        if not _overlaps_across_threads(windows) and analysis.total_operations > SERIALIZED_MIN_SAMPLES:
            analysis.serialized = True
            analysis.warnings.append(
                "Crypto operations appear serialized despite multiple threads - consider parallelizing")

    if analysis.total_time_ms > SIGNIFICANT_TIME_MS:
        analysis.warnings.append(f"Significant crypto overhead: {analysis.total_time_ms:.1f}ms total")
    if analysis.by_algorithm.get("SHA-1", 0.0) > 0:
        analysis.warnings.append("SHA-1 usage detected - consider upgrading to SHA-256 for security")
    if analysis.by_algorithm.get("MD5", 0.0) > 0:
        analysis.warnings.append("MD5 usage detected - MD5 is cryptographically broken, use SHA-256")

    logger.debug(
        "crypto: %d samples in %d functions, %.1fms",
        analysis.total_operations, len(operations), analysis.total_time_ms,
    )
    return analysis
