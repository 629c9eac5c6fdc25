"""
Pytest configuration for tests under tests/.

Tests import the package as `perfscope.*` and the builders as
`tests.fixtures.*`. This conftest puts the repository root on sys.path so
both resolve without an editable install, regardless of invocation cwd.
"""

from __future__ import annotations

import sys
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))
