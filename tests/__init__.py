"""Test suite package configuration.

This module ensures that the repository root is available on ``sys.path`` when
running the test suite from a plain checkout. Without that, absolute imports
such as ``import tabengine`` fail unless the project was installed first.
"""

from __future__ import annotations

import sys
from pathlib import Path

_REPO_ROOT: Path = Path(__file__).resolve().parent.parent


def _ensure_repo_on_path() -> None:
    """Insert the repository root to ``sys.path`` when it is missing."""

    repo_root_str: str = str(_REPO_ROOT)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_on_path()
