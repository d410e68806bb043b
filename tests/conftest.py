"""
Pytest config.

This repo is usually run from a checkout, so local imports like `import projectlimit` and
`import main` rely on the repo root being on sys.path. We pin that here so collection works
whether or not the project is installed.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Iterator

import pytest


def _ensure_repo_root_on_syspath() -> None:
    repo_root = Path(__file__).resolve().parents[1]
    repo_root_str = str(repo_root)
    if repo_root_str not in sys.path:
        sys.path.insert(0, repo_root_str)


_ensure_repo_root_on_syspath()


@pytest.fixture(autouse=True)
def _reset_cached_state() -> Iterator[None]:
    """
    Config is cached with lru_cache and the webhook keeps a module-level validator.
    Reset both so tests never leak env or stores into each other.
    """
    from projectlimit.api import webhook as ws
    from projectlimit.core.config import load_webhook_config

    load_webhook_config.cache_clear()
    ws.set_validator(None)
    yield
    load_webhook_config.cache_clear()
    ws.set_validator(None)
