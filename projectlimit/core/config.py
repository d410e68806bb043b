from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(float(raw))
    except ValueError:
        return default


@dataclass(frozen=True)
class WebhookConfig:
    # Static snapshot file (dev mode). When unset, stores are backed by the Kubernetes API.
    snapshot_file: Optional[str]

    # Kubernetes cache
    refresh_seconds: int
    sync_timeout_seconds: int

    log_level: str

    @property
    def use_kubernetes(self) -> bool:
        return not self.snapshot_file


@lru_cache(maxsize=1)
def load_webhook_config() -> WebhookConfig:
    """
    Load webhook configuration from environment variables (ConfigMap friendly).

    Recommended vars:
    - PRL_SNAPSHOT_FILE=/etc/prl/snapshot.yaml   (dev only; skips the Kubernetes API)
    - PRL_REFRESH_SECONDS=30
    - PRL_SYNC_TIMEOUT_SECONDS=60
    - LOG_LEVEL=info
    """
    return WebhookConfig(
        snapshot_file=(os.getenv("PRL_SNAPSHOT_FILE", "") or "").strip() or None,
        refresh_seconds=max(5, min(_env_int("PRL_REFRESH_SECONDS", 30), 4 * 3600)),
        sync_timeout_seconds=max(1, min(_env_int("PRL_SYNC_TIMEOUT_SECONDS", 60), 600)),
        log_level=(os.getenv("LOG_LEVEL", "") or "info").strip().lower(),
    )
