"""
credit_config -- single public entrypoint for portal ledger configuration.

Responsibility:
    ``get_active_config()`` returns the process-wide ``PortalConfig``.
    The file is taken from ``CREDITS_CONFIG`` when set, otherwise the
    packaged ``defaults/portal.yaml``.  The result is cached;
    ``reset_active_config()`` clears the cache (tests).

Architecture position:
    Configuration.  Sits beside ``credit_kernel``; the kernel never imports
    from here, callers pass the values they need into services.
"""

from __future__ import annotations

import os
import threading

from credit_config.loader import load_config, parse_config
from credit_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    PortalConfig,
    SweeperSettings,
    SyncSettings,
    VacancySettings,
)
from credit_kernel.logging_config import get_logger

logger = get_logger("config")

ENV_CONFIG_PATH = "CREDITS_CONFIG"

_active: PortalConfig | None = None
_lock = threading.Lock()


def get_active_config() -> PortalConfig:
    global _active
    with _lock:
        if _active is None:
            path = os.environ.get(ENV_CONFIG_PATH) or None
            _active = load_config(path)
            logger.info(
                "config_loaded",
                extra={
                    "config_path": path or "defaults",
                    "database_dialect": _active.database.url.split(":", 1)[0],
                    "sync_enabled": _active.sync.webhook_url is not None,
                },
            )
        return _active


def reset_active_config() -> None:
    """Forget the cached configuration. FOR TESTING ONLY."""
    global _active
    with _lock:
        _active = None


__all__ = [
    "DatabaseSettings",
    "LedgerSettings",
    "LoggingSettings",
    "PortalConfig",
    "SweeperSettings",
    "SyncSettings",
    "VacancySettings",
    "get_active_config",
    "load_config",
    "parse_config",
    "reset_active_config",
]
