"""
Configuration Loader (``credit_config.loader``).

Responsibility
--------------
Loads a YAML configuration file, applies environment overrides and parses
the result into the frozen ``credit_config.schema`` dataclasses.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError`` naming the offending key.
* Numeric settings are range-checked; a bad value never reaches a service.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value or unknown key  -> ``ValueError``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from credit_config.schema import (
    DatabaseSettings,
    LedgerSettings,
    LoggingSettings,
    PortalConfig,
    SweeperSettings,
    SyncSettings,
    VacancySettings,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "ledger": LedgerSettings,
    "vacancy": VacancySettings,
    "sweeper": SweeperSettings,
    "sync": SyncSettings,
    "logging": LoggingSettings,
}

_FREQUENCIES = ("hourly", "daily", "weekly", "on_demand")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

ENV_DATABASE_URL = "CREDITS_DATABASE_URL"
ENV_SYNC_WEBHOOK_URL = "CREDITS_SYNC_WEBHOOK_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def _parse_section(name: str, cls: type, data: Any) -> Any:
    if data is None:
        return cls()
    if not isinstance(data, Mapping):
        raise ValueError(f"{name}: must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"{name}: unknown key(s) {', '.join(unknown)}")
    return cls(**dict(data))


def _require(condition: bool, key: str, value: Any, reason: str) -> None:
    if not condition:
        raise ValueError(f"{key}: invalid value {value!r} ({reason})")


def validate_config(config: PortalConfig) -> PortalConfig:
    """Range-check every numeric setting.  Returns the config unchanged."""
    ledger, vacancy, sweeper = config.ledger, config.vacancy, config.sweeper
    _require(
        isinstance(ledger.default_validity_months, int) and ledger.default_validity_months > 0,
        "ledger.default_validity_months", ledger.default_validity_months, "positive integer",
    )
    _require(
        isinstance(ledger.max_conflict_retries, int) and ledger.max_conflict_retries >= 1,
        "ledger.max_conflict_retries", ledger.max_conflict_retries, "integer >= 1",
    )
    _require(
        isinstance(vacancy.default_duration_days, int) and vacancy.default_duration_days > 0,
        "vacancy.default_duration_days", vacancy.default_duration_days, "positive integer",
    )
    _require(
        isinstance(vacancy.max_publication_days, int)
        and vacancy.max_publication_days >= vacancy.default_duration_days,
        "vacancy.max_publication_days", vacancy.max_publication_days,
        "integer >= default_duration_days",
    )
    _require(
        sweeper.frequency in _FREQUENCIES,
        "sweeper.frequency", sweeper.frequency, f"one of {', '.join(_FREQUENCIES)}",
    )
    _require(0 <= sweeper.run_hour <= 23, "sweeper.run_hour", sweeper.run_hour, "0-23")
    _require(
        sweeper.tick_interval_seconds > 0,
        "sweeper.tick_interval_seconds", sweeper.tick_interval_seconds, "positive",
    )
    _require(
        config.sync.timeout_seconds > 0,
        "sync.timeout_seconds", config.sync.timeout_seconds, "positive",
    )
    _require(
        str(config.logging.level).upper() in _LOG_LEVELS,
        "logging.level", config.logging.level, f"one of {', '.join(_LOG_LEVELS)}",
    )
    return config


def parse_config(data: Mapping[str, Any]) -> PortalConfig:
    """
    Parse a ``PortalConfig`` from a dict.

    Raises:
        ValueError: unknown section, unknown key, or out-of-range value.
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ValueError(f"unknown config section(s): {', '.join(unknown)}")
    sections = {name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()}
    return validate_config(PortalConfig(**sections))


def apply_env_overrides(
    config: PortalConfig,
    environ: Mapping[str, str] | None = None,
) -> PortalConfig:
    """Overlay connection settings taken from the environment."""
    env = os.environ if environ is None else environ
    if env.get(ENV_DATABASE_URL):
        config = replace(config, database=replace(config.database, url=env[ENV_DATABASE_URL]))
    if env.get(ENV_SYNC_WEBHOOK_URL):
        config = replace(config, sync=replace(config.sync, webhook_url=env[ENV_SYNC_WEBHOOK_URL]))
    return config


def load_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> PortalConfig:
    """
    Load configuration from ``path`` (or the packaged defaults).

    Environment overrides are applied last.
    """
    source = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = parse_config(load_yaml_file(source))
    return apply_env_overrides(config, environ)


DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "portal.yaml"
