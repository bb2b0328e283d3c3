"""
Configuration schema (``credit_config.schema``).

Frozen dataclasses describing one portal deployment.  Every field has a
default so an empty YAML file yields a working local configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite:///portal_credits.db"
    echo: bool = False
    pool_size: int = 10
    max_overflow: int = 5


@dataclass(frozen=True)
class LedgerSettings:
    # Validity of a purchased batch when the product does not say otherwise
    default_validity_months: int = 12
    # Total attempts of a unit of work that hits a wallet version conflict
    max_conflict_retries: int = 3


@dataclass(frozen=True)
class VacancySettings:
    # Publication length when the package has no duration_days
    default_duration_days: int = 30
    # Closing date ceiling, counted from first publication
    max_publication_days: int = 365


@dataclass(frozen=True)
class SweeperSettings:
    frequency: str = "daily"
    run_hour: int = 3
    tick_interval_seconds: float = 60.0


@dataclass(frozen=True)
class SyncSettings:
    webhook_url: str | None = None
    timeout_seconds: float = 5.0


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"


@dataclass(frozen=True)
class PortalConfig:
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    ledger: LedgerSettings = field(default_factory=LedgerSettings)
    vacancy: VacancySettings = field(default_factory=VacancySettings)
    sweeper: SweeperSettings = field(default_factory=SweeperSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
