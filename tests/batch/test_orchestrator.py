"""
Tests for BatchOrchestrator -- wiring of registry, executor, sweeper and
scheduler from configuration.
"""

from credit_batch.orchestrator import BatchOrchestrator
from credit_batch.services.sweeper import ExpirationSweeper
from credit_config.schema import PortalConfig, SweeperSettings, SyncSettings
from credit_kernel.services.wallet_locks import WalletLockRegistry
from credit_services.sync_notifier import NullSyncNotifier, WebhookSyncNotifier


class TestWiring:
    def test_registry_has_every_task(self, session_factory, clock):
        orchestrator = BatchOrchestrator(session_factory, clock=clock)
        assert orchestrator.task_registry.list_tasks() == (
            "credits.expire_batches",
            "vacancies.expire_closed",
            "vacancies.resync",
        )

    def test_from_config_without_webhook(self, session_factory, clock):
        orchestrator = BatchOrchestrator.from_config(PortalConfig(), session_factory, clock)
        resync = orchestrator.task_registry.get("vacancies.resync")
        assert isinstance(resync._notifier, NullSyncNotifier)

    def test_from_config_with_webhook(self, session_factory, clock):
        config = PortalConfig(sync=SyncSettings(webhook_url="https://site.example.nl/hook"))
        orchestrator = BatchOrchestrator.from_config(config, session_factory, clock)
        resync = orchestrator.task_registry.get("vacancies.resync")
        assert isinstance(resync._notifier, WebhookSyncNotifier)
        assert resync._notifier.webhook_url == "https://site.example.nl/hook"

    def test_scheduler_uses_sweeper_settings(self, session_factory, clock, locks):
        orchestrator = BatchOrchestrator(
            session_factory,
            clock=clock,
            locks=locks,
            sweeper_settings=SweeperSettings(frequency="hourly", run_hour=0, tick_interval_seconds=5),
        )
        scheduler = orchestrator.create_scheduler()
        assert {s.frequency.value for s in scheduler.schedules} == {"hourly"}
        assert scheduler.tick() == 3

    def test_sweeper_shares_clock_and_locks(self, session_factory, clock, locks, wallet, fund, ledger):
        orchestrator = BatchOrchestrator(session_factory, clock=clock, locks=locks)
        sweeper = orchestrator.create_sweeper()
        assert isinstance(sweeper, ExpirationSweeper)

        fund(wallet.id, 4, validity_months=1)
        clock.advance(days=40)
        assert sweeper.sweep_expired().total_expired_credits == 4
        assert ledger.wallet(wallet.id).balance == 0

    def test_empty_lock_registry_reaches_every_component(self, session_factory, clock):
        registry = WalletLockRegistry()
        orchestrator = BatchOrchestrator(session_factory, clock=clock, locks=registry)

        assert orchestrator.create_executor()._locks is registry
        assert orchestrator.create_sweeper()._executor._locks is registry
