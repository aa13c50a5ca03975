"""Tests for the PolicyEngine composition root."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

import pytest

from src.config import PollerPhase, Settings
from src.core import ConfigUnavailableException, RepositoryException
from src.monitoring.domain import StatusChangeEvent
from src.policy.application import PolicyEngine
from src.policy.infrastructure import InMemoryConfigStore
from src.sla.domain import SLAConfig
from tests.conftest import FakeStatusLookup, SteppingClock

MONDAY_NOON = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)
SATURDAY_NOON = datetime(2024, 6, 8, 12, 0, tzinfo=timezone.utc)


def _engine(
    store: InMemoryConfigStore,
    lookup: FakeStatusLookup,
    settings: Settings,
    scheduler: MagicMock,
    clock: SteppingClock,
    owner_id: str = "acme",
) -> PolicyEngine:
    return PolicyEngine(
        owner_id=owner_id,
        schedule_store=store,
        sla_store=store,
        lookup=lookup,
        settings=settings,
        scheduler=scheduler,
        clock=clock,
    )


class FlakySLAStore(InMemoryConfigStore):
    """Fails every SLA load after the first."""

    def __init__(self, records: Dict[str, Any]) -> None:
        super().__init__(records)
        self.loads = 0

    async def load_sla_config(self, owner_id: str) -> Optional[SLAConfig]:
        self.loads += 1
        if self.loads > 1:
            raise RepositoryException("store unavailable")
        return await super().load_sla_config(owner_id)


class TestConfiguration:
    @pytest.mark.asyncio
    async def test_refresh_loads_both_records(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock)
        assert engine.schedule_config is None

        await engine.refresh()

        assert engine.require_schedule_config().is_enabled is True
        assert engine.require_sla_config().name == "support"

    @pytest.mark.asyncio
    async def test_missing_records(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock, owner_id="nobody")
        await engine.refresh()

        assert engine.is_open(SATURDAY_NOON) is True
        assert engine.auto_reply_for(SATURDAY_NOON) is None
        assert engine.sla_verdict(MONDAY_NOON, now=SATURDAY_NOON) is None
        with pytest.raises(ConfigUnavailableException):
            engine.require_schedule_config()
        with pytest.raises(ConfigUnavailableException):
            engine.require_sla_config()

    @pytest.mark.asyncio
    async def test_store_failure_keeps_previous_copy(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        flaky = FlakySLAStore(store._records)
        engine = _engine(flaky, lookup, settings, scheduler, clock)

        await engine.refresh()
        await engine.refresh()

        assert flaky.loads == 2
        assert engine.require_sla_config().name == "support"

    @pytest.mark.asyncio
    async def test_save_updates_held_copy(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock)
        await engine.refresh()

        saved = await engine.save_schedule_config({"is_enabled": False})
        assert saved.is_enabled is False
        assert engine.is_open(SATURDAY_NOON) is True

        sla = await engine.save_sla_config({"first_response_minutes": 60})
        assert sla.first_response_minutes == 60
        assert engine.sla_config.first_response_minutes == 60

    @pytest.mark.asyncio
    async def test_save_by_field_name_replaces_template(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock)
        await engine.refresh()

        saved = await engine.save_schedule_config({"auto_reply_template": "Volte {dia}."})

        assert saved.auto_reply_template == "Volte {dia}."
        assert engine.auto_reply_for(SATURDAY_NOON) == "Volte Segunda."


class TestQueries:
    @pytest.mark.asyncio
    async def test_business_hours(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock)
        await engine.refresh()

        assert engine.is_open(MONDAY_NOON) is True
        assert engine.auto_reply_for(MONDAY_NOON) is None
        assert engine.is_open(SATURDAY_NOON) is False
        assert engine.auto_reply_for(SATURDAY_NOON) == "Voltamos Segunda das 09:00 às 18:00."

    @pytest.mark.asyncio
    async def test_defaults_to_clock(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, SteppingClock(SATURDAY_NOON))
        await engine.refresh()
        assert engine.is_open() is False

    @pytest.mark.asyncio
    async def test_sla_verdict(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, settings: Settings,
        scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, settings, scheduler, clock)
        await engine.refresh()

        verdict = engine.sla_verdict(
            MONDAY_NOON, None, "high", datetime(2024, 6, 3, 12, 16, tzinfo=timezone.utc)
        )
        assert verdict.is_breached is True
        assert verdict.remaining_minutes == -1


class TestMonitoring:
    @pytest.mark.asyncio
    async def test_start_builds_active_poller(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "open"}), settings, scheduler, clock)
        await engine.start_monitoring(["a"])

        assert engine.monitor_phase() == PollerPhase.ACTIVE
        assert engine.poller.targets == ("a",)
        scheduler.add_job.assert_called_once()

    @pytest.mark.asyncio
    async def test_same_targets_keep_running_poller(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "open", "b": "open"}), settings, scheduler, clock)
        await engine.start_monitoring(["a", "b"])
        poller = engine.poller

        await engine.start_monitoring(["b", "a"])
        assert engine.poller is poller

    @pytest.mark.asyncio
    async def test_new_targets_replace_poller_and_state(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "open", "b": "open"}), settings, scheduler, clock)
        await engine.start_monitoring(["a"])
        old = engine.poller
        await old.sweep()

        await engine.start_monitoring(["b"])

        assert old.phase == PollerPhase.STOPPED
        assert engine.poller is not old
        assert engine.poller.targets == ("b",)
        assert engine.monitor_statuses() == {}

    @pytest.mark.asyncio
    async def test_disabled_monitoring_does_nothing(
        self, store: InMemoryConfigStore, lookup: FakeStatusLookup, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, lookup, Settings(monitor_enabled=False), scheduler, clock)
        await engine.start_monitoring(["a"])

        assert engine.poller is None
        assert engine.monitor_phase() == PollerPhase.IDLE
        scheduler.add_job.assert_not_called()

    @pytest.mark.asyncio
    async def test_events_reach_engine_subscribers(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": ["connecting", "open"]}), settings, scheduler, clock)
        events: list[StatusChangeEvent] = []
        engine.subscribe(events.append)

        await engine.start_monitoring(["a"])
        await engine.poller.sweep()
        await engine.poller.sweep()

        assert [(e.previous_status, e.new_status) for e in events] == [("connecting", "open")]

    @pytest.mark.asyncio
    async def test_force_check(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "pending"}), settings, scheduler, clock)
        assert engine.force_check() is None

        await engine.start_monitoring(["a"])
        task = engine.force_check()
        assert await task == {"a": "pending"}
        assert engine.monitor_statuses() == {"a": "pending"}

    @pytest.mark.asyncio
    async def test_snapshot(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "connecting"}), settings, scheduler, clock)
        assert engine.monitor_snapshot()["phase"] == PollerPhase.IDLE

        await engine.start_monitoring(["a"])
        await engine.poller.sweep()
        snapshot = engine.monitor_snapshot()

        assert snapshot["phase"] == PollerPhase.ACTIVE
        assert snapshot["cadence"] == "fast"
        assert snapshot["next_interval_seconds"] == 10
        assert snapshot["targets"] == ["a"]
        assert snapshot["statuses"]["a"]["status"] == "connecting"

    @pytest.mark.asyncio
    async def test_stop_and_close(
        self, store: InMemoryConfigStore, settings: Settings, scheduler: MagicMock, clock: SteppingClock
    ) -> None:
        engine = _engine(store, FakeStatusLookup({"a": "open"}), settings, scheduler, clock)
        await engine.start_monitoring(["a"])

        engine.stop_monitoring()
        engine.stop_monitoring()
        assert engine.monitor_phase() == PollerPhase.IDLE

        await engine.close()
        scheduler.shutdown.assert_not_called()
