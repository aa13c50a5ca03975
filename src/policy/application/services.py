"""
Policy Application Services
============================

The PolicyEngine is the composition root of the temporal policies. It
holds session-scoped copies of the owner's business hours and SLA records,
feeds them to the pure evaluators, and owns the status poller.

Following SOLID principles:
- Single Responsibility: evaluators stay pure, the engine only wires them
- Dependency Inversion: stores and the status lookup are abstractions
"""

import asyncio
import contextlib
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Set

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.business_hours.domain import ScheduleConfig, is_open, next_open_message
from src.config import PollerPhase, Settings, get_settings
from src.core import ApplicationException, ConfigUnavailableException
from src.monitoring.application import AdaptiveStatusPoller, IStatusLookup
from src.monitoring.domain import MonitorSession, StatusChangeCallback, StatusChangeChannel
from src.shared.infrastructure.logging import get_logger
from src.sla.domain import SLACalculator, SLAConfig, SLAVerdict

logger = get_logger(__name__)


# ========== Store Interfaces (Dependency Inversion) ==========

class IScheduleConfigStore(ABC):
    """Interface for business hours record access."""

    @abstractmethod
    async def load_schedule_config(self, owner_id: str) -> Optional[ScheduleConfig]:
        """Business hours record of ``owner_id``, None when absent."""

    @abstractmethod
    async def save_schedule_config(self, owner_id: str, patch: Dict[str, Any]) -> ScheduleConfig:
        """Merge ``patch`` into the record and replace it as a whole."""


class ISLAConfigStore(ABC):
    """Interface for SLA record access."""

    @abstractmethod
    async def load_sla_config(self, owner_id: str) -> Optional[SLAConfig]:
        """SLA record of ``owner_id``, None when absent."""

    @abstractmethod
    async def save_sla_config(self, owner_id: str, patch: Dict[str, Any]) -> SLAConfig:
        """Merge ``patch`` into the record and replace it as a whole."""


# ========== Application Services ==========

class PolicyEngine:
    """
    Query and command surface for business hours, SLA and monitoring.

    Queries never raise for missing configuration: no business hours record
    means always open, no SLA record means no verdict.
    """

    def __init__(
        self,
        owner_id: str,
        schedule_store: IScheduleConfigStore,
        sla_store: ISLAConfigStore,
        lookup: IStatusLookup,
        channel: Optional[StatusChangeChannel] = None,
        settings: Optional[Settings] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._owner_id = owner_id
        self._schedule_store = schedule_store
        self._sla_store = sla_store
        self._lookup = lookup
        self._channel = channel or StatusChangeChannel()
        self._settings = settings or get_settings()
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._schedule_config: Optional[ScheduleConfig] = None
        self._sla_config: Optional[SLAConfig] = None
        self._poller: Optional[AdaptiveStatusPoller] = None
        self._tasks: Set[asyncio.Task] = set()

    # ---------- Configuration ----------

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def schedule_config(self) -> Optional[ScheduleConfig]:
        return self._schedule_config

    @property
    def sla_config(self) -> Optional[SLAConfig]:
        return self._sla_config

    def require_schedule_config(self) -> ScheduleConfig:
        if self._schedule_config is None:
            raise ConfigUnavailableException("business_hours", self._owner_id)
        return self._schedule_config

    def require_sla_config(self) -> SLAConfig:
        if self._sla_config is None:
            raise ConfigUnavailableException("sla", self._owner_id)
        return self._sla_config

    async def refresh(self) -> None:
        """
        Reload both records from their stores.

        A store failure keeps the copy already held for that record.
        """
        try:
            self._schedule_config = await self._schedule_store.load_schedule_config(self._owner_id)
        except ApplicationException as e:
            logger.error(
                "Failed to load business hours config",
                extra={"owner_id": self._owner_id, "error": e.message}
            )

        try:
            self._sla_config = await self._sla_store.load_sla_config(self._owner_id)
        except ApplicationException as e:
            logger.error(
                "Failed to load SLA config",
                extra={"owner_id": self._owner_id, "error": e.message}
            )

        logger.info(
            "Policy configuration refreshed",
            extra={
                "owner_id": self._owner_id,
                "business_hours_loaded": self._schedule_config is not None,
                "sla_loaded": self._sla_config is not None
            }
        )

    async def save_schedule_config(self, patch: Dict[str, Any]) -> ScheduleConfig:
        """Persist a business hours change, then reload."""
        await self._schedule_store.save_schedule_config(self._owner_id, patch)
        await self.refresh()
        return self.require_schedule_config()

    async def save_sla_config(self, patch: Dict[str, Any]) -> SLAConfig:
        """Persist an SLA change, then reload."""
        await self._sla_store.save_sla_config(self._owner_id, patch)
        await self.refresh()
        return self.require_sla_config()

    # ---------- Queries ----------

    def now(self) -> datetime:
        return self._clock()

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Whether ``now`` falls inside business hours."""
        return is_open(self._schedule_config, now or self._clock())

    def auto_reply_for(self, now: Optional[datetime] = None) -> Optional[str]:
        """Out-of-hours auto-reply for a message received at ``now``."""
        return next_open_message(self._schedule_config, now or self._clock())

    def sla_verdict(
        self,
        created_at: datetime,
        first_responded_at: Optional[datetime] = None,
        priority: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[SLAVerdict]:
        """SLA verdict of a conversation, None while SLA tracking is off."""
        return SLACalculator.evaluate(
            created_at,
            first_responded_at,
            priority,
            self._sla_config,
            now or self._clock()
        )

    # ---------- Monitoring ----------

    @property
    def channel(self) -> StatusChangeChannel:
        return self._channel

    @property
    def poller(self) -> Optional[AdaptiveStatusPoller]:
        return self._poller

    def subscribe(self, callback: StatusChangeCallback) -> Callable[[], None]:
        """Register a status change subscriber; returns the unsubscribe function."""
        return self._channel.subscribe(callback)

    async def start_monitoring(self, targets: Iterable[str]) -> None:
        """
        Monitor ``targets``.

        A different target set replaces the running poller, and with it all
        state. The same set while already active changes nothing.

        Raises:
            ValidationException: ``targets`` is not a collection of ids
        """
        if not self._settings.monitor_enabled:
            logger.info("Status monitoring disabled by settings")
            self.stop_monitoring()
            return

        if self._poller is not None and self._poller.is_active and self._same_targets(targets):
            return

        self._ensure_scheduler()
        poller = AdaptiveStatusPoller(
            lookup=self._lookup,
            channel=self._channel,
            scheduler=self._scheduler,
            session=MonitorSession(),
            interval=self._settings.poll_interval_seconds,
            fast_interval=self._settings.poll_fast_interval_seconds,
            initial_delay=self._settings.poll_initial_delay_seconds,
            transitional_statuses=self._settings.transitional_statuses,
            name=f"status-monitor-{self._owner_id}",
            clock=self._clock,
        )
        await poller.start(targets)

        self.stop_monitoring()
        self._poller = poller

    def stop_monitoring(self) -> None:
        """Stop the poller and drop its state. Safe to call repeatedly."""
        if self._poller is not None:
            self._poller.stop()
            self._poller = None

    def force_check(self) -> Optional[asyncio.Task]:
        """
        Start an out-of-band sweep in the background.

        Returns:
            The sweep task, or None when nothing is being monitored
        """
        if self._poller is None or not self._poller.is_active:
            return None

        task = asyncio.create_task(self._poller.force_check())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def monitor_phase(self) -> str:
        if self._poller is None:
            return PollerPhase.IDLE
        return self._poller.phase

    def monitor_statuses(self) -> Dict[str, str]:
        if self._poller is None:
            return {}
        return self._poller.statuses

    def monitor_snapshot(self) -> Dict[str, Any]:
        """Read-only summary of the monitoring session."""
        poller = self._poller
        if poller is None:
            return {
                "phase": PollerPhase.IDLE,
                "cadence": None,
                "next_interval_seconds": None,
                "targets": [],
                "statuses": {},
            }

        return {
            "phase": poller.phase,
            "cadence": poller.cadence if poller.is_active else None,
            "next_interval_seconds": poller.next_interval if poller.is_active else None,
            "targets": list(poller.targets),
            "statuses": {
                target: {
                    "status": state.last_known_status,
                    "last_polled_at": state.last_polled_at,
                }
                for target, state in poller.states.items()
            },
        }

    async def close(self) -> None:
        """Stop monitoring, cancel background sweeps, shut the scheduler down."""
        self.stop_monitoring()

        for task in list(self._tasks):
            task.cancel()
        for task in list(self._tasks):
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks.clear()

        if self._owns_scheduler and self._scheduler is not None and self._scheduler.running:
            with contextlib.suppress(Exception):
                self._scheduler.shutdown(wait=False)
        self._scheduler = None if self._owns_scheduler else self._scheduler

    # ---------- Internals ----------

    def _same_targets(self, targets: Iterable[str]) -> bool:
        if not isinstance(targets, (list, tuple, set, frozenset)):
            return False
        requested = {t.strip() for t in targets if isinstance(t, str) and t.strip()}
        return requested == set(self._poller.targets)

    def _ensure_scheduler(self) -> None:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()
