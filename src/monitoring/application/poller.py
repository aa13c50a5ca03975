"""
Adaptive Status Poller
=======================

Keeps a best-effort view of each monitored target's status.

Every sweep looks all targets up concurrently. While any target sits in a
transitional status (connecting, pending) the next sweep comes after the
fast interval, otherwise after the normal one. Sweeps are one-shot
APScheduler jobs, so at most one scheduled sweep is ever pending.

Lifecycle:
    idle --start(targets)--> active --start([])--> idle
    idle/active --stop()--> stopped (terminal)
"""

import asyncio
import contextlib
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from src.config import Cadence, PollerPhase, DEFAULT_TRANSITIONAL_STATUSES
from src.core import DomainException, StatusLookupException, ValidationException
from src.monitoring.domain import (
    MonitorSession,
    MonitorState,
    StatusChangeChannel,
    StatusChangeEvent,
)
from src.shared.infrastructure.logging import get_logger, log_latency

logger = get_logger(__name__)


# ========== Lookup Interface (Dependency Inversion) ==========

class IStatusLookup(ABC):
    """Interface for the remote status endpoint."""

    @abstractmethod
    async def fetch_status(self, target: str) -> str:
        """
        Current status of ``target``.

        Raises:
            StatusLookupException: the lookup failed
        """


# ========== Poller ==========

class AdaptiveStatusPoller:
    """
    Polls a set of targets and publishes their status transitions.

    Lookup failures never escape a sweep: the failing target keeps its
    previous status and is retried on the next sweep.
    """

    def __init__(
        self,
        lookup: IStatusLookup,
        channel: Optional[StatusChangeChannel] = None,
        scheduler: Optional[AsyncIOScheduler] = None,
        session: Optional[MonitorSession] = None,
        interval: float = 30.0,
        fast_interval: float = 10.0,
        initial_delay: float = 2.0,
        transitional_statuses: Iterable[str] = DEFAULT_TRANSITIONAL_STATUSES,
        name: str = "status-monitor",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if interval <= 0 or fast_interval <= 0:
            raise ValidationException(
                "Polling intervals must be positive",
                {"interval": interval, "fast_interval": fast_interval}
            )
        if fast_interval >= interval:
            raise ValidationException(
                "fast_interval must be shorter than interval",
                {"interval": interval, "fast_interval": fast_interval}
            )
        if initial_delay < 0:
            raise ValidationException("initial_delay cannot be negative", {"initial_delay": initial_delay})

        self._lookup = lookup
        self._channel = channel or StatusChangeChannel()
        self._scheduler = scheduler
        self._owns_scheduler = scheduler is None
        self._session = session or MonitorSession()
        self._interval = interval
        self._fast_interval = fast_interval
        self._initial_delay = initial_delay
        self._transitional = frozenset(s.lower() for s in transitional_statuses)
        self._name = name
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._job_id = f"{name}-sweep-{uuid4().hex[:8]}"

        self._phase = PollerPhase.IDLE
        self._cadence = Cadence.NORMAL
        self._targets: Tuple[str, ...] = ()
        # Bumped by start/stop; sweeps from an older generation are discarded
        self._generation = 0

    # ---------- Read-only accessors ----------

    @property
    def phase(self) -> str:
        return self._phase

    @property
    def cadence(self) -> str:
        return self._cadence

    @property
    def is_active(self) -> bool:
        return self._phase == PollerPhase.ACTIVE

    @property
    def targets(self) -> Tuple[str, ...]:
        return self._targets

    @property
    def next_interval(self) -> float:
        """Delay the next scheduled sweep uses, in seconds."""
        return self._fast_interval if self._cadence == Cadence.FAST else self._interval

    @property
    def channel(self) -> StatusChangeChannel:
        return self._channel

    @property
    def job_id(self) -> str:
        return self._job_id

    @property
    def session(self) -> MonitorSession:
        return self._session

    @property
    def states(self) -> Mapping[str, MonitorState]:
        """Read-only view of the per-target state."""
        return self._session.view()

    @property
    def statuses(self) -> Dict[str, str]:
        """Snapshot of target -> last known status."""
        return self._session.statuses()

    # ---------- Commands ----------

    async def start(self, targets: Iterable[str]) -> None:
        """
        Begin monitoring ``targets``.

        Calling start again replaces the target set and rebuilds the state
        from scratch. An empty target set leaves the poller idle.

        Raises:
            ValidationException: ``targets`` is not a collection of ids
            DomainException: the poller has been stopped
        """
        if self._phase == PollerPhase.STOPPED:
            raise DomainException("Poller has been stopped", {"poller": self._name})

        new_targets = self._validate_targets(targets)

        self._generation += 1
        self._cancel_pending()
        self._session.clear()
        self._cadence = Cadence.NORMAL
        self._targets = new_targets

        if not new_targets:
            self._phase = PollerPhase.IDLE
            logger.info("Status poller idle, no targets", extra={"poller": self._name})
            return

        self._ensure_scheduler()
        self._phase = PollerPhase.ACTIVE
        self._schedule_sweep(self._initial_delay)

        logger.info(
            "Status poller started",
            extra={
                "poller": self._name,
                "targets": len(new_targets),
                "initial_delay_seconds": self._initial_delay
            }
        )

    def stop(self) -> None:
        """Cancel the pending sweep and discard all state. Idempotent."""
        if self._phase == PollerPhase.STOPPED:
            return

        self._phase = PollerPhase.STOPPED
        self._generation += 1
        self._cancel_pending()
        self._session.clear()
        self._targets = ()
        self._cadence = Cadence.NORMAL

        if self._owns_scheduler and self._scheduler is not None and self._scheduler.running:
            with contextlib.suppress(Exception):
                self._scheduler.shutdown(wait=False)

        logger.info("Status poller stopped", extra={"poller": self._name})

    async def force_check(self) -> Dict[str, Optional[str]]:
        """
        Sweep right now, outside the schedule.

        The pending scheduled sweep keeps its timer.
        """
        if self._phase != PollerPhase.ACTIVE:
            logger.debug("Force check ignored, poller not active", extra={"poller": self._name})
            return {}
        return await self.sweep(reschedule=False)

    async def sweep(self, reschedule: bool = False) -> Dict[str, Optional[str]]:
        """
        Look up every target concurrently and record the results.

        Args:
            reschedule: schedule the following sweep once this one is done

        Returns:
            Status per target, None where the lookup failed
        """
        targets = self._targets
        generation = self._generation
        if not targets:
            return {}

        with log_latency(logger, "status_sweep", poller=self._name, targets=len(targets)):
            outcomes = await asyncio.gather(
                *(self._check_target(target, generation) for target in targets),
                return_exceptions=True
            )

        results: Dict[str, Optional[str]] = {}
        for target, outcome in zip(targets, outcomes):
            if isinstance(outcome, BaseException):
                logger.error(
                    "Status check crashed",
                    extra={"poller": self._name, "target": target, "error": str(outcome)}
                )
                outcome = None
            results[target] = outcome

        if self._phase != PollerPhase.ACTIVE or generation != self._generation:
            return results

        self._cadence = (
            Cadence.FAST if self._session.any_in(self._transitional) else Cadence.NORMAL
        )

        if reschedule:
            self._schedule_sweep(self.next_interval)

        return results

    # ---------- Internals ----------

    async def _scheduled_sweep(self) -> None:
        if self._phase != PollerPhase.ACTIVE:
            return
        await self.sweep(reschedule=True)

    async def _check_target(self, target: str, generation: int) -> Optional[str]:
        try:
            raw_status = await self._lookup.fetch_status(target)
        except StatusLookupException as e:
            logger.warning(
                "Status lookup failed",
                extra={"poller": self._name, "target": target, "error": e.message}
            )
            return None
        except Exception as e:
            logger.error(
                "Status lookup raised unexpectedly",
                extra={"poller": self._name, "target": target, "error": str(e)}
            )
            return None

        # Results arriving after stop() or a restart are dropped
        if self._phase != PollerPhase.ACTIVE or generation != self._generation:
            return None

        status = str(raw_status).strip().lower()
        observed_at = self._clock()
        previous = self._session.record(target, status, observed_at)

        if previous is not None and previous != status:
            logger.info(
                "Target status changed",
                extra={
                    "poller": self._name,
                    "target": target,
                    "previous_status": previous,
                    "new_status": status
                }
            )
            await self._channel.publish(
                StatusChangeEvent(
                    target=target,
                    previous_status=previous,
                    new_status=status,
                    observed_at=observed_at,
                )
            )

        return status

    def _validate_targets(self, targets: Iterable[str]) -> Tuple[str, ...]:
        if targets is None or isinstance(targets, (str, bytes)):
            raise ValidationException(
                "targets must be a collection of target ids",
                {"targets": repr(targets)}
            )
        try:
            items = list(targets)
        except TypeError:
            raise ValidationException(
                "targets must be a collection of target ids",
                {"targets": repr(targets)}
            )

        valid = [t.strip() for t in items if isinstance(t, str) and t.strip()]
        if len(valid) != len(items):
            logger.warning(
                "Ignoring invalid monitor targets",
                extra={"poller": self._name, "ignored": len(items) - len(valid)}
            )
        return tuple(dict.fromkeys(valid))

    def _ensure_scheduler(self) -> None:
        if self._scheduler is None:
            self._scheduler = AsyncIOScheduler(timezone="UTC")
        if self._owns_scheduler and not self._scheduler.running:
            self._scheduler.start()

    def _schedule_sweep(self, delay: float) -> None:
        run_date = datetime.now(timezone.utc) + timedelta(seconds=delay)
        self._scheduler.add_job(
            self._scheduled_sweep,
            "date",
            run_date=run_date,
            id=self._job_id,
            name=f"Status sweep ({self._name})",
            replace_existing=True,
            misfire_grace_time=None,
        )
        logger.debug(
            "Next status sweep scheduled",
            extra={"poller": self._name, "delay_seconds": delay, "cadence": self._cadence}
        )

    def _cancel_pending(self) -> None:
        if self._scheduler is None:
            return
        with contextlib.suppress(JobLookupError):
            self._scheduler.remove_job(self._job_id)
