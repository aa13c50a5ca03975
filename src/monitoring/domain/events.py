"""
Status Change Events
=====================

Explicit observer channel for status transitions.

Delivery contract:
- every subscriber receives each published event exactly once
- subscribers are called in subscription order
- a failing subscriber is logged and does not affect the others
"""

import inspect
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Union

from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class StatusChangeEvent:
    """A target moved from one known status to another."""

    target: str
    previous_status: str
    new_status: str
    observed_at: datetime

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "previous_status": self.previous_status,
            "new_status": self.new_status,
            "observed_at": self.observed_at.isoformat(),
        }


StatusChangeCallback = Callable[[StatusChangeEvent], Union[None, Awaitable[None]]]


class StatusChangeChannel:
    """Ordered list of subscribers notified of status transitions."""

    def __init__(self) -> None:
        self._subscribers: List[StatusChangeCallback] = []

    def subscribe(self, callback: StatusChangeCallback) -> Callable[[], None]:
        """
        Register ``callback`` and return a function that unregisters it.

        Callbacks may be plain functions or coroutine functions.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def publish(self, event: StatusChangeEvent) -> int:
        """
        Deliver ``event`` to every subscriber.

        Returns:
            Number of subscribers that handled the event without error
        """
        delivered = 0
        for callback in list(self._subscribers):
            try:
                result: Optional[Any] = callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    "Status change subscriber failed",
                    extra={
                        "target": event.target,
                        "new_status": event.new_status,
                        "subscriber": getattr(callback, "__qualname__", repr(callback)),
                        "error": str(e)
                    }
                )
        return delivered
