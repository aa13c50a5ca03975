"""
Monitoring Domain Entities
===========================

In-memory status bookkeeping for one monitoring session.

A MonitorSession is owned by exactly one poller. It is rebuilt from scratch
whenever monitoring (re)starts and emptied when monitoring stops, so nothing
here outlives the process.
"""

from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional


@dataclass(frozen=True)
class MonitorState:
    """Last observation of one monitored target."""

    last_known_status: str
    last_polled_at: datetime


class MonitorSession:
    """
    Status map of the targets tracked by one poller.

    Only the owning poller records observations; everyone else reads
    through ``view()``.
    """

    def __init__(self) -> None:
        self._states: Dict[str, MonitorState] = {}

    def get(self, target: str) -> Optional[MonitorState]:
        """State of ``target``, None before its first successful lookup."""
        return self._states.get(target)

    def record(self, target: str, status: str, polled_at: datetime) -> Optional[str]:
        """Store a fresh observation and return the previous status."""
        previous = self._states.get(target)
        self._states[target] = MonitorState(last_known_status=status, last_polled_at=polled_at)
        return previous.last_known_status if previous else None

    def clear(self) -> None:
        self._states.clear()

    def view(self) -> Mapping[str, MonitorState]:
        """Read-only live view of the state map."""
        return MappingProxyType(self._states)

    def statuses(self) -> Dict[str, str]:
        """Snapshot of target -> last known status."""
        return {target: state.last_known_status for target, state in self._states.items()}

    def any_in(self, statuses: Iterable[str]) -> bool:
        """Whether any stored status belongs to ``statuses``."""
        wanted = set(statuses)
        return any(state.last_known_status in wanted for state in self._states.values())

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, target: object) -> bool:
        return target in self._states
