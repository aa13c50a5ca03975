"""
Monitoring Domain Layer
========================

Contains:
- Entities: MonitorState, MonitorSession
- Events: StatusChangeEvent, StatusChangeChannel
"""

from src.monitoring.domain.entities import MonitorSession, MonitorState
from src.monitoring.domain.events import (
    StatusChangeCallback,
    StatusChangeChannel,
    StatusChangeEvent,
)

__all__ = [
    "MonitorSession",
    "MonitorState",
    "StatusChangeCallback",
    "StatusChangeChannel",
    "StatusChangeEvent",
]
