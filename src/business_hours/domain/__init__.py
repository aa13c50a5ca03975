"""
Business Hours Domain Layer
============================

Contains:
- Value Objects: DaySchedule, ScheduleConfig
- Evaluation: is_open, next_open_message and their helpers

Pure Python with no infrastructure dependencies.
"""

from src.business_hours.domain.value_objects import DAY_NAMES, DaySchedule, ScheduleConfig
from src.business_hours.domain.schedule import (
    find_day,
    is_open,
    localize,
    next_open_message,
    parse_clock,
    weekday_index,
)

__all__ = [
    # Value Objects
    "DAY_NAMES",
    "DaySchedule",
    "ScheduleConfig",
    # Evaluation
    "find_day",
    "is_open",
    "localize",
    "next_open_message",
    "parse_clock",
    "weekday_index",
]
