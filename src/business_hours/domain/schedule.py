"""
Business Hours Evaluation
==========================

Pure functions answering "are we open at this instant?" and "what do we
tell a customer who writes while we are closed?".

Nothing here keeps state or performs I/O; every call depends only on its
arguments.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from src.business_hours.domain.value_objects import DAY_NAMES, DaySchedule, ScheduleConfig
from src.core import InvalidScheduleEntryException
from src.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


def parse_clock(value: str) -> int:
    """
    Convert a ``HH:MM`` clock time into minutes since midnight.

    Raises:
        InvalidScheduleEntryException: value is not a valid 24h clock time
    """
    if not isinstance(value, str):
        raise InvalidScheduleEntryException(value)

    parts = value.strip().split(":")
    if len(parts) != 2 or not all(p.isascii() and p.isdecimal() for p in parts):
        raise InvalidScheduleEntryException(value)

    hours, minutes = int(parts[0]), int(parts[1])
    if hours > 23 or minutes > 59:
        raise InvalidScheduleEntryException(value)

    return hours * 60 + minutes


def localize(instant: datetime, tz_name: str) -> datetime:
    """
    Express an instant in the schedule's timezone.

    Naive datetimes are taken as UTC. An unknown zone falls back to UTC.
    """
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)

    try:
        zone = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(
            "Unknown business hours timezone, evaluating in UTC",
            extra={"timezone": tz_name}
        )
        zone = timezone.utc

    return instant.astimezone(zone)


def weekday_index(dt: datetime) -> int:
    """Weekday with 0 = Sunday, as used by DaySchedule.day."""
    return (dt.weekday() + 1) % 7


def _window(entry: DaySchedule) -> Optional[tuple[int, int]]:
    try:
        return parse_clock(entry.start), parse_clock(entry.end)
    except InvalidScheduleEntryException as e:
        logger.debug(
            "Skipping day schedule with invalid times",
            extra={"day": entry.day, "value": str(e.value)}
        )
        return None


def find_day(
    config: ScheduleConfig,
    day: int,
    require_enabled: bool = False
) -> Optional[DaySchedule]:
    """
    First entry for ``day`` in declaration order.

    Enabled entries whose times do not parse are skipped. A disabled entry
    counts as found regardless of its times, unless ``require_enabled``.
    """
    for entry in config.schedule:
        if entry.day != day:
            continue
        if not entry.enabled:
            if require_enabled:
                continue
            return entry
        if _window(entry) is None:
            continue
        return entry
    return None


def is_open(config: Optional[ScheduleConfig], instant: datetime) -> bool:
    """
    Check whether ``instant`` falls inside the configured opening window.

    A missing or disabled configuration does not restrict anything, so the
    answer is always open. Both window ends are inclusive at minute
    granularity.
    """
    if config is None or not config.is_enabled:
        return True

    local = localize(instant, config.timezone)
    entry = find_day(config, weekday_index(local))
    if entry is None or not entry.enabled:
        return False

    start_minutes, end_minutes = _window(entry)
    current_minutes = local.hour * 60 + local.minute
    return start_minutes <= current_minutes <= end_minutes


def next_open_message(
    config: Optional[ScheduleConfig],
    instant: datetime,
    day_names: Sequence[str] = DAY_NAMES
) -> Optional[str]:
    """
    Auto-reply for a message received at ``instant``.

    Returns None while open. Otherwise the template is filled with the next
    enabled day within a week; with no such day the template comes back
    untouched.
    """
    if is_open(config, instant):
        return None

    local = localize(instant, config.timezone)
    today = weekday_index(local)

    for offset in range(1, 8):
        next_day = (today + offset) % 7
        entry = find_day(config, next_day, require_enabled=True)
        if entry is not None:
            return (
                config.auto_reply_template
                .replace("{start}", entry.start, 1)
                .replace("{end}", entry.end, 1)
                .replace("{dia}", day_names[next_day], 1)
            )

    return config.auto_reply_template
