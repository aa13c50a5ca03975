"""Shared pytest configuration and fixtures."""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Union
from unittest.mock import MagicMock

import pytest

from src.config import Settings, get_settings
from src.core import StatusLookupException
from src.monitoring.application import IStatusLookup
from src.policy.infrastructure import InMemoryConfigStore


@pytest.fixture(autouse=True)
def _no_dotenv() -> Generator[None]:
    """Block .env loading so tests only see the settings they build themselves."""
    get_settings.cache_clear()
    original = Settings.model_config.get("env_file")
    Settings.model_config["env_file"] = None

    try:
        yield
    finally:
        Settings.model_config["env_file"] = original
        get_settings.cache_clear()


class FakeStatusLookup(IStatusLookup):
    """Scripted status endpoint.

    ``responses`` maps a target to a status, an exception, or a list of
    those consumed one per call (the last entry repeats).
    """

    def __init__(self, responses: Dict[str, Union[str, Exception, List]] | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: List[str] = []

    async def fetch_status(self, target: str) -> str:
        self.calls.append(target)
        outcome = self.responses.get(target, StatusLookupException(target, "unknown target"))
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class SteppingClock:
    """Clock advancing one second per reading."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def settings() -> Settings:
    return Settings(
        status_endpoint_url="http://status.test/api",
        status_api_key="status-key",
        slack_webhook_url="https://hooks.slack.test/T000/B000",
        poll_interval_seconds=30,
        poll_fast_interval_seconds=10,
        poll_initial_delay_seconds=2,
    )


@pytest.fixture
def scheduler() -> MagicMock:
    """Stand-in for AsyncIOScheduler; jobs are recorded, never run."""
    fake = MagicMock(name="scheduler")
    fake.running = True
    return fake


@pytest.fixture
def lookup() -> FakeStatusLookup:
    return FakeStatusLookup()


@pytest.fixture
def clock() -> SteppingClock:
    return SteppingClock()


@pytest.fixture
def store() -> InMemoryConfigStore:
    return InMemoryConfigStore(
        {
            "acme": {
                "business_hours": {
                    "is_enabled": True,
                    "timezone": "UTC",
                    "auto_reply_message": "Voltamos {dia} das {start} às {end}.",
                    "schedule": [
                        {"day": day, "enabled": day not in (0, 6), "start": "09:00", "end": "18:00"}
                        for day in range(7)
                    ],
                },
                "sla": {
                    "name": "support",
                    "first_response_minutes": 30,
                    "resolution_minutes": 240,
                    "priority_multipliers": {"high": 0.5},
                    "is_active": True,
                },
            }
        }
    )
