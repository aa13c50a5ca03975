"""Unit tests for the status change channel and monitor session."""

from datetime import datetime, timezone

import pytest

from src.monitoring.domain import MonitorSession, StatusChangeChannel, StatusChangeEvent

NOW = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


def _event(target: str = "inst-1") -> StatusChangeEvent:
    return StatusChangeEvent(target=target, previous_status="connecting", new_status="open", observed_at=NOW)


class TestStatusChangeChannel:
    @pytest.mark.asyncio
    async def test_delivers_in_subscription_order(self) -> None:
        channel = StatusChangeChannel()
        received: list[str] = []

        async def first(event: StatusChangeEvent) -> None:
            received.append(f"first:{event.target}")

        def second(event: StatusChangeEvent) -> None:
            received.append(f"second:{event.target}")

        channel.subscribe(first)
        channel.subscribe(second)

        assert await channel.publish(_event()) == 2
        assert received == ["first:inst-1", "second:inst-1"]

    @pytest.mark.asyncio
    async def test_failing_subscriber_does_not_block_others(self) -> None:
        channel = StatusChangeChannel()
        received: list[StatusChangeEvent] = []

        def broken(event: StatusChangeEvent) -> None:
            raise RuntimeError("boom")

        channel.subscribe(broken)
        channel.subscribe(received.append)

        assert await channel.publish(_event()) == 1
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_unsubscribe(self) -> None:
        channel = StatusChangeChannel()
        received: list[StatusChangeEvent] = []

        unsubscribe = channel.subscribe(received.append)
        assert channel.subscriber_count == 1
        unsubscribe()
        unsubscribe()

        assert channel.subscriber_count == 0
        assert await channel.publish(_event()) == 0
        assert received == []

    def test_event_to_dict(self) -> None:
        assert _event().to_dict() == {
            "target": "inst-1",
            "previous_status": "connecting",
            "new_status": "open",
            "observed_at": "2024-06-03T12:00:00+00:00",
        }


class TestMonitorSession:
    def test_record_returns_previous_status(self) -> None:
        session = MonitorSession()
        assert session.record("inst-1", "connecting", NOW) is None
        assert session.record("inst-1", "open", NOW) == "connecting"
        assert session.get("inst-1").last_known_status == "open"

    def test_view_is_read_only(self) -> None:
        session = MonitorSession()
        session.record("inst-1", "open", NOW)
        view = session.view()
        with pytest.raises(TypeError):
            view["inst-2"] = view["inst-1"]

    def test_any_in_and_clear(self) -> None:
        session = MonitorSession()
        session.record("a", "connecting", NOW)
        session.record("b", "open", NOW)

        assert session.any_in({"connecting"}) is True
        assert session.any_in({"pending"}) is False
        assert session.statuses() == {"a": "connecting", "b": "open"}
        assert "a" in session and len(session) == 2

        session.clear()
        assert len(session) == 0
        assert session.get("a") is None
