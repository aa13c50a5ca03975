"""Unit tests for SLA verdicts: deadlines, multipliers, breach and warning bands."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from src.config import SLAKind
from src.sla.domain import SLACalculator, SLAConfig, SLAVerdict, format_remaining, round_half_up

T0 = datetime(2024, 6, 3, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def config() -> SLAConfig:
    return SLAConfig(
        name="support",
        first_response_minutes=30,
        resolution_minutes=240,
        priority_multipliers={"high": 0.5},
    )


def _at(minutes: float) -> datetime:
    return T0 + timedelta(minutes=minutes)


class TestFirstResponse:
    def test_breached_one_minute_past_scaled_deadline(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, None, "high", config, _at(16))
        assert verdict == SLAVerdict(
            kind=SLAKind.FIRST_RESPONSE, is_breached=True, is_warning=False, remaining_minutes=-1
        )

    def test_zero_remaining_is_a_breach(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, None, "high", config, _at(15))
        assert verdict.is_breached is True
        assert verdict.is_warning is False
        assert verdict.remaining_minutes == 0

    def test_warning_band_is_last_quarter(self, config: SLAConfig) -> None:
        # deadline 15 minutes, warning at or below 3.75 remaining
        inside = SLACalculator.evaluate(T0, None, "high", config, _at(12))
        outside = SLACalculator.evaluate(T0, None, "high", config, _at(11))
        assert (inside.is_warning, inside.is_breached, inside.remaining_minutes) == (True, False, 3)
        assert (outside.is_warning, outside.is_breached, outside.remaining_minutes) == (False, False, 4)

    def test_fresh_conversation(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, None, None, config, T0)
        assert verdict.remaining_minutes == 30
        assert verdict.needs_attention is False

    @pytest.mark.parametrize("priority", [None, "unknown", "medium"])
    def test_missing_multiplier_means_unscaled(self, config: SLAConfig, priority: str | None) -> None:
        verdict = SLACalculator.evaluate(T0, None, priority, config, _at(10))
        assert verdict.remaining_minutes == 20


class TestResolution:
    def test_elapsed_measured_from_creation(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, _at(5), "high", config, _at(100))
        assert verdict.kind == SLAKind.RESOLUTION
        # 240 * 0.5 - 100
        assert verdict.remaining_minutes == 20
        assert verdict.is_warning is True

    def test_breached(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, _at(1), None, config, _at(300))
        assert verdict.is_breached is True
        assert verdict.remaining_minutes == -60


class TestTrackingOff:
    def test_no_config(self) -> None:
        assert SLACalculator.evaluate(T0, None, "high", None, _at(60)) is None

    def test_inactive_config(self, config: SLAConfig) -> None:
        inactive = config.model_copy(update={"is_active": False})
        assert SLACalculator.evaluate(T0, None, "high", inactive, _at(60)) is None


class TestRemainingMinutes:
    def test_never_increases_as_time_passes(self, config: SLAConfig) -> None:
        previous = None
        for step in range(0, 120):
            verdict = SLACalculator.evaluate(T0, None, "high", config, _at(step * 0.25))
            if previous is not None:
                assert verdict.remaining_minutes <= previous
            previous = verdict.remaining_minutes

    def test_halves_round_up(self, config: SLAConfig) -> None:
        assert SLACalculator.evaluate(T0, None, None, config, _at(0.5)).remaining_minutes == 30
        assert SLACalculator.evaluate(T0, None, None, config, _at(31.5)).remaining_minutes == -1

    def test_naive_datetimes_are_utc(self, config: SLAConfig) -> None:
        naive_created = T0.replace(tzinfo=None)
        verdict = SLACalculator.evaluate(naive_created, None, None, config, _at(10))
        assert verdict.remaining_minutes == 20

    def test_round_half_up(self) -> None:
        assert round_half_up(2.5) == 3
        assert round_half_up(-2.5) == -2
        assert round_half_up(-2.6) == -3


class TestFormatRemaining:
    @pytest.mark.parametrize(
        ("minutes", "expected"),
        [(45, "45min"), (-45, "45min"), (0, "0min"), (60, "1h"), (90, "2h"), (1439, "24h"), (1440, "1d"), (-2880, "2d")],
    )
    def test_compact_magnitude(self, minutes: int, expected: str) -> None:
        assert format_remaining(minutes) == expected

    def test_verdict_dict_carries_display(self, config: SLAConfig) -> None:
        verdict = SLACalculator.evaluate(T0, None, "high", config, _at(16))
        body = verdict.to_dict()
        assert body["remaining_display"] == "1min"
        assert body["needs_attention"] is True
        assert body["kind"] == "first_response"


class TestSLAConfig:
    def test_multipliers_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SLAConfig(priority_multipliers={"high": 0})

    def test_deadlines_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SLAConfig(first_response_minutes=0)

    def test_effective_deadline(self, config: SLAConfig) -> None:
        assert SLACalculator.effective_deadline_minutes(SLAKind.RESOLUTION, "high", config) == 120
        assert SLACalculator.effective_deadline_minutes(SLAKind.FIRST_RESPONSE, None, config) == 30

    def test_defaults(self) -> None:
        config = SLAConfig()
        assert config.first_response_minutes == 15
        assert config.get_multiplier("urgent") == 0.25
