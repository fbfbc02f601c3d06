"""Tests for settings validation and wall-clock conversion."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from medminder.core.clock import to_wall_clock
from medminder.core.config import Settings


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_defaults(self):
        settings = _settings()
        assert settings.storage_backend == "mongo"
        assert settings.action_window_hours == 4.0
        assert settings.reminder_horizon_days == 7
        assert settings.reanchor_threshold_minutes == 20

    def test_backend_is_normalized(self):
        assert _settings(storage_backend=" Memory ").storage_backend == "memory"

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            _settings(storage_backend="sqlite")

    def test_unknown_timezone(self):
        with pytest.raises(ValidationError):
            _settings(timezone="Mars/Olympus_Mons")

    def test_negative_action_window(self):
        with pytest.raises(ValidationError):
            _settings(action_window_hours=-1)

    @pytest.mark.parametrize("field", ["reminder_horizon_days", "reminder_lead_minutes", "catch_up_delay_seconds"])
    def test_windows_must_be_positive(self, field):
        with pytest.raises(ValidationError):
            _settings(**{field: 0})

    def test_cors_list(self):
        settings = _settings(cors_origins="http://a.test, http://b.test")
        assert settings.cors_list == ["http://a.test", "http://b.test"]


class TestWallClock:
    def test_naive_and_missing_values_pass_through(self):
        naive = datetime(2026, 3, 2, 8)
        assert to_wall_clock(naive, "Europe/Berlin") is naive
        assert to_wall_clock(None) is None

    def test_aware_value_is_converted_and_made_naive(self):
        aware = datetime(2026, 3, 2, 7, tzinfo=timezone.utc)
        assert to_wall_clock(aware) == datetime(2026, 3, 2, 7)
        assert to_wall_clock(aware, "Europe/Berlin") == datetime(2026, 3, 2, 8)

    def test_fixed_offset_lands_on_the_same_instant(self):
        aware = datetime(2026, 3, 2, 10, tzinfo=timezone(timedelta(hours=2)))
        assert to_wall_clock(aware) == datetime(2026, 3, 2, 8)
