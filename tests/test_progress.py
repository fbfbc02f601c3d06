"""Tests for medication and treatment progress."""

from datetime import datetime, timedelta

import pytest

from medminder.engine.progress import EMPTY_PROGRESS, progress, rollup
from medminder.engine.schedule import ScheduleModel
from medminder.models.dose_log import DoseLogEntry, DoseStatus


DAY0 = datetime(2026, 3, 2)


def _schedule(frequency_hours=8, duration_days=1):
    return ScheduleModel(DAY0.replace(hour=8), frequency_hours, duration_days)


def _entry(scheduled, status):
    return DoseLogEntry(medication_id="med-1", scheduled_time=scheduled, status=status)


class TestProgress:
    def test_invalid_schedule_has_no_progress(self):
        result = progress(_schedule(frequency_hours=0), [_entry(DAY0.replace(hour=8), DoseStatus.TAKEN)])
        assert result == EMPTY_PROGRESS
        assert result.progress == 0
        assert not result.is_completed

    def test_taken_and_skipped_both_count(self):
        log = [
            _entry(DAY0.replace(hour=8), DoseStatus.TAKEN),
            _entry(DAY0.replace(hour=16), DoseStatus.SKIPPED),
        ]
        result = progress(_schedule(), log)
        assert result.logged_count == 2
        assert result.expected_count == 3
        assert result.progress == pytest.approx(0.667, abs=1e-3)
        assert not result.is_completed

    def test_pending_entries_do_not_count(self):
        log = [_entry(DAY0.replace(hour=8), DoseStatus.PENDING)]
        assert progress(_schedule(), log).logged_count == 0

    def test_all_logged_completes(self):
        log = [
            _entry(DAY0.replace(hour=8), DoseStatus.TAKEN),
            _entry(DAY0.replace(hour=16), DoseStatus.TAKEN),
            _entry(DAY0 + timedelta(days=1), DoseStatus.SKIPPED),
        ]
        result = progress(_schedule(), log)
        assert result.is_completed
        assert result.progress == 1.0

    def test_progress_is_capped(self):
        log = [_entry(DAY0.replace(hour=h), DoseStatus.TAKEN) for h in (8, 9, 10, 16, 20)]
        assert progress(_schedule(), log).progress == 1.0


class TestRollup:
    def test_no_members(self):
        assert rollup([]) == EMPTY_PROGRESS

    def test_mean_of_members(self):
        done = [_entry(DAY0.replace(hour=8), DoseStatus.TAKEN)]
        members = [
            (_schedule(frequency_hours=24, duration_days=1), done),
            (_schedule(frequency_hours=12, duration_days=1), done),
        ]
        result = rollup(members)
        assert result.progress == pytest.approx(0.75)
        assert result.logged_count == 2
        assert result.expected_count == 3
        assert not result.is_completed

    def test_completed_when_every_member_is(self):
        done = [_entry(DAY0.replace(hour=8), DoseStatus.TAKEN)]
        members = [(_schedule(frequency_hours=24, duration_days=1), done)] * 2
        assert rollup(members).is_completed
