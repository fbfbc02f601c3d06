"""
Tests for merging generated dose slots with the dose log.

Covers:
- Stored status, taken time and log id flow onto their slot
- Minute truncation as the join key
- Read-time views (upcoming, due, missed) and the actionable window
- Day reconciliation across medications
"""

from datetime import datetime, timedelta

import pytest

from medminder.engine.reconciliation import (
    DoseInstance,
    DoseView,
    MedicationContext,
    classify,
    classify_at,
    count_missed,
    index_log,
    is_actionable,
    is_missed,
    reconcile_day,
    view_of,
)
from medminder.engine.schedule import ScheduleModel
from medminder.models.dose_log import DoseLogEntry, DoseStatus
from medminder.models.medication import Medication
from medminder.models.treatment import Treatment


DAY0 = datetime(2026, 3, 2)
DAY1 = DAY0 + timedelta(days=1)
MED = "med-1"


@pytest.fixture
def schedule():
    return ScheduleModel(anchor_time=DAY0.replace(hour=8), frequency_hours=8, duration_days=1)


def _entry(hour, status=DoseStatus.TAKEN, taken=None, entry_id=None, medication_id=MED, day=DAY0, second=0):
    fields = dict(
        medication_id=medication_id,
        scheduled_time=day.replace(hour=hour, second=second),
        taken_time=taken,
        status=status,
    )
    if entry_id:
        fields["id"] = entry_id
    return DoseLogEntry(**fields)


# ── classify ─────────────────────────────────────────────────────

class TestClassify:
    def test_no_log_means_all_pending(self, schedule):
        instances = classify(schedule, MED, [], DAY0, DAY1 + timedelta(days=1))
        assert [i.status for i in instances] == [DoseStatus.PENDING] * 3
        assert all(i.log_id is None for i in instances)

    def test_log_entries_land_on_their_slots(self, schedule):
        taken_at = DAY0.replace(hour=8, minute=12)
        log = [
            _entry(8, taken=taken_at, entry_id="a"),
            _entry(16, status=DoseStatus.SKIPPED, entry_id="b"),
        ]
        instances = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))

        assert instances[0].status == DoseStatus.TAKEN
        assert instances[0].taken_time == taken_at
        assert instances[0].log_id == "a"
        assert instances[1].status == DoseStatus.SKIPPED
        assert instances[1].taken_time is None
        assert instances[2].status == DoseStatus.PENDING

    def test_is_idempotent(self, schedule):
        log = [_entry(8, taken=DAY0.replace(hour=8, minute=3))]
        first = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        second = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        assert first == second

    def test_identities_are_unique(self, schedule):
        log = [_entry(8), _entry(8, entry_id="zz"), _entry(16)]
        instances = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        identities = [i.identity for i in instances]
        assert len(identities) == len(set(identities)) == 3

    def test_seconds_in_log_still_match(self, schedule):
        log = [_entry(16, second=42, entry_id="x")]
        instances = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        assert instances[1].log_id == "x"

    def test_entries_of_other_medications_are_ignored(self, schedule):
        log = [_entry(8, medication_id="med-2")]
        instances = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        assert instances[0].status == DoseStatus.PENDING

    def test_entry_off_schedule_does_not_create_slot(self, schedule):
        log = [_entry(9)]
        instances = classify(schedule, MED, log, DAY0, DAY1 + timedelta(days=1))
        assert len(instances) == 3
        assert all(i.log_id is None for i in instances)


class TestIndexLog:
    def test_logged_entry_wins_over_pending(self):
        log = [
            _entry(8, status=DoseStatus.PENDING, entry_id="a"),
            _entry(8, status=DoseStatus.TAKEN, entry_id="b"),
        ]
        assert index_log(MED, log)[DAY0.replace(hour=8)].id == "b"

    def test_tie_goes_to_lowest_id(self):
        log = [_entry(8, entry_id="b"), _entry(8, entry_id="a")]
        assert index_log(MED, log)[DAY0.replace(hour=8)].id == "a"
        assert index_log(MED, list(reversed(log)))[DAY0.replace(hour=8)].id == "a"


# ── Views ────────────────────────────────────────────────────────

class TestViews:
    def _pending(self, hour=8):
        return DoseInstance(medication_id=MED, scheduled_time=DAY0.replace(hour=hour))

    def test_upcoming_before_action_window(self):
        assert view_of(self._pending(), DAY0.replace(hour=3), 4) == DoseView.UPCOMING

    def test_due_inside_action_window(self):
        assert view_of(self._pending(), DAY0.replace(hour=7), 4) == DoseView.DUE
        assert view_of(self._pending(), DAY0.replace(hour=8), 4) == DoseView.DUE

    def test_missed_after_scheduled_minute(self):
        now = DAY0.replace(hour=8, minute=1)
        assert is_missed(self._pending(), now)
        assert view_of(self._pending(), now, 4) == DoseView.MISSED

    def test_logged_statuses_are_never_missed(self):
        taken = DoseInstance(MED, DAY0.replace(hour=8), DoseStatus.TAKEN, DAY0.replace(hour=8))
        skipped = DoseInstance(MED, DAY0.replace(hour=8), DoseStatus.SKIPPED)
        later = DAY1
        assert view_of(taken, later, 4) == DoseView.TAKEN
        assert view_of(skipped, later, 4) == DoseView.SKIPPED
        assert count_missed([taken, skipped], later) == 0

    def test_count_missed(self, schedule):
        now = DAY0.replace(hour=17)
        instances = classify(schedule, MED, [_entry(8)], DAY0, DAY1 + timedelta(days=1))
        assert count_missed(instances, now) == 1


class TestActionableWindow:
    SCHEDULED = DAY0.replace(hour=8)

    def test_shortly_before_dose(self):
        assert is_actionable(self.SCHEDULED, DAY0.replace(hour=7, minute=58), 4)

    def test_before_window_opens(self):
        assert not is_actionable(self.SCHEDULED, DAY0.replace(hour=3, minute=59), 4)

    def test_window_bounds_are_inclusive(self):
        assert is_actionable(self.SCHEDULED, DAY0.replace(hour=4), 4)
        assert is_actionable(self.SCHEDULED, DAY1.replace(hour=8), 4)

    def test_closes_a_day_after_dose(self):
        assert not is_actionable(self.SCHEDULED, DAY1.replace(hour=8, minute=1), 4)

    def test_classify_at_marks_actionable(self, schedule):
        doses = classify_at(schedule, MED, [], DAY0, DAY1 + timedelta(days=1), DAY0.replace(hour=7, minute=58), 4)
        assert [d.actionable for d in doses] == [True, False, False]
        assert doses[0].view == DoseView.DUE


# ── Day reconciliation ───────────────────────────────────────────

class TestReconcileDay:
    def _med(self, med_id, name, hour, treatment_id="t1", frequency_hours=12, duration_days=3):
        return Medication(
            id=med_id,
            name=name,
            frequency_hours=frequency_hours,
            duration_days=duration_days,
            initial_time=DAY0.replace(hour=hour),
            treatment_id=treatment_id,
        )

    def test_doses_sorted_by_time_then_name(self):
        treatment = Treatment(id="t1", name="Flu", start_date=DAY0)
        contexts = [
            MedicationContext(self._med("m1", "Zinc", 8), treatment, None, []),
            MedicationContext(self._med("m2", "Aspirin", 8), treatment, None, []),
        ]
        items = reconcile_day(contexts, DAY0, DAY1, DAY0.replace(hour=7), 4)
        assert [(i.dose.instance.scheduled_time.hour, i.medication.name) for i in items] == [
            (8, "Aspirin"),
            (8, "Zinc"),
            (20, "Aspirin"),
            (20, "Zinc"),
        ]

    def test_ended_treatment_is_skipped(self):
        treatment = Treatment(id="t1", name="Flu", start_date=DAY0 - timedelta(days=5), end_date=DAY0 - timedelta(days=1))
        contexts = [MedicationContext(self._med("m1", "Zinc", 8), treatment, None, [])]
        assert reconcile_day(contexts, DAY0, DAY1, DAY0, 4) == []

    def test_future_treatment_is_skipped(self):
        treatment = Treatment(id="t1", name="Flu", start_date=DAY1 + timedelta(days=1))
        contexts = [MedicationContext(self._med("m1", "Zinc", 8), treatment, None, [])]
        assert reconcile_day(contexts, DAY0, DAY1, DAY0, 4) == []

    def test_finished_schedule_is_skipped(self):
        contexts = [MedicationContext(self._med("m1", "Zinc", 8, duration_days=1), None, None, [])]
        day3 = DAY0 + timedelta(days=3)
        assert reconcile_day(contexts, day3, day3 + timedelta(days=1), day3, 4) == []

    def test_logged_dose_shows_status(self):
        log = [_entry(8, medication_id="m1", taken=DAY0.replace(hour=8, minute=5))]
        contexts = [MedicationContext(self._med("m1", "Zinc", 8), None, None, log)]
        items = reconcile_day(contexts, DAY0, DAY1, DAY0.replace(hour=21), 4)
        assert items[0].dose.view == DoseView.TAKEN
        assert items[1].dose.view == DoseView.MISSED
