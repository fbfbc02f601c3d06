"""
Tests for reminder trigger planning and resync.

Covers:
- Trigger ids shared by creation and cancellation
- Standard, catch-up and past triggers
- Rolling horizon and logged slots
- Failures while cancelling or creating triggers
"""

from datetime import datetime, timedelta

import pytest

from medminder.core.errors import StorageFailure, TriggerCreationFailure
from medminder.engine.reminders import (
    ReminderScheduler,
    plan_trigger,
    trigger_body,
    trigger_id,
    trigger_prefix,
)
from medminder.models.dose_log import DoseLogEntry, DoseStatus
from medminder.models.medication import Medication
from medminder.services.notifications import InMemoryNotificationCenter


DAY0 = datetime(2026, 3, 2)


def _medication(med_id="med-1", hour=8, frequency_hours=8, duration_days=30, name="Amoxicillin"):
    return Medication(
        id=med_id,
        name=name,
        frequency_hours=frequency_hours,
        duration_days=duration_days,
        initial_time=DAY0.replace(hour=hour),
        treatment_id="t1",
    )


class FlakyCenter(InMemoryNotificationCenter):
    def __init__(self, clock, broken_ids):
        super().__init__(clock)
        self.broken_ids = set(broken_ids)

    async def create_trigger(self, trigger_id, title, body, fire_at=None, fire_after_seconds=None):
        if trigger_id in self.broken_ids:
            raise TriggerCreationFailure(trigger_id, "rejected")
        await super().create_trigger(trigger_id, title, body, fire_at, fire_after_seconds)


class UnreachableCenter(InMemoryNotificationCenter):
    async def list_pending_trigger_ids(self):
        raise StorageFailure("notification store offline")


@pytest.fixture
def scheduler(center, clock):
    return ReminderScheduler(center, clock)


# ── Identity ─────────────────────────────────────────────────────

class TestTriggerId:
    def test_format(self):
        assert trigger_id("med-1", DAY0.replace(hour=8)) == "v1:med-1:20260302T0800"

    def test_seconds_do_not_change_identity(self):
        assert trigger_id("med-1", DAY0.replace(hour=8, second=59)) == trigger_id("med-1", DAY0.replace(hour=8))

    def test_prefix_separates_similar_ids(self):
        assert not trigger_id("med-10", DAY0).startswith(trigger_prefix("med-1"))


# ── Planning ─────────────────────────────────────────────────────

class TestPlanTrigger:
    SCHEDULED = DAY0.replace(hour=8)

    def test_fires_ahead_of_dose(self):
        plan = plan_trigger("med-1", self.SCHEDULED, DAY0.replace(hour=7))
        assert plan.fire_at == DAY0.replace(hour=7, minute=55)
        assert not plan.is_catch_up

    def test_lead_time_exactly_now(self):
        plan = plan_trigger("med-1", self.SCHEDULED, DAY0.replace(hour=7, minute=55))
        assert plan.fire_at == DAY0.replace(hour=7, minute=55)

    def test_catch_up_inside_lead_time(self):
        plan = plan_trigger("med-1", self.SCHEDULED, DAY0.replace(hour=7, minute=57))
        assert plan.is_catch_up
        assert plan.fire_after_seconds == 5
        assert plan.fire_at is None

    def test_past_dose_gets_no_trigger(self):
        assert plan_trigger("med-1", self.SCHEDULED, self.SCHEDULED) is None
        assert plan_trigger("med-1", self.SCHEDULED, DAY0.replace(hour=9)) is None

    def test_body_mentions_time_and_name(self):
        plan = plan_trigger("med-1", self.SCHEDULED, DAY0.replace(hour=7))
        body = trigger_body(_medication(), plan)
        assert "08:00" in body
        assert "Amoxicillin" in body


# ── Desired triggers ─────────────────────────────────────────────

class TestDesiredTriggers:
    def test_horizon_limits_triggers(self, scheduler, clock):
        plans = scheduler.desired_triggers(_medication(), [], clock.now())
        assert len(plans) == 20
        assert plans[-1].scheduled_time < DAY0 + timedelta(days=7)

    def test_logged_slots_are_skipped(self, scheduler, clock):
        log = [
            DoseLogEntry(
                medication_id="med-1",
                scheduled_time=DAY0.replace(hour=16),
                status=DoseStatus.SKIPPED,
            )
        ]
        plans = scheduler.desired_triggers(_medication(), log, clock.now())
        assert trigger_id("med-1", DAY0.replace(hour=16)) not in {p.trigger_id for p in plans}
        assert len(plans) == 19

    def test_pending_log_entries_keep_their_trigger(self, scheduler, clock):
        log = [DoseLogEntry(medication_id="med-1", scheduled_time=DAY0.replace(hour=16))]
        assert len(scheduler.desired_triggers(_medication(), log, clock.now())) == 20

    def test_schedule_ending_inside_horizon(self, scheduler, clock):
        plans = scheduler.desired_triggers(_medication(duration_days=1), [], clock.now())
        assert [p.scheduled_time for p in plans] == [
            DAY0.replace(hour=8),
            DAY0.replace(hour=16),
            DAY0 + timedelta(days=1),
        ]

    def test_invalid_schedule_has_no_triggers(self, scheduler, clock):
        assert scheduler.desired_triggers(_medication(frequency_hours=0), [], clock.now()) == []


# ── Resync and cancel ────────────────────────────────────────────

class TestResync:
    @pytest.mark.asyncio
    async def test_resync_creates_triggers(self, scheduler, center):
        result = await scheduler.resync(_medication(duration_days=1))
        assert result.ok
        assert await center.list_pending_trigger_ids() == result.trigger_ids
        assert len(result.trigger_ids) == 3

    @pytest.mark.asyncio
    async def test_resync_twice_does_not_duplicate(self, scheduler, center):
        await scheduler.resync(_medication())
        result = await scheduler.resync(_medication())
        assert result.ok
        assert len(await center.list_pending_trigger_ids()) == 20

    @pytest.mark.asyncio
    async def test_resync_replaces_old_slots(self, scheduler, center):
        await scheduler.resync(_medication(hour=8))
        await scheduler.resync(_medication(hour=9))
        pending = await center.list_pending_trigger_ids()
        assert trigger_id("med-1", DAY0.replace(hour=8)) not in pending
        assert trigger_id("med-1", DAY0.replace(hour=9)) in pending

    @pytest.mark.asyncio
    async def test_disabled_reminders_only_cancel(self, center, clock):
        await ReminderScheduler(center, clock).resync(_medication())
        result = await ReminderScheduler(center, clock, enabled=False).resync(_medication())
        assert result.ok
        assert result.trigger_ids == set()
        assert await center.list_pending_trigger_ids() == set()

    @pytest.mark.asyncio
    async def test_one_failed_trigger_does_not_stop_the_batch(self, clock):
        broken = trigger_id("med-1", DAY0.replace(hour=16))
        center = FlakyCenter(clock, [broken])
        result = await ReminderScheduler(center, clock).resync(_medication(duration_days=1))
        assert result.failed == {broken}
        assert len(result.trigger_ids) == 2
        assert broken not in await center.list_pending_trigger_ids()

    @pytest.mark.asyncio
    async def test_cancel_failure_fails_resync(self, clock):
        center = UnreachableCenter(clock)
        result = await ReminderScheduler(center, clock).resync(_medication())
        assert not result.ok
        assert "offline" in result.error
        assert center.get(trigger_id("med-1", DAY0.replace(hour=8))) is None

    @pytest.mark.asyncio
    async def test_catch_up_trigger_fires_after_delay(self, center, clock):
        clock.set(DAY0.replace(hour=7, minute=58))
        await ReminderScheduler(center, clock).resync(_medication(duration_days=1))
        trigger = center.get(trigger_id("med-1", DAY0.replace(hour=8)))
        assert trigger.fire_at == DAY0.replace(hour=7, minute=58, second=5)
        assert "shortly" in trigger.body


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_only_touches_one_medication(self, scheduler, center):
        await scheduler.resync(_medication("med-1", duration_days=1))
        await scheduler.resync(_medication("med-10", duration_days=1))

        result = await scheduler.cancel("med-1")
        pending = await center.list_pending_trigger_ids()
        assert result.ok
        assert len(result.trigger_ids) == 3
        assert pending and all(i.startswith(trigger_prefix("med-10")) for i in pending)

    @pytest.mark.asyncio
    async def test_cancel_one_uses_the_same_identity(self, scheduler, center):
        await scheduler.resync(_medication(duration_days=1))
        await scheduler.cancel_one("med-1", DAY0.replace(hour=16, second=30))
        pending = await center.list_pending_trigger_ids()
        assert trigger_id("med-1", DAY0.replace(hour=16)) not in pending
        assert len(pending) == 2

    @pytest.mark.asyncio
    async def test_resync_all(self, scheduler, center):
        results = await scheduler.resync_all([
            (_medication("a", duration_days=1), []),
            (_medication("b", duration_days=1), []),
        ])
        assert set(results) == {"a", "b"}
        assert len(await center.list_pending_trigger_ids()) == 6
