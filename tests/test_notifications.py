"""Tests for the pending-trigger store and the reminder dispatcher."""

from datetime import datetime, timedelta

import pytest

from medminder.core.errors import TriggerCreationFailure
from medminder.services.trigger_dispatcher import dispatch_due_triggers


DAY0 = datetime(2026, 3, 2)


class RecordingSender:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.sent = []

    async def send_dose_reminder(self, trigger):
        self.sent.append(trigger.id)
        return self.succeed


class TestNotificationCenter:
    @pytest.mark.asyncio
    async def test_duplicate_trigger_is_rejected(self, center):
        await center.create_trigger("v1:m:1", "MedMinder", "body", fire_at=DAY0)
        with pytest.raises(TriggerCreationFailure):
            await center.create_trigger("v1:m:1", "MedMinder", "body", fire_at=DAY0)

    @pytest.mark.asyncio
    async def test_relative_trigger_uses_clock(self, center, clock):
        await center.create_trigger("v1:m:1", "MedMinder", "body", fire_after_seconds=5)
        assert center.get("v1:m:1").fire_at == clock.now() + timedelta(seconds=5)

    @pytest.mark.asyncio
    async def test_fire_time_is_required(self, center):
        with pytest.raises(ValueError):
            await center.create_trigger("v1:m:1", "MedMinder", "body")

    @pytest.mark.asyncio
    async def test_pop_due_removes_only_due_triggers(self, center):
        await center.create_trigger("late", "MedMinder", "body", fire_at=DAY0.replace(hour=9))
        await center.create_trigger("b", "MedMinder", "body", fire_at=DAY0.replace(hour=7))
        await center.create_trigger("a", "MedMinder", "body", fire_at=DAY0.replace(hour=6))

        due = await center.pop_due(DAY0.replace(hour=7))

        assert [t.id for t in due] == ["a", "b"]
        assert await center.list_pending_trigger_ids() == {"late"}

    @pytest.mark.asyncio
    async def test_cancel_ignores_unknown_ids(self, center):
        await center.create_trigger("a", "MedMinder", "body", fire_at=DAY0)
        await center.cancel_triggers({"a", "never-created"})
        assert await center.list_pending_trigger_ids() == set()


class TestDispatcher:
    @pytest.mark.asyncio
    async def test_due_triggers_are_sent_once(self, center, clock):
        await center.create_trigger("a", "MedMinder", "body", fire_at=clock.now() - timedelta(minutes=1))
        await center.create_trigger("b", "MedMinder", "body", fire_at=clock.now() + timedelta(hours=1))
        sender = RecordingSender()

        assert await dispatch_due_triggers(center, sender) == 1
        assert await dispatch_due_triggers(center, sender) == 0
        assert sender.sent == ["a"]

    @pytest.mark.asyncio
    async def test_failed_delivery_is_not_counted(self, center, clock):
        await center.create_trigger("a", "MedMinder", "body", fire_at=clock.now())
        sender = RecordingSender(succeed=False)
        assert await dispatch_due_triggers(center, sender) == 0
        assert sender.sent == ["a"]
