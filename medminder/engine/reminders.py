"""Reminder triggers derived from a schedule and its dose log.

Every resync cancels the medication's pending triggers and recreates the
ones that should exist inside the rolling horizon. Trigger ids come from
``trigger_id`` only; cancelling a single dose rebuilds the id with the same
function.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Set, Tuple
from medminder.core.clock import start_of_day
from medminder.engine.reconciliation import index_log
from medminder.engine.recurrence import generate
from medminder.engine.schedule import ScheduleModel, truncate_to_minute
from medminder.models.dose_log import DoseLogEntry
from medminder.models.medication import Medication

logger = logging.getLogger(__name__)


TRIGGER_ID_VERSION = "v1"
TRIGGER_TITLE = "MedMinder"


def trigger_prefix(medication_id: str) -> str:
    return f"{TRIGGER_ID_VERSION}:{medication_id}:"


def trigger_id(medication_id: str, scheduled_time: datetime) -> str:
    return trigger_prefix(medication_id) + truncate_to_minute(scheduled_time).strftime("%Y%m%dT%H%M")


@dataclass(frozen=True)
class TriggerPlan:
    trigger_id: str
    medication_id: str
    scheduled_time: datetime
    fire_at: Optional[datetime] = None
    fire_after_seconds: Optional[int] = None

    @property
    def is_catch_up(self) -> bool:
        return self.fire_after_seconds is not None


@dataclass
class ReminderResult:
    ok: bool
    trigger_ids: Set[str] = field(default_factory=set)
    failed: Set[str] = field(default_factory=set)
    error: Optional[str] = None


#------This Function decides when the trigger of one dose should fire---------
def plan_trigger(
    medication_id: str,
    scheduled_time: datetime,
    now: datetime,
    lead_minutes: int = 5,
    catch_up_seconds: int = 5,
) -> Optional[TriggerPlan]:
    standard = scheduled_time - timedelta(minutes=lead_minutes)
    ident = trigger_id(medication_id, scheduled_time)

    if standard >= now:
        return TriggerPlan(ident, medication_id, scheduled_time, fire_at=standard)
    if scheduled_time > now:
        return TriggerPlan(ident, medication_id, scheduled_time, fire_after_seconds=catch_up_seconds)
    return None


def trigger_body(medication: Medication, plan: TriggerPlan) -> str:
    time_string = plan.scheduled_time.strftime("%H:%M")
    if plan.is_catch_up:
        return f"Your {time_string} dose of {medication.name} is coming up shortly. Track it in the app."
    return f"Your {time_string} dose of {medication.name} is coming up. Track it in the app."


class ReminderScheduler:

    def __init__(
        self,
        center,
        clock,
        enabled: bool = True,
        horizon_days: int = 7,
        lead_minutes: int = 5,
        catch_up_seconds: int = 5,
    ):
        self.center = center
        self.clock = clock
        self.enabled = enabled
        self.horizon_days = horizon_days
        self.lead_minutes = lead_minutes
        self.catch_up_seconds = catch_up_seconds

    @classmethod
    def from_settings(cls, center, clock, settings) -> "ReminderScheduler":
        return cls(
            center,
            clock,
            enabled=settings.reminders_enabled,
            horizon_days=settings.reminder_horizon_days,
            lead_minutes=settings.reminder_lead_minutes,
            catch_up_seconds=settings.catch_up_delay_seconds,
        )

#------This Function lists the triggers that should exist for a medication---------
    def desired_triggers(
        self,
        medication: Medication,
        log_entries: Iterable[DoseLogEntry],
        now: datetime,
    ) -> List[TriggerPlan]:
        schedule = ScheduleModel.from_medication(medication)
        window_start = start_of_day(now)
        window_end = window_start + timedelta(days=self.horizon_days)
        logged = {
            slot for slot, entry in index_log(medication.id, log_entries).items() if entry.is_logged
        }

        plans = []
        for scheduled in generate(schedule, window_start, window_end):
            if scheduled in logged:
                continue
            plan = plan_trigger(
                medication.id, scheduled, now, self.lead_minutes, self.catch_up_seconds
            )
            if plan is not None:
                plans.append(plan)
        return plans

#------This Function cancels and recreates the triggers of a medication---------
    async def resync(
        self, medication: Medication, log_entries: Iterable[DoseLogEntry] = ()
    ) -> ReminderResult:
        cancelled = await self.cancel(medication.id)
        if not cancelled.ok:
            return ReminderResult(ok=False, error=cancelled.error)

        if not self.enabled:
            return ReminderResult(ok=True)

        result = ReminderResult(ok=True)
        for plan in self.desired_triggers(medication, log_entries, self.clock.now()):
            try:
                await self.center.create_trigger(
                    plan.trigger_id,
                    TRIGGER_TITLE,
                    trigger_body(medication, plan),
                    fire_at=plan.fire_at,
                    fire_after_seconds=plan.fire_after_seconds,
                )
                result.trigger_ids.add(plan.trigger_id)
            except Exception as e:
                logger.error(f"Failed to create trigger {plan.trigger_id}: {e}")
                result.failed.add(plan.trigger_id)

        logger.info(
            f"Scheduled {len(result.trigger_ids)} reminder(s) for medication {medication.id}"
            + (f", {len(result.failed)} failed" if result.failed else "")
        )
        return result

#------This Function resyncs a batch of medications---------
    async def resync_all(
        self, members: Iterable[Tuple[Medication, Iterable[DoseLogEntry]]]
    ) -> Dict[str, ReminderResult]:
        results = {}
        for medication, entries in members:
            results[medication.id] = await self.resync(medication, entries)
        return results

#------This Function cancels every pending trigger of a medication---------
    async def cancel(self, medication_id: str) -> ReminderResult:
        prefix = trigger_prefix(medication_id)
        try:
            pending = await self.center.list_pending_trigger_ids()
            ids = {i for i in pending if i.startswith(prefix)}
            if ids:
                await self.center.cancel_triggers(ids)
        except Exception as e:
            logger.error(f"Failed to cancel reminders for medication {medication_id}: {e}")
            return ReminderResult(ok=False, error=str(e))
        return ReminderResult(ok=True, trigger_ids=ids)

#------This Function cancels the trigger of one dose---------
    async def cancel_one(self, medication_id: str, scheduled_time: datetime) -> ReminderResult:
        ident = trigger_id(medication_id, scheduled_time)
        try:
            await self.center.cancel_triggers({ident})
        except Exception as e:
            logger.error(f"Failed to cancel reminder {ident}: {e}")
            return ReminderResult(ok=False, error=str(e))
        return ReminderResult(ok=True, trigger_ids={ident})
