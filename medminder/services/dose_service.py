import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, List, Optional
from medminder.core.errors import NotFoundError, StorageFailure
from medminder.db.base import Stores
from medminder.engine import progress as progress_calc
from medminder.engine.recurrence import next_instance
from medminder.engine.reconciliation import (
    AgendaItem,
    ClassifiedDose,
    DoseInstance,
    MedicationContext,
    classify_at,
    count_missed,
    is_actionable,
    reconcile_day,
    view_of,
)
from medminder.engine.reminders import ReminderResult, ReminderScheduler
from medminder.engine.schedule import ScheduleModel, truncate_to_minute
from medminder.models.dose_log import DoseLogEntry, DoseStatus
from medminder.models.medication import Medication
from medminder.services.agenda import AgendaSection, group_by_period
from medminder.services.dose_ledger import DoseLedger
from medminder.services.locks import MedicationLocks

logger = logging.getLogger(__name__)


@dataclass
class DoseLogOutcome:
    ok: bool
    entry: Optional[DoseLogEntry] = None
    medication: Optional[Medication] = None
    reanchored: bool = False
    reanchor_suggested: bool = False
    reminders: Optional[ReminderResult] = None
    error: Optional[str] = None


@dataclass
class DoseTimeline:
    doses: List[ClassifiedDose]
    missed_count: int


@dataclass
class TreatmentRegistry:
    rows: List[AgendaItem]
    is_completed: bool


@dataclass
class DayAgenda:
    day: date
    items: List[AgendaItem]
    sections: List[AgendaSection] = field(default_factory=list)


class DoseService:

    def __init__(
        self,
        stores: Stores,
        ledger: DoseLedger,
        scheduler: ReminderScheduler,
        clock,
        locks: MedicationLocks,
        action_window_hours: float = 4.0,
        reanchor_threshold_minutes: int = 20,
    ):
        self.stores = stores
        self.ledger = ledger
        self.scheduler = scheduler
        self.clock = clock
        self.locks = locks
        self.action_window_hours = action_window_hours
        self.reanchor_threshold = timedelta(minutes=reanchor_threshold_minutes)

    async def _medication(self, medication_id: str) -> Medication:
        medication = await self.stores.medications.get(medication_id)
        if medication is None:
            raise NotFoundError("Medication", medication_id)
        return medication

    def _classify(self, medication: Medication, entries, start: datetime, end: datetime) -> List[ClassifiedDose]:
        return classify_at(
            ScheduleModel.from_medication(medication),
            medication.id,
            entries,
            start,
            end,
            self.clock.now(),
            self.action_window_hours,
        )

#------This Function lists the classified doses of a medication in a window---------
    async def medication_doses(
        self, medication_id: str, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[ClassifiedDose]:
        medication = await self._medication(medication_id)
        schedule = ScheduleModel.from_medication(medication)
        entries = await self.ledger.query_by(medication_id)
        return self._classify(
            medication,
            entries,
            start or schedule.anchor_time,
            end or schedule.end_time,
        )

#------This Function lists every dose slot up to now, newest first---------
    async def dose_timeline(self, medication_id: str) -> DoseTimeline:
        medication = await self._medication(medication_id)
        schedule = ScheduleModel.from_medication(medication)
        entries = await self.ledger.query_by(medication_id)
        now = self.clock.now()
        doses = self._classify(
            medication, entries, schedule.anchor_time, truncate_to_minute(now) + timedelta(minutes=1)
        )
        doses.sort(
            key=lambda d: d.instance.taken_time or d.instance.scheduled_time,
            reverse=True,
        )
        return DoseTimeline(doses=doses, missed_count=count_missed((d.instance for d in doses), now))

#------This Function lists future slots that have not been logged---------
    async def upcoming_doses(self, medication_id: str, limit: Optional[int] = None) -> List[datetime]:
        medication = await self._medication(medication_id)
        schedule = ScheduleModel.from_medication(medication)
        entries = await self.ledger.query_by(medication_id)
        now = self.clock.now()
        upcoming = [
            d.instance.scheduled_time
            for d in self._classify(medication, entries, now, schedule.end_time)
            if not d.instance.is_logged and d.instance.scheduled_time > now
        ]
        return upcoming[:limit] if limit else upcoming

    async def dose_history(self, medication_id: str) -> List[DoseLogEntry]:
        await self._medication(medication_id)
        return await self.ledger.history(medication_id)

    async def medication_progress(self, medication_id: str) -> progress_calc.ProgressResult:
        medication = await self._medication(medication_id)
        entries = await self.ledger.query_by(medication_id)
        return progress_calc.progress(ScheduleModel.from_medication(medication), entries)

    async def _treatment_medications(self, treatment_id: str) -> List[Medication]:
        treatment = await self.stores.treatments.get(treatment_id)
        if treatment is None:
            raise NotFoundError("Treatment", treatment_id)
        medications = await self.stores.medications.list_all()
        return [m for m in medications if m.treatment_id == treatment_id]

    async def treatment_progress(self, treatment_id: str) -> progress_calc.ProgressResult:
        members = []
        for medication in await self._treatment_medications(treatment_id):
            entries = await self.ledger.query_by(medication.id)
            members.append((ScheduleModel.from_medication(medication), entries))
        return progress_calc.rollup(members)

#------This Function builds the dose registry of a treatment---------
    async def treatment_registry(self, treatment_id: str) -> TreatmentRegistry:
        treatment = await self.stores.treatments.get(treatment_id)
        medications = await self._treatment_medications(treatment_id)
        now = self.clock.now()
        rows = []
        members = []

        for medication in medications:
            schedule = ScheduleModel.from_medication(medication)
            entries = await self.ledger.query_by(medication.id)
            members.append((schedule, entries))

            for entry in entries:
                instance = DoseInstance(
                    medication_id=medication.id,
                    scheduled_time=entry.scheduled_time,
                    status=entry.status,
                    taken_time=entry.taken_time,
                    log_id=entry.id,
                )
                rows.append(self._agenda_item(medication, treatment, instance, now))

            for dose in self._classify(medication, entries, now, schedule.end_time):
                if dose.instance.log_id is None:
                    rows.append(AgendaItem(medication=medication, treatment=treatment, profile=None, dose=dose))

        rows.sort(key=lambda r: (r.dose.instance.scheduled_time, r.medication.name))
        completed = bool(members) and progress_calc.rollup(members).is_completed
        return TreatmentRegistry(rows=rows, is_completed=completed)

    def _agenda_item(self, medication, treatment, instance: DoseInstance, now: datetime) -> AgendaItem:
        dose = ClassifiedDose(
            instance=instance,
            view=view_of(instance, now, self.action_window_hours),
            actionable=is_actionable(instance.scheduled_time, now, self.action_window_hours),
        )
        return AgendaItem(medication=medication, treatment=treatment, profile=None, dose=dose)

#------This Function builds the dose agenda of one day---------
    async def day_agenda(
        self, day: date, profile_id: Optional[str] = None, include_logged: bool = True
    ) -> DayAgenda:
        medications = await self.stores.medications.list_all()
        treatments = {t.id: t for t in await self.stores.treatments.list_all()}
        profiles = {p.id: p for p in await self.stores.profiles.list_all()}
        entries_by_medication: Dict[str, List[DoseLogEntry]] = defaultdict(list)
        for entry in await self.ledger.query_all():
            entries_by_medication[entry.medication_id].append(entry)

        contexts = []
        for medication in medications:
            treatment = treatments.get(medication.treatment_id)
            profile = profiles.get(treatment.profile_id) if treatment and treatment.profile_id else None
            if profile_id is not None and (profile is None or profile.id != profile_id):
                continue
            contexts.append(
                MedicationContext(
                    medication=medication,
                    treatment=treatment,
                    profile=profile,
                    log_entries=entries_by_medication.get(medication.id, []),
                )
            )

        now = self.clock.now()
        day_start = datetime.combine(day, time())
        items = reconcile_day(
            contexts, day_start, day_start + timedelta(days=1), now, self.action_window_hours
        )
        if not include_logged:
            items = [i for i in items if not i.dose.instance.is_logged]
        return DayAgenda(day=day, items=items, sections=group_by_period(items, now))

    def reanchor_suggested(self, scheduled_time: datetime, taken_time: datetime) -> bool:
        return abs(truncate_to_minute(taken_time) - truncate_to_minute(scheduled_time)) > self.reanchor_threshold

#------This Function rejects a time that is neither a slot of the schedule nor already logged---------
    async def _require_slot(self, medication: Medication, scheduled: datetime) -> None:
        if next_instance(ScheduleModel.from_medication(medication), scheduled) == scheduled:
            return
        entries = await self.ledger.query_by(medication.id)
        if any(e.scheduled_time == scheduled for e in entries):
            return
        raise ValueError(f"{scheduled.isoformat()} is not a scheduled dose of medication {medication.id}")

#------This Function logs a dose and optionally re-anchors the schedule---------
    async def log_dose(
        self,
        medication_id: str,
        scheduled_time: datetime,
        status: DoseStatus,
        taken_time: Optional[datetime] = None,
        update_future_doses: bool = False,
    ) -> DoseLogOutcome:
        if status == DoseStatus.PENDING:
            raise ValueError("A dose can only be logged as taken or skipped")

        async with self.locks.hold(medication_id):
            medication = await self._medication(medication_id)
            scheduled = truncate_to_minute(scheduled_time)
            await self._require_slot(medication, scheduled)

            if status == DoseStatus.TAKEN:
                taken_time = taken_time or self.clock.now()
                suggested = self.reanchor_suggested(scheduled, taken_time)
            else:
                taken_time = None
                suggested = False

            reanchor = update_future_doses and status == DoseStatus.TAKEN
            previous = medication

            if reanchor:
                medication = previous.model_copy(
                    update={"initial_time": truncate_to_minute(taken_time), "updated_at": datetime.utcnow()}
                )
                try:
                    await self.stores.medications.update(medication)
                except (StorageFailure, NotFoundError) as e:
                    logger.error(f"Re-anchor of medication {medication_id} failed, dose not logged: {e}")
                    return DoseLogOutcome(ok=False, medication=previous, reanchor_suggested=suggested, error=str(e))

            result = await self.ledger.record_dose(
                DoseLogEntry(
                    medication_id=medication_id,
                    scheduled_time=scheduled,
                    taken_time=taken_time,
                    status=status,
                )
            )

            if not result.ok:
                if reanchor:
                    await self._restore_medication(previous)
                return DoseLogOutcome(
                    ok=False, medication=previous, reanchor_suggested=suggested, error=result.error
                )

            if reanchor:
                logger.info(
                    f"Re-anchored medication {medication_id} from {previous.initial_time} to {medication.initial_time}"
                )
                reminders = await self.scheduler.resync(medication, await self.ledger.query_by(medication_id))
            else:
                reminders = await self.scheduler.cancel_one(medication_id, scheduled)

            return DoseLogOutcome(
                ok=True,
                entry=result.entry,
                medication=medication,
                reanchored=reanchor,
                reanchor_suggested=suggested and not reanchor,
                reminders=reminders,
            )

    async def _restore_medication(self, previous: Medication) -> None:
        try:
            await self.stores.medications.update(previous)
            logger.warning(f"Rolled back re-anchor of medication {previous.id}")
        except (StorageFailure, NotFoundError) as e:
            logger.error(f"Could not roll back re-anchor of medication {previous.id}: {e}")

#------This Function resyncs the reminders of one medication---------
    async def resync_medication(self, medication_id: str) -> ReminderResult:
        async with self.locks.hold(medication_id):
            medication = await self._medication(medication_id)
            entries = await self.ledger.query_by(medication_id)
            return await self.scheduler.resync(medication, entries)

#------This Function resyncs the reminders of every medication---------
    async def resync_all(self) -> Dict[str, ReminderResult]:
        results = {}
        for medication in await self.stores.medications.list_all():
            async with self.locks.hold(medication.id):
                entries = await self.ledger.query_by(medication.id)
                results[medication.id] = await self.scheduler.resync(medication, entries)
        return results

    async def cancel_reminders(self, medication_id: str) -> ReminderResult:
        async with self.locks.hold(medication_id):
            return await self.scheduler.cancel(medication_id)

    async def cancel_reminder(self, medication_id: str, scheduled_time: datetime) -> ReminderResult:
        async with self.locks.hold(medication_id):
            return await self.scheduler.cancel_one(medication_id, scheduled_time)

    async def pending_reminders(self) -> List[str]:
        return sorted(await self.scheduler.center.list_pending_trigger_ids())
