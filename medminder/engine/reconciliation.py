"""Merge generated dose slots with the dose log.

The join key between a generated slot and a log entry is the pair
(medication_id, scheduled_time) compared after truncating seconds on both
sides. ``classify`` only ever emits the stored status; whether a pending
slot is upcoming, due or missed depends on ``now`` and is computed by
``classify_at`` on every call.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Iterable, List, Optional
from medminder.engine.recurrence import generate
from medminder.engine.schedule import ScheduleModel, truncate_to_minute
from medminder.models.dose_log import DoseLogEntry, DoseStatus
from medminder.models.medication import Medication
from medminder.models.profile import Profile
from medminder.models.treatment import Treatment


ACTIONABLE_GRACE = timedelta(hours=24)


class DoseView(str, Enum):
    UPCOMING = "upcoming"
    DUE = "due"
    MISSED = "missed"
    TAKEN = "taken"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DoseInstance:
    medication_id: str
    scheduled_time: datetime
    status: DoseStatus = DoseStatus.PENDING
    taken_time: Optional[datetime] = None
    log_id: Optional[str] = None

    @property
    def identity(self):
        return (self.medication_id, truncate_to_minute(self.scheduled_time))

    @property
    def is_logged(self) -> bool:
        return self.status in (DoseStatus.TAKEN, DoseStatus.SKIPPED)


@dataclass(frozen=True)
class ClassifiedDose:
    instance: DoseInstance
    view: DoseView
    actionable: bool


@dataclass(frozen=True)
class MedicationContext:
    medication: Medication
    treatment: Optional[Treatment]
    profile: Optional[Profile]
    log_entries: List[DoseLogEntry]


@dataclass(frozen=True)
class AgendaItem:
    medication: Medication
    treatment: Optional[Treatment]
    profile: Optional[Profile]
    dose: ClassifiedDose


def is_missed(instance: DoseInstance, now: datetime) -> bool:
    return instance.status == DoseStatus.PENDING and truncate_to_minute(instance.scheduled_time) < now


def is_actionable(scheduled_time: datetime, now: datetime, action_window_hours: float) -> bool:
    opens = scheduled_time - timedelta(hours=action_window_hours)
    closes = scheduled_time + ACTIONABLE_GRACE
    return opens <= now <= closes


def view_of(instance: DoseInstance, now: datetime, action_window_hours: float) -> DoseView:
    if instance.status == DoseStatus.TAKEN:
        return DoseView.TAKEN
    if instance.status == DoseStatus.SKIPPED:
        return DoseView.SKIPPED
    if is_missed(instance, now):
        return DoseView.MISSED
    if now >= instance.scheduled_time - timedelta(hours=action_window_hours):
        return DoseView.DUE
    return DoseView.UPCOMING


def index_log(medication_id: str, log_entries: Iterable[DoseLogEntry]) -> Dict[datetime, DoseLogEntry]:
    """Map minute-truncated scheduled times to the authoritative log entry.

    Should a store ever hold two entries for one slot, a taken/skipped entry
    wins over a pending one and ties go to the lowest id, so the result does
    not depend on the order the store returned them in.
    """
    index: Dict[datetime, DoseLogEntry] = {}
    for entry in sorted(log_entries, key=lambda e: e.id):
        if entry.medication_id != medication_id:
            continue
        key = truncate_to_minute(entry.scheduled_time)
        current = index.get(key)
        if current is None or (not current.is_logged and entry.is_logged):
            index[key] = entry
    return index


#------This Function reconciles generated slots against the log---------
def classify(
    schedule: ScheduleModel,
    medication_id: str,
    log_entries: Iterable[DoseLogEntry],
    window_start: datetime,
    window_end: datetime,
) -> List[DoseInstance]:
    index = index_log(medication_id, log_entries)
    instances = []
    for scheduled in generate(schedule, window_start, window_end):
        entry = index.get(scheduled)
        if entry is None:
            instances.append(DoseInstance(medication_id=medication_id, scheduled_time=scheduled))
            continue
        instances.append(
            DoseInstance(
                medication_id=medication_id,
                scheduled_time=scheduled,
                status=entry.status,
                taken_time=entry.taken_time,
                log_id=entry.id,
            )
        )
    return instances


#------This Function classifies slots and adds the read-time view---------
def classify_at(
    schedule: ScheduleModel,
    medication_id: str,
    log_entries: Iterable[DoseLogEntry],
    window_start: datetime,
    window_end: datetime,
    now: datetime,
    action_window_hours: float,
) -> List[ClassifiedDose]:
    return [
        ClassifiedDose(
            instance=instance,
            view=view_of(instance, now, action_window_hours),
            actionable=is_actionable(instance.scheduled_time, now, action_window_hours),
        )
        for instance in classify(schedule, medication_id, log_entries, window_start, window_end)
    ]


def count_missed(instances: Iterable[DoseInstance], now: datetime) -> int:
    return sum(1 for i in instances if is_missed(i, now))


def _treatment_active(treatment: Optional[Treatment], day_start: datetime, day_end: datetime) -> bool:
    if treatment is None:
        return True
    if treatment.end_date is not None and treatment.end_date < day_start:
        return False
    if treatment.start_date.replace(hour=0, minute=0, second=0, microsecond=0) >= day_end:
        return False
    return True


#------This Function builds the dose list of one day across medications---------
def reconcile_day(
    contexts: Iterable[MedicationContext],
    day_start: datetime,
    day_end: datetime,
    now: datetime,
    action_window_hours: float,
) -> List[AgendaItem]:
    items = []
    for ctx in contexts:
        if not _treatment_active(ctx.treatment, day_start, day_end):
            continue
        schedule = ScheduleModel.from_medication(ctx.medication)
        if not schedule.is_active_on(day_start, day_end):
            continue
        doses = classify_at(
            schedule,
            ctx.medication.id,
            ctx.log_entries,
            day_start,
            day_end,
            now,
            action_window_hours,
        )
        items.extend(
            AgendaItem(
                medication=ctx.medication,
                treatment=ctx.treatment,
                profile=ctx.profile,
                dose=dose,
            )
            for dose in doses
        )
    items.sort(key=lambda i: (i.dose.instance.scheduled_time, i.medication.name, i.medication.id))
    return items
