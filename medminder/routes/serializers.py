from dataclasses import asdict
from datetime import datetime
from typing import Optional
from medminder.core.clock import to_wall_clock
from medminder.core.config import settings
from medminder.engine.progress import ProgressResult
from medminder.engine.reconciliation import AgendaItem, ClassifiedDose
from medminder.engine.reminders import ReminderResult
from medminder.models.dose_log import DoseLogEntry
from medminder.models.medication import Medication
from medminder.models.profile import Profile
from medminder.models.treatment import Treatment


#------This Function reads a request datetime as household wall-clock time---------
def wall_clock(value: Optional[datetime]) -> Optional[datetime]:
    return to_wall_clock(value, settings.timezone)


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_profile(profile: Profile) -> dict:
    data = profile.model_dump(mode="json")
    data["initials"] = profile.initials
    return data


def serialize_treatment(treatment: Treatment) -> dict:
    return treatment.model_dump(mode="json")


def serialize_medication(medication: Medication) -> dict:
    return medication.model_dump(mode="json")


def serialize_entry(entry: DoseLogEntry) -> dict:
    return entry.model_dump(mode="json")


def serialize_dose(dose: ClassifiedDose) -> dict:
    instance = dose.instance
    return {
        "medication_id": instance.medication_id,
        "scheduled_time": _iso(instance.scheduled_time),
        "status": instance.status.value,
        "view": dose.view.value,
        "actionable": dose.actionable,
        "taken_time": _iso(instance.taken_time),
        "log_id": instance.log_id,
    }


def serialize_agenda_item(item: AgendaItem) -> dict:
    data = serialize_dose(item.dose)
    data["medication"] = {
        "id": item.medication.id,
        "name": item.medication.name,
        "dosage": item.medication.dosage,
        "type": item.medication.type.value,
        "color": item.medication.color.value,
    }
    data["treatment_id"] = item.treatment.id if item.treatment else None
    data["profile"] = serialize_profile(item.profile) if item.profile else None
    return data


def serialize_progress(result: ProgressResult) -> dict:
    return asdict(result)


def serialize_reminder_result(result: ReminderResult) -> dict:
    return {
        "ok": result.ok,
        "trigger_ids": sorted(result.trigger_ids),
        "failed": sorted(result.failed),
        "error": result.error,
    }
