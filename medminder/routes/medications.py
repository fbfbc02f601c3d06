import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, field_validator
from typing import Optional
from medminder.core.firebase import get_current_user_uid
from medminder.models.dose_log import DoseStatus
from medminder.models.medication import Medication, MedicationColor, MedicationType
from medminder.routes.serializers import (
    serialize_dose,
    serialize_entry,
    serialize_medication,
    serialize_progress,
    serialize_reminder_result,
    wall_clock,
)
from medminder.services.container import get_dose_service, get_record_service
from medminder.services.dose_service import DoseService
from medminder.services.records import RecordService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/medications", tags=["medications"])


MAX_NAME_LENGTH = 200
MAX_DOSAGE_LENGTH = 100
MAX_FREQUENCY_HOURS = 24 * 7
MAX_DURATION_DAYS = 365


def _check_name(v: str) -> str:
    if not v or not v.strip():
        raise ValueError('Medication name cannot be empty')
    if len(v) > MAX_NAME_LENGTH:
        raise ValueError(f'Medication name cannot exceed {MAX_NAME_LENGTH} characters')
    return v.strip()


def _check_frequency(v: int) -> int:
    if v < 1 or v > MAX_FREQUENCY_HOURS:
        raise ValueError(f'frequency_hours must be between 1 and {MAX_FREQUENCY_HOURS}')
    return v


def _check_duration(v: int) -> int:
    if v < 1 or v > MAX_DURATION_DAYS:
        raise ValueError(f'duration_days must be between 1 and {MAX_DURATION_DAYS}')
    return v


class MedCreate(BaseModel):
    name: str
    dosage: str = ""
    frequency_hours: int
    duration_days: int
    type: MedicationType = MedicationType.PILLS
    color: MedicationColor = MedicationColor.BLUE
    initial_time: datetime
    treatment_id: str

    @field_validator('initial_time')
    @classmethod
    def validate_initial_time(cls, v: datetime) -> datetime:
        return wall_clock(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _check_name(v)

    @field_validator('dosage')
    @classmethod
    def validate_dosage(cls, v: str) -> str:
        if v and len(v) > MAX_DOSAGE_LENGTH:
            raise ValueError(f'Dosage cannot exceed {MAX_DOSAGE_LENGTH} characters')
        return v.strip() if v else ""

    @field_validator('frequency_hours')
    @classmethod
    def validate_frequency(cls, v: int) -> int:
        return _check_frequency(v)

    @field_validator('duration_days')
    @classmethod
    def validate_duration(cls, v: int) -> int:
        return _check_duration(v)


class MedUpdate(BaseModel):
    name: Optional[str] = None
    dosage: Optional[str] = None
    frequency_hours: Optional[int] = None
    duration_days: Optional[int] = None
    type: Optional[MedicationType] = None
    color: Optional[MedicationColor] = None
    initial_time: Optional[datetime] = None
    treatment_id: Optional[str] = None

    @field_validator('initial_time')
    @classmethod
    def validate_initial_time(cls, v: Optional[datetime]) -> Optional[datetime]:
        return wall_clock(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _check_name(v) if v is not None else v

    @field_validator('frequency_hours')
    @classmethod
    def validate_frequency(cls, v: Optional[int]) -> Optional[int]:
        return _check_frequency(v) if v is not None else v

    @field_validator('duration_days')
    @classmethod
    def validate_duration(cls, v: Optional[int]) -> Optional[int]:
        return _check_duration(v) if v is not None else v


class DoseLogRequest(BaseModel):
    scheduled_time: datetime
    status: DoseStatus = DoseStatus.TAKEN
    taken_time: Optional[datetime] = None
    update_future_doses: bool = False

    @field_validator('scheduled_time', 'taken_time')
    @classmethod
    def validate_wall_clock(cls, v: Optional[datetime]) -> Optional[datetime]:
        return wall_clock(v)

    @field_validator('status')
    @classmethod
    def validate_status(cls, v: DoseStatus) -> DoseStatus:
        if v == DoseStatus.PENDING:
            raise ValueError('status must be taken or skipped')
        return v


#------This Function lists medications---------
@router.get("/")
async def list_medications(
    treatment_id: Optional[str] = Query(None),
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return [serialize_medication(m) for m in await records.list_medications(treatment_id)]


#------This Function gets a medication---------
@router.get("/{med_id}")
async def get_medication(
    med_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return serialize_medication(await records.get_medication(med_id))


#------This Function creates a medication---------
@router.post("/", status_code=201)
async def create_medication(
    body: MedCreate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    medication = await records.create_medication(Medication(**body.model_dump()))
    logger.info(f"Medication {medication.id} created by {uid}")
    return serialize_medication(medication)


#------This Function updates a medication---------
@router.put("/{med_id}")
async def update_medication(
    med_id: str,
    body: MedUpdate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    changes = {k: v for k, v in body.model_dump(exclude_unset=True).items() if v is not None}
    return serialize_medication(await records.update_medication(med_id, changes))


#------This Function deletes a medication---------
@router.delete("/{med_id}")
async def delete_medication(
    med_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    await records.delete_medication(med_id)
    logger.info(f"Medication {med_id} deleted by {uid}")
    return {"status": "deleted", "id": med_id}


#------This Function lists the doses of a medication in a window---------
@router.get("/{med_id}/doses")
async def list_doses(
    med_id: str,
    start: Optional[datetime] = Query(None),
    end: Optional[datetime] = Query(None),
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    start, end = wall_clock(start), wall_clock(end)
    if start and end and end < start:
        raise ValueError("end cannot be before start")
    return [serialize_dose(d) for d in await doses.medication_doses(med_id, start, end)]


#------This Function logs a dose as taken or skipped---------
@router.post("/{med_id}/doses")
async def log_dose(
    med_id: str,
    body: DoseLogRequest,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    outcome = await doses.log_dose(
        med_id,
        body.scheduled_time,
        body.status,
        taken_time=body.taken_time,
        update_future_doses=body.update_future_doses,
    )
    if not outcome.ok:
        logger.error(f"Dose of medication {med_id} at {body.scheduled_time} was not logged: {outcome.error}")
        raise HTTPException(status_code=503, detail=f"Dose was not logged: {outcome.error}")

    return {
        "entry": serialize_entry(outcome.entry),
        "medication": serialize_medication(outcome.medication),
        "reanchored": outcome.reanchored,
        "reanchor_suggested": outcome.reanchor_suggested,
        "reminders": serialize_reminder_result(outcome.reminders) if outcome.reminders else None,
    }


#------This Function returns every dose up to now---------
@router.get("/{med_id}/timeline")
async def dose_timeline(
    med_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    timeline = await doses.dose_timeline(med_id)
    return {
        "missed_count": timeline.missed_count,
        "doses": [serialize_dose(d) for d in timeline.doses],
    }


#------This Function returns the next unlogged doses---------
@router.get("/{med_id}/upcoming")
async def upcoming_doses(
    med_id: str,
    limit: int = Query(10, ge=1, le=200),
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    return [t.isoformat() for t in await doses.upcoming_doses(med_id, limit)]


#------This Function returns the dose history---------
@router.get("/{med_id}/history")
async def dose_history(
    med_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    return [serialize_entry(e) for e in await doses.dose_history(med_id)]


@router.get("/{med_id}/progress")
async def medication_progress(
    med_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    return serialize_progress(await doses.medication_progress(med_id))
