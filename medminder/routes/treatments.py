import logging
from datetime import datetime
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator, model_validator
from typing import Optional
from medminder.core.firebase import get_current_user_uid
from medminder.models.treatment import Treatment
from medminder.routes.serializers import (
    serialize_agenda_item,
    serialize_progress,
    serialize_treatment,
    wall_clock,
)
from medminder.services.container import get_dose_service, get_record_service
from medminder.services.dose_service import DoseService
from medminder.services.records import RecordService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/treatments", tags=["treatments"])


MAX_NAME_LENGTH = 200


class TreatmentCreate(BaseModel):
    name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    profile_id: Optional[str] = None

    @field_validator('start_date', 'end_date')
    @classmethod
    def validate_wall_clock(cls, v: Optional[datetime]) -> Optional[datetime]:
        return wall_clock(v)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError('Treatment name cannot be empty')
        if len(v) > MAX_NAME_LENGTH:
            raise ValueError(f'Treatment name cannot exceed {MAX_NAME_LENGTH} characters')
        return v.strip()

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('end_date cannot be before start_date')
        return self


class TreatmentUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    profile_id: Optional[str] = None

    @field_validator('start_date', 'end_date')
    @classmethod
    def validate_wall_clock(cls, v: Optional[datetime]) -> Optional[datetime]:
        return wall_clock(v)


#------This Function lists treatments---------
@router.get("/")
async def list_treatments(
    profile_id: Optional[str] = Query(None),
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return [serialize_treatment(t) for t in await records.list_treatments(profile_id)]


#------This Function gets a treatment---------
@router.get("/{treatment_id}")
async def get_treatment(
    treatment_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    return serialize_treatment(await records.get_treatment(treatment_id))


#------This Function creates a treatment---------
@router.post("/", status_code=201)
async def create_treatment(
    body: TreatmentCreate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    fields = body.model_dump(exclude_none=True)
    treatment = await records.create_treatment(Treatment(**fields))
    return serialize_treatment(treatment)


#------This Function updates a treatment---------
@router.put("/{treatment_id}")
async def update_treatment(
    treatment_id: str,
    body: TreatmentUpdate,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    treatment = await records.get_treatment(treatment_id)
    changes = {
        k: v for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k in ("end_date", "profile_id")
    }
    treatment = treatment.model_copy(update=changes)
    if treatment.end_date and treatment.end_date < treatment.start_date:
        raise ValueError("end_date cannot be before start_date")
    return serialize_treatment(await records.update_treatment(treatment))


#------This Function deletes a treatment---------
@router.delete("/{treatment_id}")
async def delete_treatment(
    treatment_id: str,
    uid: str = Depends(get_current_user_uid),
    records: RecordService = Depends(get_record_service),
):
    await records.delete_treatment(treatment_id)
    logger.info(f"Treatment {treatment_id} deleted by {uid}")
    return {"status": "deleted", "id": treatment_id}


#------This Function returns the progress of a treatment---------
@router.get("/{treatment_id}/progress")
async def treatment_progress(
    treatment_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    return serialize_progress(await doses.treatment_progress(treatment_id))


#------This Function returns the dose registry of a treatment---------
@router.get("/{treatment_id}/registry")
async def treatment_registry(
    treatment_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    registry = await doses.treatment_registry(treatment_id)
    return {
        "is_completed": registry.is_completed,
        "doses": [serialize_agenda_item(r) for r in registry.rows],
    }
