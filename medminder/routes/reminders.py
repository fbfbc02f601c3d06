import logging
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from medminder.core.firebase import get_current_user_uid
from medminder.routes.serializers import serialize_reminder_result, wall_clock
from medminder.services.container import get_dose_service
from medminder.services.dose_service import DoseService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/reminders", tags=["reminders"])


#------This Function lists pending reminder triggers---------
@router.get("/pending")
async def pending_reminders(
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    ids = await doses.pending_reminders()
    return {"count": len(ids), "trigger_ids": ids}


#------This Function resyncs every medication's reminders---------
@router.post("/resync")
async def resync_all(
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    results = await doses.resync_all()
    logger.info(f"Resynced reminders of {len(results)} medication(s) for {uid}")
    return {med_id: serialize_reminder_result(r) for med_id, r in results.items()}


#------This Function resyncs one medication's reminders---------
@router.post("/{medication_id}/resync")
async def resync_medication(
    medication_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    result = await doses.resync_medication(medication_id)
    if not result.ok:
        raise HTTPException(status_code=503, detail=f"Reminders could not be resynced: {result.error}")
    return serialize_reminder_result(result)


#------This Function cancels every reminder of a medication---------
@router.delete("/{medication_id}")
async def cancel_reminders(
    medication_id: str,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    result = await doses.cancel_reminders(medication_id)
    if not result.ok:
        raise HTTPException(status_code=503, detail=f"Reminders could not be cancelled: {result.error}")
    return serialize_reminder_result(result)


#------This Function cancels the reminder of one dose---------
@router.delete("/{medication_id}/{scheduled_time}")
async def cancel_reminder(
    medication_id: str,
    scheduled_time: datetime,
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    result = await doses.cancel_reminder(medication_id, wall_clock(scheduled_time))
    if not result.ok:
        raise HTTPException(status_code=503, detail=f"Reminder could not be cancelled: {result.error}")
    return serialize_reminder_result(result)
