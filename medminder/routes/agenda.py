import logging
from datetime import date, timedelta
from fastapi import APIRouter, Depends, Query
from typing import Optional
from medminder.core.firebase import get_current_user_uid
from medminder.routes.serializers import serialize_agenda_item
from medminder.services.container import get_dose_service
from medminder.services.dose_service import DayAgenda, DoseService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/agenda", tags=["agenda"])


#------This Function serializes a day agenda---------
def _serialize_agenda(agenda: DayAgenda) -> dict:
    return {
        "day": agenda.day.isoformat(),
        "doses": [serialize_agenda_item(i) for i in agenda.items],
        "sections": [
            {
                "title": s.title,
                "is_current": s.is_current,
                "doses": [serialize_agenda_item(i) for i in s.items],
            }
            for s in agenda.sections
        ],
    }


#------This Function returns the agenda of a day---------
@router.get("/")
async def day_agenda(
    day: Optional[date] = Query(None),
    profile_id: Optional[str] = Query(None),
    include_logged: bool = Query(True),
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    day = day or doses.clock.today()
    return _serialize_agenda(await doses.day_agenda(day, profile_id, include_logged))


@router.get("/today")
async def today_agenda(
    profile_id: Optional[str] = Query(None),
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    return _serialize_agenda(await doses.day_agenda(doses.clock.today(), profile_id))


@router.get("/tomorrow")
async def tomorrow_agenda(
    profile_id: Optional[str] = Query(None),
    uid: str = Depends(get_current_user_uid),
    doses: DoseService = Depends(get_dose_service),
):
    day = doses.clock.today() + timedelta(days=1)
    return _serialize_agenda(await doses.day_agenda(day, profile_id))
