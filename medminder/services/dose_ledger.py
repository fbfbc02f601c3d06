import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from medminder.core.errors import StorageFailure
from medminder.db.base import DoseLogStore
from medminder.engine.schedule import truncate_to_minute
from medminder.models.dose_log import DoseLogEntry, DoseStatus

logger = logging.getLogger(__name__)


@dataclass
class LedgerWriteResult:
    ok: bool
    entry: Optional[DoseLogEntry] = None
    error: Optional[str] = None


class DoseLedger:

    def __init__(self, store: DoseLogStore):
        self.store = store

#------This Function records a dose, updating the entry of its slot if present---------
    async def record_dose(self, entry: DoseLogEntry) -> LedgerWriteResult:
        normalized = entry.model_copy(
            update={
                "scheduled_time": truncate_to_minute(entry.scheduled_time),
                "taken_time": entry.taken_time if entry.status == DoseStatus.TAKEN else None,
                "updated_at": datetime.utcnow(),
            }
        )
        try:
            stored = await self.store.upsert_slot(normalized)
        except StorageFailure as e:
            logger.error(
                f"Dose for medication {entry.medication_id} at {normalized.scheduled_time} was not recorded: {e}"
            )
            return LedgerWriteResult(ok=False, error=str(e))

        logger.info(
            f"Recorded {stored.status.value} dose {stored.id} for medication {stored.medication_id} at {stored.scheduled_time}"
        )
        return LedgerWriteResult(ok=True, entry=stored)

#------This Function returns the log of one medication---------
    async def query_by(self, medication_id: str) -> List[DoseLogEntry]:
        entries = await self.store.list_for_medication(medication_id)
        return sorted(entries, key=lambda e: (e.scheduled_time, e.id))

    async def query_all(self) -> List[DoseLogEntry]:
        return await self.store.list_all()

#------This Function returns taken and skipped doses, newest first---------
    async def history(self, medication_id: str) -> List[DoseLogEntry]:
        entries = [e for e in await self.query_by(medication_id) if e.is_logged]
        return sorted(entries, key=lambda e: e.taken_time or e.scheduled_time, reverse=True)

    async def delete_for_medication(self, medication_id: str) -> int:
        count = await self.store.delete_for_medication(medication_id)
        if count:
            logger.info(f"Deleted {count} dose log entr{'y' if count == 1 else 'ies'} of medication {medication_id}")
        return count
