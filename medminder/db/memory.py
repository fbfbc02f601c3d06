import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Type
from medminder.core.errors import NotFoundError
from medminder.db.base import DoseLogStore, RecordStore, RecordT, Stores, slot_key
from medminder.models.dose_log import DoseLogEntry
from medminder.models.medication import Medication
from medminder.models.profile import Profile
from medminder.models.treatment import Treatment

logger = logging.getLogger(__name__)


# Records are copied on the way in and out so callers never share state
# with the store.
class InMemoryRecordStore(RecordStore[RecordT]):

    def __init__(self, model: Type[RecordT]):
        self.model = model
        self._records: Dict[str, RecordT] = {}

    async def list_all(self) -> List[RecordT]:
        return [r.model_copy(deep=True) for r in self._records.values()]

    async def get(self, record_id: str) -> Optional[RecordT]:
        record = self._records.get(record_id)
        return record.model_copy(deep=True) if record else None

    async def insert(self, record: RecordT) -> RecordT:
        if record.id in self._records:
            raise ValueError(f"{self.kind} {record.id} already exists")
        self._records[record.id] = record.model_copy(deep=True)
        return record

    async def update(self, record: RecordT) -> RecordT:
        if record.id not in self._records:
            raise NotFoundError(self.kind, record.id)
        self._records[record.id] = record.model_copy(deep=True)
        return record

    async def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None


class InMemoryDoseLogStore(DoseLogStore):

    def __init__(self):
        self._entries: Dict[Tuple[str, datetime], DoseLogEntry] = {}

    async def list_all(self) -> List[DoseLogEntry]:
        return [e.model_copy(deep=True) for e in self._entries.values()]

    async def list_for_medication(self, medication_id: str) -> List[DoseLogEntry]:
        return [
            e.model_copy(deep=True)
            for (med_id, _), e in self._entries.items()
            if med_id == medication_id
        ]

    async def upsert_slot(self, entry: DoseLogEntry) -> DoseLogEntry:
        key = (entry.medication_id, slot_key(entry.scheduled_time))
        existing = self._entries.get(key)
        stored = entry.model_copy(update={"scheduled_time": key[1]}, deep=True)
        if existing is not None:
            stored.id = existing.id
            stored.created_at = existing.created_at
        self._entries[key] = stored
        return stored.model_copy(deep=True)

    async def delete_for_medication(self, medication_id: str) -> int:
        keys = [k for k in self._entries if k[0] == medication_id]
        for key in keys:
            del self._entries[key]
        return len(keys)


#------This Function builds a fresh set of in-memory stores---------
def create_memory_stores() -> Stores:
    logger.info("Using in-memory record stores")
    return Stores(
        profiles=InMemoryRecordStore(Profile),
        treatments=InMemoryRecordStore(Treatment),
        medications=InMemoryRecordStore(Medication),
        dose_logs=InMemoryDoseLogStore(),
    )
