from abc import ABC, abstractmethod
from datetime import datetime
from typing import Generic, List, Optional, Type, TypeVar
from pydantic import BaseModel
from medminder.models.dose_log import DoseLogEntry

RecordT = TypeVar("RecordT", bound=BaseModel)


def slot_key(scheduled_time: datetime) -> datetime:
    return scheduled_time.replace(second=0, microsecond=0)


#------This Class defines whole-record persistence for one record type---------
class RecordStore(ABC, Generic[RecordT]):

    model: Type[RecordT]

    @property
    def kind(self) -> str:
        return self.model.__name__

    @abstractmethod
    async def list_all(self) -> List[RecordT]:
        ...

    @abstractmethod
    async def get(self, record_id: str) -> Optional[RecordT]:
        ...

    @abstractmethod
    async def insert(self, record: RecordT) -> RecordT:
        ...

    @abstractmethod
    async def update(self, record: RecordT) -> RecordT:
        """Replace the stored record. Raises NotFoundError if it does not exist."""

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        ...


#------This Class defines persistence for the dose log---------
class DoseLogStore(ABC):

    @abstractmethod
    async def list_all(self) -> List[DoseLogEntry]:
        ...

    @abstractmethod
    async def list_for_medication(self, medication_id: str) -> List[DoseLogEntry]:
        ...

    @abstractmethod
    async def upsert_slot(self, entry: DoseLogEntry) -> DoseLogEntry:
        """Insert the entry, or update the one already occupying its
        (medication_id, minute-truncated scheduled_time) slot. The stored
        entry is returned; on update it keeps the id it was first stored with."""

    @abstractmethod
    async def delete_for_medication(self, medication_id: str) -> int:
        ...


class Stores:

    def __init__(
        self,
        profiles: RecordStore,
        treatments: RecordStore,
        medications: RecordStore,
        dose_logs: DoseLogStore,
    ):
        self.profiles = profiles
        self.treatments = treatments
        self.medications = medications
        self.dose_logs = dose_logs
