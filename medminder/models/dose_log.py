from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum
from uuid import uuid4


class DoseStatus(str, Enum):
    PENDING = "pending"
    TAKEN = "taken"
    SKIPPED = "skipped"


LOGGED_STATUSES = (DoseStatus.TAKEN, DoseStatus.SKIPPED)


class DoseLogEntry(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    medication_id: str
    scheduled_time: datetime
    taken_time: Optional[datetime] = None
    status: DoseStatus = DoseStatus.PENDING
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_logged(self) -> bool:
        return self.status in LOGGED_STATUSES

    class Settings:
        name = "dose_logs"
