from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import uuid4


class Treatment(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    start_date: datetime = Field(default_factory=datetime.utcnow)
    end_date: Optional[datetime] = None
    profile_id: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "treatments"
