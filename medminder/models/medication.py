from pydantic import BaseModel, Field
from datetime import datetime
from enum import Enum
from uuid import uuid4


class MedicationType(str, Enum):
    PILLS = "pills"
    CAPSULE = "capsule"
    DROPS = "drops"
    CREAM = "cream"
    LOTION = "lotion"
    INHALER = "inhaler"


class MedicationColor(str, Enum):
    RED = "red"
    BLUE = "blue"
    GREEN = "green"
    YELLOW = "yellow"
    PURPLE = "purple"
    ORANGE = "orange"
    TEAL = "teal"
    PINK = "pink"


class Medication(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    dosage: str = ""
    frequency_hours: int = 0
    duration_days: int = 0
    type: MedicationType = MedicationType.PILLS
    color: MedicationColor = MedicationColor.BLUE
    initial_time: datetime
    treatment_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    class Settings:
        name = "medications"
