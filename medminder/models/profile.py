from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import uuid4


class Profile(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    age: int = 0
    image_name: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def initials(self) -> str:
        parts = [p for p in self.name.split(" ") if p]
        if not parts:
            return "?"
        if len(parts) > 1:
            return f"{parts[0][0]}{parts[-1][0]}".upper()
        return parts[0][0].upper()

    class Settings:
        name = "profiles"
