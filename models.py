# models.py
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, field_validator

STATUS_PENDING = "pending"
DEFAULT_PRIORITY = "medium"


# --- Stored Entity ---
class Task(BaseModel):
    id: int
    title: str
    description: str = ""
    due_date: str = ""
    priority: str = ""
    status: str = STATUS_PENDING
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        # Hand-edited snapshots may carry naive timestamps.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# --- Request Bodies ---
class TaskCreate(BaseModel):
    title: str = ""
    description: str = ""
    due_date: str = ""
    priority: str = ""


class TaskUpdate(TaskCreate):
    status: str = ""


class TokenRequest(BaseModel):
    password: Optional[str] = None


# --- Responses ---
class TokenResponse(BaseModel):
    token: str
    message: str
