import uuid
from datetime import datetime

from pydantic import BaseModel


class RegistrationCreate(BaseModel):
    event_id: uuid.UUID
    notes: str | None = None


class RegistrationUpdate(BaseModel):
    notes: str | None = None


class RegistrationOut(BaseModel):
    id: uuid.UUID
    event_id: uuid.UUID
    user_id: uuid.UUID
    status: str
    registered_at: datetime
    checked_in: datetime | None = None
    waitlist_position: int | None = None
    ticket_id: uuid.UUID | None = None
    notes: str | None = None

    class Config:
        from_attributes = True
