import uuid

from pydantic import BaseModel


# ---------- Event ----------
class EventCapacityOut(BaseModel):
    event_id: uuid.UUID
    total: int
    available: int
    waitlist: int

    class Config:
        from_attributes = True
