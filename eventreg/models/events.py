import enum
import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from eventreg.database.db import Base


class EventStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


CLOSED_EVENT_STATUSES = (EventStatus.CANCELLED.value, EventStatus.COMPLETED.value)


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    organizer_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    # NULL means unlimited
    capacity: Mapped[int | None] = mapped_column(Integer, nullable=True)
    registration_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=EventStatus.PUBLISHED.value)

    @property
    def is_unlimited(self) -> bool:
        return self.capacity is None

    def has_free_seat(self, occupied: int) -> bool:
        return self.is_unlimited or occupied < self.capacity

    @property
    def is_closed(self) -> bool:
        return self.status in CLOSED_EVENT_STATUSES
