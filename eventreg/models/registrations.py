import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from eventreg.database.db import Base
from eventreg.models.events import Event
from eventreg.services.errors import ValidationError

NOTES_MAX_LENGTH = 500


class RegistrationStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CANCELLED = "cancelled"
    CHECKED_IN = "checked_in"


# Statuses that occupy a seat at the event
SEAT_HOLDING_STATUSES = (RegistrationStatus.CONFIRMED.value, RegistrationStatus.CHECKED_IN.value)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Registration(Base):
    __tablename__ = "registrations"
    __table_args__ = (
        # One live registration per user and event; cancelled rows are history.
        Index(
            "uq_registrations_event_user_active",
            "event_id",
            "user_id",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
        Index("ix_registrations_event_status", "event_id", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=RegistrationStatus.CONFIRMED.value)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    checked_in: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    waitlist_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ticket_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    event: Mapped[Event] = relationship()

    @staticmethod
    def validate_notes(notes: str | None) -> None:
        if notes is not None and len(notes) > NOTES_MAX_LENGTH:
            raise ValidationError(f"Notes must be at most {NOTES_MAX_LENGTH} characters")

    @property
    def holds_seat(self) -> bool:
        return self.status in SEAT_HOLDING_STATUSES

    def check_in(self, at: datetime | None = None) -> None:
        if self.status != RegistrationStatus.CONFIRMED.value:
            raise ValidationError("Only confirmed registrations can be checked in")
        self.status = RegistrationStatus.CHECKED_IN.value
        self.checked_in = at or utcnow()

    def cancel(self) -> None:
        if self.status == RegistrationStatus.CANCELLED.value:
            raise ValidationError("Registration already cancelled")
        if self.status == RegistrationStatus.CHECKED_IN.value:
            raise ValidationError("Checked-in registrations cannot be cancelled")
        self.status = RegistrationStatus.CANCELLED.value
        self.waitlist_position = None

    def promote(self) -> None:
        """Move a waitlisted registration into a confirmed seat."""
        if self.status != RegistrationStatus.WAITLISTED.value:
            raise ValidationError("Only waitlisted registrations can be promoted")
        self.status = RegistrationStatus.CONFIRMED.value
        self.waitlist_position = None
