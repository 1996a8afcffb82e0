import uuid
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from eventreg.models.events import Event
from eventreg.models.registrations import SEAT_HOLDING_STATUSES, Registration, RegistrationStatus

UNLIMITED = -1


@dataclass(frozen=True)
class CapacityInfo:
    total: int
    available: int
    waitlist: int


class EventRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, event_id: uuid.UUID) -> Event | None:
        return self.db.get(Event, event_id)

    def lock_for_update(self, event_id: uuid.UUID) -> Event | None:
        """Load the event row with SELECT ... FOR UPDATE.

        Every writer that changes seat allocation for an event goes through
        this lock, so counts read afterwards stay valid until commit.
        """
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).first()

    def get_capacity_info(self, event_id: uuid.UUID) -> CapacityInfo | None:
        event = self.find_by_id(event_id)
        if not event:
            return None

        row = self.db.execute(
            select(
                func.count(Registration.id).filter(Registration.status.in_(SEAT_HOLDING_STATUSES)),
                func.count(Registration.id).filter(Registration.status == RegistrationStatus.WAITLISTED.value),
            ).where(Registration.event_id == event_id)
        ).one()
        occupied, waitlisted = int(row[0] or 0), int(row[1] or 0)

        if event.capacity is None:
            return CapacityInfo(total=UNLIMITED, available=UNLIMITED, waitlist=waitlisted)
        return CapacityInfo(
            total=event.capacity,
            available=max(0, event.capacity - occupied),
            waitlist=waitlisted,
        )
