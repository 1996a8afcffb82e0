import uuid

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from eventreg.models.registrations import SEAT_HOLDING_STATUSES, Registration, RegistrationStatus


class RegistrationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, registration: Registration) -> Registration:
        self.db.add(registration)
        self.db.flush()  # surfaces unique index violations inside the transaction
        return registration

    def find_by_id(self, registration_id: uuid.UUID) -> Registration | None:
        return self.db.get(Registration, registration_id)

    def find_by_id_for_update(self, registration_id: uuid.UUID) -> Registration | None:
        stmt = (
            select(Registration)
            .where(Registration.id == registration_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).first()

    def find_active_by_event_and_user(self, event_id: uuid.UUID, user_id: uuid.UUID) -> Registration | None:
        stmt = select(Registration).where(
            Registration.event_id == event_id,
            Registration.user_id == user_id,
            Registration.status != RegistrationStatus.CANCELLED.value,
        )
        return self.db.scalars(stmt).first()

    def find_by_event(self, event_id: uuid.UUID) -> list[Registration]:
        stmt = (
            select(Registration)
            .where(Registration.event_id == event_id)
            .order_by(Registration.registered_at.asc())
        )
        return list(self.db.scalars(stmt))

    def find_by_user(self, user_id: uuid.UUID) -> list[Registration]:
        stmt = (
            select(Registration)
            .where(Registration.user_id == user_id)
            .order_by(Registration.registered_at.desc())
        )
        return list(self.db.scalars(stmt))

    def count_occupied_seats(self, event_id: uuid.UUID) -> int:
        count = self.db.scalar(
            select(func.count(Registration.id)).where(
                Registration.event_id == event_id,
                Registration.status.in_(SEAT_HOLDING_STATUSES),
            )
        )
        return int(count or 0)

    def next_waitlist_position(self, event_id: uuid.UUID) -> int:
        current = self.db.scalar(
            select(func.max(Registration.waitlist_position)).where(
                Registration.event_id == event_id,
                Registration.status == RegistrationStatus.WAITLISTED.value,
            )
        )
        return int(current or 0) + 1

    def first_waitlisted(self, event_id: uuid.UUID) -> Registration | None:
        """Head of the waitlist, locked for promotion."""
        stmt = (
            select(Registration)
            .where(
                Registration.event_id == event_id,
                Registration.status == RegistrationStatus.WAITLISTED.value,
            )
            .order_by(Registration.waitlist_position.asc())
            .limit(1)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return self.db.scalars(stmt).first()

    def find_cancellable_by_event(self, event_id: uuid.UUID) -> list[Registration]:
        stmt = select(Registration).where(
            Registration.event_id == event_id,
            Registration.status.in_(
                (RegistrationStatus.CONFIRMED.value, RegistrationStatus.WAITLISTED.value)
            ),
        )
        return list(self.db.scalars(stmt))
