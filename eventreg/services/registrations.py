import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable

import redis
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventreg.core.config import get_lock_timeouts, get_redis_url
from eventreg.database.db import run_in_transaction
from eventreg.models.registrations import Registration, RegistrationStatus, utcnow
from eventreg.repositories.events import CapacityInfo, EventRepository
from eventreg.repositories.registrations import RegistrationRepository
from eventreg.repositories.users import UserRepository
from eventreg.schemas.registrations import RegistrationCreate, RegistrationUpdate
from eventreg.services.errors import (
    ConflictError,
    ForbiddenError,
    LockUnavailableError,
    NotFoundError,
    ValidationError,
)
from eventreg.services.notifications import NotificationService

logger = logging.getLogger(__name__)


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RegistrationService:
    """
    Registration, waitlist and check-in flows for events.

    Seat allocation for an event is serialized twice: a Redis lock keyed on
    the event keeps concurrent requests from different processes out of the
    critical section, and inside it the transaction holds ``FOR UPDATE`` on
    the event row so the database itself guarantees that confirmed seats
    never exceed capacity.
    """

    def __init__(
        self,
        db: Session,
        *,
        registrations: RegistrationRepository,
        events: EventRepository,
        users: UserRepository,
        notifier: NotificationService,
        redis_client=None,
    ):
        self.db = db
        self.registrations = registrations
        self.events = events
        self.users = users
        self.notifier = notifier
        self._redis = redis_client

    @classmethod
    def from_session(cls, db: Session, notifier: NotificationService, redis_client=None) -> "RegistrationService":
        return cls(
            db,
            registrations=RegistrationRepository(db),
            events=EventRepository(db),
            users=UserRepository(db),
            notifier=notifier,
            redis_client=redis_client,
        )

    @property
    def redis(self):
        if self._redis is None:
            self._redis = get_redis_client()
        return self._redis

    @contextmanager
    def _event_lock(self, event_id: uuid.UUID):
        """Hold ``event_lock:{event_id}`` for the duration of the block."""
        timeout, blocking_timeout = get_lock_timeouts()
        lock_key = f"event_lock:{event_id}"
        lock = self.redis.lock(lock_key, timeout=timeout, blocking_timeout=blocking_timeout)

        try:
            acquired = lock.acquire(blocking=True, blocking_timeout=blocking_timeout)
        except redis.exceptions.RedisError as e:
            raise LockUnavailableError("Could not acquire registration lock, please try again.") from e
        if not acquired:
            raise LockUnavailableError("Could not acquire registration lock, please try again.")

        try:
            yield
        finally:
            try:
                lock.release()
            except redis.exceptions.LockError:
                # The row lock still protected the transaction.
                logger.warning("Lock %s expired before it was released", lock_key)

    def _notify(self, send: Callable[[uuid.UUID, uuid.UUID], None], user_id: uuid.UUID, event_id: uuid.UUID) -> None:
        try:
            send(user_id, event_id)
        except Exception:
            logger.warning(
                "Notification %s failed for user %s, event %s",
                getattr(send, "__name__", send),
                user_id,
                event_id,
                exc_info=True,
            )

    # ---------- Registration ----------

    def register_for_event(self, user_id: uuid.UUID, payload: RegistrationCreate) -> Registration:
        Registration.validate_notes(payload.notes)

        event = self.events.find_by_id(payload.event_id)
        if not event:
            raise NotFoundError("Event not found")
        if not self.users.find_by_id(user_id):
            raise NotFoundError("User not found")
        if event.is_closed:
            raise ValidationError("Event is not open for registration")
        if self.registrations.find_active_by_event_and_user(event.id, user_id):
            raise ConflictError("Already registered for this event")
        if event.registration_deadline and _as_utc(event.registration_deadline) < utcnow():
            raise ValidationError("Registration deadline has passed")

        event_id = event.id
        with self._event_lock(event_id):
            try:
                registration, promoted = run_in_transaction(
                    self.db, lambda db: self._allocate_seat(event_id, user_id, payload.notes)
                )
            except IntegrityError as e:
                raise ConflictError("Already registered for this event") from e

        for waiting in promoted:
            logger.info("Promoted registration %s from the waitlist of event %s", waiting.id, event_id)
            self._notify(self.notifier.notify_waitlist_available, waiting.user_id, event_id)
        logger.info(
            "User %s registered for event %s as %s (waitlist position %s)",
            user_id,
            event_id,
            registration.status,
            registration.waitlist_position,
        )
        if registration.status == RegistrationStatus.CONFIRMED.value:
            self._notify(self.notifier.notify_registration_confirmation, user_id, event_id)
        return registration

    def _allocate_seat(
        self, event_id: uuid.UUID, user_id: uuid.UUID, notes: str | None
    ) -> tuple[Registration, list[Registration]]:
        """Decide confirmed vs. waitlisted and insert, under the event row lock.

        Seats opened by a capacity increase go to the waitlist, in order,
        before the new registrant is considered. Returns the new registration
        and any registrations promoted on the way.
        """
        event = self.events.lock_for_update(event_id)
        if not event:
            raise NotFoundError("Event not found")
        # Re-check now that concurrent writers for this event are excluded
        if self.registrations.find_active_by_event_and_user(event_id, user_id):
            raise ConflictError("Already registered for this event")

        occupied = self.registrations.count_occupied_seats(event_id)
        promoted = []
        while event.has_free_seat(occupied):
            waiting = self.registrations.first_waitlisted(event_id)
            if not waiting:
                break
            waiting.promote()
            self.db.flush()
            promoted.append(waiting)
            occupied += 1

        status = RegistrationStatus.CONFIRMED.value
        waitlist_position = None
        if not event.has_free_seat(occupied):
            status = RegistrationStatus.WAITLISTED.value
            waitlist_position = self.registrations.next_waitlist_position(event_id)

        registration = self.registrations.create(
            Registration(
                id=uuid.uuid4(),
                event_id=event_id,
                user_id=user_id,
                status=status,
                registered_at=utcnow(),
                waitlist_position=waitlist_position,
                notes=notes,
            )
        )
        return registration, promoted

    # ---------- Cancellation ----------

    def cancel_registration(self, user_id: uuid.UUID, registration_id: uuid.UUID) -> Registration:
        registration = self.registrations.find_by_id(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")
        if registration.user_id != user_id:
            raise ForbiddenError("Not allowed to cancel this registration")
        if registration.status == RegistrationStatus.CANCELLED.value:
            raise ValidationError("Registration already cancelled")

        event_id = registration.event_id
        with self._event_lock(event_id):
            promoted = run_in_transaction(self.db, lambda db: self._cancel_and_promote(event_id, registration_id))

        logger.info("Registration %s cancelled by user %s", registration_id, user_id)
        for waiting in promoted:
            logger.info("Promoted registration %s from the waitlist of event %s", waiting.id, event_id)
            self._notify(self.notifier.notify_waitlist_available, waiting.user_id, event_id)
        return registration

    def _cancel_and_promote(self, event_id: uuid.UUID, registration_id: uuid.UUID) -> list[Registration]:
        event = self.events.lock_for_update(event_id)
        registration = self.registrations.find_by_id_for_update(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")

        held_seat = registration.holds_seat
        registration.cancel()
        self.db.flush()

        promoted = []
        # Grandfathered seats above a reduced capacity are not refilled.
        if held_seat and event is not None:
            if event.has_free_seat(self.registrations.count_occupied_seats(event_id)):
                waiting = self.registrations.first_waitlisted(event_id)
                if waiting:
                    waiting.promote()
                    promoted.append(waiting)
        self.db.flush()
        return promoted

    def process_event_cancellation(self, event_id: uuid.UUID) -> int:
        """Cancel every open registration of an event. Returns how many changed."""
        if not self.events.find_by_id(event_id):
            raise NotFoundError("Event not found")

        def _cancel_all(db: Session) -> int:
            self.events.lock_for_update(event_id)
            open_registrations = self.registrations.find_cancellable_by_event(event_id)
            for registration in open_registrations:
                registration.cancel()
            db.flush()
            return len(open_registrations)

        with self._event_lock(event_id):
            cancelled = run_in_transaction(self.db, _cancel_all)
        logger.info("Cancelled %d registrations for event %s", cancelled, event_id)
        return cancelled

    # ---------- Check-in ----------

    def check_in_user(self, organizer_id: uuid.UUID, registration_id: uuid.UUID) -> Registration:
        registration = self.registrations.find_by_id(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")

        event = self.events.find_by_id(registration.event_id)
        if not event or event.organizer_id != organizer_id:
            raise ForbiddenError("Not allowed to check in attendees for this event")

        def _check_in(db: Session) -> Registration:
            locked = self.registrations.find_by_id_for_update(registration_id)
            if not locked:
                raise NotFoundError("Registration not found")
            locked.check_in()
            db.flush()
            return locked

        checked_in = run_in_transaction(self.db, _check_in)
        logger.info("Registration %s checked in by organizer %s", registration_id, organizer_id)
        return checked_in

    # ---------- Queries ----------

    def get_user_registrations(self, user_id: uuid.UUID) -> list[Registration]:
        return self.registrations.find_by_user(user_id)

    def get_event_registrations(self, event_id: uuid.UUID, organizer_id: uuid.UUID) -> list[Registration]:
        event = self.events.find_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        if event.organizer_id != organizer_id:
            raise ForbiddenError("Not allowed to view registrations for this event")
        return self.registrations.find_by_event(event_id)

    def get_registration_by_id(self, registration_id: uuid.UUID) -> Registration | None:
        return self.registrations.find_by_id(registration_id)

    def update_registration(
        self, user_id: uuid.UUID, registration_id: uuid.UUID, payload: RegistrationUpdate
    ) -> Registration:
        """Update the attendee-editable fields of a registration (only notes)."""
        Registration.validate_notes(payload.notes)

        registration = self.registrations.find_by_id(registration_id)
        if not registration:
            raise NotFoundError("Registration not found")
        if registration.user_id != user_id:
            raise ForbiddenError("Not allowed to update this registration")
        if registration.status == RegistrationStatus.CANCELLED.value:
            raise ValidationError("Cancelled registrations cannot be updated")

        def _update(db: Session) -> Registration:
            if "notes" in payload.model_fields_set:
                registration.notes = payload.notes
            db.flush()
            return registration

        return run_in_transaction(self.db, _update)

    def get_event_capacity(self, event_id: uuid.UUID) -> CapacityInfo:
        info = self.events.get_capacity_info(event_id)
        if info is None:
            raise NotFoundError("Event not found")
        return info
