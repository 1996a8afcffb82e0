"""
User notifications for registration outcomes.

The registration service only depends on the ``NotificationService``
protocol. In production notifications are handed to Celery so a slow or
failing delivery never holds up a registration request.
"""
import logging
import uuid
from typing import Protocol

from sqlalchemy.orm import Session

from eventreg.database.db import run_in_transaction
from eventreg.models.notifications import Notification, NotificationType
from eventreg.repositories.events import EventRepository
from eventreg.repositories.notifications import NotificationRepository
from eventreg.repositories.users import UserRepository

logger = logging.getLogger(__name__)


class NotificationService(Protocol):
    def notify_registration_confirmation(self, user_id: uuid.UUID, event_id: uuid.UUID) -> None: ...

    def notify_waitlist_available(self, user_id: uuid.UUID, event_id: uuid.UUID) -> None: ...


class CeleryNotificationService:
    """Enqueue notification tasks on the Celery broker."""

    def notify_registration_confirmation(self, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
        from eventreg.tasks import send_registration_confirmation_task

        send_registration_confirmation_task.delay(str(user_id), str(event_id))

    def notify_waitlist_available(self, user_id: uuid.UUID, event_id: uuid.UUID) -> None:
        from eventreg.tasks import send_waitlist_available_task

        send_waitlist_available_task.delay(str(user_id), str(event_id))


def record_notification(
    db: Session, *, user_id: uuid.UUID, event_id: uuid.UUID, kind: NotificationType
) -> Notification | None:
    """Persist the in-app notification for a registration outcome.

    Returns None when the user or event has disappeared since the task was
    queued; there is nobody left to notify.
    """
    user = UserRepository(db).find_by_id(user_id)
    event = EventRepository(db).find_by_id(event_id)
    if not user or not event:
        logger.info("Skipping %s notification: user %s or event %s not found", kind.value, user_id, event_id)
        return None

    if kind is NotificationType.REGISTRATION_CONFIRMED:
        title = "Registration Confirmed"
        message = f"You're registered for {event.title}"
    else:
        title = "Spot Available!"
        message = f"A spot opened up for {event.title}. You're now confirmed."

    notification = run_in_transaction(
        db,
        lambda session: NotificationRepository(session).create(
            Notification(user_id=user.id, event_id=event.id, type=kind.value, title=title, message=message)
        ),
    )

    logger.info("Delivered %s notification to %s for event %s", kind.value, user.email, event.id)
    return notification
