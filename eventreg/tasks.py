import uuid

from eventreg.core.celery_config import celery_app
from eventreg.database.db import SessionLocal
from eventreg.models.notifications import NotificationType
from eventreg.services.notifications import record_notification


def _deliver(user_id: str, event_id: str, kind: NotificationType) -> None:
    db = SessionLocal()
    try:
        record_notification(db, user_id=uuid.UUID(user_id), event_id=uuid.UUID(event_id), kind=kind)
    finally:
        db.close()


@celery_app.task(bind=True)
def send_registration_confirmation_task(self, user_id: str, event_id: str):
    """Tell a user their seat is confirmed."""
    _deliver(user_id, event_id, NotificationType.REGISTRATION_CONFIRMED)


@celery_app.task(bind=True)
def send_waitlist_available_task(self, user_id: str, event_id: str):
    """Tell a user they were promoted off the waitlist."""
    _deliver(user_id, event_id, NotificationType.WAITLIST_AVAILABLE)
