import uuid

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from eventreg.database.db import get_db
from eventreg.services.errors import RegistrationError
from eventreg.services.notifications import CeleryNotificationService, NotificationService
from eventreg.services.registrations import RegistrationService


def get_current_user_id(x_user_id: uuid.UUID = Header()) -> uuid.UUID:
    """Caller identity, set by the authentication layer in front of this service."""
    return x_user_id


def get_notification_service() -> NotificationService:
    return CeleryNotificationService()


def get_registration_service(
    db: Session = Depends(get_db),
    notifier: NotificationService = Depends(get_notification_service),
) -> RegistrationService:
    return RegistrationService.from_session(db, notifier)


def to_http_exception(exc: RegistrationError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.message)
