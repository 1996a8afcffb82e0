import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from eventreg.models.notifications import Notification


class NotificationRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, notification: Notification) -> Notification:
        self.db.add(notification)
        self.db.flush()
        return notification

    def find_by_user(self, user_id: uuid.UUID) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id).order_by(Notification.created_at.desc())
        return list(self.db.scalars(stmt))
