import uuid

from sqlalchemy.orm import Session

from eventreg.models.users import User


class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def find_by_id(self, user_id: uuid.UUID) -> User | None:
        return self.db.get(User, user_id)
