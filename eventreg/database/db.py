from typing import Callable, TypeVar

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from eventreg.core.config import get_database_url, get_statement_timeout_ms

T = TypeVar("T")


class Base(DeclarativeBase):
    pass


def make_engine(url: str | None = None) -> Engine:
    url = url or get_database_url()
    connect_args = {}
    if url.startswith("postgresql"):
        # Bound lock waits on the event row
        connect_args["options"] = f"-c statement_timeout={get_statement_timeout_ms()}"
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


engine: Engine = make_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine = engine) -> None:
    """Create all tables (in production, use migrations such as Alembic)."""
    # Import models so that they register with Base.metadata
    from eventreg.models import events, notifications, registrations, users  # noqa: F401

    Base.metadata.create_all(bind=bind)


def get_db():
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(db: Session, fn: Callable[[Session], T]) -> T:
    """Run ``fn`` and commit, reusing the transaction the session already began."""
    if db.in_transaction():
        # Use the existing transaction and commit it
        try:
            result = fn(db)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return result
    # Start a new transaction
    with db.begin():
        return fn(db)
