import logging

from eventreg.core.config import get_log_level

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once at process start-up."""
    logging.basicConfig(level=(level or get_log_level()).upper(), format=LOG_FORMAT)
    # SQL echo is too noisy outside debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
