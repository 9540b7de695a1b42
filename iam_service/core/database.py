"""
Database configuration, session management and rollback compensation
"""

from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine
from typing import Callable
import structlog

from iam_service.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

COMPENSATIONS_KEY = "rollback_compensations"

_connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    _connect_args = {"check_same_thread": False}

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DB_ECHO,
    pool_pre_ping=True,
    connect_args=_connect_args,
)


def init_db():
    """Initialize database tables"""
    # Imported for table registration on SQLModel.metadata
    import iam_service.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created")


def get_session():
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session


def register_rollback_compensation(
    session: Session,
    action: Callable[[], None],
    description: str,
) -> None:
    """
    Register a best-effort action that runs if the session's current
    transaction rolls back.

    Actions are discarded once the transaction commits. They run newest
    first and must not touch the session itself.
    """
    session.info.setdefault(COMPENSATIONS_KEY, []).append((description, action))


@event.listens_for(Session, "after_commit")
def _discard_compensations(session):
    session.info.pop(COMPENSATIONS_KEY, None)


@event.listens_for(Session, "after_rollback")
def _run_compensations(session):
    compensations = session.info.pop(COMPENSATIONS_KEY, [])
    for description, action in reversed(compensations):
        logger.warning(f"Transaction rolled back, running compensation: {description}")
        try:
            action()
        except Exception as e:
            logger.error(f"Compensation failed ({description}): {e}")
