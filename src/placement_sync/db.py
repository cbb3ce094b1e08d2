"""Database connection and session management."""

from collections.abc import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from placement_sync.config import settings
from placement_sync.models import Base

engine = create_engine(
    settings.database_url,
    echo=settings.database_echo,
)

session_factory = sessionmaker(
    engine,
    class_=Session,
    expire_on_commit=False,
)


def get_session() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    with session_factory() as session:
        yield session


def init_db() -> None:
    """Initialize database tables."""
    Base.metadata.create_all(engine)
