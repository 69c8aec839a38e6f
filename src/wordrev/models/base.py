"""Base model configuration."""
from datetime import UTC, datetime

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from wordrev.config import settings


def make_engine(url: str, echo: bool = False):
    """Create an engine usable from worker threads."""
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    return create_engine(url, echo=echo, connect_args=connect_args)


# Create SQLAlchemy engine
engine = make_engine(settings.database.url, settings.database.echo)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

# Create declarative base class
Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form SQLite hands back."""
    return datetime.now(UTC).replace(tzinfo=None)


def init_db(bind=None) -> None:
    """Initialize database."""
    from wordrev.models import models  # noqa: F401  registers the tables on Base

    Base.metadata.create_all(bind=bind or engine)  # Create tables if they don't exist
