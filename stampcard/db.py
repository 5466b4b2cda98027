from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, declarative_base

from stampcard.config import settings


def build_engine(database_url: str):
    # make_url raises ArgumentError on a malformed URL instead of letting it reach the driver
    url = make_url(database_url)

    connect_args = {}
    if url.get_backend_name() == "postgresql":
        connect_args = {"options": "-c timezone=utc"}
    elif url.get_backend_name() == "sqlite":
        connect_args = {"check_same_thread": False}

    return create_engine(url, connect_args=connect_args)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
Base = declarative_base()


def utcnow() -> datetime:
    # Keep naive UTC timestamps to match existing DB column types/semantics.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Aware datetimes are shifted to UTC; naive ones are taken as UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
