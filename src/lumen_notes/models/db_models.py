"""SQLAlchemy database models for the Lumen Notes key-value store."""
import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from lumen_notes.config import config

# Create base class for SQLAlchemy models
Base = declarative_base()


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class DBEntry(Base):
    """One key of the durable key-value store."""
    __tablename__ = "kv_entries"
    key = Column(String(512), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of the entry."""
        return f"<Entry(key='{self.key}', size={len(self.value or '')})>"


def init_db(db_url: Optional[str] = None) -> Engine:
    """Create the engine and the schema if it does not exist yet."""
    engine = create_engine(db_url or config.get_db_url())
    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = create_engine(config.get_db_url())
    return sessionmaker(bind=engine)
