"""
SQLAlchemy models and async database session setup for the journal service.
"""

from sqlalchemy import (
    Column, String, Text, Boolean, DateTime, Date, ForeignKey, Integer, JSON, Uuid,
    UniqueConstraint, Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
from datetime import datetime, timezone
from typing import Optional
import uuid

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    __tablename__ = "users"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    username = Column(String(150), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    current_streak = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    last_entry_date = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())


class JournalEntry(Base):
    """Model for journal_entries table.

    The mood and analysis sub-documents are flattened into columns; the API
    schemas nest them back into ``mood`` and ``analysis``.
    """

    __tablename__ = "journal_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    content = Column(Text, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    mood_score = Column(Integer, nullable=True)
    mood_label = Column(String(50), nullable=True)
    tags = Column(JSONType, nullable=False, default=list)

    # Analysis
    supportive_response = Column(Text, nullable=True)
    identified_patterns = Column(JSONType, nullable=True)
    suggested_strategies = Column(JSONType, nullable=True)
    processed = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("ix_journal_entries_user_date", "user_id", "date"),
    )


class GratitudeEntry(Base):
    __tablename__ = "gratitude_entries"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    day = Column(Date, nullable=False)
    entries = Column(JSONType, nullable=False, default=list)  # [{"content": str}]
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "day", name="uq_gratitude_user_day"),
    )


engine = None
async_session_maker = None


async def init_database(database_url: str, create_tables: bool = True):
    """Initialize the database engine and session maker."""
    global engine, async_session_maker
    engine_kwargs = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        engine_kwargs["pool_recycle"] = 300
    engine = create_async_engine(database_url, **engine_kwargs)
    async_session_maker = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    if create_tables:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)


def get_session_maker() -> async_sessionmaker:
    """Session factory for work that runs outside a request (background analysis)."""
    if async_session_maker is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return async_session_maker


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with get_session_maker()() as session:
        try:
            yield session
        finally:
            await session.close()


async def close_database():
    """Close the database engine."""
    global engine, async_session_maker
    if engine:
        await engine.dispose()
    engine = None
    async_session_maker = None
