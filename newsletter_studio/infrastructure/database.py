"""Database management and models for Newsletter Studio."""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, String, Text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import delete, select, update

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.models.subscriber import SubscribeOutcome, Subscriber, normalize_email

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; treat naive values as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SubscriberRecord(Base):
    """Newsletter subscriber."""

    __tablename__ = "subscribers"

    id = Column(String(32), primary_key=True, default=lambda: uuid.uuid4().hex)
    email = Column(String(320), unique=True, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_subscribers_active", "is_active"),
    )

    def __repr__(self):
        return f"<SubscriberRecord(email={self.email}, active={self.is_active})>"


class NewsletterRecord(Base):
    """Saved newsletter draft."""

    __tablename__ = "saved_newsletters"

    id = Column(String(32), primary_key=True)
    title = Column(String(500), nullable=False)
    subject = Column(Text, nullable=False)
    articles = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_saved_newsletters_created", "created_at"),
    )


class Database:
    """Database manager with async support."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        engine_kwargs: Dict[str, Any] = {"echo": False}
        if ":memory:" in database_url:
            # one shared connection, otherwise every session sees an empty database
            engine_kwargs.update(
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        else:
            engine_kwargs["pool_pre_ping"] = True
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init_tables(self) -> None:
        """Initialize database tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Close database connections."""
        await self.engine.dispose()

    def get_session(self) -> AsyncSession:
        """Get database session."""
        return self.session_factory()

    # Subscriber operations
    async def list_active_subscribers(self) -> List[str]:
        """Emails of every active subscriber, oldest first."""
        async with self.get_session() as session:
            stmt = (
                select(SubscriberRecord.email)
                .where(SubscriberRecord.is_active.is_(True))
                .order_by(SubscriberRecord.created_at, SubscriberRecord.email)
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_subscriber(self, email: str) -> Optional[Subscriber]:
        """Get subscriber by email."""
        async with self.get_session() as session:
            stmt = select(SubscriberRecord).where(SubscriberRecord.email == normalize_email(email))
            result = await session.execute(stmt)
            record = result.scalar_one_or_none()
        if record is None:
            return None
        return Subscriber(
            email=record.email,
            is_active=record.is_active,
            created_at=as_utc(record.created_at),
        )

    async def add_subscriber(self, email: str) -> SubscribeOutcome:
        """Insert a subscriber; existing addresses are reported, not rejected."""
        email = normalize_email(email)
        async with self.get_session() as session:
            existing = await session.execute(
                select(SubscriberRecord).where(SubscriberRecord.email == email)
            )
            subscriber = existing.scalar_one_or_none()
            if subscriber is not None:
                if subscriber.is_active:
                    return SubscribeOutcome.ALREADY_SUBSCRIBED
                subscriber.is_active = True
                await session.commit()
                return SubscribeOutcome.REACTIVATED

            session.add(SubscriberRecord(email=email))
            try:
                await session.commit()
            except IntegrityError:
                # concurrent insert of the same address
                await session.rollback()
                return SubscribeOutcome.ALREADY_SUBSCRIBED
            return SubscribeOutcome.CREATED

    async def deactivate_subscriber(self, email: str) -> bool:
        """Mark a subscriber inactive. Returns False when the address is unknown."""
        async with self.get_session() as session:
            result = await session.execute(
                update(SubscriberRecord)
                .where(SubscriberRecord.email == normalize_email(email))
                .values(is_active=False)
            )
            await session.commit()
            return result.rowcount > 0

    # Saved newsletter operations
    async def list_newsletter_records(self) -> List[NewsletterRecord]:
        """All saved newsletters, newest first."""
        async with self.get_session() as session:
            stmt = select(NewsletterRecord).order_by(
                NewsletterRecord.created_at.desc(), NewsletterRecord.id
            )
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def get_newsletter_record(self, newsletter_id: str) -> Optional[NewsletterRecord]:
        """Get a saved newsletter by id."""
        async with self.get_session() as session:
            return await session.get(NewsletterRecord, newsletter_id)

    async def insert_newsletter_record(self, values: Dict[str, Any]) -> NewsletterRecord:
        """Insert a saved newsletter row."""
        async with self.get_session() as session:
            record = NewsletterRecord(**values)
            session.add(record)
            await session.commit()
            await session.refresh(record)
            return record

    async def update_newsletter_record(
        self, newsletter_id: str, values: Dict[str, Any]
    ) -> Optional[NewsletterRecord]:
        """Update a saved newsletter row; None when the id is unknown."""
        async with self.get_session() as session:
            record = await session.get(NewsletterRecord, newsletter_id)
            if record is None:
                return None
            for key, value in values.items():
                setattr(record, key, value)
            await session.commit()
            await session.refresh(record)
            return record

    async def delete_newsletter_record(self, newsletter_id: str) -> bool:
        """Delete a saved newsletter row."""
        async with self.get_session() as session:
            result = await session.execute(
                delete(NewsletterRecord).where(NewsletterRecord.id == newsletter_id)
            )
            await session.commit()
            return result.rowcount > 0


async def init_database(config: ApplicationConfig) -> Database:
    """Initialize database with configuration."""
    db = Database(config.async_database_url)
    await db.init_tables()
    return db
