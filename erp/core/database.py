"""
Async database setup with SQLAlchemy 2.0.
Provides connection pooling, session management, and the base model
carrying the audit trail and soft-delete lifecycle shared by every table.
"""
from typing import AsyncGenerator, Optional, Union
from dataclasses import dataclass
from datetime import datetime, timezone
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
    AsyncEngine
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy import MetaData, DateTime, Boolean, Integer, String, CheckConstraint, func, text
from sqlalchemy.pool import NullPool

from erp.core.config import settings
from erp.error_handlers import ConfigurationError
from erp.logging_config import get_logger

logger = get_logger("database")


# Naming convention for constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s"
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize to aware UTC. Naive values (SQLite hands those back) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True)
class Active:
    """Lifecycle state of a live record."""


@dataclass(frozen=True)
class Deleted:
    """Lifecycle state of a soft-deleted record."""
    at: datetime
    by: Optional[str]


Lifecycle = Union[Active, Deleted]


def lifecycle_constraint() -> CheckConstraint:
    """Forbid half-deleted rows (flag and timestamp must agree)."""
    return CheckConstraint(
        "(is_deleted AND deleted_at IS NOT NULL) OR (NOT is_deleted AND deleted_at IS NULL)",
        name="lifecycle"
    )


class Base(DeclarativeBase):
    """Base class for all database models."""
    metadata = metadata

    # Common columns for all tables
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utc_now,
        server_default=func.now(),
        nullable=False
    )
    created_by: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        onupdate=utc_now,
        nullable=True
    )
    updated_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Soft delete; only ever changed through mark_deleted()
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        server_default=text("false"),
        nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    @property
    def lifecycle(self) -> Lifecycle:
        if self.is_deleted:
            return Deleted(at=as_utc(self.deleted_at), by=self.deleted_by)
        return Active()

    @property
    def is_active(self) -> bool:
        return not self.is_deleted

    def mark_created(self, actor: str) -> None:
        self.created_by = actor
        if self.created_at is None:
            self.created_at = utc_now()

    def mark_updated(self, actor: str) -> None:
        self.updated_by = actor
        self.updated_at = utc_now()

    def mark_deleted(self, actor: str) -> None:
        """Move the record to the Deleted lifecycle state."""
        self.is_deleted = True
        self.deleted_at = utc_now()
        self.deleted_by = actor


# Process-wide engine and session factory, created lazily from settings
engine: AsyncEngine | None = None
AsyncSessionLocal: async_sessionmaker[AsyncSession] | None = None


def engine_options(url: str) -> dict:
    """Pooling suited to the driver: none for SQLite, a checked pool for PostgreSQL."""
    if url.startswith("sqlite"):
        return {"poolclass": NullPool, "connect_args": {"check_same_thread": False}}
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


def get_engine() -> AsyncEngine:
    """
    The shared engine.

    Raises:
        ConfigurationError: DATABASE_URL is not set
    """
    global engine

    if engine is None:
        url = settings.database_url
        if not url:
            raise ConfigurationError("DATABASE_URL is not configured")
        engine = create_async_engine(url, echo=settings.db_echo, **engine_options(url))
        logger.info("Database engine created (%s)", engine.url.render_as_string(hide_password=True))

    return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global AsyncSessionLocal

    if AsyncSessionLocal is None:
        # Objects stay readable after commit; responses are built from them
        AsyncSessionLocal = async_sessionmaker(get_engine(), expire_on_commit=False, autoflush=False)

    return AsyncSessionLocal


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Services commit their own unit of work; whatever is still pending when
    the request fails (or the client disconnects) is rolled back.
    """
    async with get_session_factory()() as session:
        try:
            yield session
        except BaseException:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables from the models (development; production runs Alembic)."""
    from erp.models import product, reference  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    global engine, AsyncSessionLocal

    if engine is not None:
        await engine.dispose()
        engine = None
    AsyncSessionLocal = None


async def check_db_connection() -> bool:
    """True when a trivial query succeeds; used by /health."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("Database connectivity check failed", exc_info=True)
        return False
