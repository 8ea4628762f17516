"""Database connection and session management.

The engine and session factory are owned by a ``Database`` instance created at
the process entry point and passed down explicitly; nothing here is cached at
module level.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, AsyncGenerator

from sqlalchemy import select, text, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from payroll_tax_engine.config import Settings

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine


class Database:
    """Store handle: async engine plus session factory."""

    def __init__(self, url: str, *, echo: bool = False, **engine_kwargs: Any):
        if url.startswith("postgresql"):
            engine_kwargs.setdefault("pool_pre_ping", True)
            engine_kwargs.setdefault("pool_size", 10)
            engine_kwargs.setdefault("max_overflow", 20)
        self.engine: AsyncEngine = create_async_engine(url, echo=echo, **engine_kwargs)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> Database:
        """Build a store handle from application settings."""
        return cls(settings.database_url, echo=settings.database_echo)

    async def create_all(self) -> None:
        """Create all tables known to the ORM metadata."""
        from payroll_tax_engine.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Yield a session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def dispose(self) -> None:
        """Close every pooled connection."""
        await self.engine.dispose()


def dialect_name(session: AsyncSession) -> str:
    """Name of the SQL dialect the session is bound to."""
    return session.get_bind().dialect.name


def dialect_insert(session: AsyncSession, model: Any):
    """Return an INSERT construct that supports ON CONFLICT for the bound dialect."""
    name = dialect_name(session)
    if name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"ON CONFLICT insert not supported for dialect '{name}'")
    return insert(model)


async def upsert_ignore(
    session: AsyncSession,
    model: Any,
    values: dict[str, Any],
    index_elements: list[str],
) -> bool:
    """Insert a row unless one already exists for the unique key.

    Returns True if a new row was inserted.
    """
    stmt = (
        dialect_insert(session, model)
        .values(**values)
        .on_conflict_do_nothing(index_elements=index_elements)
    )
    result = await session.execute(stmt)
    return bool(result.rowcount)


async def lock_period(session: AsyncSession, key: str) -> None:
    """Serialize work on one (company, period) for the rest of the transaction.

    Uses a transaction-scoped advisory lock on PostgreSQL; other dialects
    rely on the conditional UPDATE guards alone.
    """
    if dialect_name(session) != "postgresql":
        return
    await session.execute(
        text("SELECT pg_advisory_xact_lock(hashtext(:key))"),
        {"key": key},
    )


async def guarded_upsert(
    session: AsyncSession,
    model: Any,
    key: dict[str, Any],
    financial: dict[str, Any],
    bookkeeping: dict[str, Any],
    locked_status: str,
) -> tuple[Any, bool]:
    """Create or refresh one derived row without touching locked amounts.

    The row is created with insert-or-ignore on ``key``. Bookkeeping fields
    are then set unconditionally, while financial fields are set by a single
    UPDATE whose WHERE clause excludes rows in ``locked_status``. Only the
    named fields are ever written.

    Returns the reloaded row and whether its financial fields were written.
    """
    created = await upsert_ignore(
        session, model, {**key, **financial, **bookkeeping}, list(key)
    )
    match_key = [getattr(model, name) == value for name, value in key.items()]

    written = created
    if not created:
        if bookkeeping:
            await session.execute(
                update(model)
                .where(*match_key)
                .values(**bookkeeping)
                .execution_options(synchronize_session=False)
            )
        if financial:
            result = await session.execute(
                update(model)
                .where(*match_key, model.status != locked_status)
                .values(**financial)
                .execution_options(synchronize_session=False)
            )
            written = bool(result.rowcount)

    row = (
        await session.execute(
            select(model).where(*match_key).execution_options(populate_existing=True)
        )
    ).scalar_one()
    return row, written
