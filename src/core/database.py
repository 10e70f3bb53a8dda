# ──── Usage Guide ────
# MODULE CODE (src/*/service.py, src/*/tracker.py, ...):
#   Components receive an async_sessionmaker and open their own sessions:
#       async with self.session_factory() as session:
#           result = await session.execute(select(Model).where(...))
#
# WEB ROUTERS: reach the factory through the pipeline (pipeline.session_factory).
#
# DATABASE: PostgreSQL (asyncpg) in deployment, SQLite (aiosqlite) in tests.

from sqlalchemy import MetaData
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from src.core.config import settings


class ToDictMixin:
    """Mixin to add dictionary serialization to models."""
    def to_dict(self):
        """Convert model instance to dictionary."""
        from sqlalchemy import inspect
        import datetime
        from decimal import Decimal
        from enum import Enum

        result = {}
        for key in inspect(self).mapper.column_attrs.keys():
            value = getattr(self, key)
            if isinstance(value, datetime.datetime):
                result[key] = value.isoformat()
            elif isinstance(value, datetime.date):
                result[key] = value.isoformat()
            elif isinstance(value, Decimal):
                result[key] = float(value)
            elif isinstance(value, Enum):
                result[key] = value.value
            else:
                result[key] = value
        return result


class Base(ToDictMixin, DeclarativeBase):
    metadata = MetaData()


def to_async_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def build_session_factory(url: str, **engine_kwargs) -> async_sessionmaker:
    """Create an engine for `url` and return a session factory bound to it."""
    return async_sessionmaker(
        create_async_engine(to_async_url(url), future=True, **engine_kwargs),
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def insert_ignore(session: AsyncSession, model):
    """
    Dialect-aware INSERT ... ON CONFLICT DO NOTHING builder.
    Returns an insert statement; call .values(...) on it.
    """
    dialect = session.bind.dialect.name if session.bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite.insert(model).on_conflict_do_nothing()
    return postgresql.insert(model).on_conflict_do_nothing()


# ──── Single Async Engine (PostgreSQL + asyncpg) ────
engine = create_async_engine(to_async_url(settings.database_url), echo=False, future=True)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)
