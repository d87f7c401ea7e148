from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from calcio_arena.config import get_database_settings

# Hosted Postgres providers hand out DSNs with either scheme.
_ASYNC_SCHEMES = ("postgres://", "postgresql://")


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def async_database_url(dsn: str | None) -> str | None:
  """Rewrite a plain Postgres DSN to the asyncpg driver; None stays None."""
  if not dsn:
    return None
  for scheme in _ASYNC_SCHEMES:
    if dsn.startswith(scheme):
      return "postgresql+asyncpg://" + dsn[len(scheme) :]
  return dsn


def configured_database_url() -> str | None:
  return async_database_url(get_database_settings().pg_dsn)


def get_db_engine() -> AsyncEngine | None:
  global engine
  if engine is not None:
    return engine

  database_url = configured_database_url()
  if database_url is None:
    return None

  settings = get_database_settings()
  engine = create_async_engine(database_url, echo=settings.debug, pool_pre_ping=True, connect_args={"timeout": settings.pg_connect_timeout})
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession] | None:
  """Shared session factory, or None when the app runs on in-memory stores."""
  global SessionLocal
  if SessionLocal is None:
    db_engine = get_db_engine()
    if db_engine is not None:
      SessionLocal = async_sessionmaker(bind=db_engine, expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


async def dispose_engine() -> None:
  """Close pooled connections on shutdown."""
  global engine, SessionLocal
  if engine is not None:
    await engine.dispose()
  engine = None
  SessionLocal = None
