from calcio_arena.core.database import async_database_url


def test_plain_postgres_schemes_use_asyncpg():
  assert async_database_url("postgres://u:p@db/calcio") == "postgresql+asyncpg://u:p@db/calcio"
  assert async_database_url("postgresql://u:p@db/calcio") == "postgresql+asyncpg://u:p@db/calcio"


def test_explicit_driver_is_left_alone():
  assert async_database_url("postgresql+asyncpg://u@db/calcio") == "postgresql+asyncpg://u@db/calcio"


def test_missing_dsn_stays_none():
  assert async_database_url(None) is None
  assert async_database_url("") is None
