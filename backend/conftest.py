"""
Shared pytest fixtures: test database engine, sessions and JobStore.

Two database modes:
- Default: fresh in-memory SQLite database per test (no setup needed)
- TEST_DATABASE_URL set (e.g. in .env.local): a separate PostgreSQL test
  database, migrated with Alembic; rows are deleted after each test

Services under test (JobStore, fetcher) open and commit their own sessions,
so isolation comes from a clean database per test rather than from a
rolled-back outer transaction.
"""
import os
import pytest
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from alembic.config import Config
from alembic import command
from dotenv import load_dotenv

from db.job_store import JobStore
from db.session import init_db, make_engine, make_session_factory
from models import Base

BACKEND_DIR = Path(__file__).parent

# TEST_DATABASE_URL may live in .env.local or .env (first one found wins)
env_local = BACKEND_DIR / '.env.local'
env_file = BACKEND_DIR / '.env'

if env_local.exists():
    load_dotenv(env_local)
elif env_file.exists():
    load_dotenv(env_file)


@pytest.fixture(scope="function")
def test_engine():
    """
    Create a test database engine with the full schema.

    - TEST_DATABASE_URL: run Alembic migrations, clean all rows afterwards
    - Otherwise: in-memory SQLite shared across sessions via StaticPool
    """
    test_db_url = os.getenv("TEST_DATABASE_URL")

    if test_db_url:
        engine = make_engine(test_db_url)
        alembic_cfg = Config(str(BACKEND_DIR / "alembic.ini"))
        alembic_cfg.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
        alembic_cfg.set_main_option("sqlalchemy.url", test_db_url)
        command.upgrade(alembic_cfg, "head")

        yield engine

        with engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                conn.execute(table.delete())
        engine.dispose()
        return

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    """Session factory configured like production (expire_on_commit=False)."""
    return make_session_factory(test_engine)


@pytest.fixture(scope="function")
def test_db(session_factory):
    """
    A plain session for arranging and inspecting data.

    Example:
        def test_save(test_db):
            save_country_data(test_db, "france", "FR", alerts, None)
            assert get_country_data(test_db, "france") is not None
    """
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def job_store(session_factory):
    """JobStore backed by the test database."""
    return JobStore(session_factory)
