"""Engines, session factories and the FastAPI session dependency."""
import os
from typing import Generator
from pathlib import Path
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from dotenv import load_dotenv

# Load environment variables for LOCAL development
# (.env.local takes precedence over .env); real deployments set env vars directly
_backend_dir = Path(__file__).parent.parent
env_local = _backend_dir / '.env.local'
env_file = _backend_dir / '.env'

if env_local.exists():
    load_dotenv(env_local, override=True)
elif env_file.exists():
    load_dotenv(env_file, override=True)

# Get database URL from environment (durable SQLite file when unset)
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./advisories.db")


def make_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections are shared with the event loop thread and background
    tasks, so same-thread checking is disabled for that dialect.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_recycle=3600,  # seconds
    )


# Process-wide engine and request-scoped session factory
engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def make_session_factory(bind: Engine) -> sessionmaker:
    """
    Session factory for long-lived services (JobStore, fetcher).

    Objects stay readable after commit so detached rows can be returned
    from store methods without a live session.
    """
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind)


def init_db(bind: Engine = engine) -> None:
    """Create all tables that don't exist yet (Alembic owns production migrations)."""
    from models import Base
    Base.metadata.create_all(bind=bind)


def get_db() -> Generator[Session, None, None]:
    """
    One session per request, closed when the response is done.

    Example:
        @app.get("/api/country/{name}")
        def read_country(name: str, db: Session = Depends(get_db)):
            return get_country_data(db, name)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
