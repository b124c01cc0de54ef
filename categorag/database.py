"""
Database engine and session setup.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from categorag.config import settings


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False, "timeout": settings.store_timeout_seconds}
    if url.startswith("postgresql"):
        timeout_ms = int(settings.store_timeout_seconds * 1000)
        return {
            "connect_timeout": max(1, int(settings.store_timeout_seconds)),
            "options": f"-c statement_timeout={timeout_ms}",
        }
    return {}


engine = create_engine(settings.database_url, connect_args=_connect_args(settings.database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and close it afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
