from __future__ import annotations

from pathlib import Path

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from src.config import get_settings

settings = get_settings()

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)
SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


def _ensure_sqlite_directory(database_url: str) -> None:
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or not url.database or url.database == ":memory:":
        return
    directory = Path(url.database).parent
    if not directory.exists():
        directory.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created storage directory: {directory}")


def init_db() -> None:
    """建立資料表（若不存在）"""
    import src.models  # noqa: F401  register models on Base.metadata

    _ensure_sqlite_directory(settings.database_url)
    Base.metadata.create_all(engine)
    logger.info("Database initialized")


def get_sync_session() -> Session:
    return SessionLocal()
