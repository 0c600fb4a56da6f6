from __future__ import annotations

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase, declared_attr

from .config import settings


class Base(DeclarativeBase):
    @declared_attr.directive
    def __tablename__(cls) -> str:  # type: ignore[override]
        return cls.__name__.lower()


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def _set_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


def create_app_engine(url: str) -> Engine:
    """Engine for ``url``.

    SQLite connections may cross threads (FastAPI runs sync handlers in a
    pool) and get FK enforcement, WAL and a busy timeout on connect.
    """
    if not _is_sqlite(url):
        return create_engine(url)
    eng = create_engine(url, connect_args={"check_same_thread": False})
    event.listen(eng, "connect", _set_sqlite_pragmas)
    return eng


engine = create_app_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create missing tables for every model registered on ``Base``."""
    from finspace import models  # noqa: F401 - register mappers

    Base.metadata.create_all(engine)
