from __future__ import annotations

import os
import tempfile
from typing import Generator, Any

import pytest

# Point the application engine at a throwaway SQLite file before it is created
_fd, _TEST_DB_PATH = tempfile.mkstemp(prefix="finspace_test_", suffix=".sqlite3")
os.close(_fd)
os.environ["FINSPACE_DATABASE_URL"] = f"sqlite:///{_TEST_DB_PATH}"

from sqlalchemy.orm import sessionmaker  # noqa: E402

from finspace.core.database import Base, get_db, engine as app_engine  # noqa: E402
from finspace.main import app  # noqa: E402
from finspace import models  # noqa: E402
from finspace.seed import seed  # noqa: E402


@pytest.fixture(scope="session")
def test_db_url() -> Generator[str, Any, Any]:
    yield f"sqlite:///{_TEST_DB_PATH}"
    for suffix in ("", "-wal", "-shm"):
        try:
            os.remove(_TEST_DB_PATH + suffix)
        except OSError:
            pass


@pytest.fixture(scope="session")
def engine(test_db_url: str):
    # The application's own engine, so the SQLite pragmas (FKs, WAL) apply
    Base.metadata.create_all(app_engine)
    yield app_engine
    app_engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine) -> Generator[Any, Any, Any]:
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = TestingSessionLocal()
    # Demo user with a space, an account and the system categories
    seed(session)

    try:
        yield session
    finally:
        session.close()
        # Children first; foreign keys stay on
        with engine.begin() as conn:
            for tbl in reversed(Base.metadata.sorted_tables):
                conn.execute(tbl.delete())


@pytest.fixture(autouse=True)
def override_dependency(db_session):
    def _get_db_override():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db_override
    yield
    app.dependency_overrides.clear()


@pytest.fixture()
def client(db_session):
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def demo_user(db_session) -> models.User:
    return db_session.query(models.User).filter_by(email="demo@example.com").one()


@pytest.fixture()
def refs(db_session, demo_user) -> dict[str, int]:
    """Ids of the seeded space, account and one system category per type."""

    def _category(name: str, txn_type: models.TxnType) -> int:
        return (
            db_session.query(models.Category)
            .filter_by(user_id=None, name=name, type=txn_type)
            .one()
            .id
        )

    return {
        "user_id": demo_user.id,
        "space_id": db_session.query(models.Space).filter_by(user_id=demo_user.id).one().id,
        "account_id": db_session.query(models.Account).filter_by(user_id=demo_user.id).one().id,
        "income_category_id": _category("Salário", models.TxnType.INCOME),
        "expense_category_id": _category("Alimentação", models.TxnType.EXPENSE),
    }
