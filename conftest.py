"""Every test run gets its own throwaway SQLite database."""
import os
import shutil
import tempfile

import pytest
from sqlalchemy import event

# Must be set before any test module imports brokerdesk.database.
_DB_DIR = tempfile.mkdtemp(prefix="brokerdesk_tests_")
os.environ["BROKERDESK_DATABASE_URL"] = "sqlite:///" + os.path.join(_DB_DIR, "brokerdesk.db")


def _enforce_foreign_keys(dbapi_conn, _record):
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


@pytest.fixture(scope="session", autouse=True)
def database_engine():
    from brokerdesk.database import engine, init_db

    event.listen(engine, "connect", _enforce_foreign_keys)
    # Drop connections opened before the listener was attached.
    engine.dispose()
    init_db()

    yield engine

    engine.dispose()
    shutil.rmtree(_DB_DIR, ignore_errors=True)


@pytest.fixture(autouse=True)
def fresh_domain(database_engine):
    """No offices, agents or transactions; settings back at their defaults."""
    from brokerdesk import crud
    from brokerdesk.database import SessionLocal

    with SessionLocal() as session:
        crud.reset_application_data(session)


@pytest.fixture
def test_db():
    from brokerdesk.database import SessionLocal

    with SessionLocal() as session:
        yield session
