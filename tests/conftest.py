import importlib
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from tests.db_utils import migrate, sqlite_url

TEST_ENVIRONMENT = {
    "SECRET_KEY": "test-secret",
    "STORE_TIMEZONE": "America/Guatemala",
    "CURRENCY_CODE": "GTQ",
    "REQUIRE_STOCK_CONSISTENCY": "true",
    "LOG_LEVEL": "WARNING",
}


def _reload_application():
    # settings, engine and routers are module-level; rebuild them for the new environment
    import app.cashclose.core.config as config
    import app.cashclose.db.session as session
    import app.main as main

    for module in (config, session, main):
        importlib.reload(module)
    return main.create_app(), session


@pytest.fixture()
def database_url(tmp_path: Path, monkeypatch) -> str:
    url = sqlite_url(tmp_path)
    monkeypatch.setenv("DATABASE_URL", url)
    for name, value in TEST_ENVIRONMENT.items():
        monkeypatch.setenv(name, value)
    migrate(url)
    return url


@pytest.fixture()
def client(database_url):
    app, session = _reload_application()
    with TestClient(app) as test_client:
        yield test_client
    session.engine.dispose()


@pytest.fixture()
def db_session(client):
    from app.cashclose.db.session import SessionLocal

    with SessionLocal() as db:
        yield db
