import os
import sys
from datetime import datetime
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "local")

import models  # noqa: E402
import database  # noqa: E402
from app.core.clock import FixedClock, get_clock  # noqa: E402
from app.services.storage import LocalFileStorage, get_storage  # noqa: E402

# Sunday 2026-03-01, 08:00 local. Monday 2026-03-02 is day_of_week 1.
START_OF_WEEK = datetime(2026, 3, 1, 8, 0)


@pytest.fixture(autouse=True)
def _reset_tables():
    models.Base.metadata.drop_all(bind=database.engine)
    models.Base.metadata.create_all(bind=database.engine)
    yield
    database.engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(START_OF_WEEK)


@pytest.fixture
def storage(tmp_path) -> LocalFileStorage:
    return LocalFileStorage(tmp_path / "storage")


@pytest.fixture
def client_base(clock, storage) -> TestClient:
    sys.modules["models"] = models
    sys.modules["database"] = database
    from main import app  # noqa: E402

    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = database.SessionLocal()
    try:
        yield session
    finally:
        session.close()
