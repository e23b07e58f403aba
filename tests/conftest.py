from __future__ import annotations

import os

# Must be set before kitchenhub.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite:///./kitchenhub-test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")

from datetime import time  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

import kitchenhub.models  # noqa: E402,F401
from kitchenhub.core.deps import get_db  # noqa: E402
from kitchenhub.db.base import Base  # noqa: E402
from kitchenhub.models.kitchen import Kitchen, Location  # noqa: E402
from kitchenhub.services import schedule_service  # noqa: E402
from kitchenhub.services.kitchen_service import create_kitchen, create_location  # noqa: E402
from tests.commons import MANAGER_ID, WEEKDAYS, qualify  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_schedule_cache():
    schedule_service.clear_schedule_cache()
    yield
    schedule_service.clear_schedule_cache()


@pytest.fixture()
def engine(tmp_path):
    # File database so that several sessions can run at once
    eng = create_engine(f"sqlite:///{tmp_path / 'kitchenhub.db'}", connect_args={"check_same_thread": False}, future=True)
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def db(session_factory) -> Session:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def location(db) -> Location:
    return create_location(db, name="Harbour Commissary", address="1 Water St", manager_id=MANAGER_ID)


@pytest.fixture()
def kitchen(db, location) -> Kitchen:
    k = create_kitchen(db, location_id=location.id, name="Prep Kitchen A", default_capacity=1, minimum_booking_minutes=60)
    for dow in WEEKDAYS:
        schedule_service.set_weekly_rule(db, kitchen_id=k.id, day_of_week=dow, is_open=True, start_time=time(9, 0), end_time=time(17, 0), capacity=1)
    return k


@pytest.fixture()
def qualified_chef(db, location) -> str:
    requester_id = "chef-1"
    qualify(db, requester_id=requester_id, location_id=location.id)
    return requester_id


@pytest.fixture()
def client(session_factory):
    from kitchenhub.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
