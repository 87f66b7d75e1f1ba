"""Shared fixtures: in-memory SQLite store, fresh observer, test client."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.db import enable_sqlite_foreign_keys, get_db, init_db
from app.core.settings import config_settings
from app.main import create_app
from app.models.orm.experiment import ExperimentORM
from app.services.treatment_service import TreatmentService
from app.services.trigger_observer import TriggerObserver

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    init_db(bind=engine)

    session = sessionmaker(bind=engine)()
    session.add(ExperimentORM(experiment_id=1, name="checkout_button"))
    session.add(ExperimentORM(experiment_id=2, name="pricing_page"))
    session.commit()
    session.close()

    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def trigger_observer():
    return TriggerObserver()


@pytest.fixture
def service(db, trigger_observer):
    return TreatmentService(db, trigger_observer)


@pytest.fixture
def client(session_factory, trigger_observer, monkeypatch):
    monkeypatch.setattr(config_settings, "TOKENS", [ADMIN_TOKEN])

    app = create_app(trigger_observer)

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}
