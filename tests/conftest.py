import os

# Select TestingConfig and an in-memory database before ballotbox is imported
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

from types import SimpleNamespace

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ballotbox.catalog import create_candidate, create_category
from ballotbox.database import Base, create_db_engine
from ballotbox.voters import resolve_student


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def election(db):
    """Two categories with two candidates each."""
    head = create_category(db, "Head Prefect", description="Leads the prefects", icon="crown", display_order=1)
    sports = create_category(db, "Sports Prefect", icon="star", display_order=2)
    alice = create_candidate(db, "Alice", head.id, class_level="Form 3")
    bob = create_candidate(db, "Bob", head.id, class_level="Form 2")
    carol = create_candidate(db, "Carol", sports.id, class_level="Form 3")
    dan = create_candidate(db, "Dan", sports.id, class_level="Form 1")
    return SimpleNamespace(head=head, sports=sports, alice=alice, bob=bob, carol=carol, dan=dan)


@pytest.fixture
def register(db):
    def _register(student_id, name=None):
        return resolve_student(db, student_id, name or f"Student {student_id}")
    return _register


@pytest.fixture
def make_client(session_factory):
    from fastapi.testclient import TestClient

    from ballotbox.main import app, get_db

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield lambda: TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_client(make_client):
    from ballotbox.config import app_config

    client = make_client()
    response = client.post(
        "/login/admin",
        json={"username": app_config.ADMIN_USERNAME, "password": app_config.ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return client
