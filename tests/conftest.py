import os

# Must be set before app modules build the engine
os.environ["ENV"] = "test"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

import app.models  # noqa: E402,F401
from app.db import Base, SessionLocal, engine, get_db  # noqa: E402

pytest_plugins = [
    "tests.fixtures.session_fixtures",
    "tests.fixtures.chat_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory database."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """Client with db override and testing mode (no table creation on startup)."""
    from app.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        c.chat = app.state.chat
        yield c
    app.dependency_overrides.clear()
