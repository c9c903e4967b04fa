import os

# Must be set before anything imports app.core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SEED_DEMO_CATALOG"] = "false"

import pytest

from app.core.database import Base, SessionLocal, engine
from app.services.progress import ProgressService
from app.store.memory import InMemoryCatalog, InMemoryProgressStore
from tests.factories import USER, FakeClock, standard_course


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def course():
    return standard_course()


@pytest.fixture
def store():
    return InMemoryProgressStore()


@pytest.fixture
def catalog(course):
    return InMemoryCatalog([course])


@pytest.fixture
def service(store, catalog, clock):
    return ProgressService(store, catalog, clock)


@pytest.fixture
def enrolled(service, course):
    return service.enroll(USER, course.id)


@pytest.fixture
def db():
    import app.models  # noqa: F401 - registers tables

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
