import itertools
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

import auth
import database
from catalog import Catalog
from database import MemoryStore, prepare_store
from main import app, get_catalog
from notify import NotificationCollector
from schemas import Resource

BASE_DATE = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def store():
    return prepare_store(MemoryStore())


@pytest.fixture
def notes():
    return NotificationCollector()


@pytest.fixture
def catalog(store, notes):
    return Catalog(store, notes)


@pytest.fixture
def make_resource():
    counter = itertools.count(1)

    def factory(**overrides) -> Resource:
        n = next(counter)
        fields = {
            "id": f"res{n:03d}",
            "title": f"Resource {n}",
            "description": "",
            "type": "notes",
            "department_id": "comp-sci",
            "course_id": "cs101",
            "lecturer_id": "lec001",
            "year": "2024",
            "file_name": f"file{n}.pdf",
            "file_size": 3,
            "file_type": "application/pdf",
            "file_data": "data:application/pdf;base64,YWJj",
            "uploaded_by": "user1",
            "upload_date": BASE_DATE + timedelta(days=n),
            "downloads": 0,
        }
        fields.update(overrides)
        return Resource(**fields)

    return factory


@pytest.fixture
def put_resources(store):
    def put(*resources: Resource) -> None:
        assert store.set(database.RESOURCES, [r.model_dump(mode="json") for r in resources])

    return put


@pytest.fixture
def logged_in(catalog):
    assert catalog.session.register("Ada Lovelace", "ada@example.com", "comp-sci", "secret1")
    outcome = catalog.session.login("ada@example.com", "secret1")
    assert outcome.ok
    return outcome.value


@pytest.fixture
def client():
    catalog = Catalog.open(MemoryStore(), NotificationCollector())
    app.dependency_overrides[get_catalog] = lambda: catalog
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
