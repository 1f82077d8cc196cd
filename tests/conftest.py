"""Shared fixtures: temporary SQLite files, seed documents and test clients."""

import json

import pytest
from fastapi.testclient import TestClient

from bookshelf.config import Settings
from bookshelf.database import init_db, make_engine, make_session_factory
from bookshelf.main import create_app

SEED_BOOKS = [
    {"title": "A", "price": 10, "publisher": "P", "authors": ["X", "Y"]},
]


def write_seed(path, records):
    path.write_text(json.dumps(records), encoding="utf-8")
    return path


@pytest.fixture
def seed_file(tmp_path):
    """Seed file with a single book written by two authors."""
    return write_seed(tmp_path / "books.json", SEED_BOOKS)


@pytest.fixture
def settings(tmp_path, seed_file):
    return Settings(
        database_path=str(tmp_path / "books.db"),
        seed_path=str(seed_file),
    )


@pytest.fixture
def client(settings):
    """Client on a freshly created database, seeded at startup."""
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def empty_client(tmp_path):
    """Client on a fresh database whose seed file does not exist."""
    settings = Settings(
        database_path=str(tmp_path / "empty.db"),
        seed_path=str(tmp_path / "missing.json"),
    )
    with TestClient(create_app(settings)) as test_client:
        yield test_client


@pytest.fixture
def db(tmp_path):
    """Plain session on an empty schema, for crud and seed tests."""
    engine = make_engine(f"sqlite:///{tmp_path / 'crud.db'}")
    init_db(engine)
    session = make_session_factory(engine)()
    yield session
    session.close()
    engine.dispose()
