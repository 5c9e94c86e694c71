"""
Shared pytest fixtures.
"""
import pytest

from herdbook import create_app
from herdbook.animals import add_animal
from herdbook.store import MemoryRecordStore


@pytest.fixture
def store():
    """An empty in-memory record store."""
    return MemoryRecordStore()


@pytest.fixture
def cow(store):
    return add_animal(store, {
        'name_en': 'Daisy',
        'name_ur': 'ڈیزی',
        'species': 'cow',
        'breed': 'Sahiwal',
        'gender': 'female',
        'tag_number': 'C-001',
        'date_of_birth': '2019-03-14',
    })


@pytest.fixture
def buffalo(store):
    return add_animal(store, {
        'name_en': 'Kali',
        'name_ur': 'کالی',
        'species': 'buffalo',
        'breed': 'Nili-Ravi',
        'gender': 'female',
        'tag_number': 'B-007',
        'date_of_birth': '2018-11-02',
    })


@pytest.fixture
def app():
    """App backed by an in-memory SQLite database."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    })
    yield app


@pytest.fixture
def client(app):
    """Test client for making requests."""
    return app.test_client()
