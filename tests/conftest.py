import pytest

from safelink import db


@pytest.fixture
def store(tmp_path):
    """Fresh SQLite database per test."""
    db.configure(f"sqlite:///{tmp_path / 'safelink-test.db'}")
    db.init_db()
    db._subscribers.clear()
    yield db
    db._subscribers.clear()
    db.engine.dispose()
