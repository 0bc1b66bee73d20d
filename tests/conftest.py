"""
Pytest configuration and fixtures for ActivityMgr tests.
"""

from datetime import date

import pytest

from activitymgr import Collaborator, Contribution, Database, ModelManager, Task


# Use an in-memory database, one per test
TEST_DATABASE_URL = "sqlite://"


@pytest.fixture(scope="function")
def database():
    """Create a test database with all tables."""
    database = Database(TEST_DATABASE_URL, echo=False)
    database.create_tables()

    yield database

    database.dispose()


@pytest.fixture(scope="function")
def manager(database):
    """Model manager with the default durations (25, 50, 75, 100)."""
    manager = ModelManager(database)
    manager.initialize()
    return manager


@pytest.fixture
def make_task(manager):
    """Create a task under `parent` (None for a root task)."""

    def _make_task(parent, code, **fields):
        fields.setdefault("name", f"Task {code}")
        return manager.create_task(parent, Task(code=code, **fields))

    return _make_task


@pytest.fixture
def collaborator(manager):
    return manager.create_collaborator(
        Collaborator(login="jdoe", first_name="John", last_name="Doe")
    )


@pytest.fixture
def contribute(manager, collaborator):
    """Log `duration` on `task` for `day`."""

    def _contribute(task, day: date, duration: int = 100, contributor=None, update_todo=False):
        contributor = contributor or collaborator
        return manager.create_contribution(
            Contribution.on(day, contributor.id, task.id, duration),
            update_todo=update_todo,
        )

    return _contribute
