"""
Pytest fixtures for planner tests.
"""

import random
from datetime import datetime

import pytest

from app import create_app
from db import db
from utils.datetime_utils import utc


class FakeClock:
    """Monotonic clock that advances a fixed step on every read."""

    def __init__(self, step: float = 0.000001):
        self.current = 0.0
        self.step = step

    def __call__(self) -> float:
        value = self.current
        self.current += self.step
        return value


@pytest.fixture
def app():
    """Flask app backed by an in-memory SQLite database."""
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "POPULATION_SIZE": 8,
            "GENERATIONS": 5,
            "RANDOM_SEED": 7,
        }
    )
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fixed_now():
    """Injected 'now' for the spaced-repetition flow."""
    moment = utc.localize(datetime(2024, 3, 4, 9, 0, 0))
    return lambda: moment
