"""Shared fixtures."""

from datetime import datetime

import pytest

from taskfirst.models import User


@pytest.fixture
def users():
    return [
        User(id="u1", name="Alex Rivera", team="Design"),
        User(id="u2", name="Jordan Smith", team="Coding"),
    ]


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 5, 1, 12, 0, 0)
