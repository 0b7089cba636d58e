"""Shared fixtures."""
from __future__ import annotations

import pytest

from domain import Hero, Matter
from soter.utils.logging import configure_logging


@pytest.fixture(autouse=True)
def reset_logging():
    """Point logging back at the current stderr after each test."""
    yield
    configure_logging()


@pytest.fixture
def matter() -> Matter:
    """Solid matter above freezing."""
    return Matter("solid", temperature=10)


@pytest.fixture
def hero() -> Hero:
    """Idle hero with one stamina point."""
    return Hero("idle")
