"""Usage domain test fixtures."""

from unittest.mock import AsyncMock

import pytest


@pytest.fixture
def db():
    """AsyncMock database session: fakes ignore it."""
    return AsyncMock()
