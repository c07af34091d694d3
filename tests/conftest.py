"""Shared fixtures."""

import pytest

from tests.helpers import FakeClock


@pytest.fixture
def clock():
    """Virtual millisecond clock starting at 0."""
    return FakeClock()
