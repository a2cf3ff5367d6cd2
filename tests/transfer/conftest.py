"""Fixtures for transfer tests."""

from __future__ import annotations

import pytest
from fakehub import FakeHub


@pytest.fixture
def hub() -> FakeHub:
    """Empty fake hub."""
    return FakeHub()
