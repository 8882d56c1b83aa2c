"""Shared fixtures."""

from __future__ import annotations

import pytest
from helpers import FakeRepository


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()
