"""
Shared pytest fixtures and event helpers.
"""

import logging
from datetime import datetime

import pytest

from account_calendar_sync.models import SyncConfig
from account_calendar_sync.models import SyncWindow
from tests.fake_provider import FakeStoreProvider

DESTINATION = "me@home.example"

# Wednesday; keeps weekday arithmetic in the tests readable.
NOW = datetime(2026, 3, 4, 9, 30)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def window():
    """Default window: one day back, seven days ahead of NOW."""
    return SyncWindow.around(NOW, 1, 7)


@pytest.fixture
def provider():
    fake = FakeStoreProvider()
    fake.add_store(DESTINATION)
    return fake


@pytest.fixture
def sync_config():
    return SyncConfig(destination=DESTINATION)


@pytest.fixture
def sync_logger():
    return logging.getLogger("test_sync")
