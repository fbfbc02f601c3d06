from datetime import datetime

import pytest

from medminder.core.clock import FixedClock
from medminder.core.config import Settings
from medminder.db.memory import create_memory_stores
from medminder.services.container import Services
from medminder.services.notifications import InMemoryNotificationCenter


DAY0 = datetime(2026, 3, 2)


@pytest.fixture
def clock():
    return FixedClock(DAY0.replace(hour=7))


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        environment="test",
        storage_backend="memory",
        notifications_enabled=False,
        timezone="UTC",
    )


@pytest.fixture
def stores():
    return create_memory_stores()


@pytest.fixture
def center(clock):
    return InMemoryNotificationCenter(clock)


@pytest.fixture
def services(stores, center, clock, test_settings):
    return Services(stores, center, clock, test_settings)
