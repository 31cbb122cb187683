"""Shared fixtures."""

import pytest

from helpers import FakeNotificationRepository, FakeSignalRepository


@pytest.fixture
def signal_repo():
    return FakeSignalRepository()


@pytest.fixture
def notification_repo():
    return FakeNotificationRepository()
