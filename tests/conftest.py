"""Shared fixtures."""

import pytest

from helpers import FakeBalanceSource, FakeClock, RecordingSleep


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def balances() -> FakeBalanceSource:
    return FakeBalanceSource()
