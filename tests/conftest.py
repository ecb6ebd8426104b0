"""Shared pytest fixtures for bot tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from .helpers import FakeTelegram, InMemoryRegistry, make_catalog  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Drop cached settings so env changes in one test never leak into another."""
    from starsbot.settings import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def telegram():
    return FakeTelegram()


@pytest.fixture
def registry():
    return InMemoryRegistry()


@pytest.fixture
def catalog():
    return make_catalog()
