"""
Pytest configuration and fixtures

Every test passes ``today`` and the program rules explicitly, so results
never depend on the wall clock or the environment.
"""
import logging

import pytest

from fixtures.engine_fixtures import DEFAULT_RULES, SMALL_RULES, TODAY


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def rules():
    """Default ladder: Silver 100, Gold 180, Platinum 300, cap 300."""
    return DEFAULT_RULES


@pytest.fixture
def small_rules():
    """Small ladder: Silver 30, Gold 50, Platinum 100."""
    return SMALL_RULES


@pytest.fixture
def restore_root_logger():
    """Put the root and engine loggers back the way pytest configured them."""
    root = logging.getLogger()
    engine = logging.getLogger("skystatus")
    handlers = list(root.handlers)
    level = root.level
    engine_level = engine.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)
    engine.setLevel(engine_level)
