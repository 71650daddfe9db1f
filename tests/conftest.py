"""Shared test fixtures for workout session tests."""

import os
import sys

# Add project root to path so tests can import session_engine, server, etc.
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from session_engine import SessionEngine
from tests.helpers import FakeClock, make_steps


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def phases():
    """Phase alerts recorded in order."""
    return []


@pytest.fixture
def engine(clock, phases):
    """Externally-ticked SessionEngine over the default 3-exercise plan."""
    return SessionEngine(make_steps(), clock=clock, interval=None, on_alert=phases.append)
