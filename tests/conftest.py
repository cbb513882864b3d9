"""
conftest.py - Pytest configuration and shared fixtures.
"""

import base64

import pytest

from rndc.crypto import Algorithm


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "live: tests that talk to a real name server")


@pytest.fixture
def secret():
    return b"test"


@pytest.fixture
def secret_b64(secret):
    return base64.b64encode(secret).decode("ascii")


@pytest.fixture
def algorithm():
    return Algorithm.SHA256


@pytest.fixture
def fixed_clock():
    return lambda: 1700000000


@pytest.fixture
def serials():
    """Serial source handing out 11, 22, 33, ..."""
    counter = iter(range(11, 1000, 11))
    return lambda: next(counter)
