"""
test_live.py - End-to-end checks against a real name server.

Skipped unless RNDC_TEST_SERVER and RNDC_TEST_SECRET are set, e.g.

    RNDC_TEST_SERVER=127.0.0.1:953 RNDC_TEST_SECRET=... pytest -m live
"""

import os

import pytest

from rndc import RndcClient

SERVER = os.environ.get("RNDC_TEST_SERVER")
SECRET = os.environ.get("RNDC_TEST_SECRET")
ALGORITHM = os.environ.get("RNDC_TEST_ALGORITHM", "hmac-sha256")

pytestmark = [
    pytest.mark.live,
    pytest.mark.skipif(not (SERVER and SECRET), reason="RNDC_TEST_SERVER / RNDC_TEST_SECRET not set"),
]


@pytest.fixture
def client():
    return RndcClient.create(SERVER, ALGORITHM, SECRET, timeout=10, verify_responses=True)


def test_status(client):
    result = client.execute("status")
    assert result.succeeded, result
    assert result.text


def test_unknown_command_is_reported_not_raised(client):
    result = client.execute("no-such-command")
    assert not result.succeeded
