"""
test_messages.py - Unit tests for request building and response parsing.
"""

import pytest

from rndc.errors import DecodingError
from rndc.messages import EXPIRY_WINDOW, CommandResult, get_nonce, new_message, parse_result


def test_new_message_layout():
    msg = new_message("status", serial=12345, timestamp=1700000000)
    assert list(msg) == ["_ctrl", "_data"]
    assert msg["_ctrl"] == {
        "_ser": b"12345",
        "_tim": b"1700000000",
        "_exp": b"1700000060",
    }
    assert msg["_data"] == {"type": b"status"}


def test_new_message_echoes_nonce_last():
    msg = new_message("reload", serial=1, timestamp=10, nonce="98765")
    assert list(msg["_ctrl"]) == ["_ser", "_tim", "_exp", "_nonce"]
    assert msg["_ctrl"]["_nonce"] == b"98765"


def test_fractional_timestamp_is_truncated():
    msg = new_message("status", serial=1, timestamp=1700000000.75)
    assert msg["_ctrl"]["_tim"] == b"1700000000"
    assert msg["_ctrl"]["_exp"] == b"1700000060"


def test_expiry_window():
    assert EXPIRY_WINDOW == 60


def test_get_nonce():
    assert get_nonce({"_ctrl": {"_nonce": "4242"}}) == "4242"


@pytest.mark.parametrize("response", [
    {},
    {"_ctrl": {}},
    {"_ctrl": {"_ser": "1"}},
    {"_ctrl": "not a table"},
    {"_ctrl": {"_nonce": b"\xff\xfe"}},
])
def test_missing_nonce_is_decoding_error(response):
    with pytest.raises(DecodingError, match="Nonce not received"):
        get_nonce(response)


def test_success_result():
    result = parse_result({"_data": {"result": "0", "text": "ok"}})
    assert result == CommandResult(succeeded=True, text="ok", error=None)


def test_failure_result():
    result = parse_result({"_data": {"result": "1", "err": "failed"}})
    assert result == CommandResult(succeeded=False, text=None, error="failed")


def test_missing_result_means_failure():
    assert parse_result({"_data": {"text": "hmm"}}).succeeded is False


def test_missing_data_is_decoding_error():
    with pytest.raises(DecodingError):
        parse_result({"_ctrl": {}})
