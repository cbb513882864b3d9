import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .errors import DecodingError

"""
messages.py — building requests and reading responses.

A request body looks like:

    {
        "_ctrl": {"_ser": b"...", "_tim": b"...", "_exp": b"...", "_nonce": b"..."},
        "_data": {"type": b"status"},
    }

All control values are decimal strings sent as binary. The `_auth` entry is
added by crypto.encode_message() and never appears here.

A response carries `_data.result` ("0" on success), and optionally
`_data.text` and `_data.err`.
"""

EXPIRY_WINDOW = 60  # seconds; the daemon enforces it, we only report it

NULL_COMMAND = "null"


def now() -> int:
    """Current Unix time in whole seconds."""
    return int(time.time())


@dataclass
class CommandResult:
    """Outcome of one command as reported by the daemon."""
    succeeded: bool
    text: Optional[str] = None
    error: Optional[str] = None


def new_message(
    command: str,
    serial: int,
    timestamp: float,
    nonce: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a request body.

    Args:
        command:   Command text, e.g. "status" or "reload example.com".
        serial:    Value for `_ser`.
        timestamp: Value for `_tim`, truncated to whole seconds; `_exp` is
                   timestamp + EXPIRY_WINDOW.
        nonce:     Server nonce to echo back; omitted for the handshake.
    """
    timestamp = int(timestamp)
    ctrl = {
        "_ser": str(serial).encode("ascii"),
        "_tim": str(timestamp).encode("ascii"),
        "_exp": str(timestamp + EXPIRY_WINDOW).encode("ascii"),
    }
    if nonce is not None:
        ctrl["_nonce"] = nonce.encode("utf-8")

    return {
        "_ctrl": ctrl,
        "_data": {"type": command.encode("utf-8")},
    }


def _section(response: Dict[str, Any], name: str) -> Optional[Dict[str, Any]]:
    section = response.get(name)
    return section if isinstance(section, dict) else None


def _text_field(section: Dict[str, Any], key: str) -> Optional[str]:
    value = section.get(key)
    return value if isinstance(value, str) else None


def get_nonce(response: Dict[str, Any]) -> str:
    """Pull `_ctrl._nonce` out of a handshake response."""
    ctrl = _section(response, "_ctrl")
    nonce = _text_field(ctrl, "_nonce") if ctrl is not None else None
    if nonce is None:
        raise DecodingError("Nonce not received")
    return nonce


def parse_result(response: Dict[str, Any]) -> CommandResult:
    """Turn a decoded command response into a CommandResult."""
    data = _section(response, "_data")
    if data is None:
        raise DecodingError("Response has no _data table")

    return CommandResult(
        succeeded=_text_field(data, "result") == "0",
        text=_text_field(data, "text"),
        error=_text_field(data, "err"),
    )
