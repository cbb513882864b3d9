"""
rndc — client for the name server remote-control channel.

Layers, bottom up:
- framing:  TLV wire codec and the 8-byte envelope header.
- crypto:   algorithm table, HMAC signing and verification of messages.
- messages: request bodies and response interpretation.
- session:  handshake + one command per connection; RndcClient facade.

Usage:

    from rndc import RndcClient
    client = RndcClient.create("127.0.0.1:953", "hmac-sha256", secret_b64)
    result = client.execute("status")
    if result.succeeded:
        print(result.text)
"""
from .crypto import Algorithm, parse_algorithm
from .errors import (
    Base64DecodeError,
    ConfigError,
    DecodingError,
    EncodingError,
    InvalidAlgorithm,
    NetworkError,
    RndcError,
    SessionStateError,
    UnknownError,
)
from .messages import CommandResult
from .session import RndcClient, Session, SessionState

__all__ = [
    "framing", "crypto", "messages", "session", "transport", "keyfile", "run_rndc",
    "Algorithm", "parse_algorithm", "CommandResult", "RndcClient", "Session", "SessionState",
    "RndcError", "InvalidAlgorithm", "Base64DecodeError", "NetworkError", "EncodingError",
    "DecodingError", "UnknownError", "SessionStateError", "ConfigError",
]
