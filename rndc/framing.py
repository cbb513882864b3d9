import logging
import struct
from typing import Any, Dict, List, Optional, Tuple

from .errors import DecodingError, EncodingError

"""
framing.py — the command channel wire format.

Every value is a TLV record:
- 1-byte type tag (0 = text, 1 = binary, 2 = table, 3 = list)
- 4-byte big-endian payload length
- the payload itself

Table payloads are a run of entries, each a 1-byte key length, the key bytes
and the value's TLV record. List payloads are a run of TLV records.

The top-level message is different: it has no tag or length of its own.
After an 8-byte envelope header (u32 BE length of everything after the length
field, u32 BE protocol version = 1) the remaining bytes are parsed directly as
table entries.

Python mapping:
    str   <-> text        bytes <-> binary
    dict  <-> table       list  <-> list
Decoded payloads that are valid UTF-8 come back as str, everything else as
bytes, so binary values that happen to be UTF-8 do not round-trip as bytes.
"""

log = logging.getLogger(__name__)

MSGTYPE_STRING = 0
MSGTYPE_BINARYDATA = 1
MSGTYPE_TABLE = 2
MSGTYPE_LIST = 3

PROTOCOL_VERSION = 1

HEADER_STRUCT = struct.Struct(">II")   # length, version
HEADER_SIZE = HEADER_STRUCT.size
VALUE_STRUCT = struct.Struct(">BI")    # type tag, payload length

MAX_KEY_LENGTH = 0xFF
MAX_VALUE_LENGTH = 0xFFFFFFFF

Value = Any  # str | bytes | Dict[str, Value] | List[Value]


# -----------------------------
# Encoding
# -----------------------------

def _raw_towire(type_byte: int, payload: bytes) -> bytes:
    if len(payload) > MAX_VALUE_LENGTH:
        raise EncodingError(f"Value too large: {len(payload)} bytes")
    return VALUE_STRUCT.pack(type_byte, len(payload)) + payload


def _key_towire(key: str) -> bytes:
    if not isinstance(key, str):
        raise EncodingError(f"Table keys must be str, not {type(key).__name__}")
    raw = key.encode("utf-8")
    if len(raw) > MAX_KEY_LENGTH:
        raise EncodingError(f"Key too long ({len(raw)} bytes): {key[:32]!r}")
    return bytes((len(raw),)) + raw


def encode_value(value: Value) -> bytes:
    """Serialize one value as a tagged TLV record."""
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _raw_towire(MSGTYPE_BINARYDATA, bytes(value))
    if isinstance(value, str):
        return _raw_towire(MSGTYPE_STRING, value.encode("utf-8"))
    if isinstance(value, dict):
        return encode_table(value)
    if isinstance(value, (list, tuple)):
        return encode_list(value)
    raise EncodingError(f"Cannot encode value of type {type(value).__name__}")


def encode_list(values: List[Value]) -> bytes:
    return _raw_towire(MSGTYPE_LIST, b"".join(encode_value(v) for v in values))


def encode_table(table: Dict[str, Value], headerless: bool = False) -> bytes:
    """
    Serialize a table.

    With headerless=True only the entries are emitted. That form is what the
    signature is computed over and what sits directly under the envelope.
    """
    parts = []
    for key, value in table.items():
        parts.append(_key_towire(key))
        parts.append(encode_value(value))
    body = b"".join(parts)
    if headerless:
        return body
    return _raw_towire(MSGTYPE_TABLE, body)


def pack_envelope(body: bytes) -> bytes:
    """Prefix a headerless body with the 8-byte length/version header."""
    return HEADER_STRUCT.pack(len(body) + 4, PROTOCOL_VERSION) + body


# -----------------------------
# Decoding
# -----------------------------

def _binary_fromwire(raw: bytes) -> Value:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw


def _key_fromwire(buf: bytes, offset: int, end: int) -> Tuple[str, int]:
    length = buf[offset]
    start = offset + 1
    stop = start + length
    if stop > end:
        raise DecodingError(f"Truncated key at offset {offset}: need {length} bytes, {end - start} left")
    try:
        return buf[start:stop].decode("utf-8"), stop
    except UnicodeDecodeError as exc:
        raise DecodingError(f"Key at offset {offset} is not valid UTF-8") from exc


def decode_value(buf: bytes, offset: int = 0, end: Optional[int] = None) -> Tuple[Value, int]:
    """
    Parse one TLV record starting at offset.

    Returns the value and the offset just past it. Nested tables and lists
    are bounded by their own declared length, never by the outer buffer.
    """
    if end is None:
        end = len(buf)
    if offset + VALUE_STRUCT.size > end:
        raise DecodingError(f"Truncated value header at offset {offset}")

    type_byte, length = VALUE_STRUCT.unpack_from(buf, offset)
    start = offset + VALUE_STRUCT.size
    stop = start + length
    if stop > end:
        raise DecodingError(
            f"Truncated value at offset {offset}: declared {length} bytes, {end - start} left"
        )

    if type_byte in (MSGTYPE_STRING, MSGTYPE_BINARYDATA):
        value = _binary_fromwire(bytes(buf[start:stop]))
    elif type_byte == MSGTYPE_TABLE:
        value = _table_fromwire(buf, start, stop)
    elif type_byte == MSGTYPE_LIST:
        value = _list_fromwire(buf, start, stop)
    else:
        raise DecodingError(f"Unknown value type {type_byte} at offset {offset}")
    return value, stop


def _table_fromwire(buf: bytes, offset: int, end: int) -> Dict[str, Value]:
    table: Dict[str, Value] = {}
    while offset < end:
        key, offset = _key_fromwire(buf, offset, end)
        table[key], offset = decode_value(buf, offset, end)
    return table


def _list_fromwire(buf: bytes, offset: int, end: int) -> List[Value]:
    items: List[Value] = []
    while offset < end:
        value, offset = decode_value(buf, offset, end)
        items.append(value)
    return items


def _check_header(frame: bytes) -> None:
    if len(frame) < HEADER_SIZE:
        raise DecodingError(f"Truncated header: {len(frame)} bytes")
    length, version = HEADER_STRUCT.unpack_from(frame, 0)
    if length != len(frame) - 4:
        raise DecodingError(f"Length mismatch: header says {length}, got {len(frame) - 4}")
    if version != PROTOCOL_VERSION:
        raise DecodingError(f"Unsupported protocol version: {version}")


def decode(frame: bytes) -> Dict[str, Value]:
    """Decode a complete frame (header included) into its top-level table."""
    frame = bytes(frame)
    _check_header(frame)
    return _table_fromwire(frame, HEADER_SIZE, len(frame))


def split_signed(frame: bytes) -> Tuple[Optional[Dict[str, Value]], bytes]:
    """
    Separate a frame's leading _auth entry from the bytes it signs.

    Returns (auth_table, signed_bytes). auth_table is None when the first
    entry is not _auth, in which case signed_bytes is the whole body.
    """
    frame = bytes(frame)
    _check_header(frame)
    if len(frame) == HEADER_SIZE:
        return None, b""

    key, offset = _key_fromwire(frame, HEADER_SIZE, len(frame))
    if key != "_auth":
        return None, frame[HEADER_SIZE:]
    auth, offset = decode_value(frame, offset)
    if not isinstance(auth, dict):
        raise DecodingError("_auth entry is not a table")
    return auth, frame[offset:]


# -----------------------------
# Stream helpers
# -----------------------------

async def read_frame(transport, max_size: Optional[int] = None) -> bytes:
    """
    Read one framed message from a transport.

    Reads the 8-byte header, then exactly (length - 4) more bytes, and returns
    header + payload untouched so decode() can validate it. max_size, when
    given, caps the payload length; None accepts anything the header can say.
    """
    header = await transport.read_exact(HEADER_SIZE)
    (length,) = struct.unpack(">I", header[:4])
    if length < 4:
        raise DecodingError(f"Declared frame length too small: {length}")
    if max_size is not None and length - 4 > max_size:
        raise DecodingError(f"Frame too large: {length - 4} > {max_size}")

    payload = await transport.read_exact(length - 4)
    log.debug("read frame: %d payload bytes", len(payload))
    return header + payload


async def write_frame(transport, frame: bytes) -> None:
    """Write an already-enveloped frame."""
    log.debug("write frame: %d bytes", len(frame))
    await transport.write(frame)
