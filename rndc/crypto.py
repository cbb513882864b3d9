"""
crypto.py — HMAC signing for the command channel.

Why this exists:
- Keep the algorithm table, key decoding and signature packing in one place so
  the message and session code only ever call `sign/encode_message/verify`.
- The signed bytes are the headerless encoding of the message body, so the
  signature never covers the `_auth` entry itself.

Signature packing differs per algorithm:
- hmac-md5: base64 digest with the '=' padding stripped, stored as `hmd5`.
- hmac-sha*: an 89-byte zero-filled slot, byte 0 = algorithm code, then the
  padded base64 digest, stored as `hsha`.
"""

import base64
import binascii
import hmac
from enum import IntEnum
from typing import Dict, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.hmac import HMAC

from .errors import Base64DecodeError, EncodingError, InvalidAlgorithm
from .framing import encode_table, pack_envelope, split_signed

SIGNATURE_SLOT_SIZE = 89  # 1 code byte + 88 chars of base64(SHA-512)


# -----------------------------
# Algorithm table
# -----------------------------

class Algorithm(IntEnum):
    """Supported HMAC algorithms, valued by their wire code."""
    MD5 = 157     # never written: hmd5 carries no code byte
    SHA1 = 161
    SHA224 = 162
    SHA256 = 163
    SHA384 = 164
    SHA512 = 165

    @property
    def hash_algorithm(self) -> hashes.HashAlgorithm:
        return _HASHES[self]()

    @property
    def digest_size(self) -> int:
        return _HASHES[self].digest_size

    @property
    def field_name(self) -> str:
        return "hmd5" if self is Algorithm.MD5 else "hsha"

    @property
    def canonical_name(self) -> str:
        return "hmac-" + self.name.lower()


_HASHES = {
    Algorithm.MD5: hashes.MD5,
    Algorithm.SHA1: hashes.SHA1,
    Algorithm.SHA224: hashes.SHA224,
    Algorithm.SHA256: hashes.SHA256,
    Algorithm.SHA384: hashes.SHA384,
    Algorithm.SHA512: hashes.SHA512,
}

# Case-exact: "sha256", "hsha256", "hmac-sha256" all name the same algorithm.
ALGORITHM_ALIASES: Dict[str, Algorithm] = {}
for _alg in Algorithm:
    _short = _alg.name.lower()
    for _alias in (_short, "h" + _short, "hmac-" + _short):
        ALGORITHM_ALIASES[_alias] = _alg
del _alg, _short, _alias


def parse_algorithm(name: Union[str, Algorithm]) -> Algorithm:
    """Map an algorithm name (or an Algorithm) to Algorithm."""
    if isinstance(name, Algorithm):
        return name
    try:
        return ALGORITHM_ALIASES[name]
    except (KeyError, TypeError):
        raise InvalidAlgorithm(f"Unknown algorithm: {name!r}") from None


# -----------------------------
# Key material
# -----------------------------

def decode_secret(secret_b64: Union[str, bytes]) -> bytes:
    """Decode a standard-alphabet, padded base64 secret."""
    if isinstance(secret_b64, str):
        secret_b64 = secret_b64.strip()
    else:
        secret_b64 = bytes(secret_b64).strip()
    try:
        return base64.b64decode(secret_b64, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise Base64DecodeError(f"Invalid base64 secret: {exc}") from exc


# -----------------------------
# Signing
# -----------------------------

def compute_hmac(secret: bytes, algorithm: Algorithm, data: bytes) -> bytes:
    """Raw HMAC digest of data."""
    try:
        mac = HMAC(secret, algorithm.hash_algorithm)
    except (UnsupportedAlgorithm, TypeError, ValueError) as exc:
        raise EncodingError(f"Cannot initialise {algorithm.canonical_name}: {exc}") from exc
    mac.update(data)
    return mac.finalize()


def _pack_signature(algorithm: Algorithm, digest: bytes) -> Dict[str, bytes]:
    sig_b64 = base64.b64encode(digest)
    if algorithm is Algorithm.MD5:
        return {"hmd5": sig_b64.rstrip(b"=")}

    slot = bytearray(SIGNATURE_SLOT_SIZE)
    slot[0] = int(algorithm)
    slot[1:1 + len(sig_b64)] = sig_b64
    return {"hsha": bytes(slot)}


def _unsigned(body: Dict) -> Dict:
    return {k: v for k, v in body.items() if k != "_auth"}


def sign(secret: bytes, algorithm: Algorithm, body: Dict) -> Dict[str, bytes]:
    """
    Compute the `_auth` table for a message body.

    Any `_auth` already present in body is ignored, so re-signing a message
    gives the same result as signing it fresh. body itself is not modified.
    """
    databuf = encode_table(_unsigned(body), headerless=True)
    return _pack_signature(algorithm, compute_hmac(secret, algorithm, databuf))


def encode_message(secret: bytes, algorithm: Algorithm, body: Dict) -> bytes:
    """
    Sign and serialize a message body into a complete frame.

    Layout: header, then the `_auth` entry, then the body entries.
    """
    unsigned = _unsigned(body)
    databuf = encode_table(unsigned, headerless=True)
    auth = _pack_signature(algorithm, compute_hmac(secret, algorithm, databuf))
    sigbuf = encode_table({"_auth": auth}, headerless=True)
    return pack_envelope(sigbuf + databuf)


def verify(secret: bytes, algorithm: Algorithm, frame: bytes) -> bool:
    """
    Check the `_auth` signature carried by a received frame.

    Returns False when the signature is missing, of another algorithm, or does
    not match. Malformed frames raise DecodingError.
    """
    auth, signed = split_signed(frame)
    if not auth:
        return False

    received = auth.get(algorithm.field_name)
    if isinstance(received, str):
        received = received.encode("utf-8")
    if not isinstance(received, bytes):
        return False

    expected = _pack_signature(algorithm, compute_hmac(secret, algorithm, signed))[algorithm.field_name]
    if algorithm is not Algorithm.MD5:
        # Only the code byte and the base64 text are significant in the slot.
        significant = 1 + len(base64.b64encode(bytes(algorithm.digest_size)))
        expected = expected[:significant]
        received = received[:significant]
    return hmac.compare_digest(received, expected)
