"""
keyfile.py — reading and writing `key` clauses from rndc.key / rndc.conf.

Only the pieces the client needs are understood:

    key "rndc-key" {
        algorithm hmac-sha256;
        secret "c2VjcmV0...";
    };

Other statements (options, server, ...) are skipped. Comments in `#`, `//`
and `/* */` form are ignored, but never inside quoted strings, since base64
secrets may contain "//".
"""

import base64
import os
import re
from dataclasses import dataclass
from typing import Dict, Optional, Union

from .crypto import Algorithm, decode_secret, parse_algorithm
from .errors import ConfigError

_TOKENS = re.compile(r'("(?:[^"\\]|\\.)*")|/\*.*?\*/|//[^\n]*|#[^\n]*', re.S)
_KEY_CLAUSE = re.compile(r'(?<![\w-])key\s+("[^"]*"|[^\s{;]+)\s*\{(.*?)\}\s*;', re.S)
_ALGORITHM = re.compile(r'(?<![\w-])algorithm\s+("[^"]*"|[^\s;]+)\s*;')
_SECRET = re.compile(r'(?<![\w-])secret\s+"([^"]*)"\s*;')


@dataclass
class KeyConfig:
    name: str
    algorithm: Algorithm
    secret: str  # base64, as written in the file

    @property
    def secret_bytes(self) -> bytes:
        return decode_secret(self.secret)


def _strip_comments(text: str) -> str:
    return _TOKENS.sub(lambda m: m.group(1) or " ", text)


def _unquote(token: str) -> str:
    return token[1:-1] if token.startswith('"') else token


def parse_key_clauses(text: str) -> Dict[str, KeyConfig]:
    """Return every key clause in text, keyed by name, in file order."""
    keys: Dict[str, KeyConfig] = {}
    for clause in _KEY_CLAUSE.finditer(_strip_comments(text)):
        name = _unquote(clause.group(1))
        body = clause.group(2)

        alg = _ALGORITHM.search(body)
        if alg is None:
            raise ConfigError(f"Key {name!r} has no algorithm")
        secret = _SECRET.search(body)
        if secret is None:
            raise ConfigError(f"Key {name!r} has no secret")

        keys[name] = KeyConfig(
            name=name,
            algorithm=parse_algorithm(_unquote(alg.group(1))),
            secret=secret.group(1),
        )
    return keys


def load_key(path: Union[str, os.PathLike], name: Optional[str] = None) -> KeyConfig:
    """Load the named key from a file, or the first one when name is None."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as exc:
        raise ConfigError(f"Cannot read key file {os.fspath(path)}: {exc}") from exc

    keys = parse_key_clauses(text)
    if not keys:
        raise ConfigError(f"No key clause in {os.fspath(path)}")
    if name is None:
        return next(iter(keys.values()))
    try:
        return keys[name]
    except KeyError:
        raise ConfigError(f"Key {name!r} not found in {os.fspath(path)}") from None


def generate_secret(algorithm: Union[str, Algorithm] = Algorithm.SHA256) -> str:
    """Fresh random secret, as long as the algorithm's digest, base64 encoded."""
    alg = parse_algorithm(algorithm)
    return base64.b64encode(os.urandom(alg.digest_size)).decode("ascii")


def format_key_clause(name: str, algorithm: Union[str, Algorithm], secret: str) -> str:
    alg = parse_algorithm(algorithm)
    return (
        f'key "{name}" {{\n'
        f"\talgorithm {alg.canonical_name};\n"
        f'\tsecret "{secret}";\n'
        f"}};\n"
    )
