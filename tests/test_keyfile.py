"""
test_keyfile.py - Tests for key clause parsing, loading and generation.
"""

import base64

import pytest

from rndc.crypto import Algorithm
from rndc.errors import ConfigError, InvalidAlgorithm
from rndc.keyfile import format_key_clause, generate_secret, load_key, parse_key_clauses

RNDC_CONF = """
# generated by rndc-confgen
key "rndc-key" {
    algorithm hmac-sha256;
    secret "ab//cd+/ef==";   // slashes inside the secret are not a comment
};

/* a second key
   key "commented" { algorithm hmac-md5; secret "x"; }; */
key backup {
    algorithm "hmac-md5";
    secret "dGVzdA==";
};

options {
    default-key "rndc-key";
    default-server 127.0.0.1;
    default-port 953;
};
"""


def test_parse_all_keys():
    keys = parse_key_clauses(RNDC_CONF)
    assert list(keys) == ["rndc-key", "backup"]
    assert keys["rndc-key"].algorithm is Algorithm.SHA256
    assert keys["rndc-key"].secret == "ab//cd+/ef=="
    assert keys["backup"].algorithm is Algorithm.MD5
    assert keys["backup"].secret_bytes == b"test"


def test_missing_secret():
    with pytest.raises(ConfigError, match="no secret"):
        parse_key_clauses('key "k" { algorithm hmac-sha1; };')


def test_missing_algorithm():
    with pytest.raises(ConfigError, match="no algorithm"):
        parse_key_clauses('key "k" { secret "dGVzdA=="; };')


def test_unknown_algorithm_in_file():
    with pytest.raises(InvalidAlgorithm):
        parse_key_clauses('key "k" { algorithm hmac-sha3; secret "dGVzdA=="; };')


def test_load_first_and_named(tmp_path):
    path = tmp_path / "rndc.conf"
    path.write_text(RNDC_CONF)
    assert load_key(path).name == "rndc-key"
    assert load_key(path, "backup").algorithm is Algorithm.MD5


def test_load_unknown_name(tmp_path):
    path = tmp_path / "rndc.conf"
    path.write_text(RNDC_CONF)
    with pytest.raises(ConfigError, match="not found"):
        load_key(path, "nope")


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_key(tmp_path / "absent.key")


def test_load_file_without_keys(tmp_path):
    path = tmp_path / "empty.conf"
    path.write_text("options { default-port 953; };\n")
    with pytest.raises(ConfigError, match="No key clause"):
        load_key(path)


@pytest.mark.parametrize("algorithm", list(Algorithm))
def test_generated_secret_matches_digest_size(algorithm):
    secret = generate_secret(algorithm)
    assert len(base64.b64decode(secret)) == algorithm.digest_size


def test_generated_clause_parses_back():
    secret = generate_secret("hmac-sha512")
    clause = format_key_clause("gen-key", "sha512", secret)
    assert clause.startswith('key "gen-key" {\n\talgorithm hmac-sha512;')

    key = parse_key_clauses(clause)["gen-key"]
    assert key.algorithm is Algorithm.SHA512
    assert key.secret == secret
