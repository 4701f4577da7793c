import hashlib
import hmac

import pytest

from miclaw.webhook.signature import validate_hmac


def _sign(payload: bytes, key: str) -> str:
    return "sha256=" + hmac.new(key.encode(), payload, hashlib.sha256).hexdigest()


def test_valid_signature_accepted():
    assert validate_hmac(b"secret payload", _sign(b"secret payload", "secret"), "secret") is True


def test_str_body_accepted():
    assert validate_hmac("payload", _sign(b"payload", "secret"), "secret") is True


def test_uppercase_hex_accepted():
    sig = _sign(b"payload", "secret")
    assert validate_hmac(b"payload", "sha256=" + sig[7:].upper(), "secret") is True


def test_tampered_body_rejected():
    sig = _sign(b"payload", "secret")
    assert validate_hmac(b"payload!", sig, "secret") is False


def test_wrong_secret_rejected():
    sig = _sign(b"payload", "secret")
    assert validate_hmac(b"payload", sig, "token") is False


def test_short_digest_rejected():
    assert validate_hmac(b"payload", "sha256=deadbeef", "secret") is False


@pytest.mark.parametrize(
    "signature",
    ["", "deadbeef", "sha1=deadbeef", "sha256=zz", "sha256=abc", "sha256= ab"],
)
def test_malformed_signature_rejected(signature):
    assert validate_hmac(b"payload", signature, "secret") is False


def test_missing_prefix_rejected_even_with_right_digest():
    sig = _sign(b"payload", "secret")
    assert validate_hmac(b"payload", sig[len("sha256="):], "secret") is False