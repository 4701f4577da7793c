"""Verification of ``sha256=<hex>`` HMAC signatures on webhook bodies."""

from __future__ import annotations

import binascii
import hashlib
import hmac
from typing import Union

_PREFIX = "sha256="


def validate_hmac(body: Union[bytes, str], signature: str, secret: str) -> bool:
    """Whether ``signature`` is the HMAC-SHA256 of ``body`` under ``secret``."""
    if not isinstance(signature, str) or not signature.startswith(_PREFIX):
        return False
    try:
        got = binascii.unhexlify(signature[len(_PREFIX):])
    except (binascii.Error, ValueError):
        return False
    data = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    want = hmac.new(secret.encode("utf-8"), data, hashlib.sha256).digest()
    return hmac.compare_digest(got, want)