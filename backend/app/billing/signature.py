"""HMAC signatures for provider webhook deliveries."""
from __future__ import annotations

import hashlib
import hmac
from typing import Optional, Union

from ..errors import AuthenticationError, MissingSignatureError

SIGNATURE_HEADER = "verif-hash"


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def sign_payload(body: Union[str, bytes], secret: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of ``body``."""

    return hmac.new(_to_bytes(secret), _to_bytes(body), hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: Union[str, bytes],
    signature: Optional[str],
    secret: Optional[str],
) -> None:
    """Raise unless ``signature`` matches the HMAC of the raw ``body``.

    The body must not be parsed before this returns.
    """

    if not signature or not secret:
        raise MissingSignatureError("Missing signature or webhook secret")

    expected = sign_payload(body, secret)
    if not hmac.compare_digest(_to_bytes(signature.strip()), _to_bytes(expected)):
        raise AuthenticationError("Invalid signature", code="invalid_signature")


__all__ = ["SIGNATURE_HEADER", "sign_payload", "verify_webhook_signature"]
