"""Error taxonomy shared by the entitlement and payment services."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import HTTPException, status


class ServiceError(Exception):
    """Base error carrying the HTTP status a request boundary should surface."""

    code = "service_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.detail = dict(detail) if detail else {}

    @property
    def payload(self) -> Dict[str, Any]:
        """Serialized representation suitable for JSON responses."""

        body: Dict[str, Any] = {"error": self.message, "code": self.code}
        body.update(self.detail)
        return body

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.payload)


class AuthenticationError(ServiceError):
    code = "authentication_required"
    status_code = status.HTTP_401_UNAUTHORIZED


class MissingSignatureError(AuthenticationError):
    """Raised when a webhook arrives without a signature or shared secret."""

    code = "missing_signature"
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(ServiceError):
    code = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(ServiceError):
    code = "invalid_request"
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ServiceError):
    code = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class StoreError(ServiceError):
    code = "store_error"


class GenerationError(ServiceError):
    """Raised when no unique invite code could be produced; safe to retry."""

    code = "generation_failed"


class PaymentInitError(ServiceError):
    code = "payment_init_failed"


class VerificationPending(ServiceError):
    """Provider has not confirmed the transaction yet; callers should retry."""

    code = "verification_pending"
    status_code = status.HTTP_400_BAD_REQUEST


class VerificationFailed(ServiceError):
    """Terminal verification failure (unreachable provider or malformed payload)."""

    code = "verification_failed"
    status_code = status.HTTP_400_BAD_REQUEST


class UpstreamError(ServiceError):
    code = "upstream_error"
    status_code = status.HTTP_502_BAD_GATEWAY


__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "GenerationError",
    "MissingSignatureError",
    "NotFoundError",
    "PaymentInitError",
    "ServiceError",
    "StoreError",
    "UpstreamError",
    "ValidationError",
    "VerificationFailed",
    "VerificationPending",
]
