"""Payment provider clients used by the billing service."""
from __future__ import annotations

import json
import logging
from threading import Lock
from typing import Any, Dict, Mapping, Optional
from urllib import error as urllib_error, parse as urllib_parse, request as urllib_request

logger = logging.getLogger("billing")


class PaymentProviderError(Exception):
    """Provider unreachable or answered with something we cannot interpret."""


class FlutterwavePaymentProvider:
    """Client for the Flutterwave v3 REST API."""

    name = "flutterwave"

    def __init__(
        self,
        *,
        secret_key: Optional[str],
        base_url: str = "https://api.flutterwave.com/v3",
        timeout_seconds: float = 10.0,
    ) -> None:
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def create_payment(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/payments", body=payload)

    def verify_transaction(self, tx_ref: str) -> Dict[str, Any]:
        query = urllib_parse.urlencode({"tx_ref": tx_ref})
        return self._request("GET", f"/transactions/verify_by_reference?{query}")

    def _request(self, method: str, path: str, *, body: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        if not self.secret_key:
            raise PaymentProviderError("FLUTTERWAVE_SECRET_KEY is not configured")

        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib_request.Request(
            f"{self.base_url}{path}",
            data=data,
            method=method,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        try:
            with urllib_request.urlopen(request, timeout=self.timeout_seconds) as response:
                raw = response.read()
        except urllib_error.HTTPError as exc:
            # 4xx responses still carry the provider's JSON envelope.
            raw = exc.read() if 400 <= exc.code < 500 else b""
            if not raw:
                logger.warning(
                    "Payment provider request failed",
                    extra={"provider_path": path.split("?")[0], "provider_status": exc.code},
                )
                raise PaymentProviderError(f"Provider responded with HTTP {exc.code}") from exc
        except (urllib_error.URLError, TimeoutError, OSError) as exc:
            logger.warning(
                "Payment provider unreachable",
                extra={"provider_path": path.split("?")[0], "error": str(exc)},
            )
            raise PaymentProviderError("Payment provider unreachable") from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise PaymentProviderError("Malformed provider response") from exc
        if not isinstance(payload, dict):
            raise PaymentProviderError("Malformed provider response")
        return payload


class SandboxPaymentProvider:
    """In-process provider for local development; every checkout succeeds."""

    name = "sandbox"

    def __init__(self, *, checkout_base_url: str = "http://localhost:3000") -> None:
        self.checkout_base_url = checkout_base_url.rstrip("/")
        self._payments: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def create_payment(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        tx_ref = str(payload["tx_ref"])
        with self._lock:
            self._payments[tx_ref] = dict(payload)
        link = f"{self.checkout_base_url}/payment/success?{urllib_parse.urlencode({'tx_ref': tx_ref, 'status': 'successful'})}"
        return {"status": "success", "data": {"link": link}}

    def verify_transaction(self, tx_ref: str) -> Dict[str, Any]:
        with self._lock:
            payment = self._payments.get(tx_ref)
        if payment is None:
            return {"status": "error", "message": "No transaction was found for this id", "data": None}
        return {
            "status": "success",
            "data": {
                "id": f"sandbox-{tx_ref}",
                "tx_ref": tx_ref,
                "status": "successful",
                "amount": payment.get("amount"),
                "currency": payment.get("currency"),
                "customer": payment.get("customer") or {},
                "meta": payment.get("meta") or {},
            },
        }


__all__ = ["FlutterwavePaymentProvider", "PaymentProviderError", "SandboxPaymentProvider"]
