"""
Passerelle de paiement (Stripe).

Appels REST directs via requests : un PaymentIntent par phase de paiement
(acompte / solde). La vérification de signature des webhooks suit le schéma
Stripe ``t=<timestamp>,v1=<hmac sha256>``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Protocol

import requests

from tradehub.app.core.config import get_settings
from tradehub.services.errors import PaymentGatewayError, SignatureError

logger = logging.getLogger(__name__)

SIGNATURE_TOLERANCE_SECONDS = 300


@dataclass(frozen=True)
class PaymentIntent:
    id: str
    client_secret: str | None
    status: str
    amount: int
    currency: str


class PaymentGateway(Protocol):
    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent: ...

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent: ...


# statuts Stripe d'un intent qui ne pourra plus jamais aboutir
DEAD_INTENT_STATUSES = {"canceled"}


class StripeGateway:
    def __init__(self, secret_key: str, *, api_base: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def create_payment_intent(
        self,
        *,
        amount: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str | None = None,
    ) -> PaymentIntent:
        if amount <= 0:
            raise ValueError("Payment amount must be greater than 0")

        data: dict[str, Any] = {
            "amount": amount,
            "currency": currency.lower(),
            "automatic_payment_methods[enabled]": "true",
        }
        for key, value in metadata.items():
            data[f"metadata[{key}]"] = value

        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key

        body = self._request("post", "payment_intents", data=data, headers=headers)
        logger.info("Created payment intent %s for %s %s", body.get("id"), amount, currency.upper())
        return _intent_from_body(body, amount=amount, currency=currency)

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        body = self._request("get", f"payment_intents/{intent_id}")
        return _intent_from_body(body)

    def _request(self, method: str, path: str, **kwargs) -> dict[str, Any]:
        if not self.secret_key:
            raise PaymentGatewayError("Payment processor is not configured")
        try:
            resp = getattr(self.session, method)(
                f"{self.api_base}/{path}",
                auth=(self.secret_key, ""),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            logger.warning("Stripe request failed: %s", exc)
            raise PaymentGatewayError("Payment processor unreachable") from exc

        body = _json_or_empty(resp)
        if resp.status_code >= 400:
            message = body.get("error", {}).get("message") or f"HTTP {resp.status_code}"
            logger.warning("Stripe rejected %s /%s (%s): %s", method.upper(), path, resp.status_code, message)
            raise PaymentGatewayError(f"Payment processor error: {message}")
        return body


def _intent_from_body(body: dict[str, Any], *, amount: int = 0, currency: str = "") -> PaymentIntent:
    return PaymentIntent(
        id=body["id"],
        client_secret=body.get("client_secret"),
        status=body.get("status", "requires_payment_method"),
        amount=int(body.get("amount", amount)),
        currency=str(body.get("currency", currency)).upper(),
    )


def _json_or_empty(resp: requests.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(
        settings.stripe_secret_key,
        api_base=settings.stripe_api_base,
        timeout=settings.stripe_timeout_seconds,
    )


def compute_signature(payload: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode() + payload
    return hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    payload: bytes,
    header: str | None,
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> None:
    if not secret:
        raise SignatureError("Webhook secret is not configured")
    if not header:
        raise SignatureError("Missing Stripe-Signature header")

    timestamp: int | None = None
    candidates: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t" and value.isdigit():
            timestamp = int(value)
        elif key == "v1":
            candidates.append(value)

    if timestamp is None or not candidates:
        raise SignatureError("Malformed Stripe-Signature header")

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        raise SignatureError("Signature timestamp outside tolerance")

    expected = compute_signature(payload, timestamp, secret)
    if not any(hmac.compare_digest(expected, c) for c in candidates):
        raise SignatureError("Signature mismatch")
