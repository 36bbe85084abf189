import pytest
import requests

from tradehub.services.errors import PaymentGatewayError, SignatureError
from tradehub.services.payments import StripeGateway, compute_signature, verify_webhook_signature

SECRET = "whsec_unit"
PAYLOAD = b'{"type": "payment_intent.succeeded"}'


class FakeResponse:
    def __init__(self, status_code, body):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.requests = []

    def post(self, url, **kwargs):
        self.requests.append((url, kwargs))
        if self.exc:
            raise self.exc
        return self.response

    def get(self, url, **kwargs):
        return self.post(url, **kwargs)


# ---------- WEBHOOK SIGNATURE ----------
def test_valid_signature_passes():
    header = f"t=1700000000,v1={compute_signature(PAYLOAD, 1700000000, SECRET)}"
    verify_webhook_signature(PAYLOAD, header, SECRET, now=1700000100)


def test_any_v1_candidate_may_match():
    good = compute_signature(PAYLOAD, 1700000000, SECRET)
    verify_webhook_signature(PAYLOAD, f"t=1700000000,v1=deadbeef,v1={good}", SECRET, now=1700000000)


@pytest.mark.parametrize(
    "header, message",
    [
        (None, "Missing"),
        ("v1=abc", "Malformed"),
        ("t=1700000000", "Malformed"),
        ("t=1700000000,v1=abc", "mismatch"),
    ],
)
def test_bad_signatures_are_rejected(header, message):
    with pytest.raises(SignatureError, match=message):
        verify_webhook_signature(PAYLOAD, header, SECRET, now=1700000000)


def test_stale_timestamp_is_rejected():
    header = f"t=1700000000,v1={compute_signature(PAYLOAD, 1700000000, SECRET)}"
    with pytest.raises(SignatureError, match="tolerance"):
        verify_webhook_signature(PAYLOAD, header, SECRET, now=1700000301)


def test_tampered_payload_is_rejected():
    header = f"t=1700000000,v1={compute_signature(PAYLOAD, 1700000000, SECRET)}"
    with pytest.raises(SignatureError):
        verify_webhook_signature(PAYLOAD + b" ", header, SECRET, now=1700000000)


def test_missing_secret_is_rejected():
    with pytest.raises(SignatureError, match="not configured"):
        verify_webhook_signature(PAYLOAD, "t=1,v1=x", "")


# ---------- STRIPE GATEWAY ----------
def test_create_payment_intent_posts_form_with_metadata():
    session = FakeSession(
        FakeResponse(
            200,
            {
                "id": "pi_123",
                "client_secret": "pi_123_secret_abc",
                "status": "requires_payment_method",
                "amount": 67500,
                "currency": "usd",
            },
        )
    )
    gw = StripeGateway("sk_test_123", api_base="https://stripe.test/v1/", session=session)

    intent = gw.create_payment_intent(
        amount=67500,
        currency="USD",
        metadata={"quotation_id": "7", "payment_type": "deposit"},
        idempotency_key="quotation-7-deposit",
    )

    assert intent.id == "pi_123"
    assert intent.currency == "USD"
    url, kwargs = session.requests[0]
    assert url == "https://stripe.test/v1/payment_intents"
    assert kwargs["auth"] == ("sk_test_123", "")
    assert kwargs["headers"] == {"Idempotency-Key": "quotation-7-deposit"}
    assert kwargs["data"]["amount"] == 67500
    assert kwargs["data"]["currency"] == "usd"
    assert kwargs["data"]["metadata[quotation_id]"] == "7"


def test_stripe_error_becomes_gateway_error():
    session = FakeSession(FakeResponse(402, {"error": {"message": "Your card was declined."}}))
    gw = StripeGateway("sk_test_123", api_base="https://stripe.test/v1", session=session)

    with pytest.raises(PaymentGatewayError, match="card was declined"):
        gw.create_payment_intent(amount=100, currency="usd", metadata={})


def test_transport_error_becomes_gateway_error():
    session = FakeSession(exc=requests.ConnectionError("boom"))
    gw = StripeGateway("sk_test_123", api_base="https://stripe.test/v1", session=session)

    with pytest.raises(PaymentGatewayError, match="unreachable"):
        gw.create_payment_intent(amount=100, currency="usd", metadata={})


def test_gateway_requires_key_and_positive_amount():
    with pytest.raises(PaymentGatewayError):
        StripeGateway("", api_base="https://stripe.test/v1", session=FakeSession()).create_payment_intent(
            amount=100, currency="usd", metadata={}
        )
    with pytest.raises(ValueError):
        StripeGateway("sk", api_base="https://stripe.test/v1", session=FakeSession()).create_payment_intent(
            amount=0, currency="usd", metadata={}
        )


def test_retrieve_payment_intent_reads_status():
    session = FakeSession(
        FakeResponse(
            200,
            {"id": "pi_123", "client_secret": "pi_123_secret_abc", "status": "canceled", "amount": 500, "currency": "eur"},
        )
    )
    gw = StripeGateway("sk_test_123", api_base="https://stripe.test/v1", session=session)

    intent = gw.retrieve_payment_intent("pi_123")

    assert intent.status == "canceled"
    assert intent.currency == "EUR"
    url, kwargs = session.requests[0]
    assert url == "https://stripe.test/v1/payment_intents/pi_123"
    assert "data" not in kwargs
