import json
import time

from tradehub.app.db.models.core_types import Role
from tradehub.services.payments import compute_signature

# même secret que la dépendance surchargée dans conftest
WEBHOOK_SECRET = "whsec_test_secret"


def _as(user):
    return {"X-User-Id": str(user.id)}


def _signed(payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    ts = int(time.time())
    return body, {"Stripe-Signature": f"t={ts},v1={compute_signature(body, ts, WEBHOOK_SECRET)}"}


def _succeeded(intent_id: str, quotation_id: int, payment_type: str) -> dict:
    return {
        "id": f"evt_{intent_id}",
        "type": "payment_intent.succeeded",
        "data": {
            "object": {
                "id": intent_id,
                "metadata": {"quotation_id": str(quotation_id), "payment_type": payment_type},
            }
        },
    }


QUOTATION = {
    "buyer_email": "importer@example.com",
    "currency": "EUR",
    "deposit_percentage": "40",
    "shipping_amount": "150.00",
    "delivery_terms": "CIF",
    "payment_terms": "Net 30",
    "items": [
        {"description": "Vanilla beans 1kg", "unit_price": "120.00", "quantity": 10},
        {"description": "Monoi oil 250ml", "unit_price": "8.50", "quantity": 100, "discount": "50"},
    ],
}


# ---------- AMBIENT ----------
def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_identity_and_roles_are_enforced(client, seller, buyer):
    assert client.get("/v1/trade/quotations").status_code == 401
    assert client.get("/v1/trade/quotations", headers={"X-User-Id": "999"}).status_code == 401
    assert client.get("/v1/trade/quotations", headers=_as(buyer)).status_code == 403
    assert client.get("/v1/trade/quotations", headers=_as(seller)).json() == []


def test_products(client, seller):
    r = client.post("/v1/products", json={"sku": "PAREO-01", "name": "Pareo", "price": "45.00"}, headers=_as(seller))
    assert r.status_code == 201
    assert r.json()["sku"] == "PAREO-01"

    dup = client.post("/v1/products", json={"sku": "PAREO-01", "name": "Pareo", "price": "45.00"}, headers=_as(seller))
    assert dup.status_code == 409

    listed = client.get("/v1/products", params={"seller_id": seller.id}).json()
    assert [p["sku"] for p in listed] == ["PAREO-01"]


# ---------- WHOLESALE ----------
def test_wholesale_flow(client, seller, buyer):
    product = client.post(
        "/v1/products", json={"sku": "VAN-1KG", "name": "Vanilla 1kg", "price": "120.00"}, headers=_as(seller)
    ).json()
    wp = client.post(
        "/v1/wholesale/products",
        json={"product_id": product["id"], "rrp": "120.00", "wholesale_price": "80.00", "moq": 5},
        headers=_as(seller),
    )
    assert wp.status_code == 201
    assert wp.json()["name"] == "Vanilla 1kg"

    inv = client.post(
        "/v1/wholesale/invitations",
        json={"buyer_email": buyer.email, "wholesale_terms": {"minimum_order_value": 400, "deposit_percentage": 20}},
        headers=_as(seller),
    )
    assert inv.status_code == 201
    assert inv.json()["wholesale_terms"] == {"minimum_order_value": "400", "deposit_percentage": "20"}
    token = inv.json()["token"]
    invitation_id = inv.json()["id"]

    public = client.get(f"/v1/wholesale/invitations/{token}").json()
    assert public["status"] == "pending"
    assert "token" not in public

    pricing_params = {"invitation_id": invitation_id, "product_id": product["id"], "quantity": 5}
    pricing = client.get("/v1/wholesale/rules/pricing", params=pricing_params, headers=_as(seller)).json()
    assert pricing["discount"] == "33.33"
    assert pricing["total"] == "400.00"

    # acheteur invité mais pas encore accepté : ni conditions ni catalogue
    assert client.get("/v1/wholesale/rules/pricing", params=pricing_params).status_code == 401
    assert client.get("/v1/wholesale/rules/pricing", params=pricing_params, headers=_as(buyer)).status_code == 403
    catalog = {"seller_id": seller.id}
    assert client.get("/v1/wholesale/products", params=catalog).status_code == 401
    assert client.get("/v1/wholesale/products", params=catalog, headers=_as(buyer)).status_code == 403

    grant = client.post(f"/v1/wholesale/invitations/{token}/accept", headers=_as(buyer))
    assert grant.status_code == 200
    assert grant.json()["status"] == "active"

    assert client.get("/v1/wholesale/rules/pricing", params=pricing_params, headers=_as(buyer)).status_code == 200
    listed = client.get("/v1/wholesale/products", params=catalog, headers=_as(buyer)).json()
    assert [(p["name"], p["wholesale_price"]) for p in listed] == [("Vanilla 1kg", "80.00")]

    rejected = client.post(
        "/v1/wholesale/orders",
        json={"seller_id": seller.id, "items": [{"product_id": product["id"], "quantity": 2}]},
        headers=_as(buyer),
    )
    assert rejected.status_code == 422
    body = rejected.json()
    assert body["error"] == "WHOLESALE_VALIDATION_FAILED"
    assert body["details"]["moq_validation"]["items_failing_moq"][0]["required_quantity"] == 5

    order = client.post(
        "/v1/wholesale/orders",
        json={"seller_id": seller.id, "items": [{"product_id": product["id"], "quantity": 6}], "po_number": "PO-1"},
        headers=_as(buyer),
    )
    assert order.status_code == 201
    order = order.json()
    assert order["total_cents"] == 48000
    assert order["deposit_amount_cents"] == 9600
    assert order["balance_amount_cents"] == 38400
    assert order["items"][0]["unit_price_cents"] == 8000
    assert order["next_statuses"] == ["cancelled", "deposit_paid", "paid"]

    mine = client.get("/v1/wholesale/orders", headers=_as(seller)).json()
    assert [o["id"] for o in mine] == [order["id"]]

    moved = client.patch(
        f"/v1/wholesale/orders/{order['id']}/status",
        json={"status": "deposit_paid", "note": "Wire received"},
        headers=_as(seller),
    )
    assert moved.json()["status"] == "deposit_paid"

    bad = client.patch(
        f"/v1/wholesale/orders/{order['id']}/status", json={"status": "fulfilled"}, headers=_as(seller)
    )
    assert bad.status_code == 409
    assert bad.json()["error"] == "INVALID_TRANSITION"

    events = client.get(f"/v1/wholesale/orders/{order['id']}/events", headers=_as(buyer)).json()
    assert [e["event_type"] for e in events] == ["status_deposit_paid", "order_created"]


def test_wholesale_rule_calculators(client, seller):
    deposit = client.post("/v1/wholesale/rules/deposit", json={"order_value": "1000", "deposit_percentage": "30"})
    assert deposit.json()["deposit_amount"] == "300.00"
    assert deposit.json()["balance_amount"] == "700.00"

    bad = client.post("/v1/wholesale/rules/deposit", json={"order_value": "-1", "deposit_percentage": "30"})
    assert bad.status_code == 400
    assert bad.json()["detail"] == "Order value cannot be negative"

    due = client.post("/v1/wholesale/rules/due-date", json={"order_date": "2026-01-15", "payment_terms": "Net 90"})
    assert due.json()["due_date"] == "2026-04-15"

    cart = client.post(
        "/v1/wholesale/rules/cart-totals",
        json={
            "items": [{"product_id": 1, "quantity": 3, "unit_price_cents": 1999, "moq": 5}],
            "deposit_percentage": "50",
        },
    ).json()
    assert cart["totals"]["subtotal_cents"] == 5997
    assert cart["totals"]["deposit_cents"] == 2999
    assert cart["moq"]["is_valid"] is False

    terms = {"invitation_id": 404, "payment_term": "Net 30"}
    assert client.post("/v1/wholesale/rules/payment-terms", json=terms).status_code == 401
    assert client.post("/v1/wholesale/rules/payment-terms", json=terms, headers=_as(seller)).status_code == 404


def _listed(client, seller, *, sku="VAN-1KG", price="80.00", moq=5):
    product = client.post(
        "/v1/products", json={"sku": sku, "name": f"Item {sku}", "price": "120.00"}, headers=_as(seller)
    ).json()
    wp = client.post(
        "/v1/wholesale/products",
        json={"product_id": product["id"], "rrp": "120.00", "wholesale_price": price, "moq": moq},
        headers=_as(seller),
    ).json()
    return product, wp


def _grant(client, seller, buyer, terms=None):
    inv = client.post(
        "/v1/wholesale/invitations",
        json={"buyer_email": buyer.email, "wholesale_terms": terms or {}},
        headers=_as(seller),
    ).json()
    client.post(f"/v1/wholesale/invitations/{inv['token']}/accept", headers=_as(buyer))
    return inv


def test_wholesale_product_update(client, make_user, seller):
    _, wp = _listed(client, seller)

    patched = client.patch(
        f"/v1/wholesale/products/{wp['id']}", json={"wholesale_price": "75.50", "moq": 10}, headers=_as(seller)
    )
    assert patched.status_code == 200
    assert patched.json()["wholesale_price"] == "75.50"
    assert patched.json()["moq"] == 10
    assert patched.json()["rrp"] == "120.00"

    hidden = client.patch(f"/v1/wholesale/products/{wp['id']}", json={"active": False}, headers=_as(seller))
    assert hidden.json()["active"] is False
    everything = client.get(
        "/v1/wholesale/products", params={"seller_id": seller.id, "active_only": False}, headers=_as(seller)
    ).json()
    assert [p["id"] for p in everything] == [wp["id"]]

    assert client.patch(f"/v1/wholesale/products/{wp['id']}", json={"moq": None}, headers=_as(seller)).status_code == 400

    rival = make_user("rival@example.com", Role.seller)
    assert client.patch(f"/v1/wholesale/products/{wp['id']}", json={"moq": 2}, headers=_as(rival)).status_code == 404


def test_cancel_invitation_and_buyer_list(client, make_user, seller, buyer):
    pending = client.post(
        "/v1/wholesale/invitations", json={"buyer_email": "later@example.com"}, headers=_as(seller)
    ).json()
    _grant(client, seller, buyer)

    cancelled = client.post(f"/v1/wholesale/invitations/{pending['id']}/cancel", headers=_as(seller))
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"
    assert cancelled.json()["cancelled_at"] is not None

    # le lien annulé ne fonctionne plus
    assert client.get(f"/v1/wholesale/invitations/{pending['token']}").status_code == 409
    again = client.post(f"/v1/wholesale/invitations/{pending['id']}/cancel", headers=_as(seller))
    assert again.status_code == 409

    rival = make_user("rival@example.com", Role.seller)
    assert client.post(f"/v1/wholesale/invitations/{pending['id']}/cancel", headers=_as(rival)).status_code == 403

    buyers = client.get("/v1/wholesale/buyers", headers=_as(seller)).json()
    assert [(b["buyer_email"], b["buyer_name"], b["status"]) for b in buyers] == [
        ("buyer@example.com", "Island Retail", "active")
    ]
    assert client.get("/v1/wholesale/buyers", headers=_as(buyer)).status_code == 403


def test_wholesale_order_addresses(client, seller, buyer):
    product, _ = _listed(client, seller, moq=1)
    _grant(client, seller, buyer, {"minimum_order_value": 0})
    address = {
        "name": "Island Retail",
        "line1": "12 Rue du Port",
        "city": "Papeete",
        "postal_code": "98714",
        "country": "PF",
    }

    order = client.post(
        "/v1/wholesale/orders",
        json={
            "seller_id": seller.id,
            "items": [{"product_id": product["id"], "quantity": 1}],
            "shipping_address": address,
        },
        headers=_as(buyer),
    )
    assert order.status_code == 201
    assert order.json()["shipping_address"]["city"] == "Papeete"
    # sans adresse de facturation, celle de livraison est reprise
    assert order.json()["billing_address"] == order.json()["shipping_address"]

    bad = client.post(
        "/v1/wholesale/orders",
        json={
            "seller_id": seller.id,
            "items": [{"product_id": product["id"], "quantity": 1}],
            "shipping_address": {**address, "country": "France"},
        },
        headers=_as(buyer),
    )
    assert bad.status_code == 422


def test_wholesale_cart_flow(client, seller, buyer):
    vanilla, _ = _listed(client, seller, sku="VAN-1KG", price="80.00", moq=5)
    oil, _ = _listed(client, seller, sku="OIL-250", price="4.25", moq=1)

    # pas d'accès, pas de panier
    assert client.get("/v1/wholesale/cart", params={"seller_id": seller.id}, headers=_as(buyer)).status_code == 403

    _grant(client, seller, buyer, {"deposit_percentage": 25})

    empty = client.get("/v1/wholesale/cart", params={"seller_id": seller.id}, headers=_as(buyer)).json()
    assert empty["items"] == []
    assert empty["subtotal_cents"] == 0
    assert empty["moq_valid"] is True

    cart = client.post(
        "/v1/wholesale/cart/items",
        json={"seller_id": seller.id, "product_id": vanilla["id"], "quantity": 3},
        headers=_as(buyer),
    ).json()
    assert cart["items"][0]["product_sku"] == "VAN-1KG"
    assert cart["items"][0]["moq_compliant"] is False
    assert cart["moq_valid"] is False

    cart = client.post(
        "/v1/wholesale/cart/items",
        json={"seller_id": seller.id, "product_id": vanilla["id"], "quantity": 2},
        headers=_as(buyer),
    ).json()
    assert cart["items"][0]["quantity"] == 5
    assert cart["moq_valid"] is True

    cart = client.post(
        "/v1/wholesale/cart/items",
        json={"seller_id": seller.id, "product_id": oil["id"], "quantity": 10},
        headers=_as(buyer),
    ).json()
    assert [i["line_total_cents"] for i in cart["items"]] == [40000, 4250]
    assert cart["subtotal_cents"] == 44250
    assert cart["deposit_percentage"] == "25"
    assert cart["deposit_cents"] == 11063
    assert cart["balance_due_cents"] == 33187
    assert cart["total_cents"] == 44250

    updated = client.patch(
        f"/v1/wholesale/cart/items/{oil['id']}", json={"seller_id": seller.id, "quantity": 2}, headers=_as(buyer)
    ).json()
    assert updated["items"][1]["line_total_cents"] == 850

    removed = client.delete(
        f"/v1/wholesale/cart/items/{vanilla['id']}", params={"seller_id": seller.id}, headers=_as(buyer)
    ).json()
    assert [i["product_id"] for i in removed["items"]] == [oil["id"]]
    assert removed["subtotal_cents"] == 850

    unknown = client.patch(
        f"/v1/wholesale/cart/items/{vanilla['id']}", json={"seller_id": seller.id, "quantity": 1}, headers=_as(buyer)
    )
    assert unknown.status_code == 404
    assert client.get("/v1/wholesale/cart", params={"seller_id": seller.id}, headers=_as(seller)).status_code == 403


# ---------- QUOTATIONS ----------
def test_quotation_lifecycle_with_payments(client, seller, buyer, gateway):
    created = client.post("/v1/trade/quotations", json=QUOTATION, headers=_as(seller))
    assert created.status_code == 201
    q = created.json()
    assert q["status"] == "draft"
    assert q["currency"] == "EUR"
    assert q["subtotal"] == "2000.00"
    assert q["total"] == "2150.00"
    assert q["deposit_amount"] == "860.00"
    assert q["balance_amount"] == "1290.00"
    assert q["delivery_terms"] == "CIF"
    assert [i["line_number"] for i in q["items"]] == [1, 2]
    token = q["view_token"]

    # brouillon invisible côté acheteur
    assert client.get(f"/v1/trade/view/{token}").status_code == 404

    sent = client.post(f"/v1/trade/quotations/{q['id']}/send", headers=_as(seller))
    assert sent.json()["status"] == "sent"

    view = client.get(f"/v1/trade/view/{token}").json()
    assert view["status"] == "viewed"
    assert "view_token" not in view

    accepted = client.post(f"/v1/trade/view/{token}/accept", json={"company": "Island Retail"}, headers=_as(buyer))
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"
    assert {p["payment_type"]: p["amount"] for p in accepted.json()["payments"]} == {
        "deposit": "860.00",
        "balance": "1290.00",
    }

    intent = client.post(
        f"/v1/trade/view/{token}/payment-intents",
        json={"payment_type": "deposit"},
        headers={"Idempotency-Key": "buyer-click-1"},
    )
    assert intent.status_code == 201
    assert intent.json()["client_secret"] == "pi_test_1_secret"
    assert gateway.calls[0]["amount"] == 86000
    assert gateway.calls[0]["currency"] == "EUR"
    assert gateway.calls[0]["idempotency_key"] == "buyer-click-1"

    # second clic avec une autre clé : même intent, pas de second débit
    retry = client.post(
        f"/v1/trade/view/{token}/payment-intents",
        json={"payment_type": "deposit"},
        headers={"Idempotency-Key": "buyer-click-2"},
    )
    assert retry.json()["id"] == "pi_test_1"
    assert len(gateway.calls) == 1

    body, headers = _signed(_succeeded("pi_test_1", q["id"], "deposit"))
    hook = client.post("/v1/webhooks/stripe", content=body, headers=headers)
    assert hook.status_code == 200
    assert hook.json() == {"received": True, "handled": True, "status": "deposit_paid"}

    # rejeu
    assert client.post("/v1/webhooks/stripe", content=body, headers=headers).json()["status"] == "deposit_paid"

    client.post(f"/v1/trade/view/{token}/payment-intents", json={"payment_type": "balance"})
    body, headers = _signed(_succeeded("pi_test_2", q["id"], "balance"))
    assert client.post("/v1/webhooks/stripe", content=body, headers=headers).json()["status"] == "fully_paid"

    done = client.post(f"/v1/trade/quotations/{q['id']}/complete", headers=_as(seller))
    assert done.json()["status"] == "completed"

    payments = client.get(f"/v1/trade/quotations/{q['id']}/payments", headers=_as(seller)).json()
    assert [(p["payment_type"], p["status"]) for p in payments] == [("deposit", "paid"), ("balance", "paid")]

    activities = client.get(f"/v1/trade/quotations/{q['id']}/activities", headers=_as(seller)).json()
    assert activities[0]["event_type"] == "completed"


def test_quotation_edit_preview_and_document(client, seller):
    q = client.post("/v1/trade/quotations", json=QUOTATION, headers=_as(seller)).json()

    patched = client.patch(
        f"/v1/trade/quotations/{q['id']}",
        json={"tax_rate": "0.1", "items": [{"description": "Sample crate", "unit_price": "500", "quantity": 2}]},
        headers=_as(seller),
    )
    assert patched.status_code == 200
    assert patched.json()["subtotal"] == "1000.00"
    assert patched.json()["tax_amount"] == "100.00"
    assert patched.json()["total"] == "1250.00"

    items = client.get(f"/v1/trade/quotations/{q['id']}/items", headers=_as(seller)).json()
    assert [i["description"] for i in items] == ["Sample crate"]

    preview = client.post(
        "/v1/trade/quotations/preview",
        json={"items": [{"description": "x", "unit_price": "10", "quantity": 3}], "deposit_percentage": "0"},
        headers=_as(seller),
    ).json()
    assert preview["total"] == "30.00"
    assert preview["deposit_amount"] == "0.00"

    doc = client.get(f"/v1/trade/quotations/{q['id']}/document", headers=_as(seller))
    assert doc.status_code == 200
    assert doc.headers["content-type"] == "application/pdf"
    assert doc.content.startswith(b"%PDF")


def test_preview_matches_stored_totals(client, seller):
    preview_fields = ("items", "currency", "deposit_percentage", "shipping_amount")
    preview = client.post(
        "/v1/trade/quotations/preview",
        json={k: QUOTATION[k] for k in preview_fields},
        headers=_as(seller),
    ).json()
    stored = client.post("/v1/trade/quotations", json=QUOTATION, headers=_as(seller)).json()

    for key in ("subtotal", "tax_amount", "shipping_amount", "total", "deposit_amount", "balance_amount"):
        assert preview[key] == stored[key], key
    assert [l["line_total"] for l in preview["line_items"]] == ["1200.00", "800.00"]


def test_quotation_error_mapping(client, make_user, seller):
    rival = make_user("rival@example.com", Role.seller)
    q = client.post("/v1/trade/quotations", json=QUOTATION, headers=_as(seller)).json()

    assert client.get(f"/v1/trade/quotations/{q['id']}", headers=_as(rival)).status_code == 404
    assert client.post(f"/v1/trade/quotations/{q['id']}/send", headers=_as(rival)).status_code == 403
    assert client.post(f"/v1/trade/quotations/{q['id']}/complete", headers=_as(seller)).status_code == 409

    bad_currency = client.post("/v1/trade/quotations", json={**QUOTATION, "currency": "XYZ"}, headers=_as(seller))
    assert bad_currency.status_code == 400
    assert bad_currency.json()["detail"] == "Unsupported currency: XYZ"

    bad_incoterm = client.post("/v1/trade/quotations", json={**QUOTATION, "delivery_terms": "XXX"}, headers=_as(seller))
    assert bad_incoterm.status_code == 422

    expired = client.post(
        "/v1/trade/quotations", json={**QUOTATION, "valid_until": "2020-01-01"}, headers=_as(seller)
    ).json()
    assert client.post(f"/v1/trade/quotations/{expired['id']}/send", headers=_as(seller)).status_code == 409


def test_accept_after_validity_returns_gone(client, db_session, seller):
    from datetime import date

    from tradehub.app.db.models.models_v1 import TradeQuotation

    q = client.post("/v1/trade/quotations", json=QUOTATION, headers=_as(seller)).json()
    client.post(f"/v1/trade/quotations/{q['id']}/send", headers=_as(seller))

    row = db_session.get(TradeQuotation, q["id"])
    row.valid_until = date(2020, 1, 1)
    db_session.commit()

    r = client.post(f"/v1/trade/view/{q['view_token']}/accept")
    assert r.status_code == 410
    assert client.get(f"/v1/trade/quotations/{q['id']}", headers=_as(seller)).json()["status"] == "expired"


def test_webhook_rejects_bad_signature_and_ignores_other_events(client):
    body = json.dumps({"type": "payment_intent.succeeded"}).encode()
    r = client.post("/v1/webhooks/stripe", content=body, headers={"Stripe-Signature": "t=1,v1=nope"})
    assert r.status_code == 400
    assert r.json()["error"] == "INVALID_SIGNATURE"

    body, headers = _signed({"type": "charge.refunded", "data": {"object": {"id": "ch_1"}}})
    assert client.post("/v1/webhooks/stripe", content=body, headers=headers).json() == {
        "received": True,
        "handled": False,
    }
