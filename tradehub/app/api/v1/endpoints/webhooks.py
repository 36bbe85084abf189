from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from tradehub.app.api.deps import get_db
from tradehub.app.core.config import get_settings
from tradehub.app.db.models.core_types import PaymentType
from tradehub.services import quotations
from tradehub.services.payments import verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks")


def get_webhook_secret() -> str:
    return get_settings().stripe_webhook_secret


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None),
    secret: str = Depends(get_webhook_secret),
    db: Session = Depends(get_db),
):
    payload = await request.body()
    verify_webhook_signature(payload, stripe_signature, secret)

    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    event_type = event.get("type")
    if event_type != "payment_intent.succeeded":
        logger.debug("Ignoring Stripe event %s", event_type)
        return {"received": True, "handled": False}

    intent = event.get("data", {}).get("object", {})
    metadata = intent.get("metadata") or {}
    quotation_id = metadata.get("quotation_id")
    payment_type = metadata.get("payment_type")
    if not quotation_id or payment_type not in (PaymentType.deposit.value, PaymentType.balance.value):
        logger.info("Stripe intent %s has no quotation metadata, skipped", intent.get("id"))
        return {"received": True, "handled": False}

    q = await run_in_threadpool(
        quotations.record_payment_succeeded,
        db,
        quotation_id=int(quotation_id),
        payment_type=PaymentType(payment_type),
        payment_intent_id=intent["id"],
    )
    logger.info("Stripe payment %s recorded for quotation %s (%s)", intent["id"], q.quotation_number, payment_type)
    return {"received": True, "handled": True, "status": q.status}
