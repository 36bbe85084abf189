from __future__ import annotations

from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from tradehub.app.api.deps import get_current_user, get_db, require_buyer, require_seller
from tradehub.app.db.models.models_v1 import User
from tradehub.app.schemas.wholesale import (
    AccessGrantRead,
    InvitationRead,
    InvitationSellerRead,
    WholesaleBuyerRead,
)
from tradehub.services import wholesale

router = APIRouter(prefix="/wholesale")


class WholesaleTermsIn(BaseModel):
    allowed_payment_terms: list[str] | None = None
    minimum_order_value: Decimal | None = Field(default=None, ge=0, max_digits=14, decimal_places=2)
    deposit_percentage: Decimal | None = Field(default=None, ge=0, le=100, max_digits=5, decimal_places=2)


class InvitationCreate(BaseModel):
    buyer_email: str = Field(min_length=3, max_length=255)
    buyer_name: str | None = Field(default=None, max_length=200)
    wholesale_terms: WholesaleTermsIn | None = None


# ---------- INVITATIONS ----------
@router.post("/invitations", response_model=InvitationSellerRead, status_code=201)
def create_invitation(
    payload: InvitationCreate,
    user: User = Depends(require_seller),
    db: Session = Depends(get_db),
):
    terms = payload.wholesale_terms.model_dump(mode="json", exclude_none=True) if payload.wholesale_terms else None
    inv = wholesale.create_invitation(
        db,
        seller_id=user.id,
        buyer_email=payload.buyer_email,
        buyer_name=payload.buyer_name,
        wholesale_terms=terms or None,
    )
    return InvitationSellerRead.model_validate(inv)


@router.get("/invitations", response_model=list[InvitationSellerRead])
def list_invitations(user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return [InvitationSellerRead.model_validate(i) for i in wholesale.list_invitations(db, seller_id=user.id)]


@router.get("/invitations/{token}", response_model=InvitationRead)
def get_invitation(token: str, db: Session = Depends(get_db)):
    return InvitationRead.model_validate(wholesale.get_invitation_by_token(db, token=token))


@router.post("/invitations/{token}/accept", response_model=AccessGrantRead)
def accept_invitation(token: str, user: User = Depends(require_buyer), db: Session = Depends(get_db)):
    grant = wholesale.accept_invitation(db, token=token, buyer_id=user.id)
    return AccessGrantRead.model_validate(grant)


@router.post("/invitations/{token}/reject")
def reject_invitation(token: str, db: Session = Depends(get_db)):
    return {"rejected": wholesale.reject_invitation(db, token=token)}


@router.post("/invitations/{invitation_id}/cancel", response_model=InvitationSellerRead)
def cancel_invitation(invitation_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    inv = wholesale.cancel_invitation(db, invitation_id=invitation_id, seller_id=user.id)
    return InvitationSellerRead.model_validate(inv)


# ---------- ACCESS GRANTS ----------
@router.get("/access-grants", response_model=list[AccessGrantRead])
def list_access_grants(
    user_type: Literal["buyer", "seller"] | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    rows = wholesale.list_access_grants(db, user_id=user.id, user_type=user_type)
    return [AccessGrantRead.model_validate(g) for g in rows]


@router.post("/access-grants/{grant_id}/revoke", response_model=AccessGrantRead)
def revoke_access_grant(grant_id: int, user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return AccessGrantRead.model_validate(wholesale.revoke_access_grant(db, seller_id=user.id, grant_id=grant_id))


@router.get("/buyers", response_model=list[WholesaleBuyerRead])
def list_wholesale_buyers(user: User = Depends(require_seller), db: Session = Depends(get_db)):
    return [
        WholesaleBuyerRead(
            **AccessGrantRead.model_validate(grant).model_dump(),
            buyer_email=buyer.email,
            buyer_name=buyer.name,
        )
        for grant, buyer in wholesale.list_wholesale_buyers(db, seller_id=user.id)
    ]
