"""
Notification API Routes

Web Push subscribe / unsubscribe for the browser client.
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.db_models import UserDB
from ..services.notifications import PushSubscriptionService, get_dispatcher


router = APIRouter(prefix="/notifications", tags=["notifications"])


class SubscriptionKeys(BaseModel):
    auth: Optional[str] = None
    p256dh: Optional[str] = None


class Subscription(BaseModel):
    """Shape returned by PushManager.subscribe() in the browser."""
    endpoint: Optional[str] = None
    keys: Optional[SubscriptionKeys] = None


class SubscribeRequest(BaseModel):
    subscription: Subscription


class UnsubscribeRequest(BaseModel):
    endpoint: str


class OkResponse(BaseModel):
    ok: bool = True


class VapidKeyResponse(BaseModel):
    publicKey: str


@router.post("/subscribe", response_model=OkResponse)
async def subscribe(
    request: SubscribeRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Register this browser for nudge push notifications."""
    try:
        PushSubscriptionService(db).add_subscription(
            current_user.id, request.subscription.model_dump()
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return OkResponse()


@router.post("/unsubscribe", response_model=OkResponse)
async def unsubscribe(
    request: UnsubscribeRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    PushSubscriptionService(db).remove_subscription(current_user.id, request.endpoint)
    return OkResponse()


@router.get("/vapid-public-key", response_model=VapidKeyResponse)
async def vapid_public_key(dispatcher=Depends(get_dispatcher)):
    """Public key the browser needs to subscribe; 503 when push is not configured."""
    key = dispatcher.push_service.public_key
    if not key:
        raise HTTPException(status_code=503, detail="Push notifications not configured")
    return VapidKeyResponse(publicKey=key)
