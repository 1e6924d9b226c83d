"""
Nudges API Routes

List, dismiss and mute nudges. GET /nudges?check=true runs the engine first.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.db_models import NudgeCode, NudgeDeliveryDB, NudgePreferenceDB, UserDB
from ..services.nudges import (
    NudgeEngine,
    NudgeDeliveryService,
    NudgePreferenceService,
    PreferenceChange,
)
from ..services.notifications import get_dispatcher


router = APIRouter(prefix="/nudges", tags=["nudges"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class NudgeResponse(BaseModel):
    """A delivered nudge."""
    id: int
    nudge_code: str
    message: str
    severity: str
    shown_at: datetime
    dismissed_at: Optional[datetime] = None
    muted_until: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_delivery(cls, delivery: NudgeDeliveryDB) -> "NudgeResponse":
        return cls(
            id=delivery.id,
            nudge_code=delivery.nudge_code,
            message=delivery.message,
            severity=delivery.severity,
            shown_at=delivery.shown_at,
            dismissed_at=delivery.dismissed_at,
            muted_until=delivery.muted_until,
            created_at=delivery.created_at,
        )


class NudgeListResponse(BaseModel):
    nudges: List[NudgeResponse]


class PreferenceResponse(BaseModel):
    nudge_code: str
    muted_until: Optional[datetime] = None
    disabled: bool
    updated_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, pref: NudgePreferenceDB) -> "PreferenceResponse":
        return cls(
            nudge_code=pref.nudge_code,
            muted_until=pref.muted_until,
            disabled=pref.disabled,
            updated_at=pref.updated_at,
        )


class PreferenceListResponse(BaseModel):
    preferences: List[PreferenceResponse]


class PreferenceUpdateRequest(BaseModel):
    """Omitted fields are left unchanged; muted_until=null unmutes."""
    muted_until: Optional[datetime] = Field(None, description="Snooze until this instant (null clears)")
    disabled: Optional[bool] = Field(None, description="Turn the nudge type off entirely")


class OkResponse(BaseModel):
    ok: bool = True


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get("", response_model=NudgeListResponse)
async def list_nudges(
    check: bool = Query(False, description="Run nudge checks before listing"),
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher=Depends(get_dispatcher),
):
    """
    Recent undismissed nudges, newest first (at most 20).
    """
    if check:
        NudgeEngine(db, dispatcher=dispatcher).run_checks(current_user.id)

    active = NudgeDeliveryService(db).list_active(current_user.id)
    return NudgeListResponse(nudges=[NudgeResponse.from_delivery(n) for n in active])


@router.get("/preferences", response_model=PreferenceListResponse)
async def list_preferences(
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Mute/disable state per nudge type."""
    prefs = NudgePreferenceService(db).get_preferences(current_user.id)
    return PreferenceListResponse(preferences=[PreferenceResponse.from_row(p) for p in prefs])


@router.put("/preferences/{code}", response_model=OkResponse)
async def update_preference(
    code: str,
    request: PreferenceUpdateRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Mute (snooze) or disable a nudge type.

    Only the fields present in the body are changed.
    """
    if code not in {c.value for c in NudgeCode}:
        raise HTTPException(status_code=400, detail=f"Unknown nudge code: {code}")

    change = PreferenceChange.from_fields(**request.model_dump(include=request.model_fields_set))
    NudgePreferenceService(db).set_preference(current_user.id, code, change)
    return OkResponse()


@router.post("/{delivery_id}/dismiss", response_model=OkResponse)
async def dismiss_nudge(
    delivery_id: int,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Hide a nudge from the active list. Does not reset its cooldown."""
    if not NudgeDeliveryService(db).dismiss(current_user.id, delivery_id):
        raise HTTPException(status_code=404, detail="Nudge not found")
    return OkResponse()
