"""
Nudge Preference Service

Per-user, per-rule mute and disable switches.

Updates are partial: a field is written only when the caller sent it. The
presence flags on PreferenceChange carry that, because muted_until=None is a
real value ("unmute now"), not "leave alone".
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...models.db_models import NudgeCode, NudgePreferenceDB
from .rules import code_value, to_naive_utc


logger = logging.getLogger(__name__)

KNOWN_CODES = frozenset(code.value for code in NudgeCode)


@dataclass(frozen=True)
class PreferenceChange:
    """A partial preference update."""
    muted_until: Optional[datetime] = None
    disabled: Optional[bool] = None
    has_muted_until: bool = False
    has_disabled: bool = False

    @classmethod
    def from_fields(cls, **fields) -> "PreferenceChange":
        """Build from only the keys the client actually sent."""
        return cls(
            muted_until=fields.get("muted_until"),
            disabled=fields.get("disabled"),
            has_muted_until="muted_until" in fields,
            has_disabled="disabled" in fields,
        )


class NudgePreferenceService:
    """Reads and upserts NudgePreferenceDB rows."""

    def __init__(self, db: Session):
        self.db = db

    def get_preferences(self, user_id: str) -> List[NudgePreferenceDB]:
        return (
            self.db.query(NudgePreferenceDB)
            .filter(NudgePreferenceDB.user_id == user_id)
            .order_by(NudgePreferenceDB.nudge_code)
            .all()
        )

    def set_preference(
        self,
        user_id: str,
        rule_code: str,
        change: PreferenceChange,
        now: Optional[datetime] = None,
    ) -> Optional[NudgePreferenceDB]:
        """
        Insert or partially update the preference row for (user, rule_code).

        Returns the row, or None when rule_code is not a known nudge (nothing
        is written in that case).
        """
        code = code_value(rule_code)
        if code not in KNOWN_CODES:
            logger.warning(f"Ignoring preference update for unknown nudge code {code!r}")
            return None

        now = now or datetime.utcnow()
        try:
            pref = self._upsert(user_id, code, change, now)
            self.db.commit()
        except IntegrityError:
            # Lost an insert race with a concurrent request; the row exists now
            self.db.rollback()
            pref = self._upsert(user_id, code, change, now)
            self.db.commit()

        self.db.refresh(pref)
        return pref

    def _upsert(self, user_id: str, code: str, change: PreferenceChange, now: datetime) -> NudgePreferenceDB:
        pref = (
            self.db.query(NudgePreferenceDB)
            .filter(NudgePreferenceDB.user_id == user_id, NudgePreferenceDB.nudge_code == code)
            .first()
        )
        if pref is None:
            pref = NudgePreferenceDB(
                user_id=user_id,
                nudge_code=code,
                muted_until=to_naive_utc(change.muted_until) if change.has_muted_until else None,
                disabled=bool(change.disabled) if change.has_disabled else False,
                updated_at=now,
            )
            self.db.add(pref)
            self.db.flush()
            return pref

        if change.has_muted_until:
            pref.muted_until = to_naive_utc(change.muted_until)
        if change.has_disabled:
            pref.disabled = bool(change.disabled)
        pref.updated_at = now
        self.db.flush()
        return pref
