"""
Nudge Gate

Decides whether a rule may deliver right now. Read-only.

Order of checks:
1. Rule disabled for the user
2. Rule muted until a later instant
3. Same rule delivered within its cooldown window (measured from shown_at,
   dismissed deliveries included)
"""
import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from ...models.db_models import NudgeDeliveryDB, NudgePreferenceDB
from .rules import code_value, cooldown_hours, to_naive_utc


logger = logging.getLogger(__name__)


class NudgeGate:
    """Cooldown / mute / disable policy for nudge delivery."""

    def __init__(self, db: Session):
        self.db = db

    def should_skip(self, user_id: str, rule_code: str, now: datetime) -> bool:
        """Return True when `rule_code` must not be delivered to `user_id` at `now`."""
        rule_code = code_value(rule_code)
        now = to_naive_utc(now)
        pref = (
            self.db.query(NudgePreferenceDB)
            .filter(NudgePreferenceDB.user_id == user_id, NudgePreferenceDB.nudge_code == rule_code)
            .first()
        )
        if pref is not None:
            if pref.disabled:
                logger.debug(f"Nudge {rule_code} disabled for user {user_id}")
                return True
            if pref.muted_until is not None and pref.muted_until > now:
                logger.debug(f"Nudge {rule_code} muted until {pref.muted_until} for user {user_id}")
                return True

        since = now - timedelta(hours=cooldown_hours(rule_code))
        recent = (
            self.db.query(NudgeDeliveryDB.id)
            .filter(
                NudgeDeliveryDB.user_id == user_id,
                NudgeDeliveryDB.nudge_code == rule_code,
                NudgeDeliveryDB.shown_at > since,
            )
            .first()
        )
        if recent is not None:
            logger.debug(f"Nudge {rule_code} in cooldown for user {user_id}")
            return True

        return False
