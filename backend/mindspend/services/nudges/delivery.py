"""
Nudge Delivery Service

Writes and reads the delivery log. A delivery is committed on its own so a
later rule failure in the same check cannot roll it back.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ...models.db_models import NudgeDeliveryDB, NudgeSeverity
from .rules import NudgeCandidate, code_value


logger = logging.getLogger(__name__)

PUSH_SEVERITIES = frozenset({NudgeSeverity.WARNING, NudgeSeverity.HIGH})
ACTIVE_LIMIT = 20


class NudgeDeliveryService:
    """
    Delivery log operations.

    dispatcher: anything with notify(user_id, message). Called without waiting
    for the result; errors are logged and dropped.
    """

    def __init__(self, db: Session, dispatcher=None):
        self.db = db
        self.dispatcher = dispatcher

    def deliver(
        self,
        user_id: str,
        candidate: NudgeCandidate,
        now: Optional[datetime] = None,
    ) -> NudgeDeliveryDB:
        """Persist a delivery and push it when severity warrants."""
        now = now or datetime.utcnow()
        delivery = NudgeDeliveryDB(
            user_id=user_id,
            nudge_code=code_value(candidate.rule_code),
            message=candidate.message,
            severity=NudgeSeverity(candidate.severity).value,
            shown_at=now,
            created_at=now,
        )
        self.db.add(delivery)
        self.db.commit()
        self.db.refresh(delivery)
        logger.info(f"Delivered nudge {delivery.nudge_code} ({delivery.severity}) to user {user_id}")

        if NudgeSeverity(candidate.severity) in PUSH_SEVERITIES and self.dispatcher is not None:
            try:
                self.dispatcher.notify(user_id, candidate.message)
            except Exception as e:
                logger.warning(f"Push dispatch for nudge {delivery.id} not started: {e}")

        return delivery

    def list_active(self, user_id: str, limit: int = ACTIVE_LIMIT) -> List[NudgeDeliveryDB]:
        """Undismissed deliveries, newest first."""
        return (
            self.db.query(NudgeDeliveryDB)
            .filter(NudgeDeliveryDB.user_id == user_id, NudgeDeliveryDB.dismissed_at.is_(None))
            .order_by(NudgeDeliveryDB.shown_at.desc(), NudgeDeliveryDB.id.desc())
            .limit(limit)
            .all()
        )

    def dismiss(self, user_id: str, delivery_id: int, now: Optional[datetime] = None) -> bool:
        """Mark a delivery dismissed. False when it does not belong to the user."""
        delivery = (
            self.db.query(NudgeDeliveryDB)
            .filter(NudgeDeliveryDB.user_id == user_id, NudgeDeliveryDB.id == delivery_id)
            .first()
        )
        if delivery is None:
            return False

        delivery.dismissed_at = now or datetime.utcnow()
        self.db.commit()
        return True
