"""
Web Push Service

Stores browser push subscriptions and sends notifications to them.
Sending is active only when VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY are set.
Subscriptions the push service reports as gone (404/410) are deleted.
"""
import json
import logging
import os
from typing import Any, Callable, Dict, Optional, Union

from pywebpush import webpush, WebPushException
from sqlalchemy.orm import Session

from ...database import SessionLocal
from ...models.db_models import PushSubscriptionDB


logger = logging.getLogger(__name__)

VAPID_PUBLIC_KEY = os.getenv("VAPID_PUBLIC_KEY")
VAPID_PRIVATE_KEY = os.getenv("VAPID_PRIVATE_KEY")
VAPID_MAILTO = os.getenv("VAPID_MAILTO", "mailto:mindspend@local")

GONE_STATUS_CODES = frozenset({404, 410})


class PushSubscriptionService:
    """Request-side subscription management."""

    def __init__(self, db: Session):
        self.db = db

    def add_subscription(self, user_id: str, subscription: Dict[str, Any]) -> PushSubscriptionDB:
        """
        Store (or refresh the keys of) a PushManager subscription.

        Raises:
            ValueError: endpoint, keys.auth or keys.p256dh missing
        """
        endpoint = subscription.get("endpoint")
        keys = subscription.get("keys") or {}
        if not endpoint or not keys.get("auth") or not keys.get("p256dh"):
            raise ValueError("Invalid subscription: endpoint and keys.auth, keys.p256dh required")

        row = (
            self.db.query(PushSubscriptionDB)
            .filter(PushSubscriptionDB.user_id == user_id, PushSubscriptionDB.endpoint == endpoint)
            .first()
        )
        if row is None:
            row = PushSubscriptionDB(user_id=user_id, endpoint=endpoint)
            self.db.add(row)
        row.p256dh = keys["p256dh"]
        row.auth = keys["auth"]
        self.db.commit()
        self.db.refresh(row)
        return row

    def remove_subscription(self, user_id: str, endpoint: str) -> int:
        """Delete the user's subscription for `endpoint`. Returns rows removed."""
        removed = (
            self.db.query(PushSubscriptionDB)
            .filter(PushSubscriptionDB.user_id == user_id, PushSubscriptionDB.endpoint == endpoint)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return removed


class PushService:
    """
    Sends Web Push messages.

    Runs off the request thread, so it opens its own session from
    session_factory instead of sharing the caller's.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        public_key: Optional[str] = None,
        private_key: Optional[str] = None,
        mailto: Optional[str] = None,
        sender: Callable[..., Any] = webpush,
    ):
        self.session_factory = session_factory
        self.public_key = public_key if public_key is not None else VAPID_PUBLIC_KEY
        self.private_key = private_key if private_key is not None else VAPID_PRIVATE_KEY
        self.mailto = mailto or VAPID_MAILTO
        self.sender = sender

    def is_available(self) -> bool:
        return bool(self.public_key and self.private_key)

    def send_to_user(self, user_id: str, payload: Union[str, Dict[str, Any]]) -> int:
        """
        Send `payload` to every subscription of the user.

        Returns:
            Number of subscriptions the push service accepted
        """
        if not self.is_available():
            return 0

        body = payload if isinstance(payload, str) else json.dumps(payload)
        db = self.session_factory()
        try:
            subscriptions = (
                db.query(PushSubscriptionDB)
                .filter(PushSubscriptionDB.user_id == user_id)
                .all()
            )
            sent = 0
            for sub in subscriptions:
                try:
                    self.sender(
                        subscription_info={
                            "endpoint": sub.endpoint,
                            "keys": {"auth": sub.auth, "p256dh": sub.p256dh},
                        },
                        data=body,
                        vapid_private_key=self.private_key,
                        vapid_claims={"sub": self.mailto},
                    )
                    sent += 1
                except WebPushException as e:
                    status = e.response.status_code if e.response is not None else None
                    if status in GONE_STATUS_CODES:
                        logger.info(f"Pruning expired push subscription {sub.id} for user {user_id}")
                        db.delete(sub)
                    else:
                        logger.warning(f"Push to subscription {sub.id} failed ({status}): {e}")
            db.commit()
            return sent
        finally:
            db.close()
