"""
Notification Dispatcher

Fire-and-forget push for nudges. notify() hands the send to a worker thread
and returns at once; the outcome is only logged.
"""
import logging
import os
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional

from .push_service import PushService


logger = logging.getLogger(__name__)

PUSH_WORKERS = int(os.getenv("PUSH_WORKERS", "2"))
NOTIFICATION_TITLE = "MindSpend"


def _log_outcome(future: Future) -> None:
    exc = future.exception()
    if exc is not None:
        logger.warning(f"Nudge push failed: {exc}")
    else:
        logger.debug(f"Nudge push sent to {future.result()} subscription(s)")


class NotificationDispatcher:
    """Best-effort, non-blocking delivery through PushService."""

    def __init__(self, push_service: PushService, executor: Optional[ThreadPoolExecutor] = None):
        self.push_service = push_service
        self.executor = executor or ThreadPoolExecutor(
            max_workers=PUSH_WORKERS, thread_name_prefix="nudge-push"
        )

    def notify(self, user_id: str, message: str) -> Optional[Future]:
        """Queue a push for the user. Returns the future, or None when push is off."""
        if not self.push_service.is_available():
            return None

        payload = {"type": "nudge", "title": NOTIFICATION_TITLE, "body": message}
        future = self.executor.submit(self.push_service.send_to_user, user_id, payload)
        future.add_done_callback(_log_outcome)
        return future

    def shutdown(self) -> None:
        self.executor.shutdown(wait=False)


_dispatcher: Optional[NotificationDispatcher] = None


def get_dispatcher() -> NotificationDispatcher:
    """Dependency for FastAPI - process-wide dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(PushService())
    return _dispatcher
