"""
Notifications

Web Push subscription storage and fire-and-forget nudge dispatch.
"""
from .push_service import PushService, PushSubscriptionService
from .dispatcher import NotificationDispatcher, get_dispatcher

__all__ = [
    "PushService",
    "PushSubscriptionService",
    "NotificationDispatcher",
    "get_dispatcher",
]
