"""MindSpend - API Routers"""
from .auth import router as auth_router
from .ledger import router as ledger_router
from .nudges import router as nudges_router
from .notifications import router as notifications_router

__all__ = [
    "auth_router",
    "ledger_router",
    "nudges_router",
    "notifications_router",
]
