"""MindSpend - Data Models"""
from .db_models import (
    # Enums
    NudgeCode, NudgeSeverity,
    # Ledger
    UserDB, CategoryDB, ExpenseDB, BudgetDB,
    # Nudges
    NudgeDeliveryDB, NudgePreferenceDB, PushSubscriptionDB,
)

__all__ = [
    "NudgeCode", "NudgeSeverity",
    "UserDB", "CategoryDB", "ExpenseDB", "BudgetDB",
    "NudgeDeliveryDB", "NudgePreferenceDB", "PushSubscriptionDB",
]
