"""
Nudge Engine

Rule-based behavioral alerts over recent spending, gated by cooldown,
mute and disable preferences.
"""
from .rules import (
    NudgeCandidate,
    NudgeRule,
    RuleContext,
    RULES,
    COOLDOWN_HOURS,
    cooldown_hours,
    check_spending_spike,
    check_budget_over,
    check_late_night,
    check_weekend_spend,
    check_repeat_category,
)
from .ledger_reader import LedgerReader, BudgetStatus, CategoryCount
from .gate import NudgeGate
from .delivery import NudgeDeliveryService
from .preferences import NudgePreferenceService, PreferenceChange
from .engine import NudgeEngine

__all__ = [
    "NudgeCandidate",
    "NudgeRule",
    "RuleContext",
    "RULES",
    "COOLDOWN_HOURS",
    "cooldown_hours",
    "check_spending_spike",
    "check_budget_over",
    "check_late_night",
    "check_weekend_spend",
    "check_repeat_category",
    "LedgerReader",
    "BudgetStatus",
    "CategoryCount",
    "NudgeGate",
    "NudgeDeliveryService",
    "NudgePreferenceService",
    "PreferenceChange",
    "NudgeEngine",
]
