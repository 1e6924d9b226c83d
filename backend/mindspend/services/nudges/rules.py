"""
Nudge Rules

Five explainable spending heuristics. Each rule is a pure read-and-decide
function over the ledger: it returns a NudgeCandidate or None and never
writes. Gating (cooldown, mute, disable) and persistence live in the engine.

Calendar logic (today, this month, weekend) uses the user-facing time zone
from NUDGE_TIMEZONE. Stored timestamps are naive UTC.
"""
import os
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo

from ...models.db_models import NudgeCode, NudgeSeverity
from .ledger_reader import LedgerReader


NUDGE_TIMEZONE = ZoneInfo(os.getenv("NUDGE_TIMEZONE", "UTC"))

# Hours between two deliveries of the same rule to the same user
COOLDOWN_HOURS = MappingProxyType({
    NudgeCode.SPENDING_SPIKE.value: 24,
    NudgeCode.BUDGET_OVER.value: 12,
    NudgeCode.LATE_NIGHT.value: 24,
    NudgeCode.WEEKEND_SPEND.value: 48,
    NudgeCode.REPEAT_CATEGORY.value: 24,
})
DEFAULT_COOLDOWN_HOURS = 24

# Thresholds
WINDOW_DAYS = 7
SPIKE_MIN_DAYS = 2
SPIKE_FACTOR = Decimal("1.5")
WEEKEND_FACTOR = Decimal("1.3")
LATE_NIGHT_AFTER = time(22, 0)
LATE_NIGHT_LOOKBACK = timedelta(hours=1)
REPEAT_LOOKBACK = timedelta(hours=24)
REPEAT_MIN_COUNT = 3


def code_value(rule_code) -> str:
    """Plain string form of a NudgeCode or raw code."""
    return rule_code.value if isinstance(rule_code, NudgeCode) else str(rule_code)


def cooldown_hours(rule_code) -> int:
    """Cooldown for a rule code; unknown codes get the default."""
    return COOLDOWN_HOURS.get(code_value(rule_code), DEFAULT_COOLDOWN_HOURS)


def to_local(moment: datetime, tz: ZoneInfo = NUDGE_TIMEZONE) -> datetime:
    """Convert a naive-UTC timestamp to the user-facing zone."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(tz)


def to_naive_utc(moment: Optional[datetime]) -> Optional[datetime]:
    """Normalize an aware timestamp to the naive-UTC form stored in the database."""
    if moment is None or moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


# =============================================================================
# DATA TYPES
# =============================================================================

@dataclass(frozen=True)
class NudgeCandidate:
    """A rule's proposal. Becomes a delivery only if it passes the gate."""
    rule_code: NudgeCode
    message: str
    severity: NudgeSeverity


@dataclass(frozen=True)
class RuleContext:
    """Everything a rule needs for one evaluation."""
    user_id: str
    now: datetime  # naive UTC
    ledger: LedgerReader
    tz: ZoneInfo = NUDGE_TIMEZONE

    @property
    def local_now(self) -> datetime:
        return to_local(self.now, self.tz)

    @property
    def today(self) -> date:
        return self.local_now.date()

    def trailing_window(self) -> Tuple[date, date]:
        """The WINDOW_DAYS local dates ending today, inclusive."""
        today = self.today
        return today - timedelta(days=WINDOW_DAYS - 1), today


@dataclass(frozen=True)
class NudgeRule:
    code: NudgeCode
    cooldown_hours: int
    evaluate: Callable[[RuleContext], Optional[NudgeCandidate]]


# =============================================================================
# RULES
# =============================================================================

def check_spending_spike(ctx: RuleContext) -> Optional[NudgeCandidate]:
    """Today's spend vs. the average of days with spending in the trailing week."""
    start, end = ctx.trailing_window()
    by_day = ctx.ledger.daily_expense_totals(ctx.user_id, start, end)
    if len(by_day) < SPIKE_MIN_DAYS:
        return None

    today_total = next((total for day, total in by_day if day == end), Decimal("0"))
    avg = sum((total for _, total in by_day), Decimal("0")) / len(by_day)
    if avg <= 0 or today_total <= avg * SPIKE_FACTOR:
        return None

    pct = round((today_total / avg - 1) * 100)
    return NudgeCandidate(
        rule_code=NudgeCode.SPENDING_SPIKE,
        message=(
            f"Today's spending is about {pct}% above your recent average. "
            "Small pause before the next purchase?"
        ),
        severity=NudgeSeverity.WARNING,
    )


def check_budget_over(ctx: RuleContext) -> Optional[NudgeCandidate]:
    """
    A category has passed its budget for the current month.

    When several are over, the largest overspend wins; ties go to the lowest
    category id.
    """
    year_month = ctx.today.strftime("%Y-%m")
    over = [s for s in ctx.ledger.budget_status(ctx.user_id, year_month) if s.spent > s.amount_limit]
    if not over:
        return None

    worst = min(over, key=lambda s: (-s.overspend, s.category_id))
    return NudgeCandidate(
        rule_code=NudgeCode.BUDGET_OVER,
        message=(
            f"You're over your {worst.category_name} budget by {worst.overspend:.2f} this month. "
            "You can adjust the budget or ease off until next month."
        ),
        severity=NudgeSeverity.WARNING,
    )


def check_late_night(ctx: RuleContext) -> Optional[NudgeCandidate]:
    """An expense was logged in the last hour, after 22:00 local time."""
    recent = ctx.ledger.expenses_created_since(ctx.user_id, ctx.now - LATE_NIGHT_LOOKBACK)
    late = [
        e for e in recent
        if to_local(e.created_at, ctx.tz).time() > LATE_NIGHT_AFTER
    ]
    if not late:
        return None

    return NudgeCandidate(
        rule_code=NudgeCode.LATE_NIGHT,
        message=(
            "You just logged an expense late at night. "
            "Late-night spending can add up, consider a quick check tomorrow."
        ),
        severity=NudgeSeverity.INFO,
    )


def check_weekend_spend(ctx: RuleContext) -> Optional[NudgeCandidate]:
    """On Saturday/Sunday: weekend total vs. the average weekday in the trailing week."""
    if ctx.today.weekday() < 5:
        return None

    start, end = ctx.trailing_window()
    by_day = ctx.ledger.daily_expense_totals(ctx.user_id, start, end)

    weekend_total = sum((total for day, total in by_day if day.weekday() >= 5), Decimal("0"))
    weekday_totals = [total for day, total in by_day if day.weekday() < 5]
    weekday_avg = sum(weekday_totals, Decimal("0")) / len(weekday_totals) if weekday_totals else Decimal("0")
    if weekday_avg <= 0 or weekend_total <= weekday_avg * WEEKEND_FACTOR:
        return None

    return NudgeCandidate(
        rule_code=NudgeCode.WEEKEND_SPEND,
        message=(
            "Weekend spending is a bit higher than your weekday average. "
            "Nothing wrong with that, just something to be aware of."
        ),
        severity=NudgeSeverity.INFO,
    )


def check_repeat_category(ctx: RuleContext) -> Optional[NudgeCandidate]:
    """
    Three or more expenses in one category within 24 hours.

    Highest count wins; ties go to the lowest category id.
    """
    counts = ctx.ledger.category_counts_since(ctx.user_id, ctx.now - REPEAT_LOOKBACK)
    repeated = [c for c in counts if c.count >= REPEAT_MIN_COUNT]
    if not repeated:
        return None

    top = min(repeated, key=lambda c: (-c.count, c.category_id))
    return NudgeCandidate(
        rule_code=NudgeCode.REPEAT_CATEGORY,
        message=(
            f'You\'ve logged {top.count} expenses in "{top.category_name}" in the last 24 hours. '
            "Worth a quick pause?"
        ),
        severity=NudgeSeverity.INFO,
    )


# Evaluation order is fixed so run_checks output is stable
RULES: Tuple[NudgeRule, ...] = (
    NudgeRule(NudgeCode.SPENDING_SPIKE, cooldown_hours(NudgeCode.SPENDING_SPIKE), check_spending_spike),
    NudgeRule(NudgeCode.BUDGET_OVER, cooldown_hours(NudgeCode.BUDGET_OVER), check_budget_over),
    NudgeRule(NudgeCode.LATE_NIGHT, cooldown_hours(NudgeCode.LATE_NIGHT), check_late_night),
    NudgeRule(NudgeCode.WEEKEND_SPEND, cooldown_hours(NudgeCode.WEEKEND_SPEND), check_weekend_spend),
    NudgeRule(NudgeCode.REPEAT_CATEGORY, cooldown_hours(NudgeCode.REPEAT_CATEGORY), check_repeat_category),
)
