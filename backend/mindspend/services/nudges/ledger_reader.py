"""
Ledger Reader

Read-only, user-scoped queries the nudge rules consume. Every call hits the
database; nothing is cached between checks.
"""
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.db_models import BudgetDB, CategoryDB, ExpenseDB


@dataclass(frozen=True)
class BudgetStatus:
    """Spent-vs-limit for one budgeted category in one month."""
    category_id: int
    category_name: str
    amount_limit: Decimal
    spent: Decimal

    @property
    def overspend(self) -> Decimal:
        return self.spent - self.amount_limit


@dataclass(frozen=True)
class CategoryCount:
    """Number of expenses logged in one category."""
    category_id: int
    category_name: str
    count: int


CENT = Decimal("0.01")


def to_cents(value) -> Decimal:
    """Money as a Decimal rounded to cents. SQLite hands sums back as floats."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def month_bounds(year_month: str) -> Tuple[date, date]:
    """Return [first day, first day of next month) for a YYYY-MM string."""
    start = datetime.strptime(year_month, "%Y-%m").date()
    return start, start + relativedelta(months=1)


class LedgerReader:
    """Aggregates over expenses and budgets for a single user."""

    def __init__(self, db: Session):
        self.db = db

    def daily_expense_totals(self, user_id: str, start: date, end: date) -> List[Tuple[date, Decimal]]:
        """Per-day expense totals for expense_date in [start, end], oldest first."""
        rows = (
            self.db.query(ExpenseDB.expense_date, func.sum(ExpenseDB.amount))
            .filter(
                ExpenseDB.user_id == user_id,
                ExpenseDB.expense_date >= start,
                ExpenseDB.expense_date <= end,
            )
            .group_by(ExpenseDB.expense_date)
            .order_by(ExpenseDB.expense_date)
            .all()
        )
        return [(day, to_cents(total)) for day, total in rows]

    def budget_status(self, user_id: str, year_month: str) -> List[BudgetStatus]:
        """Every budget for the month with the category's spend in that month."""
        start, end = month_bounds(year_month)

        spent = (
            self.db.query(
                ExpenseDB.category_id.label("category_id"),
                func.sum(ExpenseDB.amount).label("spent"),
            )
            .filter(
                ExpenseDB.user_id == user_id,
                ExpenseDB.expense_date >= start,
                ExpenseDB.expense_date < end,
            )
            .group_by(ExpenseDB.category_id)
            .subquery()
        )

        rows = (
            self.db.query(
                BudgetDB.category_id,
                CategoryDB.name,
                BudgetDB.amount_limit,
                func.coalesce(spent.c.spent, 0),
            )
            .join(CategoryDB, CategoryDB.id == BudgetDB.category_id)
            .outerjoin(spent, spent.c.category_id == BudgetDB.category_id)
            .filter(BudgetDB.user_id == user_id, BudgetDB.year_month == year_month)
            .all()
        )
        return [
            BudgetStatus(
                category_id=category_id,
                category_name=name,
                amount_limit=to_cents(limit),
                spent=to_cents(total),
            )
            for category_id, name, limit, total in rows
        ]

    def expenses_created_since(self, user_id: str, since: datetime) -> List[ExpenseDB]:
        """Expenses logged strictly after `since` (naive UTC)."""
        return (
            self.db.query(ExpenseDB)
            .filter(ExpenseDB.user_id == user_id, ExpenseDB.created_at > since)
            .order_by(ExpenseDB.created_at)
            .all()
        )

    def category_counts_since(self, user_id: str, since: datetime) -> List[CategoryCount]:
        """Expense counts per category for rows logged strictly after `since`."""
        rows = (
            self.db.query(ExpenseDB.category_id, CategoryDB.name, func.count(ExpenseDB.id))
            .join(CategoryDB, CategoryDB.id == ExpenseDB.category_id)
            .filter(ExpenseDB.user_id == user_id, ExpenseDB.created_at > since)
            .group_by(ExpenseDB.category_id, CategoryDB.name)
            .all()
        )
        return [
            CategoryCount(category_id=category_id, category_name=name, count=int(count))
            for category_id, name, count in rows
        ]
