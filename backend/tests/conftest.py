"""
Shared fixtures: in-memory SQLite database and ledger builders.
"""
import pytest
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional, Union
from unittest.mock import MagicMock
from uuid import uuid4

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mindspend.database import Base
from mindspend.models.db_models import (
    UserDB, CategoryDB, ExpenseDB, BudgetDB, NudgeDeliveryDB,
)


# Wednesday afternoon, UTC
NOW = datetime(2026, 3, 11, 15, 0)
TODAY = NOW.date()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def dispatcher():
    """Stand-in for NotificationDispatcher."""
    return MagicMock()


def make_user(db, username: Optional[str] = None) -> UserDB:
    username = username or f"user-{uuid4().hex[:8]}"
    user = UserDB(
        id=str(uuid4()),
        email=f"{username}@example.com",
        username=username,
        password_hash="not-a-real-hash",
    )
    db.add(user)
    db.commit()
    return user


def make_category(db, user: UserDB, name: str) -> CategoryDB:
    category = CategoryDB(user_id=user.id, name=name)
    db.add(category)
    db.commit()
    return category


def add_expense(
    db,
    user: UserDB,
    category: CategoryDB,
    amount: Union[int, Decimal],
    expense_date: date = TODAY,
    created_at: Optional[datetime] = None,
) -> ExpenseDB:
    """Log an expense; created_at defaults to noon of expense_date."""
    expense = ExpenseDB(
        user_id=user.id,
        category_id=category.id,
        amount=amount,
        expense_date=expense_date,
        created_at=created_at or datetime.combine(expense_date, time(12, 0)),
    )
    db.add(expense)
    db.commit()
    return expense


def set_budget(db, user: UserDB, category: CategoryDB, amount_limit: Union[int, Decimal], year_month: str = "2026-03") -> BudgetDB:
    budget = BudgetDB(
        user_id=user.id,
        category_id=category.id,
        year_month=year_month,
        amount_limit=amount_limit,
    )
    db.add(budget)
    db.commit()
    return budget


def add_delivery(db, user: UserDB, code: str, shown_at: datetime, dismissed_at: Optional[datetime] = None) -> NudgeDeliveryDB:
    delivery = NudgeDeliveryDB(
        user_id=user.id,
        nudge_code=code,
        message="earlier nudge",
        severity="info",
        shown_at=shown_at,
        created_at=shown_at,
        dismissed_at=dismissed_at,
    )
    db.add(delivery)
    db.commit()
    return delivery


@pytest.fixture
def user(db):
    return make_user(db, "alex")
