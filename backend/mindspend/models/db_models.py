"""
MindSpend - SQLAlchemy ORM Models
Ledger tables (read by the nudge engine) and nudge state tables
"""
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Numeric, DateTime, Date, Text, Boolean, ForeignKey, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from ..database import Base


# =============================================================================
# ENUMS
# =============================================================================

class NudgeCode(str, Enum):
    """Stable identifiers for the nudge heuristics."""
    SPENDING_SPIKE = "spending_spike"
    BUDGET_OVER = "budget_over"
    LATE_NIGHT = "late_night"
    WEEKEND_SPEND = "weekend_spend"
    REPEAT_CATEGORY = "repeat_category"


class NudgeSeverity(str, Enum):
    """Coarse priority tag. WARNING and HIGH are pushed to the user's devices."""
    INFO = "info"
    WARNING = "warning"
    HIGH = "high"


# =============================================================================
# USERS
# =============================================================================

class UserDB(Base):
    """User account."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    username = Column(String(100), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    categories = relationship("CategoryDB", back_populates="user", cascade="all, delete-orphan")
    expenses = relationship("ExpenseDB", back_populates="user", cascade="all, delete-orphan")
    budgets = relationship("BudgetDB", back_populates="user", cascade="all, delete-orphan")
    nudge_deliveries = relationship("NudgeDeliveryDB", back_populates="user", cascade="all, delete-orphan")
    nudge_preferences = relationship("NudgePreferenceDB", back_populates="user", cascade="all, delete-orphan")
    push_subscriptions = relationship("PushSubscriptionDB", back_populates="user", cascade="all, delete-orphan")


# =============================================================================
# LEDGER (input signal for the nudge engine)
# =============================================================================

class CategoryDB(Base):
    """Spending category owned by one user."""
    __tablename__ = "categories"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_category_user_name"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="categories")


class ExpenseDB(Base):
    """
    A logged expense.

    expense_date is the date the user says the money was spent.
    created_at is when the row was logged; late-night and repeat-category
    checks look at created_at, spike and weekend checks at expense_date.
    """
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    expense_date = Column(Date, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = relationship("UserDB", back_populates="expenses")
    category = relationship("CategoryDB")


class BudgetDB(Base):
    """Monthly spending limit for one category."""
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("user_id", "category_id", "year_month", name="uq_budget_user_category_month"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
    year_month = Column(String(7), nullable=False)  # YYYY-MM
    amount_limit = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="budgets")
    category = relationship("CategoryDB")


# =============================================================================
# NUDGES
# =============================================================================

class NudgeDeliveryDB(Base):
    """
    A nudge shown to a user.

    Append-only: the only mutation is dismissal. Cooldown checks read shown_at,
    so dismissed rows still count toward the cooldown window.
    """
    __tablename__ = "nudge_deliveries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    nudge_code = Column(String(32), nullable=False, index=True)
    message = Column(Text, nullable=False)
    severity = Column(String(16), nullable=False, default=NudgeSeverity.INFO.value)
    shown_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    dismissed_at = Column(DateTime, nullable=True)
    muted_until = Column(DateTime, nullable=True)  # Legacy, superseded by NudgePreferenceDB
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("UserDB", back_populates="nudge_deliveries")


class NudgePreferenceDB(Base):
    """Per-user, per-rule mute/disable state."""
    __tablename__ = "nudge_preferences"
    __table_args__ = (
        UniqueConstraint("user_id", "nudge_code", name="uq_nudge_pref_user_code"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    nudge_code = Column(String(32), nullable=False)
    muted_until = Column(DateTime, nullable=True)
    disabled = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="nudge_preferences")


class PushSubscriptionDB(Base):
    """Web Push endpoint registered by one of the user's browsers."""
    __tablename__ = "push_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "endpoint", name="uq_push_user_endpoint"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    endpoint = Column(Text, nullable=False)
    p256dh = Column(String(255), nullable=False)
    auth = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("UserDB", back_populates="push_subscriptions")
