"""
Ledger API Routes

Minimal writes into the ledger the nudge engine reads from: categories,
expenses and monthly budgets. Creating an expense runs the nudge checks.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..database import get_db
from ..auth import get_current_user
from ..models.db_models import UserDB, CategoryDB, ExpenseDB, BudgetDB
from ..services.nudges import NudgeEngine
from ..services.nudges.rules import to_local
from ..services.notifications import get_dispatcher
from .nudges import NudgeResponse

router = APIRouter(tags=["ledger"])


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateCategoryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)


class CategoryResponse(BaseModel):
    id: int
    name: str


class CreateExpenseRequest(BaseModel):
    category_id: int
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: Optional[str] = None
    expense_date: Optional[date] = Field(None, description="Defaults to today")


class ExpenseResponse(BaseModel):
    id: int
    category_id: int
    amount: Decimal
    description: Optional[str] = None
    expense_date: date
    created_at: datetime


class CreateExpenseResponse(BaseModel):
    expense: ExpenseResponse
    nudges: List[NudgeResponse]


class UpsertBudgetRequest(BaseModel):
    category_id: int
    year_month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM")
    amount_limit: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)


class BudgetResponse(BaseModel):
    id: int
    category_id: int
    year_month: str
    amount_limit: Decimal


def _owned_category(db: Session, user_id: str, category_id: int) -> CategoryDB:
    category = (
        db.query(CategoryDB)
        .filter(CategoryDB.id == category_id, CategoryDB.user_id == user_id)
        .first()
    )
    if category is None:
        raise HTTPException(status_code=400, detail="Invalid category_id")
    return category


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/categories", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    request: CreateCategoryRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a spending category."""
    existing = (
        db.query(CategoryDB)
        .filter(CategoryDB.user_id == current_user.id, CategoryDB.name == request.name)
        .first()
    )
    if existing:
        raise HTTPException(status_code=409, detail="Category already exists")

    category = CategoryDB(user_id=current_user.id, name=request.name)
    db.add(category)
    db.commit()
    db.refresh(category)
    return CategoryResponse(id=category.id, name=category.name)


@router.post("/expenses", response_model=CreateExpenseResponse, status_code=status.HTTP_201_CREATED)
async def create_expense(
    request: CreateExpenseRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
    dispatcher=Depends(get_dispatcher),
):
    """
    Log an expense, then run the nudge checks.

    Returns the expense and any nudges the new expense triggered.
    """
    _owned_category(db, current_user.id, request.category_id)

    expense = ExpenseDB(
        user_id=current_user.id,
        category_id=request.category_id,
        amount=request.amount,
        description=request.description,
        expense_date=request.expense_date or to_local(datetime.utcnow()).date(),
    )
    db.add(expense)
    db.commit()
    db.refresh(expense)

    nudges = NudgeEngine(db, dispatcher=dispatcher).run_checks(current_user.id)

    return CreateExpenseResponse(
        expense=ExpenseResponse(
            id=expense.id,
            category_id=expense.category_id,
            amount=expense.amount,
            description=expense.description,
            expense_date=expense.expense_date,
            created_at=expense.created_at,
        ),
        nudges=[NudgeResponse.from_delivery(n) for n in nudges],
    )


@router.put("/budgets", response_model=BudgetResponse)
async def upsert_budget(
    request: UpsertBudgetRequest,
    current_user: UserDB = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Set the monthly limit for a category (one budget per category and month)."""
    _owned_category(db, current_user.id, request.category_id)

    budget = (
        db.query(BudgetDB)
        .filter(
            BudgetDB.user_id == current_user.id,
            BudgetDB.category_id == request.category_id,
            BudgetDB.year_month == request.year_month,
        )
        .first()
    )
    if budget is None:
        budget = BudgetDB(
            user_id=current_user.id,
            category_id=request.category_id,
            year_month=request.year_month,
        )
        db.add(budget)
    budget.amount_limit = request.amount_limit
    db.commit()
    db.refresh(budget)

    return BudgetResponse(
        id=budget.id,
        category_id=budget.category_id,
        year_month=budget.year_month,
        amount_limit=budget.amount_limit,
    )
