"""
Expenses API

Expense CRUD and expense analytics.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from app.api.deps import CamelModel, check_choice, get_current_user, ok
from app.models.base import get_db
from app.models.enums import (
    Currency,
    EXPENSE_CATEGORIES,
    EXPENSE_PAYMENT_METHODS,
    EXPENSE_PLATFORMS,
    RECURRING_FREQUENCIES,
)
from app.models.user import User
from app.services.dashboard_service import DashboardService
from app.services.expense_service import ExpenseService, expense_to_dict
from app.services.period_service import custom_range, resolve_period
from app.services.validation_service import parse_currency, parse_date, parse_period

router = APIRouter(prefix="/expenses", tags=["expenses"])


class ExpenseFields(CamelModel):
    amount: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None
    description: Optional[str] = None
    vendor: Optional[str] = None
    platform: Optional[str] = None
    tags: Optional[List[str]] = None
    date: Optional[datetime] = None
    product_id: Optional[int] = None
    sale_id: Optional[int] = None
    is_recurring: Optional[bool] = None
    recurring_frequency: Optional[str] = None
    recurring_next_date: Optional[datetime] = None
    recurring_end_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    tax_deductible: Optional[bool] = None
    notes: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _category(cls, v):
        return check_choice(v, EXPENSE_CATEGORIES, "category")

    @field_validator("platform")
    @classmethod
    def _platform(cls, v):
        return check_choice(v, EXPENSE_PLATFORMS, "platform")

    @field_validator("recurring_frequency")
    @classmethod
    def _frequency(cls, v):
        return check_choice(v, RECURRING_FREQUENCIES, "recurringFrequency")

    @field_validator("payment_method")
    @classmethod
    def _payment_method(cls, v):
        return check_choice(v, EXPENSE_PAYMENT_METHODS, "paymentMethod")


class ExpenseCreate(ExpenseFields):
    amount: float = Field(..., ge=0)
    category: str
    description: str = Field(..., min_length=1)


class ExpenseUpdate(ExpenseFields):
    pass


def _dump(body: CamelModel) -> dict:
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "currency" in data:
        data["currency"] = data["currency"].value
    return data


@router.get("")
async def list_expenses(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = ExpenseService(db).list_expenses(
        user.id,
        category=category,
        start=parse_date("startDate", start_date),
        end=parse_date("endDate", end_date),
        page=page,
        limit=limit,
    )
    return ok(data)


@router.post("", status_code=201)
async def create_expense(
    body: ExpenseCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    expense = ExpenseService(db).create_expense(user, _dump(body))
    return ok(expense_to_dict(expense), "Expense added successfully")


@router.get("/analytics/summary")
async def expense_analytics(
    period: Optional[str] = Query(None, description="week, month, quarter or year"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    currency: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Expense totals, category breakdown and 6-month trend."""
    start = parse_date("startDate", start_date)
    end = parse_date("endDate", end_date)
    currency_code = parse_currency(currency, user.currency)

    date_range = None
    if start and end:
        date_range = custom_range(start, end)
    elif period:
        date_range = resolve_period(parse_period(period))

    return ok(DashboardService(db).expense_analytics(user, date_range, currency_code))


@router.get("/{expense_id}")
async def get_expense(
    expense_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(expense_to_dict(ExpenseService(db).get_expense(user.id, expense_id)))


@router.put("/{expense_id}")
async def update_expense(
    expense_id: int,
    body: ExpenseUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    expense = ExpenseService(db).update_expense(user.id, expense_id, _dump(body))
    return ok(expense_to_dict(expense), "Expense updated successfully")


@router.delete("/{expense_id}")
async def archive_expense(
    expense_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ExpenseService(db).archive_expense(user.id, expense_id)
    return ok(message="Expense deleted successfully")
