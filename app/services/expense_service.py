"""
Expense Service

Create, edit, list and archive business expenses. Optional links to a
product or sale must point at records owned by the same user.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.errors import NotFoundError, ReferentialIntegrityError
from app.models.base import store_operation
from app.models.expense import Expense
from app.models.product import Product
from app.models.sale import Sale
from app.models.user import User
from app.utils.helpers import safe_float, iso
from app.utils.logger import log


EXPENSE_FIELDS = (
    "amount", "currency", "category", "subcategory", "description", "vendor",
    "platform", "tags", "date", "product_id", "sale_id", "is_recurring",
    "recurring_frequency", "recurring_next_date", "recurring_end_date",
    "payment_method", "tax_deductible", "notes",
)


def expense_to_dict(expense: Expense) -> Dict[str, Any]:
    return {
        "id": expense.id,
        "amount": safe_float(expense.amount),
        "currency": expense.currency,
        "formattedAmount": expense.formatted_amount,
        "category": expense.category,
        "subcategory": expense.subcategory,
        "description": expense.description,
        "vendor": expense.vendor,
        "platform": expense.platform,
        "tags": expense.tags or [],
        "date": iso(expense.date),
        "product": expense.product_id,
        "sale": expense.sale_id,
        "isRecurring": expense.is_recurring,
        "recurringDetails": {
            "frequency": expense.recurring_frequency,
            "nextDate": iso(expense.recurring_next_date),
            "endDate": iso(expense.recurring_end_date),
        } if expense.is_recurring else None,
        "paymentMethod": expense.payment_method,
        "taxDeductible": expense.tax_deductible,
        "notes": expense.notes,
        "isArchived": expense.is_archived,
        "createdAt": iso(expense.created_at),
    }


class ExpenseService:
    def __init__(self, db: Session):
        self.db = db

    def _check_links(self, user_id: int, product_id: Optional[int], sale_id: Optional[int]):
        if product_id is not None:
            owner = self.db.query(Product.user_id).filter(Product.id == product_id).scalar()
            if owner != user_id:
                raise ReferentialIntegrityError("Product", product_id)
        if sale_id is not None:
            owner = self.db.query(Sale.user_id).filter(Sale.id == sale_id).scalar()
            if owner != user_id:
                raise ReferentialIntegrityError("Sale", sale_id)

    def get_expense(self, user_id: int, expense_id: int) -> Expense:
        expense = self.db.query(Expense).filter(
            Expense.id == expense_id,
            Expense.user_id == user_id,
        ).first()
        if not expense:
            raise NotFoundError("Expense", expense_id)
        return expense

    def list_expenses(
        self,
        user_id: int,
        category: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        query = self.db.query(Expense).filter(
            Expense.user_id == user_id,
            Expense.is_archived == False,  # noqa: E712
        )
        if category:
            query = query.filter(Expense.category == category)
        if start:
            query = query.filter(Expense.date >= start)
        if end:
            query = query.filter(Expense.date < end)

        with store_operation("expense list"):
            total = query.count()
            expenses = (
                query.order_by(Expense.date.desc(), Expense.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

        return {
            "expenses": [expense_to_dict(e) for e in expenses],
            "pagination": {
                "currentPage": page,
                "totalPages": (total + limit - 1) // limit,
                "totalItems": total,
                "itemsPerPage": limit,
            },
        }

    def create_expense(self, user: User, data: Dict[str, Any]) -> Expense:
        fields = {k: v for k, v in data.items() if k in EXPENSE_FIELDS and v is not None}
        fields.setdefault("currency", user.currency)
        fields.setdefault("date", datetime.utcnow())
        self._check_links(user.id, fields.get("product_id"), fields.get("sale_id"))

        expense = Expense(user_id=user.id, **fields)
        self.db.add(expense)
        self.db.commit()
        self.db.refresh(expense)

        log.info(f"Expense recorded: {expense.category} {expense.formatted_amount} by user {user.id}")
        return expense

    def update_expense(self, user_id: int, expense_id: int, changes: Dict[str, Any]) -> Expense:
        expense = self.get_expense(user_id, expense_id)
        self._check_links(user_id, changes.get("product_id"), changes.get("sale_id"))
        for key, value in changes.items():
            if key in EXPENSE_FIELDS:
                setattr(expense, key, value)
        self.db.commit()
        self.db.refresh(expense)

        log.info(f"Expense updated: {expense.id}")
        return expense

    def archive_expense(self, user_id: int, expense_id: int) -> Expense:
        expense = self.get_expense(user_id, expense_id)
        expense.is_archived = True
        self.db.commit()
        log.info(f"Expense archived: {expense.id}")
        return expense
