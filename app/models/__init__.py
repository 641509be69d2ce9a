"""Database models for the Loft bookkeeping API"""

from app.models.enums import (
    StockStatus,
    SaleStatus,
    Platform,
    Currency,
    SubscriptionType,
    PeriodKind,
)

from app.models.user import User

from app.models.product import Product

from app.models.sale import Sale

from app.models.expense import Expense

__all__ = [
    "StockStatus",
    "SaleStatus",
    "Platform",
    "Currency",
    "SubscriptionType",
    "PeriodKind",
    "User",
    "Product",
    "Sale",
    "Expense",
]
