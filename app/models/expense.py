"""
Business expense model

Expenses can optionally be tied to the product or sale they were spent on.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Text, JSON, Index

from app.models.base import Base, default_currency
from app.utils.helpers import format_amount


class Expense(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False, default=default_currency)

    # Classification
    category = Column(String, index=True, nullable=False)  # see EXPENSE_CATEGORIES
    subcategory = Column(String, nullable=True)
    description = Column(String, nullable=False)
    vendor = Column(String, nullable=True)
    platform = Column(String, nullable=True)
    tags = Column(JSON, nullable=True)

    date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Optional links
    product_id = Column(Integer, ForeignKey("products.id"), nullable=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=True, index=True)

    # Recurrence
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurring_frequency = Column(String, nullable=True)  # weekly, monthly, quarterly, yearly
    recurring_next_date = Column(DateTime, nullable=True)
    recurring_end_date = Column(DateTime, nullable=True)

    payment_method = Column(String, default="Card")
    tax_deductible = Column(Boolean, default=True)
    notes = Column(Text, nullable=True)

    is_archived = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_expenses_user_date", "user_id", "date"),
    )

    @property
    def formatted_amount(self) -> str:
        return format_amount(self.amount, self.currency)

    def __repr__(self):
        return f"<Expense {self.category}: {self.description} {self.formatted_amount} ({self.date:%Y-%m-%d})>"
