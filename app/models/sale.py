"""
Sale model

Money-derived fields (fees, net amount, profit, margin) are computed on read
and never stored.
"""
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, ForeignKey, Text, Enum, Index
)
from sqlalchemy.orm import relationship

from app.models.base import Base, default_currency
from app.models.enums import SaleStatus, Platform, enum_values
from app.utils.helpers import to_decimal, percentage, format_amount


class Sale(Base):
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), index=True, nullable=False)

    quantity = Column(Integer, nullable=False, default=1)
    sale_price = Column(Numeric(12, 2), nullable=False)  # line total, not per unit
    currency = Column(String(3), nullable=False, default=default_currency)
    platform = Column(
        Enum(Platform, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
    )
    platform_order_id = Column(String, nullable=True)
    buyer_username = Column(String, nullable=True)

    # Fees (promotion_discount is given back, the rest are charged)
    platform_fee = Column(Numeric(12, 2), default=0, nullable=False)
    payment_fee = Column(Numeric(12, 2), default=0, nullable=False)
    shipping_fee = Column(Numeric(12, 2), default=0, nullable=False)
    promotion_discount = Column(Numeric(12, 2), default=0, nullable=False)
    other_fee = Column(Numeric(12, 2), default=0, nullable=False)

    # Lifecycle
    status = Column(
        Enum(SaleStatus, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
        default=SaleStatus.PENDING,
        index=True,
    )
    sale_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    shipped_date = Column(DateTime, nullable=True)
    delivered_date = Column(DateTime, nullable=True)
    payment_method = Column(String, default="Platform Wallet")

    # Returns
    is_returned = Column(Boolean, default=False, nullable=False)
    return_date = Column(DateTime, nullable=True)
    return_reason = Column(String, nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)

    notes = Column(Text, nullable=True)

    # Set while this sale's units are deducted from the product
    inventory_applied = Column(Boolean, default=False, nullable=False)

    is_archived = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    product = relationship("Product", back_populates="sales")

    __table_args__ = (
        Index("ix_sales_user_date", "user_id", "sale_date"),
        Index("ix_sales_user_platform", "user_id", "platform"),
    )

    @property
    def total_fees(self) -> Decimal:
        return (
            to_decimal(self.platform_fee)
            + to_decimal(self.payment_fee)
            + to_decimal(self.shipping_fee)
            + to_decimal(self.other_fee)
            - to_decimal(self.promotion_discount)
        )

    @property
    def net_amount(self) -> Decimal:
        return to_decimal(self.sale_price) - self.total_fees

    @property
    def profit(self) -> Decimal:
        if self.product is None:
            return Decimal("0")
        cost = to_decimal(self.product.purchase_price) * (self.quantity or 0)
        return self.net_amount - cost

    @property
    def profit_margin(self) -> Decimal:
        return percentage(self.profit, self.net_amount)

    @property
    def formatted_sale_price(self) -> str:
        return format_amount(self.sale_price, self.currency)

    def __repr__(self):
        return f"<Sale {self.id} product={self.product_id} {self.status} {self.formatted_sale_price}>"
