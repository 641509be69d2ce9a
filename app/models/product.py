"""
Inventory item models

Stock status is a derived column: the inventory service recomputes it from
quantity and restock threshold before every write of the inventory fields.
"""
import secrets
import string
import time
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON, Boolean, ForeignKey, Text, Enum, Index
)
from sqlalchemy.orm import relationship

from app.models.base import Base
from app.models.enums import StockStatus, enum_values
from app.utils.helpers import to_decimal, percentage

_BASE36 = string.digits + string.ascii_lowercase


def _base36(number: int) -> str:
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits)) or "0"


def generate_sku() -> str:
    """LOFT-<base36 millis>-<5 random chars>, upper-cased"""
    timestamp = _base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"LOFT-{timestamp}-{suffix}".upper()


class Product(Base):
    """An item held for resale"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    # Basic info
    name = Column(String, nullable=False, index=True)
    brand = Column(String, nullable=True, index=True)
    sku = Column(String, unique=True, index=True, nullable=False, default=generate_sku)
    barcode = Column(String, nullable=True, index=True)
    category = Column(String, nullable=False)
    condition = Column(String, nullable=False)
    size = Column(String, nullable=True)
    color = Column(String, nullable=True)
    description = Column(Text, nullable=True)

    # Pricing
    purchase_price = Column(Numeric(12, 2), nullable=False)
    listing_price = Column(Numeric(12, 2), nullable=True)
    recommended_price = Column(Numeric(12, 2), nullable=True)

    # Inventory
    quantity = Column(Integer, nullable=False, default=1)
    restock_threshold = Column(Integer, nullable=False, default=1)
    location = Column(String, nullable=True)
    status = Column(
        Enum(StockStatus, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
        default=StockStatus.ACTIVE,
    )

    # Sourcing
    source = Column(String, default="Other")
    purchase_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    tags = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)

    # Analytics
    total_sales = Column(Integer, default=0, nullable=False)

    # Soft delete
    is_archived = Column(Boolean, default=False, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    sales = relationship("Sale", back_populates="product")

    __table_args__ = (
        Index("ix_products_user_status", "user_id", "status"),
        Index("ix_products_user_category", "user_id", "category"),
    )

    @property
    def listing_margin_pct(self) -> float:
        """Mark-up of the listing price over what was paid"""
        if not self.listing_price or not self.purchase_price:
            return 0.0
        gain = to_decimal(self.listing_price) - to_decimal(self.purchase_price)
        return float(percentage(gain, self.purchase_price))

    def __repr__(self):
        return f"<Product {self.sku} qty={self.quantity} status={self.status}>"
