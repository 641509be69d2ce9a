"""User model: currency preference and subscription tier"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.sql import func

from app.models.base import Base, default_currency
from app.models.enums import SubscriptionType, enum_values


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    business_name = Column(String, nullable=True)
    currency = Column(String(3), nullable=False, default=default_currency)
    subscription_type = Column(
        Enum(SubscriptionType, values_callable=enum_values, native_enum=False, length=16),
        nullable=False,
        default=SubscriptionType.FREE,
        index=True,
    )
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_free_tier(self) -> bool:
        return self.subscription_type == SubscriptionType.FREE

    def __repr__(self):
        return f"<User {self.id} {self.email} ({self.subscription_type})>"
