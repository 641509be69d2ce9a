"""
Enumerations shared by the models, services and API schemas
"""
import enum


class StockStatus(str, enum.Enum):
    """Derived stock classification of a product"""
    ACTIVE = "active"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class SaleStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class Platform(str, enum.Enum):
    """Marketplaces a sale can be recorded against"""
    VINTED = "vinted"
    DEPOP = "depop"
    EBAY = "ebay"
    FACEBOOK = "facebook"
    INSTAGRAM = "instagram"
    IN_PERSON = "in_person"
    OTHER = "other"


class Currency(str, enum.Enum):
    GBP = "GBP"
    USD = "USD"
    EUR = "EUR"


class SubscriptionType(str, enum.Enum):
    FREE = "free"
    PRO = "pro"


class PeriodKind(str, enum.Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


PRODUCT_CATEGORIES = [
    "Clothing",
    "Shoes",
    "Bags",
    "Accessories",
    "Electronics",
    "Books",
    "Home & Garden",
    "Sports",
    "Beauty",
    "Other",
]

PRODUCT_CONDITIONS = [
    "New with tags",
    "New without tags",
    "Excellent",
    "Good",
    "Fair",
    "Poor",
]

PRODUCT_SOURCES = ["Retail Store", "Online", "Thrift Store", "Wholesale", "Donation", "Other"]

EXPENSE_CATEGORIES = [
    "Product Cost",
    "Packaging",
    "Shipping",
    "Platform Fees",
    "Marketing & Ads",
    "Equipment",
    "Office Supplies",
    "Travel",
    "Storage",
    "Professional Services",
    "Other",
]

EXPENSE_PLATFORMS = ["vinted", "depop", "ebay", "facebook", "instagram", "stripe", "paypal", "other"]

RECURRING_FREQUENCIES = ["weekly", "monthly", "quarterly", "yearly"]

PAYMENT_METHODS = ["Platform Wallet", "PayPal", "Stripe", "Bank Transfer", "Cash", "Other"]

EXPENSE_PAYMENT_METHODS = ["Cash", "Card", "Bank Transfer", "PayPal", "Other"]


def enum_values(enum_cls):
    """values_callable for SQLAlchemy Enum columns (store .value, not .name)"""
    return [member.value for member in enum_cls]
