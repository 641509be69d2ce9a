"""
Alert Service
Derives the dashboard alert list from current inventory and sales state.

Rules are evaluated independently (no suppression between them) and nothing
is persisted: every call recomputes the list from the store.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.base import store_operation
from app.models.enums import SaleStatus, StockStatus
from app.models.sale import Sale
from app.models.user import User
from app.services.inventory_service import InventoryService, product_ref
from app.utils.logger import log

PENDING_SALE_STATUSES = (SaleStatus.PENDING, SaleStatus.PAID)


@dataclass
class Alert:
    type: str
    severity: str  # info, warning, error
    title: str
    message: str
    action_required: bool
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type,
            "severity": self.severity,
            "title": self.title,
            "message": self.message,
            "actionRequired": self.action_required,
        }
        if self.data is not None:
            result["data"] = self.data
        return result


class AlertService:
    """
    Builds alerts for low stock, out of stock, free-tier product limit and
    sales waiting on the seller.
    """

    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.inventory = InventoryService(db)

    def derive_alerts(self, user: User) -> List[Alert]:
        alerts: List[Alert] = []

        low_stock = self._low_stock_alert(user)
        if low_stock:
            alerts.append(low_stock)

        out_of_stock = self._out_of_stock_alert(user)
        if out_of_stock:
            alerts.append(out_of_stock)

        subscription = self._subscription_limit_alert(user)
        if subscription:
            alerts.append(subscription)

        pending = self._pending_sales_alert(user)
        if pending:
            alerts.append(pending)

        log.debug(f"Derived {len(alerts)} alert(s) for user {user.id}")
        return alerts

    def _low_stock_alert(self, user: User) -> Optional[Alert]:
        count = self.inventory.count_by_status(user.id, StockStatus.LOW_STOCK)
        if count == 0:
            return None
        sample = self.inventory.low_stock_products(user.id, self.settings.low_stock_alert_sample)
        return Alert(
            type="low_stock",
            severity="warning",
            title="Low Stock Alert",
            message=f"{count} product(s) are running low on stock",
            action_required=True,
            data=[product_ref(p) for p in sample],
        )

    def _out_of_stock_alert(self, user: User) -> Optional[Alert]:
        count = self.inventory.count_by_status(user.id, StockStatus.OUT_OF_STOCK)
        if count == 0:
            return None
        return Alert(
            type="out_of_stock",
            severity="error",
            title="Out of Stock",
            message=f"{count} product(s) are out of stock",
            action_required=True,
        )

    def _subscription_limit_alert(self, user: User) -> Optional[Alert]:
        if not user.is_free_tier:
            return None
        count = self.inventory.count_active_products(user.id)
        if count < self.settings.subscription_alert_threshold:
            return None
        limit = self.settings.free_tier_product_limit
        return Alert(
            type="subscription_limit",
            severity="info",
            title="Approaching Product Limit",
            message=f"You have {count}/{limit} products. Upgrade to Pro for unlimited inventory.",
            action_required=False,
            data={"currentCount": count, "limit": limit},
        )

    def _pending_sales_alert(self, user: User) -> Optional[Alert]:
        with store_operation("pending sales count"):
            count = self.db.query(func.count(Sale.id)).filter(
                Sale.user_id == user.id,
                Sale.is_archived == False,  # noqa: E712
                Sale.status.in_(PENDING_SALE_STATUSES),
            ).scalar() or 0
        if count == 0:
            return None
        return Alert(
            type="pending_sales",
            severity="info",
            title="Pending Sales",
            message=f"You have {count} sale(s) that need attention",
            action_required=True,
        )
