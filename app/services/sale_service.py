"""
Sale Service: recording sales and driving the sale status state machine

    pending → paid → shipped → delivered → completed
                 ↘ cancelled (from any state before refunded)
                 ↘ refunded  (once money has changed hands)

Only two transitions touch inventory, and they do it through named effects
rather than ORM save hooks:

- entering ``completed`` (not returned) runs apply_sale_completion_effect()
- entering ``cancelled`` / ``refunded`` runs apply_sale_reversal_effect()

Both effects are guarded by ``Sale.inventory_applied`` so a retried or
repeated transition never moves stock twice. The sale row and the product
row are written in the same transaction.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session, joinedload

from app.errors import (
    InsufficientInventoryError,
    InvalidState,
    InvalidTransition,
    NotFoundError,
    ReferentialIntegrityError,
)
from app.models.base import store_operation
from app.models.enums import SaleStatus, Platform
from app.models.product import Product
from app.models.sale import Sale
from app.models.user import User
from app.services.inventory_service import refresh_status
from app.utils.helpers import round2, safe_float, iso
from app.utils.logger import log


ALLOWED_TRANSITIONS = {
    SaleStatus.PENDING: {
        SaleStatus.PAID, SaleStatus.SHIPPED, SaleStatus.DELIVERED,
        SaleStatus.COMPLETED, SaleStatus.CANCELLED,
    },
    SaleStatus.PAID: {
        SaleStatus.SHIPPED, SaleStatus.DELIVERED, SaleStatus.COMPLETED,
        SaleStatus.CANCELLED, SaleStatus.REFUNDED,
    },
    SaleStatus.SHIPPED: {
        SaleStatus.DELIVERED, SaleStatus.COMPLETED, SaleStatus.CANCELLED, SaleStatus.REFUNDED,
    },
    SaleStatus.DELIVERED: {SaleStatus.COMPLETED, SaleStatus.CANCELLED, SaleStatus.REFUNDED},
    SaleStatus.COMPLETED: {SaleStatus.CANCELLED, SaleStatus.REFUNDED},
    SaleStatus.CANCELLED: set(),
    SaleStatus.REFUNDED: set(),
}

REVERSAL_STATUSES = (SaleStatus.CANCELLED, SaleStatus.REFUNDED)

# Fields a client may set on create / edit (status goes through transition_status)
SALE_FIELDS = (
    "quantity", "sale_price", "currency", "platform", "platform_order_id",
    "buyer_username", "platform_fee", "payment_fee", "shipping_fee",
    "promotion_discount", "other_fee", "sale_date", "shipped_date",
    "delivered_date", "payment_method", "is_returned", "return_date",
    "return_reason", "refund_amount", "notes",
)


def _normalize(fields: Dict[str, Any]) -> Dict[str, Any]:
    if fields.get("platform") is not None:
        fields["platform"] = Platform(fields["platform"])
    return fields


def sale_to_dict(sale: Sale) -> Dict[str, Any]:
    product = sale.product
    return {
        "id": sale.id,
        "product": {
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "brand": product.brand,
            "purchasePrice": safe_float(product.purchase_price),
        } if product is not None else None,
        "quantity": sale.quantity,
        "salePrice": safe_float(sale.sale_price),
        "currency": sale.currency,
        "platform": sale.platform.value if sale.platform else None,
        "platformOrderId": sale.platform_order_id,
        "buyerUsername": sale.buyer_username,
        "fees": {
            "platformFee": safe_float(sale.platform_fee),
            "paymentFee": safe_float(sale.payment_fee),
            "shippingFee": safe_float(sale.shipping_fee),
            "promotionDiscount": safe_float(sale.promotion_discount),
            "other": safe_float(sale.other_fee),
        },
        "totalFees": round2(sale.total_fees),
        "netAmount": round2(sale.net_amount),
        "profit": round2(sale.profit),
        "profitMargin": round2(sale.profit_margin),
        "formattedSalePrice": sale.formatted_sale_price,
        "status": sale.status.value if sale.status else None,
        "saleDate": iso(sale.sale_date),
        "shippedDate": iso(sale.shipped_date),
        "deliveredDate": iso(sale.delivered_date),
        "paymentMethod": sale.payment_method,
        "returns": {
            "isReturned": sale.is_returned,
            "returnDate": iso(sale.return_date),
            "returnReason": sale.return_reason,
            "refundAmount": safe_float(sale.refund_amount),
        },
        "notes": sale.notes,
        "isArchived": sale.is_archived,
        "createdAt": iso(sale.created_at),
    }


class SaleService:
    def __init__(self, db: Session):
        self.db = db

    # ── Lookups ──

    def _load_product(self, user_id: int, product_id: int) -> Product:
        """The product a sale points at; must exist and belong to the same user."""
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise ReferentialIntegrityError("Product", product_id, "missing")
        if product.user_id != user_id:
            raise ReferentialIntegrityError("Product", product_id, "owned by another user")
        return product

    def get_sale(self, user_id: int, sale_id: int) -> Sale:
        sale = self.db.query(Sale).filter(Sale.id == sale_id, Sale.user_id == user_id).first()
        if not sale:
            raise NotFoundError("Sale", sale_id)
        return sale

    def list_sales(
        self,
        user_id: int,
        platform: Optional[str] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        query = self.db.query(Sale).options(joinedload(Sale.product)).filter(
            Sale.user_id == user_id,
            Sale.is_archived == False,  # noqa: E712
        )
        if platform:
            query = query.filter(Sale.platform == Platform(platform))
        if status:
            query = query.filter(Sale.status == SaleStatus(status))
        if start:
            query = query.filter(Sale.sale_date >= start)
        if end:
            query = query.filter(Sale.sale_date < end)

        with store_operation("sale list"):
            total = query.count()
            sales = (
                query.order_by(Sale.sale_date.desc(), Sale.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
            serialized = [sale_to_dict(s) for s in sales]

        return {
            "sales": serialized,
            "pagination": {
                "currentPage": page,
                "totalPages": (total + limit - 1) // limit,
                "totalItems": total,
                "itemsPerPage": limit,
            },
        }

    # ── Inventory effects ──

    def apply_sale_completion_effect(self, sale: Sale) -> bool:
        """
        Take the sale's units out of stock.

        Returns False (and changes nothing) if this sale's units were already
        taken out.
        """
        if sale.inventory_applied:
            log.debug(f"Sale {sale.id}: completion effect already applied, skipping")
            return False

        product = self._load_product(sale.user_id, sale.product_id)
        remaining = product.quantity - sale.quantity
        if remaining < 0:
            raise InvalidState(
                "Product", "quantity", remaining,
                f"sale {sale.id} needs {sale.quantity} but only {product.quantity} in stock",
            )

        product.quantity = remaining
        product.total_sales = (product.total_sales or 0) + sale.quantity
        refresh_status(product)
        sale.inventory_applied = True

        log.info(
            f"Sale {sale.id} completed: {product.sku} -{sale.quantity} "
            f"→ qty={product.quantity} ({product.status.value})"
        )
        return True

    def apply_sale_reversal_effect(self, sale: Sale) -> bool:
        """
        Put the sale's units back into stock.

        Only reverses what apply_sale_completion_effect() took; a sale that
        never reached completion has nothing to restock.
        """
        if not sale.inventory_applied:
            log.debug(f"Sale {sale.id}: no inventory effect to reverse")
            return False

        product = self._load_product(sale.user_id, sale.product_id)
        product.quantity = product.quantity + sale.quantity
        product.total_sales = (product.total_sales or 0) - sale.quantity
        refresh_status(product)
        sale.inventory_applied = False

        log.info(
            f"Sale {sale.id} reversed ({sale.status.value}): {product.sku} +{sale.quantity} "
            f"→ qty={product.quantity} ({product.status.value})"
        )
        return True

    # ── State machine ──

    def transition_status(self, sale: Sale, target: SaleStatus) -> Sale:
        """Move a sale to `target`, running the matching inventory effect. Does not commit."""
        target = SaleStatus(target)
        current = sale.status
        if target == current:
            return sale
        if target not in ALLOWED_TRANSITIONS[current]:
            raise InvalidTransition(current.value, target.value)

        sale.status = target
        now = datetime.utcnow()
        if target == SaleStatus.SHIPPED and sale.shipped_date is None:
            sale.shipped_date = now
        elif target == SaleStatus.DELIVERED and sale.delivered_date is None:
            sale.delivered_date = now

        if target == SaleStatus.COMPLETED and not sale.is_returned:
            self.apply_sale_completion_effect(sale)
        elif target in REVERSAL_STATUSES:
            self.apply_sale_reversal_effect(sale)

        log.info(f"Sale {sale.id}: {current.value} → {target.value}")
        return sale

    # ── Writes ──

    def record_sale(self, user: User, data: Dict[str, Any]) -> Sale:
        """Record a new sale against one of the user's products."""
        product = self._load_product(user.id, data["product_id"])
        quantity = data.get("quantity") or 1
        if product.quantity < quantity:
            raise InsufficientInventoryError(product.quantity, quantity)

        fields = _normalize({k: v for k, v in data.items() if k in SALE_FIELDS and v is not None})
        fields["quantity"] = quantity
        fields.setdefault("currency", user.currency)
        fields.setdefault("sale_date", datetime.utcnow())
        initial_status = SaleStatus(data.get("status") or SaleStatus.PENDING)

        sale = Sale(user_id=user.id, product_id=product.id, status=SaleStatus.PENDING, **fields)
        sale.product = product
        try:
            self.db.add(sale)
            self.db.flush()
            if initial_status != SaleStatus.PENDING:
                self.transition_status(sale, initial_status)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(sale)

        log.info(f"New sale recorded: {product.name} x{quantity} on {sale.platform.value} by user {user.id}")
        return sale

    def update_sale(self, user_id: int, sale_id: int, changes: Dict[str, Any]) -> Sale:
        """Edit sale fields and/or move it through the state machine."""
        sale = self.get_sale(user_id, sale_id)
        changes = _normalize(dict(changes))
        target = changes.pop("status", None)

        new_quantity = changes.get("quantity")
        if new_quantity is not None and new_quantity != sale.quantity and sale.inventory_applied:
            raise InvalidState("Sale", "quantity", new_quantity, "already deducted from stock; cancel and re-record instead")

        try:
            for key, value in changes.items():
                if key in SALE_FIELDS:
                    setattr(sale, key, value)
            if target is not None:
                self.transition_status(sale, SaleStatus(target))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(sale)

        log.info(f"Sale updated: {sale.id}")
        return sale

    def change_status(self, user_id: int, sale_id: int, target: SaleStatus) -> Sale:
        return self.update_sale(user_id, sale_id, {"status": target})

    def archive_sale(self, user_id: int, sale_id: int) -> Sale:
        sale = self.get_sale(user_id, sale_id)
        sale.is_archived = True
        self.db.commit()
        log.info(f"Sale archived: {sale.id}")
        return sale
