"""
Inventory Service

Product bookkeeping for a reseller: stock-status derivation, product
create/update/archive with the free-tier cap, and inventory analytics.

Stock status is never written by a client. Every write of a product's
inventory fields goes through refresh_status(), which calls derive_status().
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import func, case, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.errors import InvalidState, NotFoundError, SubscriptionLimitError, UpgradeRequired
from app.models.base import store_operation
from app.models.enums import StockStatus
from app.models.product import Product
from app.models.user import User
from app.utils.helpers import round2, safe_float, iso, to_decimal
from app.utils.logger import log


# Fields a client may set when creating or editing a product
PRODUCT_FIELDS = (
    "name", "brand", "sku", "barcode", "category", "condition", "size", "color",
    "description", "purchase_price", "listing_price", "recommended_price",
    "quantity", "restock_threshold", "location", "source", "purchase_date",
    "tags", "notes",
)


def derive_status(quantity: int, restock_threshold: int) -> StockStatus:
    """
    Classify stock from quantity vs. restock threshold.

    quantity == 0 → out_of_stock; 0 < quantity <= threshold → low_stock;
    otherwise active. Negative inputs are a bug upstream and are rejected.
    """
    if quantity is None or quantity < 0:
        raise InvalidState("Product", "quantity", quantity, "must be >= 0")
    if restock_threshold is None or restock_threshold < 0:
        raise InvalidState("Product", "restock_threshold", restock_threshold, "must be >= 0")

    if quantity == 0:
        return StockStatus.OUT_OF_STOCK
    if quantity <= restock_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.ACTIVE


def refresh_status(product: Product) -> StockStatus:
    """Recompute and store the derived status; call before persisting inventory changes."""
    product.status = derive_status(product.quantity, product.restock_threshold)
    return product.status


def product_to_dict(product: Product) -> Dict[str, Any]:
    """Serialize a product in the API's nested shape."""
    return {
        "id": product.id,
        "name": product.name,
        "brand": product.brand,
        "sku": product.sku,
        "barcode": product.barcode,
        "category": product.category,
        "condition": product.condition,
        "size": product.size,
        "color": product.color,
        "description": product.description,
        "pricing": {
            "purchasePrice": safe_float(product.purchase_price),
            "listingPrice": safe_float(product.listing_price),
            "recommendedPrice": safe_float(product.recommended_price),
        },
        "inventory": {
            "quantity": product.quantity,
            "restockThreshold": product.restock_threshold,
            "location": product.location,
        },
        "status": product.status.value if product.status else None,
        "source": product.source,
        "purchaseDate": iso(product.purchase_date),
        "tags": product.tags or [],
        "notes": product.notes,
        "analytics": {"totalSales": product.total_sales},
        "profitMargin": round2(product.listing_margin_pct),
        "isArchived": product.is_archived,
        "createdAt": iso(product.created_at),
        "updatedAt": iso(product.updated_at),
    }


def product_ref(product: Product) -> Dict[str, Any]:
    """Short reference used in alerts and low-stock lists."""
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "inventory": {
            "quantity": product.quantity,
            "restockThreshold": product.restock_threshold,
        },
    }


class InventoryService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()

    # ── Reads ──

    def get_product(self, user_id: int, product_id: int) -> Product:
        product = self.db.query(Product).filter(
            Product.id == product_id,
            Product.user_id == user_id,
        ).first()
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def count_active_products(self, user_id: int) -> int:
        """Non-archived products, the figure the free-tier cap is measured on."""
        with store_operation("product count"):
            count = self.db.query(func.count(Product.id)).filter(
                Product.user_id == user_id,
                Product.is_archived == False,  # noqa: E712
            ).scalar()
        return count or 0

    def count_by_status(self, user_id: int, status: StockStatus) -> int:
        with store_operation(f"{status.value} count"):
            count = self.db.query(func.count(Product.id)).filter(
                Product.user_id == user_id,
                Product.is_archived == False,  # noqa: E712
                Product.status == status,
            ).scalar()
        return count or 0

    def low_stock_products(self, user_id: int, limit: Optional[int] = None) -> List[Product]:
        limit = limit or self.settings.low_stock_alert_sample
        with store_operation("low stock products"):
            return (
                self.db.query(Product)
                .filter(
                    Product.user_id == user_id,
                    Product.is_archived == False,  # noqa: E712
                    Product.status == StockStatus.LOW_STOCK,
                )
                .order_by(Product.quantity.asc(), Product.id.asc())
                .limit(limit)
                .all()
            )

    def list_products(
        self,
        user_id: int,
        category: Optional[str] = None,
        status: Optional[str] = None,
        brand: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Dict[str, Any]:
        """Paginated product list plus a status summary of the whole inventory."""
        query = self.db.query(Product).filter(
            Product.user_id == user_id,
            Product.is_archived == (status == "archived"),
        )
        if category:
            query = query.filter(Product.category == category)
        if status and status != "archived":
            query = query.filter(Product.status == StockStatus(status))
        if brand:
            query = query.filter(Product.brand.ilike(f"%{brand}%"))
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.brand.ilike(pattern),
                Product.sku.ilike(pattern),
                Product.description.ilike(pattern),
            ))

        with store_operation("product list"):
            total = query.count()
            products = (
                query.order_by(Product.created_at.desc(), Product.id.desc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )

        overview = self.get_overview(user_id)
        return {
            "products": [product_to_dict(p) for p in products],
            "pagination": {
                "currentPage": page,
                "totalPages": (total + limit - 1) // limit,
                "totalItems": total,
                "itemsPerPage": limit,
            },
            "summary": {
                "total": total,
                "active": overview["activeItems"],
                "lowStock": overview["lowStockItems"],
                "outOfStock": overview["outOfStockItems"],
                "totalValue": overview["totalValue"],
            },
        }

    def get_overview(self, user_id: int) -> Dict[str, Any]:
        """Counts by derived status and total purchase value, in one pass."""
        with store_operation("inventory overview"):
            row = self.db.query(
                func.count(Product.id).label("total_products"),
                func.coalesce(func.sum(Product.purchase_price), 0).label("total_value"),
                func.coalesce(func.sum(case((Product.status == StockStatus.ACTIVE, 1), else_=0)), 0).label("active"),
                func.coalesce(func.sum(case((Product.status == StockStatus.LOW_STOCK, 1), else_=0)), 0).label("low_stock"),
                func.coalesce(func.sum(case((Product.status == StockStatus.OUT_OF_STOCK, 1), else_=0)), 0).label("out_of_stock"),
            ).filter(
                Product.user_id == user_id,
                Product.is_archived == False,  # noqa: E712
            ).one()

        return {
            "totalProducts": row.total_products or 0,
            "totalValue": round2(row.total_value),
            "activeItems": int(row.active or 0),
            "lowStockItems": int(row.low_stock or 0),
            "outOfStockItems": int(row.out_of_stock or 0),
        }

    def get_analytics(self, user_id: int) -> Dict[str, Any]:
        """Inventory analytics: totals, category breakdown, low-stock sample."""
        base_filter = (
            Product.user_id == user_id,
            Product.is_archived == False,  # noqa: E712
        )
        with store_operation("inventory analytics"):
            totals = self.db.query(
                func.count(Product.id).label("total_products"),
                func.coalesce(func.sum(Product.purchase_price), 0).label("total_value"),
                func.coalesce(func.sum(Product.quantity), 0).label("total_quantity"),
            ).filter(*base_filter).one()

            categories = [
                r[0] for r in self.db.query(Product.category).filter(*base_filter).distinct().all()
            ]
            brands = [
                r[0] for r in self.db.query(Product.brand).filter(
                    *base_filter, Product.brand.isnot(None)
                ).distinct().all()
            ]

            breakdown = (
                self.db.query(
                    Product.category,
                    func.count(Product.id).label("count"),
                    func.coalesce(func.sum(Product.purchase_price), 0).label("value"),
                )
                .filter(*base_filter)
                .group_by(Product.category)
                .all()
            )

        total_products = totals.total_products or 0
        total_value = to_decimal(totals.total_value)
        average_price = total_value / total_products if total_products else 0

        category_breakdown = sorted(
            (
                {"category": r.category, "count": r.count, "value": round2(r.value)}
                for r in breakdown
            ),
            key=lambda c: c["count"],
            reverse=True,
        )

        return {
            "overview": {
                "totalProducts": total_products,
                "totalValue": round2(total_value),
                "averagePrice": round2(average_price),
                "totalQuantity": int(totals.total_quantity or 0),
                "categories": sorted(categories),
                "brands": sorted(brands),
            },
            "categoryBreakdown": category_breakdown,
            "lowStockItems": [product_ref(p) for p in self.low_stock_products(user_id)],
        }

    # ── Writes ──

    def _existing_skus(self, skus: List[str]) -> set:
        if not skus:
            return set()
        with store_operation("sku lookup"):
            rows = self.db.query(Product.sku).filter(Product.sku.in_(skus)).all()
        return {r[0] for r in rows}

    def _commit(self, sku: Optional[str] = None):
        """Commit product writes; a unique SKU clash becomes InvalidState."""
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            log.warning(f"Product write rejected on SKU clash ({sku or 'batch'}): {e.orig}")
            raise InvalidState("Product", "sku", sku, "already in use") from e

    def check_product_limit(self, user: User, current_count: Optional[int] = None) -> int:
        """Raise SubscriptionLimitError when a free user is at the product cap."""
        if current_count is None:
            current_count = self.count_active_products(user.id)
        limit = self.settings.free_tier_product_limit
        if user.is_free_tier and current_count >= limit:
            log.warning(f"User {user.id} hit free tier product limit ({current_count}/{limit})")
            raise SubscriptionLimitError(current_count, limit)
        return current_count

    def _build_product(self, user: User, data: Dict[str, Any]) -> Product:
        fields = {k: v for k, v in data.items() if k in PRODUCT_FIELDS and v is not None}
        fields.setdefault("quantity", 1)
        fields.setdefault("restock_threshold", 1)
        fields.setdefault("purchase_date", datetime.utcnow())
        product = Product(user_id=user.id, **fields)
        refresh_status(product)
        return product

    def create_product(self, user: User, data: Dict[str, Any]) -> Product:
        self.check_product_limit(user)

        product = self._build_product(user, data)
        if product.sku and self._existing_skus([product.sku]):
            raise InvalidState("Product", "sku", product.sku, "already in use")
        self.db.add(product)
        self._commit(product.sku)
        self.db.refresh(product)

        log.info(f"Product created: {product.sku} ({product.status.value}) for user {user.id}")
        return product

    def bulk_create(self, user: User, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Import many products at once (Pro feature).

        Invalid items are reported back and skipped; valid ones are saved.
        """
        if user.is_free_tier:
            raise UpgradeRequired("Bulk import")

        created: List[Product] = []
        errors: List[Dict[str, Any]] = []
        taken = self._existing_skus([item["sku"] for item in items if item.get("sku")])
        for index, item in enumerate(items):
            sku = item.get("sku")
            if sku and sku in taken:
                errors.append({"index": index, "message": f"SKU {sku!r} already in use"})
                continue
            try:
                product = self._build_product(user, item)
            except InvalidState as e:
                errors.append({"index": index, "message": e.message})
                continue
            if sku:
                taken.add(sku)
            self.db.add(product)
            created.append(product)

        self._commit()
        log.info(f"Bulk import: {len(created)}/{len(items)} products by user {user.id}")

        return {
            "imported": len(created),
            "failed": len(errors),
            "errors": errors,
        }

    def update_product(self, user_id: int, product_id: int, changes: Dict[str, Any]) -> Product:
        product = self.get_product(user_id, product_id)
        try:
            for key, value in changes.items():
                if key in PRODUCT_FIELDS:
                    setattr(product, key, value)
            refresh_status(product)
            self._commit(product.sku)
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(product)

        log.info(f"Product updated: {product.sku} ({product.status.value})")
        return product

    def archive_product(self, user_id: int, product_id: int) -> Product:
        product = self.get_product(user_id, product_id)
        product.is_archived = True
        self.db.commit()
        log.info(f"Product archived: {product.sku}")
        return product
