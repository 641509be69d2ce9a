"""
Inventory API

Product CRUD, bulk import and inventory analytics. Stock status is derived
server-side and cannot be sent by the client.
"""
from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from app.api.deps import CamelModel, check_choice, get_current_user, ok
from app.models.base import get_db
from app.models.enums import PRODUCT_CATEGORIES, PRODUCT_CONDITIONS, PRODUCT_SOURCES
from app.models.user import User
from app.services.inventory_service import InventoryService, product_to_dict

router = APIRouter(prefix="/inventory", tags=["inventory"])


class ProductFields(CamelModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    sku: Optional[str] = None
    barcode: Optional[str] = None
    category: Optional[str] = None
    condition: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    description: Optional[str] = None
    purchase_price: Optional[float] = Field(None, ge=0)
    listing_price: Optional[float] = Field(None, ge=0)
    recommended_price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    restock_threshold: Optional[int] = Field(None, ge=0)
    location: Optional[str] = None
    source: Optional[str] = None
    purchase_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    notes: Optional[str] = None

    @field_validator("category")
    @classmethod
    def _category(cls, v):
        return check_choice(v, PRODUCT_CATEGORIES, "category")

    @field_validator("condition")
    @classmethod
    def _condition(cls, v):
        return check_choice(v, PRODUCT_CONDITIONS, "condition")

    @field_validator("source")
    @classmethod
    def _source(cls, v):
        return check_choice(v, PRODUCT_SOURCES, "source")


class ProductCreate(ProductFields):
    name: str = Field(..., min_length=1)
    category: str
    condition: str
    purchase_price: float = Field(..., ge=0)


class ProductUpdate(ProductFields):
    pass


class BulkImport(CamelModel):
    products: List[ProductCreate] = Field(..., min_length=1)


@router.get("")
async def list_products(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    category: Optional[str] = Query(None),
    status: Optional[Literal["active", "low_stock", "out_of_stock", "archived"]] = Query(None),
    brand: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List products with filters, pagination and a stock summary."""
    data = InventoryService(db).list_products(
        user.id, category=category, status=status, brand=brand, search=search, page=page, limit=limit
    )
    return ok(data)


@router.post("", status_code=201)
async def create_product(
    body: ProductCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    product = InventoryService(db).create_product(user, body.model_dump(exclude_unset=True))
    return ok(product_to_dict(product), "Product added successfully")


@router.post("/bulk", status_code=201)
async def bulk_import(
    body: BulkImport,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Import many products at once (Pro only)."""
    items = [p.model_dump(exclude_unset=True) for p in body.products]
    result = InventoryService(db).bulk_create(user, items)
    return ok(result, f"Successfully imported {result['imported']} products")


@router.get("/analytics/overview")
async def inventory_analytics(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(InventoryService(db).get_analytics(user.id))


@router.get("/{product_id}")
async def get_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    product = InventoryService(db).get_product(user.id, product_id)
    return ok(product_to_dict(product))


@router.put("/{product_id}")
async def update_product(
    product_id: int,
    body: ProductUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    product = InventoryService(db).update_product(
        user.id, product_id, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    return ok(product_to_dict(product), "Product updated successfully")


@router.delete("/{product_id}")
async def archive_product(
    product_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Soft delete: the product is archived, not removed."""
    InventoryService(db).archive_product(user.id, product_id)
    return ok(message="Product deleted successfully")
