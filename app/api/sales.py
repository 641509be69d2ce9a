"""
Sales API

Record sales, move them through their status lifecycle, and sales analytics.
"""
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import Field
from sqlalchemy.orm import Session

from app.api.deps import CamelModel, get_current_user, ok
from app.models.base import get_db
from app.models.enums import Currency, Platform, SaleStatus
from app.models.user import User
from app.services.dashboard_service import DashboardService
from app.services.period_service import custom_range, resolve_period
from app.services.sale_service import SaleService, sale_to_dict
from app.services.validation_service import parse_currency, parse_date, parse_period

router = APIRouter(prefix="/sales", tags=["sales"])


class SaleFields(CamelModel):
    quantity: Optional[int] = Field(None, ge=1)
    sale_price: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    platform: Optional[Platform] = None
    platform_order_id: Optional[str] = None
    buyer_username: Optional[str] = None
    platform_fee: Optional[float] = Field(None, ge=0)
    payment_fee: Optional[float] = Field(None, ge=0)
    shipping_fee: Optional[float] = Field(None, ge=0)
    promotion_discount: Optional[float] = Field(None, ge=0)
    other_fee: Optional[float] = Field(None, ge=0)
    sale_date: Optional[datetime] = None
    shipped_date: Optional[datetime] = None
    delivered_date: Optional[datetime] = None
    payment_method: Optional[str] = None
    status: Optional[SaleStatus] = None
    is_returned: Optional[bool] = None
    return_date: Optional[datetime] = None
    return_reason: Optional[str] = None
    refund_amount: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None


class SaleCreate(SaleFields):
    product_id: int
    quantity: int = Field(1, ge=1)
    sale_price: float = Field(..., ge=0)
    platform: Platform


class SaleUpdate(SaleFields):
    pass


def _dump(body: CamelModel) -> dict:
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if "currency" in data:
        data["currency"] = data["currency"].value
    return data


@router.get("")
async def list_sales(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    platform: Optional[Platform] = Query(None),
    status: Optional[SaleStatus] = Query(None),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    data = SaleService(db).list_sales(
        user.id,
        platform=platform.value if platform else None,
        status=status.value if status else None,
        start=parse_date("startDate", start_date),
        end=parse_date("endDate", end_date),
        page=page,
        limit=limit,
    )
    return ok(data)


@router.post("", status_code=201)
async def record_sale(
    body: SaleCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    sale = SaleService(db).record_sale(user, _dump(body))
    return ok(sale_to_dict(sale), "Sale recorded successfully")


@router.get("/analytics/summary")
async def sales_analytics(
    period: Optional[str] = Query(None, description="week, month, quarter or year"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    currency: Optional[str] = Query(None),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Sales summary, platform breakdown, top 10 products and 30-day trend.

    Explicit startDate/endDate win over period; with neither, the current
    calendar month is used.
    """
    start = parse_date("startDate", start_date)
    end = parse_date("endDate", end_date)
    currency_code = parse_currency(currency, user.currency)

    date_range = None
    if start and end:
        date_range = custom_range(start, end)
    elif period:
        date_range = resolve_period(parse_period(period))

    data = DashboardService(db).sales_analytics(user, date_range, currency_code)
    return ok(data)


@router.get("/{sale_id}")
async def get_sale(
    sale_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return ok(sale_to_dict(SaleService(db).get_sale(user.id, sale_id)))


@router.put("/{sale_id}")
async def update_sale(
    sale_id: int,
    body: SaleUpdate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Edit a sale; a status change runs through the sale lifecycle rules."""
    sale = SaleService(db).update_sale(user.id, sale_id, _dump(body))
    return ok(sale_to_dict(sale), "Sale updated successfully")


@router.delete("/{sale_id}")
async def archive_sale(
    sale_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    SaleService(db).archive_sale(user.id, sale_id)
    return ok(message="Sale deleted successfully")
