"""
Dashboard API

Period P&L overview and the separate alerts feed.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_current_user, ok
from app.models.base import get_db
from app.models.user import User
from app.services.dashboard_service import DashboardService
from app.services.validation_service import parse_currency, parse_period

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("")
async def get_dashboard(
    period: Optional[str] = Query(None, description="week, month, quarter or year (default month)"),
    currency: Optional[str] = Query(None, description="GBP, USD or EUR (default: your currency)"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Key metrics, charts and insights for the requested period."""
    period_kind = parse_period(period)
    currency_code = parse_currency(currency, user.currency)

    data = DashboardService(db).compose_dashboard(user, period_kind, currency_code)
    return ok(data)


@router.get("/alerts")
async def get_alerts(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Low stock, out of stock, plan limit and pending sale alerts."""
    return ok(DashboardService(db).get_alerts(user))
