"""
Dashboard Service

Composes the dashboard payload: period resolution, current and previous
period aggregation, breakdowns, inventory overview and insights. Alerts are
served by a separate call so the two can refresh on their own cadence.

Composition is all-or-nothing: if any underlying query fails the whole
request fails with DataUnavailable.
"""
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.enums import Currency, PeriodKind
from app.models.user import User
from app.services.alert_service import AlertService
from app.services.finance_service import FinancialAggregator, compute_growth
from app.services.inventory_service import InventoryService
from app.services.period_service import (
    DateRange,
    current_month,
    months_back,
    previous_period,
    resolve_period,
)
from app.utils.logger import log


class DashboardService:
    def __init__(self, db: Session):
        self.db = db
        self.settings = get_settings()
        self.finance = FinancialAggregator(db)
        self.inventory = InventoryService(db)

    def compose_dashboard(
        self,
        user: User,
        period: PeriodKind = PeriodKind.MONTH,
        currency: Optional[Currency] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        period = PeriodKind(period)
        currency = Currency(currency or user.currency)

        current_range = resolve_period(period, now)
        previous_range = previous_period(current_range)

        log.info(
            f"Dashboard for user {user.id}: {period.value} {currency.value} "
            f"{current_range.start:%Y-%m-%d} → {current_range.end:%Y-%m-%d}"
        )

        current = self.finance.aggregate(user.id, current_range, currency)
        previous = self.finance.aggregate(user.id, previous_range, currency)
        growth = compute_growth(current, previous)

        summary = current.to_dict()

        return {
            "period": current_range.to_dict(period),
            "currency": currency.value,
            "metrics": {
                "inventory": self.inventory.get_overview(user.id),
                "sales": {**summary["sales"], "growth": growth["salesGrowth"]},
                "expenses": summary["expenses"],
                "profit": {**summary["profit"], "revenueGrowth": growth["revenueGrowth"]},
            },
            "charts": {
                "salesTrend": self.finance.daily_trend(user.id, current_range, currency),
                "platformPerformance": self.finance.platform_breakdown(user.id, current_range, currency),
                "expenseBreakdown": self.finance.expense_breakdown(user.id, current_range, currency),
            },
            "insights": {
                "topProducts": self.finance.top_products(
                    user.id, current_range, currency, limit=self.settings.dashboard_top_products
                ),
                "recentSales": self.finance.recent_sales(user.id, limit=self.settings.dashboard_recent_sales),
            },
        }

    def get_alerts(self, user: User) -> Dict[str, Any]:
        alerts = AlertService(self.db).derive_alerts(user)
        return {
            "alerts": [a.to_dict() for a in alerts],
            "count": len(alerts),
        }

    def sales_analytics(
        self,
        user: User,
        date_range: Optional[DateRange] = None,
        currency: Optional[Currency] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Standalone sales analytics: summary, platforms, top 10, 30-day trend."""
        now = now or datetime.utcnow()
        date_range = date_range or current_month(now)
        currency = Currency(currency or user.currency)
        trend_range = DateRange(start=now - timedelta(days=30), end=now)

        return {
            "period": date_range.to_dict(),
            "currency": currency.value,
            "summary": self.finance.sales_metrics(user.id, date_range, currency).to_dict(),
            "platformBreakdown": self.finance.platform_breakdown(user.id, date_range, currency),
            "topProducts": self.finance.top_products(
                user.id, date_range, currency, limit=self.settings.analytics_top_products
            ),
            "dailyTrend": self.finance.daily_trend(user.id, trend_range, currency),
        }

    def expense_analytics(
        self,
        user: User,
        date_range: Optional[DateRange] = None,
        currency: Optional[Currency] = None,
        now: Optional[datetime] = None,
    ) -> Dict[str, Any]:
        """Standalone expense analytics: totals, categories, monthly trend."""
        now = now or datetime.utcnow()
        date_range = date_range or current_month(now)
        currency = Currency(currency or user.currency)
        since = months_back(now, self.settings.expense_trend_months)

        return {
            "period": date_range.to_dict(),
            "currency": currency.value,
            "summary": self.finance.expense_metrics(user.id, date_range, currency).to_dict(),
            "categoryBreakdown": self.finance.expense_breakdown(user.id, date_range, currency),
            "monthlyTrend": self.finance.expense_monthly_trend(user.id, since, currency, until=now),
        }
