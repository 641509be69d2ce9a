"""
Finance Service: period P&L aggregation

Reduces a user's sales and expenses inside a [start, end) window into
revenue, fees, net revenue, expenses, net profit and margin, plus the
platform / category / daily / top-product breakdowns shown on the dashboard
and analytics screens.

Currency is a hard filter, never a conversion: every sum runs over a single
currency.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, extract
from sqlalchemy.orm import Session, joinedload

from app.models.base import store_operation
from app.models.enums import Currency
from app.models.expense import Expense
from app.models.product import Product
from app.models.sale import Sale
from app.services.period_service import DateRange
from app.services.inventory_service import product_ref
from app.services.sale_service import sale_to_dict
from app.utils.helpers import to_decimal, round2, percentage, calculate_growth


@dataclass
class SalesMetrics:
    total_sales: int = 0
    total_revenue: Decimal = field(default_factory=lambda: Decimal("0"))
    total_fees: Decimal = field(default_factory=lambda: Decimal("0"))

    @property
    def average_order_value(self) -> Decimal:
        if not self.total_sales:
            return Decimal("0")
        return self.total_revenue / self.total_sales

    @property
    def net_revenue(self) -> Decimal:
        return self.total_revenue - self.total_fees

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSales": self.total_sales,
            "totalRevenue": round2(self.total_revenue),
            "totalFees": round2(self.total_fees),
            "averageOrderValue": round2(self.average_order_value),
            "netRevenue": round2(self.net_revenue),
        }


@dataclass
class ExpenseMetrics:
    total_expenses: Decimal = field(default_factory=lambda: Decimal("0"))
    expense_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalExpenses": round2(self.total_expenses),
            "expenseCount": self.expense_count,
        }


@dataclass
class FinancialSummary:
    """Sales and expense totals for one user, window and currency."""
    currency: Currency
    date_range: DateRange
    sales: SalesMetrics
    expenses: ExpenseMetrics

    @property
    def net_revenue(self) -> Decimal:
        return self.sales.net_revenue

    @property
    def net_profit(self) -> Decimal:
        return self.sales.net_revenue - self.expenses.total_expenses

    @property
    def profit_margin(self) -> Decimal:
        # 0 when there is no positive net revenue to divide by
        return percentage(self.net_profit, self.net_revenue)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currency": self.currency.value,
            "sales": self.sales.to_dict(),
            "expenses": self.expenses.to_dict(),
            "profit": {
                "netProfit": round2(self.net_profit),
                "profitMargin": round2(self.profit_margin),
            },
        }


def compute_growth(current: FinancialSummary, previous: FinancialSummary) -> Dict[str, float]:
    """Revenue and sale-count growth of `current` over `previous`, in percent."""
    return {
        "revenueGrowth": round2(calculate_growth(current.sales.total_revenue, previous.sales.total_revenue)),
        "salesGrowth": round2(calculate_growth(current.sales.total_sales, previous.sales.total_sales)),
    }


class FinancialAggregator:
    def __init__(self, db: Session):
        self.db = db

    # ── Filters ──

    @staticmethod
    def _sale_filters(user_id: int, date_range: DateRange, currency: Currency) -> list:
        return [
            Sale.user_id == user_id,
            Sale.is_archived == False,  # noqa: E712
            Sale.sale_date >= date_range.start,
            Sale.sale_date < date_range.end,
            Sale.currency == Currency(currency).value,
        ]

    @staticmethod
    def _expense_filters(user_id: int, date_range: DateRange, currency: Currency) -> list:
        return [
            Expense.user_id == user_id,
            Expense.is_archived == False,  # noqa: E712
            Expense.date >= date_range.start,
            Expense.date < date_range.end,
            Expense.currency == Currency(currency).value,
        ]

    # ── Totals ──

    def sales_metrics(self, user_id: int, date_range: DateRange, currency: Currency) -> SalesMetrics:
        fees = (
            Sale.platform_fee + Sale.payment_fee + Sale.shipping_fee
            + Sale.other_fee - Sale.promotion_discount
        )
        with store_operation("sales metrics"):
            row = self.db.query(
                func.count(Sale.id).label("total_sales"),
                func.coalesce(func.sum(Sale.sale_price), 0).label("total_revenue"),
                func.coalesce(func.sum(fees), 0).label("total_fees"),
            ).filter(*self._sale_filters(user_id, date_range, currency)).one()

        return SalesMetrics(
            total_sales=row.total_sales or 0,
            total_revenue=to_decimal(row.total_revenue),
            total_fees=to_decimal(row.total_fees),
        )

    def expense_metrics(self, user_id: int, date_range: DateRange, currency: Currency) -> ExpenseMetrics:
        with store_operation("expense metrics"):
            row = self.db.query(
                func.coalesce(func.sum(Expense.amount), 0).label("total"),
                func.count(Expense.id).label("count"),
            ).filter(*self._expense_filters(user_id, date_range, currency)).one()

        return ExpenseMetrics(
            total_expenses=to_decimal(row.total),
            expense_count=row.count or 0,
        )

    def aggregate(self, user_id: int, date_range: DateRange, currency: Currency) -> FinancialSummary:
        currency = Currency(currency)
        return FinancialSummary(
            currency=currency,
            date_range=date_range,
            sales=self.sales_metrics(user_id, date_range, currency),
            expenses=self.expense_metrics(user_id, date_range, currency),
        )

    # ── Breakdowns ──

    def platform_breakdown(self, user_id: int, date_range: DateRange, currency: Currency) -> List[Dict[str, Any]]:
        """Sales count and revenue per marketplace, highest revenue first."""
        with store_operation("platform breakdown"):
            rows = (
                self.db.query(
                    Sale.platform,
                    func.count(Sale.id).label("sales"),
                    func.coalesce(func.sum(Sale.sale_price), 0).label("revenue"),
                )
                .filter(*self._sale_filters(user_id, date_range, currency))
                .group_by(Sale.platform)
                .all()
            )

        result = [
            {"platform": r.platform.value, "sales": r.sales, "revenue": to_decimal(r.revenue)}
            for r in rows
        ]
        result.sort(key=lambda r: r["revenue"], reverse=True)
        return [{**r, "revenue": round2(r["revenue"])} for r in result]

    def expense_breakdown(self, user_id: int, date_range: DateRange, currency: Currency) -> List[Dict[str, Any]]:
        """Expense amount and count per category, largest amount first."""
        with store_operation("expense breakdown"):
            rows = (
                self.db.query(
                    Expense.category,
                    func.coalesce(func.sum(Expense.amount), 0).label("amount"),
                    func.count(Expense.id).label("count"),
                )
                .filter(*self._expense_filters(user_id, date_range, currency))
                .group_by(Expense.category)
                .all()
            )

        result = [
            {"category": r.category, "amount": to_decimal(r.amount), "count": r.count}
            for r in rows
        ]
        result.sort(key=lambda r: r["amount"], reverse=True)
        return [{**r, "amount": round2(r["amount"])} for r in result]

    def daily_trend(self, user_id: int, date_range: DateRange, currency: Currency) -> List[Dict[str, Any]]:
        """Sales count and revenue per calendar day, oldest first."""
        year = extract("year", Sale.sale_date)
        month = extract("month", Sale.sale_date)
        day = extract("day", Sale.sale_date)
        with store_operation("daily sales trend"):
            rows = (
                self.db.query(
                    year.label("year"),
                    month.label("month"),
                    day.label("day"),
                    func.count(Sale.id).label("sales"),
                    func.coalesce(func.sum(Sale.sale_price), 0).label("revenue"),
                )
                .filter(*self._sale_filters(user_id, date_range, currency))
                .group_by(year, month, day)
                .all()
            )

        trend = [
            {
                "date": date(int(r.year), int(r.month), int(r.day)),
                "sales": r.sales,
                "revenue": round2(r.revenue),
            }
            for r in rows
        ]
        trend.sort(key=lambda r: r["date"])
        return [{**r, "date": r["date"].isoformat()} for r in trend]

    def top_products(
        self,
        user_id: int,
        date_range: DateRange,
        currency: Currency,
        limit: int = 5,
    ) -> List[Dict[str, Any]]:
        """Best sellers by units sold."""
        total_sold = func.sum(Sale.quantity)
        with store_operation("top products"):
            rows = (
                self.db.query(
                    Sale.product_id,
                    total_sold.label("total_sold"),
                    func.coalesce(func.sum(Sale.sale_price), 0).label("total_revenue"),
                )
                .filter(*self._sale_filters(user_id, date_range, currency))
                .group_by(Sale.product_id)
                .order_by(total_sold.desc(), Sale.product_id.asc())
                .limit(limit)
                .all()
            )
            product_ids = [r.product_id for r in rows]
            products = {
                p.id: p for p in self.db.query(Product).filter(Product.id.in_(product_ids)).all()
            } if product_ids else {}

        return [
            {
                "product": product_ref(products[r.product_id]) if r.product_id in products else None,
                "totalSold": int(r.total_sold or 0),
                "totalRevenue": round2(r.total_revenue),
            }
            for r in rows
        ]

    def recent_sales(self, user_id: int, limit: int = 5) -> List[Dict[str, Any]]:
        """Latest non-archived sales, any currency."""
        with store_operation("recent sales"):
            sales = (
                self.db.query(Sale)
                .options(joinedload(Sale.product))
                .filter(Sale.user_id == user_id, Sale.is_archived == False)  # noqa: E712
                .order_by(Sale.sale_date.desc(), Sale.id.desc())
                .limit(limit)
                .all()
            )
            return [sale_to_dict(s) for s in sales]

    def expense_monthly_trend(
        self,
        user_id: int,
        since: datetime,
        currency: Currency,
        until: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        """Expense amount and count per calendar month, oldest first."""
        until = until or datetime.utcnow()
        year = extract("year", Expense.date)
        month = extract("month", Expense.date)
        window = DateRange(start=since, end=until)
        with store_operation("expense monthly trend"):
            rows = (
                self.db.query(
                    year.label("year"),
                    month.label("month"),
                    func.coalesce(func.sum(Expense.amount), 0).label("amount"),
                    func.count(Expense.id).label("count"),
                )
                .filter(*self._expense_filters(user_id, window, currency))
                .group_by(year, month)
                .all()
            )

        trend = [
            {"year": int(r.year), "month": int(r.month), "amount": round2(r.amount), "count": r.count}
            for r in rows
        ]
        trend.sort(key=lambda r: (r["year"], r["month"]))
        return trend
