"""
Financial aggregation, dashboard composition and alert derivation.

All aggregation is scoped to one user, one currency and a half-open
[start, end) window; these tests seed sales/expenses on both sides of every
one of those boundaries.
"""
from datetime import datetime

import pytest
from sqlalchemy import event, text

from app.errors import DataUnavailable
from app.models.enums import Currency, PeriodKind, Platform, SaleStatus, SubscriptionType
from app.services.alert_service import AlertService
from app.services.dashboard_service import DashboardService
from app.services.finance_service import FinancialAggregator
from app.services.period_service import DateRange
from app.services.sale_service import SaleService


MAY = DateRange(start=datetime(2024, 5, 1), end=datetime(2024, 6, 1))
NOW = datetime(2024, 5, 20, 12)


@pytest.fixture
def seeded(user, make_user, make_product, make_sale, make_expense):
    """Two GBP sales in May plus noise that must be filtered out."""
    jacket = make_product(user, name="Jacket", quantity=10, purchase_price=25)
    boots = make_product(user, name="Boots", quantity=10, purchase_price=10)

    make_sale(user, jacket, 45, datetime(2024, 5, 3), platform_fee=2.25, payment_fee=1)
    make_sale(user, boots, 30, datetime(2024, 5, 10), platform=Platform.EBAY,
              quantity=2, platform_fee=2, promotion_discount=0.5)

    # other currency, outside the window, archived, another user
    make_sale(user, jacket, 100, datetime(2024, 5, 4), currency="USD")
    make_sale(user, jacket, 70, datetime(2024, 6, 1))
    make_sale(user, jacket, 80, datetime(2024, 5, 5), is_archived=True)
    stranger = make_user()
    make_sale(stranger, make_product(stranger, quantity=5), 500, datetime(2024, 5, 6))

    make_expense(user, 12.25, datetime(2024, 5, 2), category="Packaging")
    make_expense(user, 8, datetime(2024, 5, 12), category="Shipping")
    make_expense(user, 10, datetime(2024, 5, 12), category="Shipping", currency="USD")
    make_expense(user, 99, datetime(2024, 4, 30, 23), category="Shipping")

    return {"jacket": jacket, "boots": boots}


# ────────────────────────────────────────────
# AGGREGATOR
# ────────────────────────────────────────────


class TestAggregate:

    def test_totals(self, db, user, seeded):
        summary = FinancialAggregator(db).aggregate(user.id, MAY, Currency.GBP).to_dict()
        assert summary["sales"] == {
            "totalSales": 2,
            "totalRevenue": 75.0,
            "totalFees": 4.75,
            "averageOrderValue": 37.5,
            "netRevenue": 70.25,
        }
        assert summary["expenses"] == {"totalExpenses": 20.25, "expenseCount": 2}
        assert summary["profit"] == {"netProfit": 50.0, "profitMargin": 71.17}

    def test_other_currency_is_separate(self, db, user, seeded):
        summary = FinancialAggregator(db).aggregate(user.id, MAY, Currency.USD)
        assert summary.sales.total_sales == 1
        assert summary.expenses.total_expenses == 10

    def test_empty_window(self, db, user):
        summary = FinancialAggregator(db).aggregate(user.id, MAY, Currency.GBP).to_dict()
        assert summary["sales"]["totalSales"] == 0
        assert summary["sales"]["averageOrderValue"] == 0
        assert summary["profit"] == {"netProfit": 0.0, "profitMargin": 0.0}

    def test_expenses_only_margin_is_zero(self, db, user, make_expense):
        make_expense(user, 40, datetime(2024, 5, 8))
        profit = FinancialAggregator(db).aggregate(user.id, MAY, Currency.GBP).to_dict()["profit"]
        assert profit == {"netProfit": -40.0, "profitMargin": 0.0}


class TestBreakdowns:

    def test_platforms_by_revenue(self, db, user, seeded):
        rows = FinancialAggregator(db).platform_breakdown(user.id, MAY, Currency.GBP)
        assert rows == [
            {"platform": "vinted", "sales": 1, "revenue": 45.0},
            {"platform": "ebay", "sales": 1, "revenue": 30.0},
        ]

    def test_expense_categories_by_amount(self, db, user, seeded):
        rows = FinancialAggregator(db).expense_breakdown(user.id, MAY, Currency.GBP)
        assert rows == [
            {"category": "Packaging", "amount": 12.25, "count": 1},
            {"category": "Shipping", "amount": 8.0, "count": 1},
        ]

    def test_daily_trend_sorted(self, db, user, seeded):
        rows = FinancialAggregator(db).daily_trend(user.id, MAY, Currency.GBP)
        assert rows == [
            {"date": "2024-05-03", "sales": 1, "revenue": 45.0},
            {"date": "2024-05-10", "sales": 1, "revenue": 30.0},
        ]

    def test_top_products_by_units(self, db, user, seeded):
        rows = FinancialAggregator(db).top_products(user.id, MAY, Currency.GBP, limit=5)
        assert [r["product"]["name"] for r in rows] == ["Boots", "Jacket"]
        assert rows[0]["totalSold"] == 2
        assert rows[0]["totalRevenue"] == 30.0

    def test_top_products_tie_break_is_stable(self, db, user, make_product, make_sale):
        a = make_product(user, quantity=3)
        b = make_product(user, quantity=3)
        make_sale(user, b, 10, datetime(2024, 5, 4))
        make_sale(user, a, 10, datetime(2024, 5, 5))
        rows = FinancialAggregator(db).top_products(user.id, MAY, Currency.GBP)
        assert [r["product"]["id"] for r in rows] == [a.id, b.id]

    def test_recent_sales_any_currency(self, db, user, seeded):
        rows = FinancialAggregator(db).recent_sales(user.id, limit=3)
        assert [r["salePrice"] for r in rows] == [70.0, 30.0, 100.0]

    def test_expense_monthly_trend(self, db, user, seeded, make_expense):
        make_expense(user, 5, datetime(2024, 3, 15))
        rows = FinancialAggregator(db).expense_monthly_trend(
            user.id, datetime(2024, 1, 1), Currency.GBP, until=datetime(2024, 6, 1)
        )
        assert rows == [
            {"year": 2024, "month": 3, "amount": 5.0, "count": 1},
            {"year": 2024, "month": 4, "amount": 99.0, "count": 1},
            {"year": 2024, "month": 5, "amount": 20.25, "count": 2},
        ]


# ────────────────────────────────────────────
# DASHBOARD
# ────────────────────────────────────────────


class TestComposeDashboard:

    def test_shape_and_growth(self, db, user, seeded, make_sale):
        # previous window for NOW/month is the 19.5 days before May 1st
        make_sale(user, seeded["jacket"], 50, datetime(2024, 4, 20))

        data = DashboardService(db).compose_dashboard(user, PeriodKind.MONTH, Currency.GBP, now=NOW)

        assert data["period"] == {
            "type": "month",
            "startDate": "2024-05-01T00:00:00",
            "endDate": "2024-05-20T12:00:00",
        }
        assert data["currency"] == "GBP"
        metrics = data["metrics"]
        assert metrics["sales"]["totalRevenue"] == 75.0
        assert metrics["sales"]["growth"] == 100.0
        assert metrics["profit"]["revenueGrowth"] == 50.0
        assert metrics["expenses"]["totalExpenses"] == 20.25
        assert metrics["inventory"]["totalProducts"] == 2

        assert [p["platform"] for p in data["charts"]["platformPerformance"]] == ["vinted", "ebay"]
        assert len(data["charts"]["salesTrend"]) == 2
        assert data["charts"]["expenseBreakdown"][0]["category"] == "Packaging"
        assert len(data["insights"]["topProducts"]) == 2
        assert len(data["insights"]["recentSales"]) == 5

    def test_no_previous_activity_reports_full_growth(self, db, user, seeded):
        data = DashboardService(db).compose_dashboard(user, PeriodKind.MONTH, Currency.GBP, now=NOW)
        assert data["metrics"]["sales"]["growth"] == 100.0
        assert data["metrics"]["profit"]["revenueGrowth"] == 100.0

    def test_empty_account(self, db, user):
        data = DashboardService(db).compose_dashboard(user, PeriodKind.YEAR, now=NOW)
        assert data["currency"] == "GBP"
        assert data["metrics"]["sales"]["growth"] == 0.0
        assert data["charts"]["salesTrend"] == []
        assert data["insights"]["recentSales"] == []

    def test_sales_analytics_defaults_to_current_month(self, db, user, seeded):
        data = DashboardService(db).sales_analytics(user, now=NOW)
        assert data["period"] == {"startDate": "2024-05-01T00:00:00", "endDate": "2024-06-01T00:00:00"}
        assert data["summary"]["totalSales"] == 2

    def test_expense_analytics(self, db, user, seeded):
        data = DashboardService(db).expense_analytics(user, now=NOW)
        assert data["summary"] == {"totalExpenses": 20.25, "expenseCount": 2}
        assert [m["month"] for m in data["monthlyTrend"]] == [4, 5]


# ────────────────────────────────────────────
# ALERTS
# ────────────────────────────────────────────


class TestAlerts:

    def test_no_alerts_for_healthy_account(self, db, user, make_product):
        make_product(user, quantity=10, restock_threshold=2)
        assert AlertService(db).derive_alerts(user) == []

    def test_low_stock_after_sale(self, db, user, make_product):
        product = make_product(user, quantity=5, restock_threshold=2)
        SaleService(db).record_sale(user, {
            "product_id": product.id, "quantity": 3, "sale_price": 30,
            "platform": Platform.DEPOP, "status": SaleStatus.COMPLETED,
        })
        alerts = [a.to_dict() for a in AlertService(db).derive_alerts(user)]
        assert [a["type"] for a in alerts] == ["low_stock"]
        assert alerts[0]["severity"] == "warning"
        assert alerts[0]["actionRequired"] is True
        assert alerts[0]["data"][0]["id"] == product.id

    def test_low_stock_sample_is_capped(self, db, user, make_product):
        for _ in range(12):
            make_product(user, quantity=1, restock_threshold=1)
        alert = AlertService(db).derive_alerts(user)[0]
        assert alert.type == "low_stock"
        assert "12 product(s)" in alert.message
        assert len(alert.data) == 10

    def test_all_rules_in_order(self, db, user, make_product, make_sale):
        low = make_product(user, quantity=1, restock_threshold=2)
        make_product(user, quantity=0)
        make_sale(user, low, 10, datetime(2024, 5, 1), status=SaleStatus.PAID)
        alerts = AlertService(db).derive_alerts(user)
        assert [(a.type, a.severity) for a in alerts] == [
            ("low_stock", "warning"),
            ("out_of_stock", "error"),
            ("pending_sales", "info"),
        ]

    def test_completed_sales_are_not_pending(self, db, user, make_product, make_sale):
        product = make_product(user, quantity=10)
        make_sale(user, product, 10, datetime(2024, 5, 1), status=SaleStatus.COMPLETED)
        make_sale(user, product, 10, datetime(2024, 5, 1), status=SaleStatus.SHIPPED)
        assert AlertService(db).derive_alerts(user) == []

    def test_subscription_limit_at_threshold(self, db, user, make_product):
        for _ in range(80):
            make_product(user, quantity=5)
        alerts = [a.to_dict() for a in AlertService(db).derive_alerts(user)]
        assert len(alerts) == 1
        assert alerts[0]["type"] == "subscription_limit"
        assert alerts[0]["severity"] == "info"
        assert alerts[0]["actionRequired"] is False
        assert alerts[0]["data"] == {"currentCount": 80, "limit": 100}

    def test_subscription_limit_below_threshold(self, db, user, make_product):
        for _ in range(79):
            make_product(user, quantity=5)
        assert AlertService(db).derive_alerts(user) == []

    def test_pro_users_never_see_limit(self, db, make_user, make_product):
        pro = make_user(subscription=SubscriptionType.PRO)
        for _ in range(80):
            make_product(pro, quantity=5)
        assert AlertService(db).derive_alerts(pro) == []

    def test_alerts_payload(self, db, user, make_product):
        make_product(user, quantity=0)
        payload = DashboardService(db).get_alerts(user)
        assert payload["count"] == 1
        assert "data" not in payload["alerts"][0]


# ────────────────────────────────────────────
# STORE FAILURES
# ────────────────────────────────────────────


class TestStoreFailure:

    def test_dashboard_fails_as_a_whole(self, db, user, seeded):
        db.execute(text("DROP TABLE expenses"))
        db.commit()
        with pytest.raises(DataUnavailable) as exc:
            DashboardService(db).compose_dashboard(user, PeriodKind.MONTH, Currency.GBP, now=NOW)
        assert exc.value.status_code == 503
        assert exc.value.operation == "expense metrics"

    def test_recent_sales_loads_products_in_one_query(self, db, user, seeded):
        user_id = user.id
        db.expunge_all()
        statements = []

        def _count(conn, cursor, statement, *args):
            statements.append(statement)

        engine = db.get_bind()
        event.listen(engine, "before_cursor_execute", _count)
        try:
            rows = FinancialAggregator(db).recent_sales(user_id, limit=5)
        finally:
            event.remove(engine, "before_cursor_execute", _count)

        assert len(statements) == 1
        assert all(r["product"]["name"] in ("Jacket", "Boots") for r in rows)

    def test_sale_list_loads_products_with_the_page(self, db, user, seeded):
        user_id = user.id
        db.expunge_all()
        statements = []

        def _count(conn, cursor, statement, *args):
            statements.append(statement)

        engine = db.get_bind()
        event.listen(engine, "before_cursor_execute", _count)
        try:
            result = SaleService(db).list_sales(user_id)
        finally:
            event.remove(engine, "before_cursor_execute", _count)

        # count + page
        assert len(statements) == 2
        assert all(s["product"] is not None for s in result["sales"])
