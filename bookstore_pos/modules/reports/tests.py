"""
Tests for the Reports module

A day with three sales:
- #1 CASH: book A (NEW) x1                              -> 50.00
- #2 PIX:  book B (DISCOUNTED) x2, with customer        -> 40.00
- #3 CASH: book A x2 at 10% off + book B x1             -> 110.00
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from bookstore_pos.common.exceptions import ValidationError
from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.pos.models import CashSessionStatus, TenderType
from bookstore_pos.modules.pos.schemas import CashSessionClose, SaleCreate
from bookstore_pos.modules.pos.services import CashSessionService, SaleService
from bookstore_pos.modules.reports.services.cash_sessions import CashSessionReportService
from bookstore_pos.modules.reports.services.sales import SalesReportService


@pytest.fixture
def book_b(make_book):
    return make_book("9788544001820", title="Grande Sertão: Veredas", author="Guimarães Rosa",
                     price=Decimal("20.00"), stock=3, condition=StockCondition.DISCOUNTED)


@pytest.fixture
def sales_day(db_session, open_session, operator, customer, book_a, book_b):
    service = SaleService(db_session)
    first = service.create_sale(
        SaleCreate(tender_type=TenderType.CASH, lines=[{"book_id": book_a.id, "quantity": 1}]),
        operator.id
    )
    second = service.create_sale(
        SaleCreate(
            customer_id=customer.id,
            tender_type=TenderType.PIX,
            lines=[{"book_id": book_b.id, "quantity": 2, "condition": "DISCOUNTED"}]
        ),
        operator.id
    )
    third = service.create_sale(
        SaleCreate(
            tender_type=TenderType.CASH,
            lines=[
                {"book_id": book_a.id, "quantity": 2, "discount_percent": "10"},
                {"book_id": book_b.id, "quantity": 1, "condition": "DISCOUNTED"},
            ]
        ),
        operator.id
    )
    return [first.sale_id, second.sale_id, third.sale_id]


def today():
    return datetime.now(timezone.utc).date()


class TestSalesReportService:

    def test_list_sales_newest_first(self, db_session, sales_day):
        result = SalesReportService(db_session).list_sales()

        assert result["total"] == 3
        assert [sale.id for sale in result["items"]] == list(reversed(sales_day))
        assert result["items"][1].customer_name == "Maria Silva"
        assert result["items"][0].line_count == 2

    def test_list_sales_filters(self, db_session, sales_day, customer):
        service = SalesReportService(db_session)

        assert service.list_sales(tender_type=TenderType.CASH)["total"] == 2
        assert service.list_sales(customer_id=customer.id)["total"] == 1
        assert service.list_sales(condition=StockCondition.DISCOUNTED)["total"] == 2
        assert service.list_sales(start_date=today(), end_date=today())["total"] == 3
        yesterday = today() - timedelta(days=1)
        assert service.list_sales(start_date=yesterday, end_date=yesterday)["total"] == 0

    def test_list_sales_pagination(self, db_session, sales_day):
        result = SalesReportService(db_session).list_sales(page=2, limit=2)

        assert result["pages"] == 2
        assert [sale.id for sale in result["items"]] == [sales_day[0]]

    def test_invalid_date_range(self, db_session):
        with pytest.raises(ValidationError):
            SalesReportService(db_session).list_sales(start_date=today(), end_date=today() - timedelta(days=1))

    def test_statistics(self, db_session, sales_day):
        result = SalesReportService(db_session).statistics()

        assert result["overall"] == {
            "sales_count": 3,
            "revenue": Decimal("200.00"),
            "average_ticket": Decimal("66.67")
        }
        by_tender = {item["tender_type"]: item for item in result["by_tender"]}
        assert by_tender[TenderType.CASH]["count"] == 2
        assert by_tender[TenderType.CASH]["total"] == Decimal("160.00")
        assert by_tender[TenderType.PIX]["total"] == Decimal("40.00")
        assert result["by_tender"][0]["tender_type"] == TenderType.CASH

        by_condition = {item["condition"]: item for item in result["by_condition"]}
        assert by_condition[StockCondition.NEW] == {
            "condition": StockCondition.NEW, "units": 3, "total": Decimal("140.00")
        }
        assert by_condition[StockCondition.DISCOUNTED]["total"] == Decimal("60.00")

    def test_statistics_empty(self, db_session):
        result = SalesReportService(db_session).statistics()

        assert result["overall"]["sales_count"] == 0
        assert result["overall"]["average_ticket"] == Decimal("0.00")
        assert result["by_tender"] == []

    def test_sales_by_book(self, db_session, sales_day, book_a, book_b):
        result = SalesReportService(db_session).sales_by_book()

        first, second = result["items"]
        assert first["book_id"] == book_a.id
        assert first["quantity_total"] == 3
        assert first["revenue_total"] == Decimal("140.00")
        assert first["average_unit_price"] == Decimal("46.67")
        assert first["sales_count"] == 2
        assert second["book_id"] == book_b.id
        assert second["average_unit_price"] == Decimal("20.00")

        summary = result["summary"]
        assert summary["sales_count"] == 3
        assert summary["units_sold"] == 6
        assert summary["revenue_total"] == Decimal("200.00")
        assert summary["distinct_books"] == 2

    def test_sales_by_book_condition(self, db_session, sales_day):
        result = SalesReportService(db_session).sales_by_book(condition=StockCondition.DISCOUNTED)

        assert len(result["items"]) == 1
        assert result["summary"]["sales_count"] == 2
        assert result["summary"]["revenue_total"] == Decimal("60.00")
        tenders = {item["tender_type"]: item["total"] for item in result["summary"]["tender_types"]}
        assert tenders == {TenderType.PIX: Decimal("40.00"), TenderType.CASH: Decimal("20.00")}


class TestCashSessionHistory:

    def test_history_matches_close(self, db_session, sales_day, open_session, operator):
        service = CashSessionService(db_session)
        closed = service.close_session(
            open_session.id,
            CashSessionClose(final_cash_count=Decimal("255.00"), conferred_pix=Decimal("40.00")),
            operator.id
        )
        service.open_session(Decimal("50.00"), operator.id)

        result = CashSessionReportService(db_session).history()
        assert result["total"] == 2
        current, previous = result["items"]

        assert current["status"] == CashSessionStatus.OPEN
        assert current["reconciliation"] is None
        assert current["total_conferred"] is None

        assert previous["id"] == open_session.id
        assert previous["reconciliation"] == closed.reconciliation.model_dump()
        assert previous["reconciliation"]["cash_variance"] == Decimal("-5.00")
        assert previous["total_registered"] == Decimal("200.00")
        assert previous["total_conferred"] == Decimal("295.00")

    def test_history_status_filter(self, db_session, open_session):
        service = CashSessionReportService(db_session)

        assert service.history(status=CashSessionStatus.CLOSED)["total"] == 0
        assert service.history(status=CashSessionStatus.OPEN)["total"] == 1


class TestReportsAPI:

    def test_requires_token(self, client):
        assert client.get("/api/v1/reports/sales/").status_code == 401

    def test_sales_list_json(self, client, auth_headers, sales_day):
        response = client.get("/api/v1/reports/sales/", params={"tender_type": "PIX"}, headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert Decimal(body["items"][0]["total"]) == Decimal("40.00")

    def test_sales_list_csv(self, client, auth_headers, sales_day):
        response = client.get("/api/v1/reports/sales/", params={"export": "csv"}, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        lines = response.text.strip().splitlines()
        assert lines[0] == "Sale ID;Date;Customer;Tender Type;Total;Lines;Cash Session"
        assert len(lines) == 4

    def test_statistics_endpoint(self, client, auth_headers, sales_day):
        response = client.get("/api/v1/reports/sales/statistics", headers=auth_headers)

        assert response.status_code == 200
        assert Decimal(response.json()["overall"]["revenue"]) == Decimal("200.00")

    def test_by_book_csv(self, client, auth_headers, sales_day):
        response = client.get("/api/v1/reports/sales/by-book", params={"export": "csv"}, headers=auth_headers)

        lines = response.text.strip().splitlines()
        assert lines[0].startswith("ISBN;Title;Author")
        assert lines[1].startswith("9788535914849;Dom Casmurro;Machado de Assis")

    def test_history_endpoint(self, client, auth_headers, open_session):
        response = client.get("/api/v1/reports/cash-sessions/history", headers=auth_headers)

        assert response.status_code == 200
        assert response.json()["items"][0]["reconciliation"] is None

    def test_invalid_export_format(self, client, auth_headers):
        response = client.get("/api/v1/reports/sales/", params={"export": "pdf"}, headers=auth_headers)
        assert response.status_code == 422
