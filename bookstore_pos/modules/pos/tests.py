"""
Tests para el módulo POS

Cubre:
- Apertura/cierre de caja y conferencia (quebra)
- Movimientos manuales
- Venta: precio del catálogo, descuento, stock y contador por forma de pago
- Estorno: deshace stock y contador; prohibido con la caja cerrada
- Endpoints y formato de error
"""

import pytest
from decimal import Decimal

from bookstore_pos.common.exceptions import (
    InsufficientStock, InternalError, InvalidAmount, NoOpenSession, NotFoundError, PriceNotFound,
    ReversalNotAllowed, SessionAlreadyOpen, SessionNotOpen
)
from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.inventory.models import StockLine
from bookstore_pos.modules.inventory.service import StockLedger
from bookstore_pos.modules.pos.models import CashSession, CashSessionStatus, MovementType, Sale, TenderType
from bookstore_pos.modules.pos.schemas import CashMovementCreate, CashSessionClose, SaleCreate
from bookstore_pos.modules.pos.services import (
    CashMovementService, CashSessionService, SaleService, compute_reconciliation
)


def sale_of(book_id, quantity=1, tender_type=TenderType.CASH, **line):
    return SaleCreate(
        tender_type=tender_type,
        lines=[{"book_id": book_id, "quantity": quantity, **line}]
    )


def movement(movement_type, amount, reason="Troco"):
    return CashMovementCreate(type=movement_type, amount=Decimal(amount), reason=reason)


def stock_snapshot(db_session):
    return {
        (line.book_id, line.condition): line.quantity
        for line in db_session.query(StockLine).all()
    }


def counters_snapshot(session):
    return {tender: session.registered_for(tender) for tender in TenderType}


# ===== CAJA =====

class TestCashSessionService:

    def test_open_session(self, db_session, open_session, operator):
        assert open_session.status == CashSessionStatus.OPEN
        assert open_session.opening_float == Decimal("100.00")
        assert open_session.opened_by == operator.id
        assert open_session.registered_total == Decimal("0.00")

    def test_second_open_rejected(self, db_session, open_session, operator):
        with pytest.raises(SessionAlreadyOpen):
            CashSessionService(db_session).open_session(Decimal("50.00"), operator.id)

        assert db_session.query(CashSession).count() == 1

    def test_negative_float_rejected(self, db_session, operator):
        with pytest.raises(InvalidAmount):
            CashSessionService(db_session).open_session(Decimal("-0.01"), operator.id)

    def test_open_after_close(self, db_session, open_session, operator):
        service = CashSessionService(db_session)
        service.close_session(open_session.id, CashSessionClose(final_cash_count=Decimal("100.00")), operator.id)

        session = service.open_session(Decimal("80.00"), operator.id)
        assert session.id != open_session.id
        assert service.get_current().id == session.id

    def test_close_without_activity(self, db_session, open_session, operator):
        result = CashSessionService(db_session).close_session(
            open_session.id, CashSessionClose(final_cash_count=Decimal("98.00")), operator.id
        )

        assert result.session.status == CashSessionStatus.CLOSED
        assert result.session.closed_by == operator.id
        assert result.reconciliation.expected_cash == Decimal("100.00")
        assert result.reconciliation.cash_variance == Decimal("-2.00")
        assert result.reconciliation.total_variance == Decimal("-2.00")

    def test_double_close(self, db_session, open_session, operator):
        service = CashSessionService(db_session)
        service.close_session(open_session.id, CashSessionClose(final_cash_count=Decimal("100.00")), operator.id)

        with pytest.raises(SessionNotOpen):
            service.close_session(open_session.id, CashSessionClose(final_cash_count=Decimal("0")), operator.id)

    def test_close_unknown_session(self, db_session, operator):
        with pytest.raises(NotFoundError) as exc_info:
            CashSessionService(db_session).close_session(
                999, CashSessionClose(final_cash_count=Decimal("0")), operator.id
            )
        assert exc_info.value.code == "SESSION_NOT_FOUND"

    def test_reconcile_open_session_is_none(self, db_session, open_session):
        assert CashSessionService(db_session).reconcile(open_session) is None

    def test_reconcile_is_repeatable(self, db_session, open_session, operator, book_a):
        SaleService(db_session).create_sale(sale_of(book_a.id, tender_type=TenderType.PIX), operator.id)
        service = CashSessionService(db_session)
        result = service.close_session(
            open_session.id,
            CashSessionClose(final_cash_count=Decimal("100.00"), conferred_pix=Decimal("45.00")),
            operator.id
        )

        session = service.get_session(open_session.id)
        first = service.reconcile(session)
        second = service.reconcile(session)

        assert first == second
        assert first == result.reconciliation.model_dump()
        assert first["pix_variance"] == Decimal("-5.00")
        assert first["total_registered"] == Decimal("50.00")
        assert first["total_conferred"] == Decimal("145.00")

    def test_status(self, db_session, open_session, operator, book_a):
        service = CashSessionService(db_session)
        assert service.get_status().is_open is True

        CashMovementService(db_session).record_manual_movement(movement(MovementType.WITHDRAWAL, "10.00"), operator.id)
        SaleService(db_session).create_sale(sale_of(book_a.id), operator.id)

        state = service.get_status()
        assert state.summary.total_withdrawn == Decimal("10.00")
        assert len(state.movements) == 1
        assert state.expected_cash == Decimal("140.00")

    def test_status_without_session(self, db_session):
        state = CashSessionService(db_session).get_status()

        assert state.is_open is False
        assert state.session is None

    def test_list_sessions(self, db_session, open_session, operator):
        service = CashSessionService(db_session)
        service.close_session(open_session.id, CashSessionClose(final_cash_count=Decimal("100.00")), operator.id)
        service.open_session(Decimal("0"), operator.id)

        assert service.list_sessions().total == 2
        assert service.list_sessions(status=CashSessionStatus.CLOSED).items[0].id == open_session.id

    def test_statistics(self, db_session, open_session, operator):
        service = CashSessionService(db_session)
        movements = CashMovementService(db_session)
        movements.record_manual_movement(movement(MovementType.WITHDRAWAL, "5.00", reason="Sangria"), operator.id)
        service.close_session(open_session.id, CashSessionClose(final_cash_count=Decimal("95.00")), operator.id)
        service.open_session(Decimal("50.00"), operator.id)
        movements.record_manual_movement(movement(MovementType.DEPOSIT, "20.00"), operator.id)

        stats = service.statistics()

        assert stats.total_sessions == 2
        assert stats.open_sessions == 1
        assert stats.closed_sessions == 1
        assert stats.total_opening_float == Decimal("150.00")
        assert stats.average_opening_float == Decimal("75.00")
        assert stats.movements.cash_session_id is None
        assert stats.movements.summary.total_deposited == Decimal("20.00")
        assert stats.movements.summary.total_withdrawn == Decimal("5.00")
        assert stats.movements.summary.count == 2

    def test_statistics_without_sessions(self, db_session):
        stats = CashSessionService(db_session).statistics()

        assert stats.total_sessions == 0
        assert stats.average_opening_float == Decimal("0.00")
        assert stats.movements.summary.net == Decimal("0.00")


class TestReconciliation:

    def test_compute_reconciliation(self):
        session = CashSession(
            status=CashSessionStatus.CLOSED,
            opening_float=Decimal("100.00"),
            registered_cash=Decimal("30.00"),
            registered_credit=Decimal("80.00"),
            registered_debit=Decimal("0.00"),
            registered_pix=Decimal("25.00"),
            registered_other=Decimal("0.00"),
            final_cash_count=Decimal("150.00"),
            conferred_credit=Decimal("80.00"),
            conferred_debit=Decimal("0.00"),
            conferred_pix=Decimal("20.00"),
            conferred_other=Decimal("1.00"),
        )
        result = compute_reconciliation(session, Decimal("20.00"), Decimal("5.00"))

        assert result["manual_net"] == Decimal("15.00")
        assert result["expected_cash"] == Decimal("145.00")
        assert result["cash_variance"] == Decimal("5.00")
        assert result["credit_variance"] == Decimal("0.00")
        assert result["pix_variance"] == Decimal("-5.00")
        assert result["other_variance"] == Decimal("1.00")
        assert result["total_variance"] == Decimal("1.00")
        assert result["total_registered"] == Decimal("135.00")
        assert result["total_conferred"] == Decimal("251.00")


# ===== MOVIMIENTOS =====

class TestCashMovementService:

    def test_movement_without_session(self, db_session, operator):
        with pytest.raises(NoOpenSession):
            CashMovementService(db_session).record_manual_movement(movement(MovementType.DEPOSIT, "10"), operator.id)

    def test_movements_do_not_touch_counters(self, db_session, open_session, operator):
        service = CashMovementService(db_session)
        service.record_manual_movement(movement(MovementType.DEPOSIT, "20.00"), operator.id)
        service.record_manual_movement(movement(MovementType.WITHDRAWAL, "5.00", reason="Sangria"), operator.id)

        db_session.refresh(open_session)
        assert open_session.registered_total == Decimal("0.00")

        result = service.list_movements()
        assert result.total == 2
        assert result.summary.net == Decimal("15.00")
        assert service.list_movements(movement_type=MovementType.WITHDRAWAL).items[0].reason == "Sangria"

    def test_statistics(self, db_session, open_session, operator):
        service = CashMovementService(db_session)
        service.record_manual_movement(movement(MovementType.DEPOSIT, "20.00"), operator.id)
        service.record_manual_movement(movement(MovementType.DEPOSIT, "7.50"), operator.id)

        stats = service.movement_statistics()
        by_type = {item.type: item for item in stats.by_type}
        assert stats.cash_session_id == open_session.id
        assert by_type[MovementType.DEPOSIT].count == 2
        assert by_type[MovementType.DEPOSIT].total == Decimal("27.50")
        assert by_type[MovementType.WITHDRAWAL].count == 0

    def test_list_unknown_session(self, db_session):
        with pytest.raises(NotFoundError):
            CashMovementService(db_session).list_movements(session_id=999)

    def test_list_without_open_session(self, db_session):
        with pytest.raises(NoOpenSession):
            CashMovementService(db_session).list_movements()


# ===== VENTAS =====

class TestSaleService:

    def test_cash_sale(self, db_session, open_session, operator, book_a):
        result = SaleService(db_session).create_sale(sale_of(book_a.id), operator.id)

        assert result.total == Decimal("50.00")
        assert result.line_count == 1
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 4
        db_session.refresh(open_session)
        assert open_session.registered_cash == Decimal("50.00")

    def test_reverse_restores_everything(self, db_session, open_session, operator, book_a):
        service = SaleService(db_session)
        sale = service.create_sale(sale_of(book_a.id), operator.id)

        reversal = service.reverse_sale(sale.sale_id, operator.id)

        assert reversal.reversed_total == Decimal("50.00")
        assert reversal.cash_session_affected is True
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5
        db_session.refresh(open_session)
        assert open_session.registered_cash == Decimal("0.00")
        with pytest.raises(NotFoundError) as exc_info:
            service.get_sale(sale.sale_id)
        assert exc_info.value.code == "SALE_NOT_FOUND"

    def test_insufficient_stock_leaves_state(self, db_session, open_session, operator, book_a):
        with pytest.raises(InsufficientStock) as exc_info:
            SaleService(db_session).create_sale(sale_of(book_a.id, quantity=6), operator.id)

        assert exc_info.value.details["available"] == 5
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5
        assert db_session.query(Sale).count() == 0
        db_session.refresh(open_session)
        assert open_session.registered_cash == Decimal("0.00")

    def test_exact_quantity_leaves_zero(self, db_session, open_session, operator, book_a):
        SaleService(db_session).create_sale(sale_of(book_a.id, quantity=5), operator.id)

        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 0

    def test_repeated_book_lines_checked_together(self, db_session, open_session, operator, book_a):
        sale_data = SaleCreate(
            tender_type=TenderType.CASH,
            lines=[
                {"book_id": book_a.id, "quantity": 3},
                {"isbn": book_a.isbn, "quantity": 3},
            ]
        )
        with pytest.raises(InsufficientStock) as exc_info:
            SaleService(db_session).create_sale(sale_data, operator.id)

        assert exc_info.value.details["requested"] == 6
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5

    def test_sale_without_session(self, db_session, operator, book_a):
        with pytest.raises(NoOpenSession):
            SaleService(db_session).create_sale(sale_of(book_a.id), operator.id)

        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5

    def test_zero_price(self, db_session, open_session, operator, book_a):
        with pytest.raises(PriceNotFound):
            SaleService(db_session).create_sale(
                sale_of(book_a.id, condition=StockCondition.DISCOUNTED), operator.id
            )

    def test_unknown_customer(self, db_session, open_session, operator, book_a):
        sale_data = sale_of(book_a.id)
        sale_data.customer_id = 999

        with pytest.raises(NotFoundError) as exc_info:
            SaleService(db_session).create_sale(sale_data, operator.id)
        assert exc_info.value.code == "CUSTOMER_NOT_FOUND"

    def test_unknown_book(self, db_session, open_session, operator):
        with pytest.raises(NotFoundError) as exc_info:
            SaleService(db_session).create_sale(sale_of(999), operator.id)
        assert exc_info.value.code == "BOOK_NOT_FOUND"

    def test_discount_and_declared_total_ignored(self, db_session, open_session, operator, book_a):
        sale_data = SaleCreate(
            tender_type=TenderType.CREDIT,
            total=Decimal("999.00"),
            lines=[{"book_id": book_a.id, "quantity": 2, "discount_percent": "10",
                    "unit_price": "1.00"}]
        )
        result = SaleService(db_session).create_sale(sale_data, operator.id)

        assert result.total == Decimal("90.00")
        detail = SaleService(db_session).get_sale(result.sale_id)
        assert detail.lines[0].unit_price == Decimal("50.00")
        assert detail.lines[0].line_total == Decimal("90.00")
        db_session.refresh(open_session)
        assert open_session.registered_credit == Decimal("90.00")
        assert open_session.registered_cash == Decimal("0.00")

    def test_sale_by_isbn_with_customer(self, db_session, open_session, operator, book_a, customer):
        sale_data = SaleCreate(
            customer_id=customer.id,
            tender_type=TenderType.DEBIT,
            lines=[{"isbn": "978-85-359-1484-9", "quantity": 1}]
        )
        result = SaleService(db_session).create_sale(sale_data, operator.id)

        detail = SaleService(db_session).get_sale(result.sale_id)
        assert detail.customer_name == "Maria Silva"
        assert detail.lines[0].book_id == book_a.id
        assert detail.lines[0].isbn == book_a.isbn

    def test_sale_then_reverse_is_identity(self, db_session, open_session, operator, book_a, make_book):
        book_b = make_book("9788544001820", title="Grande Sertão: Veredas", price=Decimal("42.90"),
                           stock=2, condition=StockCondition.DISCOUNTED)
        stock_before = stock_snapshot(db_session)
        db_session.refresh(open_session)
        counters_before = counters_snapshot(open_session)

        service = SaleService(db_session)
        sale = service.create_sale(
            SaleCreate(
                tender_type=TenderType.PIX,
                lines=[
                    {"book_id": book_a.id, "quantity": 2, "discount_percent": "5"},
                    {"book_id": book_b.id, "quantity": 1, "condition": "DISCOUNTED"},
                ]
            ),
            operator.id
        )
        service.reverse_sale(sale.sale_id, operator.id)

        db_session.refresh(open_session)
        assert stock_snapshot(db_session) == stock_before
        assert counters_snapshot(open_session) == counters_before

    def test_reverse_after_close(self, db_session, open_session, operator, book_a):
        service = SaleService(db_session)
        sale = service.create_sale(sale_of(book_a.id), operator.id)
        CashSessionService(db_session).close_session(
            open_session.id, CashSessionClose(final_cash_count=Decimal("150.00")), operator.id
        )

        with pytest.raises(ReversalNotAllowed):
            service.reverse_sale(sale.sale_id, operator.id)

        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 4
        assert service.get_sale(sale.sale_id).total == Decimal("50.00")

    def test_reverse_unknown_sale(self, db_session, operator):
        with pytest.raises(NotFoundError) as exc_info:
            SaleService(db_session).reverse_sale(999, operator.id)
        assert exc_info.value.code == "SALE_NOT_FOUND"


class TestConcurrentWrites:
    """La escritura falla en la base después de pasar la verificación previa"""

    def test_open_loses_to_concurrent_open(self, db_session, open_session, operator, monkeypatch):
        real_get_current = CashSessionService.get_current
        calls = []

        def stale_first_read(self, for_update=False):
            calls.append(for_update)
            if len(calls) == 1:
                return None
            return real_get_current(self, for_update)

        monkeypatch.setattr(CashSessionService, "get_current", stale_first_read)

        with pytest.raises(SessionAlreadyOpen) as exc_info:
            CashSessionService(db_session).open_session(Decimal("50.00"), operator.id)

        assert exc_info.value.details["session_id"] == open_session.id
        assert len(calls) == 2
        assert db_session.query(CashSession).filter(
            CashSession.status == CashSessionStatus.OPEN
        ).count() == 1

    def test_open_with_unknown_operator(self, db_session):
        with pytest.raises(InternalError):
            CashSessionService(db_session).open_session(Decimal("10.00"), 9999)

        assert db_session.query(CashSession).count() == 0

    def test_stock_taken_after_availability_check(self, db_session, open_session, operator, book_a, monkeypatch):
        real_check = SaleService._check_availability

        def check_then_other_sale(self, priced_lines):
            real_check(self, priced_lines)
            StockLedger(self.db).allocate(book_a.id, StockCondition.NEW, 3)
            self.db.commit()

        monkeypatch.setattr(SaleService, "_check_availability", check_then_other_sale)

        with pytest.raises(InsufficientStock) as exc_info:
            SaleService(db_session).create_sale(sale_of(book_a.id, quantity=4), operator.id)

        assert exc_info.value.details["available"] == 2
        assert exc_info.value.details["requested"] == 4
        assert db_session.query(Sale).count() == 0
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 2
        db_session.refresh(open_session)
        assert open_session.registered_cash == Decimal("0.00")


class TestFullDay:
    """Día completo: fondo, movimientos, venta y cierre sin quebra"""

    def test_close_matches_expected_cash(self, db_session, open_session, operator, make_book):
        book = make_book("9788525432186", title="Vidas Secas", price=Decimal("30.00"))
        movements = CashMovementService(db_session)
        movements.record_manual_movement(movement(MovementType.DEPOSIT, "20.00"), operator.id)
        movements.record_manual_movement(movement(MovementType.WITHDRAWAL, "5.00"), operator.id)
        SaleService(db_session).create_sale(sale_of(book.id), operator.id)

        result = CashSessionService(db_session).close_session(
            open_session.id, CashSessionClose(final_cash_count=Decimal("145.00")), operator.id
        )

        reconciliation = result.reconciliation
        assert reconciliation.expected_cash == Decimal("145.00")
        assert reconciliation.cash_variance == Decimal("0.00")
        assert reconciliation.total_variance == Decimal("0.00")


# ===== API =====

class TestPosAPI:

    def test_requires_token(self, client):
        assert client.post("/api/v1/cash-sessions/open", json={"opening_float": "100.00"}).status_code == 401
        assert client.post("/api/v1/sales/", json={}).status_code == 401

    def test_sale_flow(self, client, auth_headers, book_a):
        response = client.post("/api/v1/cash-sessions/open", json={"opening_float": "100.00"}, headers=auth_headers)
        assert response.status_code == 201
        session_id = response.json()["id"]

        response = client.post(
            "/api/v1/sales/",
            json={"tender_type": "CASH", "lines": [{"book_id": book_a.id, "quantity": 1}]},
            headers=auth_headers
        )
        assert response.status_code == 201
        sale_id = response.json()["sale_id"]
        assert Decimal(response.json()["total"]) == Decimal("50.00")

        response = client.get(f"/api/v1/sales/{sale_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["line_count"] == 1

        response = client.post(f"/api/v1/sales/{sale_id}/reverse", headers=auth_headers)
        assert response.status_code == 200

        response = client.get(f"/api/v1/sales/{sale_id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "SALE_NOT_FOUND"

        response = client.post(
            f"/api/v1/cash-sessions/{session_id}/close",
            json={"final_cash_count": "100.00"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert Decimal(response.json()["reconciliation"]["total_variance"]) == Decimal("0.00")

    def test_insufficient_stock_error_body(self, client, auth_headers, open_session, book_a):
        response = client.post(
            "/api/v1/sales/",
            json={"tender_type": "CASH", "lines": [{"book_id": book_a.id, "quantity": 6}]},
            headers=auth_headers
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INSUFFICIENT_STOCK"
        assert error["details"] == {"book_id": book_a.id, "condition": "NEW", "requested": 6, "available": 5}

    def test_second_open(self, client, auth_headers, open_session):
        response = client.post("/api/v1/cash-sessions/open", json={"opening_float": "10.00"}, headers=auth_headers)
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SESSION_ALREADY_OPEN"

    def test_current_and_status(self, client, auth_headers):
        assert client.get("/api/v1/cash-sessions/current", headers=auth_headers).status_code == 404
        response = client.get("/api/v1/cash-sessions/status", headers=auth_headers)
        assert response.json()["is_open"] is False

    def test_movements_endpoints(self, client, auth_headers, open_session):
        response = client.post(
            "/api/v1/cash-movements/",
            json={"type": "DEPOSIT", "amount": "20.00", "reason": "Reforço de troco"},
            headers=auth_headers
        )
        assert response.status_code == 201

        response = client.get("/api/v1/cash-movements/", params={"type": "DEPOSIT"}, headers=auth_headers)
        assert response.json()["total"] == 1

        response = client.get("/api/v1/cash-movements/statistics", headers=auth_headers)
        assert Decimal(response.json()["summary"]["net"]) == Decimal("20.00")

        response = client.get(f"/api/v1/cash-sessions/{open_session.id}", headers=auth_headers)
        assert len(response.json()["movements"]) == 1
        assert response.json()["reconciliation"] is None

    def test_session_statistics_endpoint(self, client, auth_headers, open_session):
        response = client.get("/api/v1/cash-sessions/statistics", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["open_sessions"] == 1
        assert Decimal(body["average_opening_float"]) == Decimal("100.00")
        assert body["movements"]["cash_session_id"] is None

    def test_sale_line_needs_one_book_reference(self, client, auth_headers, open_session):
        response = client.post(
            "/api/v1/sales/",
            json={"tender_type": "CASH", "lines": [{"quantity": 1}]},
            headers=auth_headers
        )
        assert response.status_code == 422
