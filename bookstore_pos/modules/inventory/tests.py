"""
Tests para el módulo de Inventario

El StockLedger nunca deja una línea negativa y no confirma la
transacción por sí mismo.
"""

import pytest

from bookstore_pos.common.exceptions import InsufficientStock, ValidationError
from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.inventory.models import StockLine
from bookstore_pos.modules.inventory.schemas import StockUpdate, StockUpdateMode
from bookstore_pos.modules.inventory.service import InventoryService, StockLedger


class TestStockLedger:

    def test_available(self, db_session, book_a):
        ledger = StockLedger(db_session)

        assert ledger.available(book_a.id, StockCondition.NEW) == 5
        assert ledger.available(book_a.id, StockCondition.DISCOUNTED) == 0
        assert ledger.available(9999, StockCondition.NEW) == 0

    def test_allocate_exact_quantity_leaves_zero(self, db_session, book_a):
        ledger = StockLedger(db_session)

        assert ledger.allocate(book_a.id, StockCondition.NEW, 5) == 0

    def test_allocate_more_than_available(self, db_session, book_a):
        ledger = StockLedger(db_session)

        with pytest.raises(InsufficientStock) as exc_info:
            ledger.allocate(book_a.id, StockCondition.NEW, 6)

        assert exc_info.value.details == {
            "book_id": book_a.id,
            "condition": StockCondition.NEW,
            "requested": 6,
            "available": 5
        }
        assert ledger.available(book_a.id, StockCondition.NEW) == 5

    def test_allocate_rejects_non_positive(self, db_session, book_a):
        with pytest.raises(ValidationError):
            StockLedger(db_session).allocate(book_a.id, StockCondition.NEW, 0)

    def test_release_restores(self, db_session, book_a):
        ledger = StockLedger(db_session)
        ledger.allocate(book_a.id, StockCondition.NEW, 2)

        assert ledger.release(book_a.id, StockCondition.NEW, 2) == 5

    def test_release_creates_missing_line(self, db_session, make_book):
        book = make_book("9788525432186", stock=0)
        ledger = StockLedger(db_session)
        db_session.query(StockLine).filter_by(
            book_id=book.id, condition=StockCondition.DISCOUNTED
        ).delete()

        assert ledger.release(book.id, StockCondition.DISCOUNTED, 3) == 3

    def test_ledger_does_not_commit(self, db_session, book_a):
        StockLedger(db_session).allocate(book_a.id, StockCondition.NEW, 1)
        db_session.rollback()

        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5


class TestInventoryService:

    def test_adjust_replace_and_add(self, db_session, book_a):
        service = InventoryService(db_session)

        result = service.adjust_stock(book_a.id, StockUpdate(condition=StockCondition.NEW, quantity=8))
        assert result.total_quantity == 8

        result = service.adjust_stock(
            book_a.id,
            StockUpdate(condition=StockCondition.DISCOUNTED, quantity=3, mode=StockUpdateMode.ADD)
        )
        assert result.total_quantity == 11

    def test_adjust_cannot_go_negative(self, db_session, book_a):
        service = InventoryService(db_session)

        with pytest.raises(ValidationError):
            service.adjust_stock(
                book_a.id,
                StockUpdate(condition=StockCondition.NEW, quantity=-6, mode=StockUpdateMode.ADD)
            )
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 5

    def test_import_stock_csv(self, db_session, book_a):
        content = (
            "isbn;tipo_estoque;quantidade\n"
            f"{book_a.isbn};novo;2\n"
            f"{book_a.isbn};saldo;x\n"
            f"{book_a.isbn};saldo;-1\n"
        ).encode("utf-8")
        result = InventoryService(db_session).import_stock_csv(content, StockUpdateMode.ADD)

        assert result["successes"] == 1
        assert result["errors"] == 2
        assert StockLedger(db_session).available(book_a.id, StockCondition.NEW) == 7


class TestStockAPI:

    def test_get_and_update_stock(self, client, auth_headers, book_a):
        response = client.get(f"/api/v1/stock/{book_a.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["total_quantity"] == 5

        response = client.put(
            f"/api/v1/stock/{book_a.id}",
            json={"condition": "NEW", "quantity": 12, "mode": "replace"},
            headers=auth_headers
        )
        assert response.status_code == 200
        lines = {line["condition"]: line["quantity"] for line in response.json()["lines"]}
        assert lines["NEW"] == 12

    def test_unknown_book(self, client, auth_headers):
        response = client.get("/api/v1/stock/9999", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "BOOK_NOT_FOUND"
