"""
Tests para el módulo de Catálogo

- Registro de libros con precio y stock en cero
- Contratos resolve_book / unit_price usados por la venta
- Importación CSV con conteo de errores por línea
- Endpoints protegidos
"""

import pytest
from decimal import Decimal
from pydantic import ValidationError as PydanticValidationError

from bookstore_pos.common.exceptions import ConflictError, NotFoundError
from bookstore_pos.modules.catalog.models import PriceLine, StockCondition
from bookstore_pos.modules.catalog.schemas import BookCreate, PriceUpdate
from bookstore_pos.modules.catalog.service import CatalogService
from bookstore_pos.modules.inventory.models import StockLine


class TestCatalogService:

    def test_create_book_creates_zero_lines(self, db_session):
        service = CatalogService(db_session)
        book = service.create_book(BookCreate(isbn="978-85-359-1484-9", title=" Dom Casmurro ", author="Machado"))

        assert book.isbn == "9788535914849"
        assert book.title == "Dom Casmurro"

        prices = db_session.query(PriceLine).filter(PriceLine.book_id == book.id).all()
        stock = db_session.query(StockLine).filter(StockLine.book_id == book.id).all()
        assert {p.condition for p in prices} == {StockCondition.NEW, StockCondition.DISCOUNTED}
        assert all(p.unit_price == Decimal("0.00") for p in prices)
        assert {s.condition for s in stock} == {StockCondition.NEW, StockCondition.DISCOUNTED}
        assert all(s.quantity == 0 for s in stock)

    def test_duplicate_isbn(self, db_session, book_a):
        service = CatalogService(db_session)
        with pytest.raises(ConflictError):
            service.create_book(BookCreate(isbn=book_a.isbn, title="Outro", author="Outro"))

    def test_invalid_isbn_rejected_by_schema(self):
        with pytest.raises(PydanticValidationError):
            BookCreate(isbn="12AB", title="X", author="Y")

    def test_resolve_book(self, db_session, book_a):
        service = CatalogService(db_session)

        assert service.resolve_book("978-8535914849") == book_a.id
        with pytest.raises(NotFoundError) as exc_info:
            service.resolve_book("9780000000000")
        assert exc_info.value.code == "BOOK_NOT_FOUND"

    def test_unit_price(self, db_session, book_a):
        service = CatalogService(db_session)

        assert service.unit_price(book_a.id, StockCondition.NEW) == Decimal("50.00")
        assert service.unit_price(book_a.id, StockCondition.DISCOUNTED) == Decimal("0.00")
        assert service.unit_price(9999, StockCondition.NEW) is None

    def test_set_price_rounds(self, db_session, book_a):
        service = CatalogService(db_session)
        service.set_price(book_a.id, PriceUpdate(condition=StockCondition.DISCOUNTED, unit_price=Decimal("19.90")))

        assert service.unit_price(book_a.id, StockCondition.DISCOUNTED) == Decimal("19.90")

    def test_list_books_search(self, db_session, make_book):
        make_book("9788535914849", title="Dom Casmurro")
        make_book("9788544001820", title="Grande Sertão: Veredas", author="Guimarães Rosa")
        service = CatalogService(db_session)

        result = service.list_books(search="sertão")
        assert result["total"] == 1
        assert result["items"][0].isbn == "9788544001820"


class TestCatalogImport:

    def test_import_books_counts_errors(self, db_session):
        content = (
            "isbn;titulo;autor;editora\n"
            "9788535914849;Dom Casmurro;Machado de Assis;Penguin\n"
            "123;ISBN curto;Autor;\n"
            "9788544001820;;Guimarães Rosa;\n"
            "9788525432186;Vidas Secas;Graciliano Ramos;Record\n"
        ).encode("utf-8")
        result = CatalogService(db_session).import_books_csv(content)

        assert result["total_lines"] == 4
        assert result["successes"] == 2
        assert result["errors"] == 2
        assert result["error_details"][0].startswith("Línea 3:")
        assert result["error_details"][1].startswith("Línea 4:")

    def test_import_books_updates_existing(self, db_session, book_a):
        content = f"isbn;title;author\n{book_a.isbn};Dom Casmurro (ed. revista);Machado de Assis\n".encode()
        result = CatalogService(db_session).import_books_csv(content)

        assert result["successes"] == 1
        db_session.refresh(book_a)
        assert book_a.title == "Dom Casmurro (ed. revista)"

    def test_import_prices(self, db_session, book_a):
        content = (
            "isbn;tipo_estoque;preco\n"
            f"{book_a.isbn};saldo;24,90\n"
            f"{book_a.isbn};usado;10\n"
            "9780000000000;novo;10\n"
        ).encode("utf-8")
        result = CatalogService(db_session).import_prices_csv(content)

        assert result["successes"] == 1
        assert result["errors"] == 2
        assert CatalogService(db_session).unit_price(book_a.id, StockCondition.DISCOUNTED) == Decimal("24.90")


class TestCatalogAPI:

    def test_requires_token(self, client):
        response = client.get("/api/v1/books/")
        assert response.status_code == 401

    def test_create_and_get_book(self, client, auth_headers):
        response = client.post(
            "/api/v1/books/",
            json={"isbn": "9788535914849", "title": "Dom Casmurro", "author": "Machado de Assis"},
            headers=auth_headers
        )
        assert response.status_code == 201
        book = response.json()
        assert len(book["prices"]) == 2
        assert len(book["stock_lines"]) == 2

        response = client.get("/api/v1/books/isbn/9788535914849", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["id"] == book["id"]

    def test_duplicate_isbn_returns_error_body(self, client, auth_headers, book_a):
        response = client.post(
            "/api/v1/books/",
            json={"isbn": book_a.isbn, "title": "X", "author": "Y"},
            headers=auth_headers
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    def test_set_price(self, client, auth_headers, book_a):
        response = client.put(
            f"/api/v1/books/{book_a.id}/price",
            json={"condition": "DISCOUNTED", "unit_price": "15.00"},
            headers=auth_headers
        )
        assert response.status_code == 200
        prices = {p["condition"]: Decimal(p["unit_price"]) for p in response.json()["prices"]}
        assert prices["DISCOUNTED"] == Decimal("15.00")

    def test_import_books_file(self, client, auth_headers):
        content = "isbn;title;author\n9788535914849;Dom Casmurro;Machado de Assis\n".encode("utf-8")
        response = client.post(
            "/api/v1/books/import",
            files={"file": ("livros.csv", content, "text/csv")},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["successes"] == 1
