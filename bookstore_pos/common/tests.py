"""
Tests de utilidades compartidas: dinero, validadores, CSV y excepciones
"""

import pytest
from decimal import Decimal

from bookstore_pos.common.csv_import import normalize_condition, read_csv_rows
from bookstore_pos.common.exceptions import InsufficientStock, NotFoundError, ValidationError
from bookstore_pos.common.money import line_total, round_money, sum_money, to_decimal
from bookstore_pos.common.validators import calculate_cpf_check_digits, validate_cpf, validate_isbn
from bookstore_pos.modules.catalog.models import StockCondition


class TestMoney:
    """Redondeo a 2 decimales, ROUND_HALF_UP"""

    def test_round_half_up(self):
        assert round_money(Decimal("0.125")) == Decimal("0.13")
        assert round_money(Decimal("0.124")) == Decimal("0.12")
        assert round_money("10") == Decimal("10.00")

    def test_float_uses_repr(self):
        # 2.675 en binario es 2.67499999...; repr evita el redondeo hacia abajo
        assert to_decimal(2.675) == Decimal("2.675")
        assert round_money(2.675) == Decimal("2.68")

    def test_line_total_without_discount(self):
        assert line_total(Decimal("50.00"), 1) == Decimal("50.00")
        assert line_total(Decimal("12.50"), 3) == Decimal("37.50")

    def test_line_total_with_discount(self):
        assert line_total(Decimal("10.00"), 3, Decimal("15")) == Decimal("25.50")
        # 19.99 × 0.6667 = 13.327333 -> 13.33
        assert line_total(Decimal("19.99"), 1, Decimal("33.33")) == Decimal("13.33")

    def test_line_total_full_discount(self):
        assert line_total(Decimal("35.00"), 2, Decimal("100")) == Decimal("0.00")

    def test_sum_money(self):
        assert sum_money([Decimal("0.10"), Decimal("0.20"), 0.3]) == Decimal("0.60")
        assert sum_money([]) == Decimal("0.00")


class TestValidators:

    def test_isbn(self):
        assert validate_isbn("9788535914849") is True
        assert validate_isbn("8535914846") is True
        assert validate_isbn("123") is False
        assert validate_isbn("97885359148AB") is False
        assert validate_isbn("") is False

    def test_cpf_check_digits(self):
        assert calculate_cpf_check_digits("529982247") == "25"
        assert calculate_cpf_check_digits("12345") is None

    def test_validate_cpf(self):
        assert validate_cpf("529.982.247-25") is True
        assert validate_cpf("52998224725") is True
        assert validate_cpf("529.982.247-24") is False
        assert validate_cpf("111.111.111-11") is False
        assert validate_cpf("1234") is False


class TestCsvImport:

    def test_reads_rows_with_portuguese_header(self):
        content = "\ufeffisbn;titulo;autor\n9788535914849;Dom Casmurro;Machado de Assis\n\n".encode("utf-8")
        rows = list(read_csv_rows(content, required=("isbn", "title", "author")))

        assert rows == [
            (2, {"isbn": "9788535914849", "title": "Dom Casmurro", "author": "Machado de Assis"})
        ]

    def test_missing_columns(self):
        with pytest.raises(ValidationError) as exc_info:
            list(read_csv_rows(b"isbn;titulo\n1;x\n", required=("isbn", "title", "author")))
        assert exc_info.value.details["missing"] == "author"

    def test_empty_file(self):
        with pytest.raises(ValidationError):
            list(read_csv_rows(b"", required=("isbn",)))

    def test_normalize_condition(self):
        assert normalize_condition("novo") == "NEW"
        assert normalize_condition(" Saldo ") == "DISCOUNTED"
        assert normalize_condition("usado") is None


class TestExceptions:

    def test_to_dict_serializes_details(self):
        error = InsufficientStock(book_id=1, condition=StockCondition.NEW, requested=6, available=5)
        data = error.to_dict()

        assert data["code"] == "INSUFFICIENT_STOCK"
        assert data["details"] == {"book_id": 1, "condition": "NEW", "requested": 6, "available": 5}
        assert error.status_code == 409

    def test_custom_code_and_none_details(self):
        error = NotFoundError("Venta no encontrada", code="SALE_NOT_FOUND", sale_id=7, line=None)

        assert error.code == "SALE_NOT_FOUND"
        assert error.details == {"sale_id": 7}
        assert NotFoundError().code == "NOT_FOUND"
