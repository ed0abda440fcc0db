"""
Servicio de catálogo: libros, precios por condición e importación CSV.

Expone a la venta los contratos resolve_book(isbn) y unit_price(book, condition).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from bookstore_pos.common.csv_import import read_csv_rows, normalize_condition
from bookstore_pos.common.exceptions import (
    BookstoreError, ConflictError, InternalError, NotFoundError
)
from bookstore_pos.common.money import round_money
from bookstore_pos.common.validators import only_digits, validate_isbn
from bookstore_pos.modules.catalog.models import Book, PriceLine, StockCondition
from bookstore_pos.modules.catalog.schemas import BookCreate, BookUpdate, PriceUpdate
from bookstore_pos.modules.inventory.models import StockLine

logger = logging.getLogger(__name__)


class CatalogService:
    """Servicio para gestión del catálogo de libros"""

    def __init__(self, db: Session):
        self.db = db

    # ===== CONTRATOS USADOS POR LA VENTA =====

    def resolve_book(self, isbn: str) -> int:
        """ISBN -> id del libro. NotFoundError si no existe."""
        book_id = self.db.query(Book.id).filter(Book.isbn == only_digits(isbn)).scalar()
        if book_id is None:
            raise NotFoundError("Libro no encontrado", code="BOOK_NOT_FOUND", isbn=isbn)
        return book_id

    def unit_price(self, book_id: int, condition: StockCondition) -> Optional[Decimal]:
        """Precio unitario vigente; None si no hay línea de precio."""
        return self.db.query(PriceLine.unit_price).filter(
            PriceLine.book_id == book_id,
            PriceLine.condition == condition
        ).scalar()

    # ===== LIBROS =====

    def create_book(self, book_data: BookCreate) -> Book:
        """
        Registrar libro.

        Crea también precio 0 y stock 0 para ambas condiciones, de modo que
        el libro exista en el ledger pero no pueda venderse hasta tener precio.
        """
        try:
            if self.db.query(Book.id).filter(Book.isbn == book_data.isbn).scalar() is not None:
                raise ConflictError("Ya existe un libro con este ISBN", isbn=book_data.isbn)

            book = Book(
                isbn=book_data.isbn,
                title=book_data.title,
                author=book_data.author,
                publisher=book_data.publisher
            )
            self.db.add(book)
            self.db.flush()
            self._ensure_zero_lines(book.id)

            self.db.commit()
            self.db.refresh(book)
        except BookstoreError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Ya existe un libro con este ISBN", isbn=book_data.isbn)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error creando libro")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Libro registrado: {book.isbn} (id={book.id})")
        return book

    def update_book(self, book_id: int, book_data: BookUpdate) -> Book:
        book = self.get_book(book_id)
        for field, value in book_data.model_dump(exclude_unset=True).items():
            setattr(book, field, value.strip() if isinstance(value, str) else value)
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error actualizando libro")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e
        self.db.refresh(book)
        return book

    def get_book(self, book_id: int) -> Book:
        book = self.db.query(Book).options(
            selectinload(Book.prices),
            selectinload(Book.stock_lines)
        ).filter(Book.id == book_id).first()
        if not book:
            raise NotFoundError("Libro no encontrado", code="BOOK_NOT_FOUND", book_id=book_id)
        return book

    def get_by_isbn(self, isbn: str) -> Book:
        return self.get_book(self.resolve_book(isbn))

    def list_books(self, search: Optional[str] = None, limit: int = 20, offset: int = 0) -> Dict:
        """Listar libros con búsqueda por título, autor o ISBN"""
        query = self.db.query(Book)

        if search:
            search_term = f"%{search.strip()}%"
            query = query.filter(
                or_(
                    Book.title.ilike(search_term),
                    Book.author.ilike(search_term),
                    Book.isbn.ilike(search_term)
                )
            )

        total = query.count()
        books = query.order_by(Book.title).offset(offset).limit(limit).all()

        return {
            "items": books,
            "total": total,
            "limit": limit,
            "offset": offset
        }

    # ===== PRECIOS =====

    def set_price(self, book_id: int, price_data: PriceUpdate) -> Book:
        try:
            book = self.get_book(book_id)
            price = self.db.query(PriceLine).filter(
                PriceLine.book_id == book.id,
                PriceLine.condition == price_data.condition
            ).first()
            if price:
                price.unit_price = round_money(price_data.unit_price)
            else:
                self.db.add(PriceLine(
                    book_id=book.id,
                    condition=price_data.condition,
                    unit_price=round_money(price_data.unit_price)
                ))
            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error actualizando precio")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(
            f"Precio actualizado: libro={book_id} condicion={price_data.condition.value} "
            f"precio={price_data.unit_price}"
        )
        self.db.expire_all()
        return self.get_book(book_id)

    # ===== IMPORTACIÓN CSV =====

    def import_books_csv(self, content: bytes) -> Dict:
        """Importar/actualizar libros desde CSV isbn;title;author[;publisher]"""
        return self._run_import(
            content,
            required=("isbn", "title", "author"),
            handler=self._import_book_row,
            label="libros"
        )

    def import_prices_csv(self, content: bytes) -> Dict:
        """Importar precios desde CSV isbn;condition;price"""
        return self._run_import(
            content,
            required=("isbn", "condition", "price"),
            handler=self._import_price_row,
            label="precios"
        )

    def _run_import(self, content: bytes, required, handler, label: str) -> Dict:
        successes = 0
        errors: List[str] = []
        total_lines = 0

        try:
            for line_number, row in read_csv_rows(content, required=required):
                total_lines += 1
                error = handler(row)
                if error:
                    errors.append(f"Línea {line_number}: {error}")
                else:
                    successes += 1
            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Error importando {label}")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Importación de {label}: {successes} ok, {len(errors)} con error")
        return {
            "message": f"Importación concluida. {successes} {label} procesados con éxito.",
            "successes": successes,
            "errors": len(errors),
            "total_lines": total_lines,
            "error_details": errors
        }

    def _import_book_row(self, row: Dict[str, str]) -> Optional[str]:
        isbn = only_digits(row.get("isbn", ""))
        title = row.get("title", "")
        author = row.get("author", "")
        publisher = row.get("publisher") or None

        if not isbn:
            return "ISBN no puede estar vacío"
        if not title:
            return "Título no puede estar vacío"
        if not author:
            return "Autor no puede estar vacío"
        if not validate_isbn(isbn):
            return "ISBN inválido (debe contener solo números y tener 10-13 dígitos)"

        book = self.db.query(Book).filter(Book.isbn == isbn).first()
        if book:
            book.title = title
            book.author = author
            book.publisher = publisher
        else:
            book = Book(isbn=isbn, title=title, author=author, publisher=publisher)
            self.db.add(book)
            self.db.flush()
        self._ensure_zero_lines(book.id)
        return None

    def _import_price_row(self, row: Dict[str, str]) -> Optional[str]:
        isbn = only_digits(row.get("isbn", ""))
        if not isbn:
            return "ISBN no puede estar vacío"

        condition = normalize_condition(row.get("condition", ""))
        if not condition:
            return f"Condición inválida: '{row.get('condition', '')}'"

        try:
            price = Decimal(row.get("price", "").replace(",", "."))
        except InvalidOperation:
            return f"Precio inválido: '{row.get('price', '')}'"
        if price < 0:
            return "El precio no puede ser negativo"

        book_id = self.db.query(Book.id).filter(Book.isbn == isbn).scalar()
        if book_id is None:
            return f"Libro con ISBN {isbn} no encontrado"

        line = self.db.query(PriceLine).filter(
            PriceLine.book_id == book_id,
            PriceLine.condition == StockCondition(condition)
        ).first()
        if line:
            line.unit_price = round_money(price)
        else:
            self.db.add(PriceLine(book_id=book_id, condition=StockCondition(condition),
                                  unit_price=round_money(price)))
            self.db.flush()
        return None

    def _ensure_zero_lines(self, book_id: int) -> None:
        """Crear precio y stock en cero para las condiciones que falten"""
        existing_prices = {
            condition for (condition,) in
            self.db.query(PriceLine.condition).filter(PriceLine.book_id == book_id)
        }
        existing_stock = {
            condition for (condition,) in
            self.db.query(StockLine.condition).filter(StockLine.book_id == book_id)
        }
        for condition in StockCondition:
            if condition not in existing_prices:
                self.db.add(PriceLine(book_id=book_id, condition=condition, unit_price=Decimal("0")))
            if condition not in existing_stock:
                self.db.add(StockLine(book_id=book_id, condition=condition, quantity=0))
        self.db.flush()
