"""
Servicios de inventario

- StockLedger: contador de stock por (libro, condición). allocate/release
  participan de la transacción del llamador y nunca hacen commit.
- InventoryService: operaciones de mantenimiento (consulta, ajuste, CSV)
  que sí cierran su propia transacción.
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookstore_pos.common.csv_import import read_csv_rows, normalize_condition
from bookstore_pos.common.exceptions import (
    BookstoreError, InsufficientStock, InternalError, NotFoundError, ValidationError
)
from bookstore_pos.common.validators import only_digits
from bookstore_pos.modules.catalog.models import Book, StockCondition
from bookstore_pos.modules.inventory.models import StockLine
from bookstore_pos.modules.inventory.schemas import (
    BookStockOut, StockLineOut, StockUpdate, StockUpdateMode
)

logger = logging.getLogger(__name__)


class StockLedger:
    """Contador de stock disponible por (libro, condición)"""

    def __init__(self, db: Session):
        self.db = db

    def available(self, book_id: int, condition: StockCondition) -> int:
        quantity = self.db.query(StockLine.quantity).filter(
            StockLine.book_id == book_id,
            StockLine.condition == condition
        ).scalar()
        return quantity or 0

    def allocate(self, book_id: int, condition: StockCondition, quantity: int) -> int:
        """
        Descontar stock de forma atómica.

        El chequeo y el descuento son una sola sentencia condicional
        (quantity >= :q), por lo que dos ventas concurrentes sobre la misma
        línea no pueden dejarla negativa.

        Raises:
            InsufficientStock: si la cantidad disponible es menor a la pedida
        """
        if quantity <= 0:
            raise ValidationError("La cantidad debe ser mayor a cero", book_id=book_id, quantity=quantity)

        result = self.db.execute(
            update(StockLine)
            .where(
                StockLine.book_id == book_id,
                StockLine.condition == condition,
                StockLine.quantity >= quantity
            )
            .values(quantity=StockLine.quantity - quantity)
        )
        if result.rowcount == 0:
            available = self.available(book_id, condition)
            raise InsufficientStock(
                f"Stock insuficiente para el libro {book_id} ({condition.value}). "
                f"Disponible: {available}, Solicitado: {quantity}",
                book_id=book_id,
                condition=condition,
                requested=quantity,
                available=available
            )
        return self.available(book_id, condition)

    def release(self, book_id: int, condition: StockCondition, quantity: int) -> int:
        """Devolver stock (deshace un allocate previo). Crea la línea si no existe."""
        if quantity <= 0:
            raise ValidationError("La cantidad debe ser mayor a cero", book_id=book_id, quantity=quantity)

        result = self.db.execute(
            update(StockLine)
            .where(
                StockLine.book_id == book_id,
                StockLine.condition == condition
            )
            .values(quantity=StockLine.quantity + quantity)
        )
        if result.rowcount == 0:
            self.db.add(StockLine(book_id=book_id, condition=condition, quantity=quantity))
            self.db.flush()
        return self.available(book_id, condition)

    def set_quantity(self, book_id: int, condition: StockCondition, quantity: int,
                     mode: StockUpdateMode = StockUpdateMode.REPLACE) -> int:
        """Fijar (replace) o sumar (add) stock desde el catálogo. El resultado no puede ser negativo."""
        stock = self.db.query(StockLine).filter(
            StockLine.book_id == book_id,
            StockLine.condition == condition
        ).with_for_update().first()

        current = stock.quantity if stock else 0
        new_quantity = current + quantity if mode == StockUpdateMode.ADD else quantity
        if new_quantity < 0:
            raise ValidationError(
                "La cantidad resultante no puede ser negativa",
                book_id=book_id,
                condition=condition,
                current=current,
                requested=quantity
            )

        if stock:
            stock.quantity = new_quantity
        else:
            self.db.add(StockLine(book_id=book_id, condition=condition, quantity=new_quantity))
        self.db.flush()
        return new_quantity


class InventoryService:
    """Service for inventory management operations."""

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)

    def get_book_stock(self, book_id: int) -> BookStockOut:
        book = self.db.query(Book).filter(Book.id == book_id).first()
        if not book:
            raise NotFoundError("Libro no encontrado", code="BOOK_NOT_FOUND", book_id=book_id)

        lines = self.db.query(StockLine).filter(
            StockLine.book_id == book_id
        ).order_by(StockLine.id).all()

        return BookStockOut(
            book_id=book.id,
            isbn=book.isbn,
            title=book.title,
            lines=[StockLineOut.model_validate(line) for line in lines],
            total_quantity=sum(line.quantity for line in lines)
        )

    def adjust_stock(self, book_id: int, stock_data: StockUpdate) -> BookStockOut:
        """Ajuste manual de stock (replace/add)."""
        try:
            book = self.db.query(Book).filter(Book.id == book_id).first()
            if not book:
                raise NotFoundError("Libro no encontrado", code="BOOK_NOT_FOUND", book_id=book_id)

            new_quantity = self.ledger.set_quantity(
                book_id, stock_data.condition, stock_data.quantity, stock_data.mode
            )
            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("Cantidad de stock inválida", book_id=book_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error ajustando stock")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(
            f"Stock ajustado: libro={book_id} condicion={stock_data.condition.value} "
            f"modo={stock_data.mode.value} cantidad={new_quantity}"
        )
        return self.get_book_stock(book_id)

    def import_stock_csv(self, content: bytes, mode: StockUpdateMode) -> Dict:
        """
        Importar stock desde CSV con cabecera isbn;condition;quantity.

        Las líneas inválidas se reportan y se saltan; las válidas se
        confirman juntas al final.
        """
        successes = 0
        errors: List[str] = []
        total_lines = 0

        try:
            for line_number, row in read_csv_rows(content, required=("isbn", "condition", "quantity")):
                total_lines += 1
                error = self._import_stock_row(row, mode)
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
            logger.exception("Error importando stock")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Importación de stock: {successes} ok, {len(errors)} con error")
        return {
            "message": f"Importación concluida. {successes} líneas de stock procesadas.",
            "successes": successes,
            "errors": len(errors),
            "total_lines": total_lines,
            "error_details": errors
        }

    def _import_stock_row(self, row: Dict[str, str], mode: StockUpdateMode) -> Optional[str]:
        isbn = only_digits(row.get("isbn", ""))
        if not isbn:
            return "ISBN no puede estar vacío"

        condition = normalize_condition(row.get("condition", ""))
        if not condition:
            return f"Condición inválida: '{row.get('condition', '')}'"

        try:
            quantity = int(row.get("quantity", ""))
        except ValueError:
            return f"Cantidad inválida: '{row.get('quantity', '')}'"

        book_id = self.db.query(Book.id).filter(Book.isbn == isbn).scalar()
        if book_id is None:
            return f"Libro con ISBN {isbn} no encontrado"

        try:
            self.ledger.set_quantity(book_id, StockCondition(condition), quantity, mode)
        except ValidationError as e:
            return e.message
        return None
