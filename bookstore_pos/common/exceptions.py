"""
Excepciones de dominio del sistema de la librería

Todas derivan de BookstoreError y llevan:
- code: nombre estable para el cliente
- message: texto legible
- status_code: código HTTP con el que se expone
- details: identificadores (book_id, sale_id, session_id...) para actuar sin reconsultar

El handler registrado en main.py las convierte en {"error": {...}}.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class BookstoreError(Exception):
    """Error base de reglas de negocio"""

    code = "BOOKSTORE_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Error de negocio"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None,
                 **details: Any):
        self.message = message or self.default_message
        if code:
            self.code = code
        self.details: Dict[str, Any] = {k: v for k, v in details.items() if v is not None}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.details.items()},
        }


class ValidationError(BookstoreError):
    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Datos de entrada inválidos"


class InvalidAmount(ValidationError):
    code = "INVALID_AMOUNT"
    default_message = "Monto inválido"


class NotFoundError(BookstoreError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Recurso no encontrado"


class ConflictError(BookstoreError):
    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflicto con el estado actual"


class InsufficientStock(ConflictError):
    code = "INSUFFICIENT_STOCK"
    default_message = "Stock insuficiente"


class NoOpenSession(ConflictError):
    code = "NO_OPEN_SESSION"
    default_message = "No hay una caja abierta. Abra una caja antes de operar."


class SessionAlreadyOpen(ConflictError):
    code = "SESSION_ALREADY_OPEN"
    default_message = "Ya existe una caja abierta"


class SessionNotOpen(ConflictError):
    code = "SESSION_NOT_OPEN"
    default_message = "La caja no está abierta"


class ReversalNotAllowed(ConflictError):
    code = "REVERSAL_NOT_ALLOWED"
    default_message = "Estorno no permitido: la caja de la venta ya fue cerrada"


class PriceNotFound(BookstoreError):
    code = "PRICE_NOT_FOUND"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_message = "Precio no definido para el libro"


class InternalError(BookstoreError):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Error interno del servidor"


def _jsonable(value: Any) -> Any:
    # Decimal y Enum no son serializables por json directamente
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (int, float, str, bool)):
        return value
    return str(value)
