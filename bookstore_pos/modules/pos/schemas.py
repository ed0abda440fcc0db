"""
Esquemas Pydantic para el módulo POS (Point of Sale)

Define la validación de datos de entrada y salida para:
- CashSession: Caja con apertura/cierre y conferencia
- CashMovement: Movimientos manuales de caja
- Sale: Ventas POS y estorno
"""

from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime

from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.pos.models import CashSessionStatus, MovementType, TenderType


# ===== CASH SESSION SCHEMAS =====

class CashSessionOpen(BaseModel):
    """Esquema para abrir caja"""
    opening_float: Decimal = Field(..., ge=0, description="Fondo de caja inicial (troco)")


class CashSessionClose(BaseModel):
    """Esquema para cerrar caja con los valores conferidos"""
    final_cash_count: Decimal = Field(..., ge=0, description="Efectivo contado al cierre")
    conferred_credit: Decimal = Field(default=Decimal("0"), ge=0, description="Crédito conferido")
    conferred_debit: Decimal = Field(default=Decimal("0"), ge=0, description="Débito conferido")
    conferred_pix: Decimal = Field(default=Decimal("0"), ge=0, description="PIX conferido")
    conferred_other: Decimal = Field(default=Decimal("0"), ge=0, description="Otros conferido")


class CashSessionOut(BaseModel):
    """Esquema de salida para caja"""
    id: int
    status: CashSessionStatus
    opening_float: Decimal
    registered_cash: Decimal
    registered_credit: Decimal
    registered_debit: Decimal
    registered_pix: Decimal
    registered_other: Decimal
    final_cash_count: Optional[Decimal] = None
    conferred_credit: Optional[Decimal] = None
    conferred_debit: Optional[Decimal] = None
    conferred_pix: Optional[Decimal] = None
    conferred_other: Optional[Decimal] = None
    opened_by: int
    closed_by: Optional[int] = None
    opened_at: datetime
    closed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class Reconciliation(BaseModel):
    """Conferencia de caja (quebra). Nunca se persiste: se recalcula."""
    manual_net: Decimal = Field(description="Depósitos menos retiros")
    expected_cash: Decimal = Field(description="Fondo + neto manual + efectivo registrado")
    cash_variance: Decimal = Field(description="Efectivo contado - esperado")
    credit_variance: Decimal
    debit_variance: Decimal
    pix_variance: Decimal
    other_variance: Decimal
    total_variance: Decimal
    total_registered: Decimal
    total_conferred: Decimal


class CashSessionCloseResult(BaseModel):
    session: CashSessionOut
    reconciliation: Reconciliation


# ===== CASH MOVEMENT SCHEMAS =====

class CashMovementCreate(BaseModel):
    """Esquema para registrar movimiento manual de caja"""
    type: MovementType = Field(..., description="DEPOSIT o WITHDRAWAL")
    amount: Decimal = Field(..., gt=0, description="Monto (siempre positivo)")
    reason: str = Field(..., min_length=1, max_length=255, description="Motivo del movimiento")

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El motivo no puede estar vacío')
        return cleaned


class CashMovementOut(BaseModel):
    id: int
    cash_session_id: int
    type: MovementType
    amount: Decimal
    reason: str
    created_by: int
    created_at: datetime

    model_config = {"from_attributes": True}


class MovementSummary(BaseModel):
    count: int
    total_deposited: Decimal
    total_withdrawn: Decimal
    net: Decimal


class CashMovementList(BaseModel):
    items: List[CashMovementOut]
    summary: MovementSummary
    total: int
    limit: int
    offset: int


class MovementTypeStatistics(BaseModel):
    type: MovementType
    count: int
    total: Decimal


class MovementStatistics(BaseModel):
    cash_session_id: Optional[int] = None
    by_type: List[MovementTypeStatistics]
    summary: MovementSummary


class CashSessionStatistics(BaseModel):
    """Totales de todas las cajas. movements agrega los movimientos de todas ellas."""
    total_sessions: int
    open_sessions: int
    closed_sessions: int
    total_opening_float: Decimal
    average_opening_float: Decimal
    movements: MovementStatistics


class CashSessionState(BaseModel):
    """Estado actual de la caja"""
    is_open: bool
    session: Optional[CashSessionOut] = None
    movements: List[CashMovementOut] = Field(default_factory=list)
    summary: Optional[MovementSummary] = None
    expected_cash: Optional[Decimal] = Field(None, description="Efectivo esperado en este momento")


class CashSessionDetail(CashSessionOut):
    """Caja con movimientos y conferencia (None mientras siga abierta)"""
    opened_by_name: Optional[str] = None
    closed_by_name: Optional[str] = None
    movements: List[CashMovementOut] = Field(default_factory=list)
    reconciliation: Optional[Reconciliation] = None


class CashSessionList(BaseModel):
    items: List[CashSessionOut]
    total: int
    limit: int
    offset: int


# ===== SALE SCHEMAS =====

class SaleLineCreate(BaseModel):
    """
    Línea de venta.

    El libro se identifica por book_id o por isbn (exactamente uno).
    unit_price es solo informativo: el precio vigente lo define el catálogo.
    """
    book_id: Optional[int] = Field(None, gt=0)
    isbn: Optional[str] = Field(None, min_length=1, max_length=20)
    condition: StockCondition = Field(default=StockCondition.NEW)
    quantity: int = Field(..., gt=0, description="Cantidad (mayor a cero)")
    unit_price: Optional[Decimal] = Field(None, ge=0, description="Precio informado por el cliente")
    discount_percent: Decimal = Field(default=Decimal("0"), ge=0, le=100)

    @model_validator(mode='after')
    def validate_book_reference(self):
        if (self.book_id is None) == (self.isbn is None):
            raise ValueError('Debe informar book_id o isbn (solo uno)')
        return self


class SaleCreate(BaseModel):
    """Esquema para crear venta POS"""
    customer_id: Optional[int] = Field(None, description="Cliente (opcional)")
    tender_type: TenderType = Field(..., description="Forma de pago")
    lines: List[SaleLineCreate] = Field(..., min_length=1, description="Líneas de la venta")
    total: Optional[Decimal] = Field(None, ge=0, description="Total calculado por el cliente (informativo)")


class SaleCreated(BaseModel):
    sale_id: int
    total: Decimal
    line_count: int


class SaleReversal(BaseModel):
    sale_id: int
    reversed_total: Decimal
    line_count: int
    cash_session_affected: bool


class SaleLineOut(BaseModel):
    id: int
    book_id: int
    isbn: Optional[str] = None
    title: Optional[str] = None
    condition: StockCondition
    quantity: int
    unit_price: Decimal
    discount_percent: Decimal
    line_total: Decimal


class SaleOut(BaseModel):
    id: int
    created_at: datetime
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    tender_type: TenderType
    total: Decimal
    created_by: int
    cash_session_id: Optional[int] = None
    line_count: int


class SaleDetail(SaleOut):
    lines: List[SaleLineOut]
