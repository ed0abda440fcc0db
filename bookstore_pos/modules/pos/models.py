"""
Modelos SQLAlchemy para el módulo POS (Point of Sale)

Este módulo maneja las operaciones de punto de venta:
- CashSession: Caja del día con apertura/cierre y contadores por forma de pago
- CashMovement: Movimientos manuales de caja (depósitos y retiros)
- Sale / SaleLine: Venta y sus líneas

Integración con inventario:
- Ventas POS → descuentan stock (StockLedger.allocate)
- Estorno → devuelve stock y descuenta el contador de la forma de pago

Solo puede existir una caja abierta en todo el sistema: lo garantiza
un índice único parcial sobre status = 'OPEN'.
"""

from bookstore_pos.database.database import Base
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Numeric, Enum, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from bookstore_pos.common.mixins import BaseMixin
from bookstore_pos.common.money import sum_money
from bookstore_pos.modules.catalog.models import StockCondition
import enum


def utcnow():
    return datetime.now(timezone.utc)


# ===== ENUMS =====

class CashSessionStatus(str, enum.Enum):
    """Estados de la caja"""
    OPEN = "OPEN"       # Caja abierta
    CLOSED = "CLOSED"   # Caja cerrada (terminal)


class MovementType(str, enum.Enum):
    """Tipos de movimiento manual de caja"""
    DEPOSIT = "DEPOSIT"         # Inserción de efectivo
    WITHDRAWAL = "WITHDRAWAL"   # Retiro de efectivo


class TenderType(str, enum.Enum):
    """Formas de pago aceptadas"""
    CASH = "CASH"       # Dinheiro
    CREDIT = "CREDIT"   # Crédito
    DEBIT = "DEBIT"     # Débito
    PIX = "PIX"         # PIX
    OTHER = "OTHER"     # Outros


# Forma de pago -> columna del contador registrado
REGISTERED_COUNTERS = {
    TenderType.CASH: "registered_cash",
    TenderType.CREDIT: "registered_credit",
    TenderType.DEBIT: "registered_debit",
    TenderType.PIX: "registered_pix",
    TenderType.OTHER: "registered_other",
}

# Formas de pago conferidas al cierre (el efectivo se confiere con final_cash_count)
CONFERRED_COUNTERS = {
    TenderType.CREDIT: "conferred_credit",
    TenderType.DEBIT: "conferred_debit",
    TenderType.PIX: "conferred_pix",
    TenderType.OTHER: "conferred_other",
}


# ===== MODELOS =====

class CashSession(Base, BaseMixin):
    """
    Caja del punto de venta

    Acumula lo registrado por forma de pago durante la sesión y guarda
    lo conferido por el operador al cerrar. La diferencia (quebra) no se
    persiste: se recalcula desde estos campos.
    """
    __tablename__ = "cash_sessions"

    status = Column(Enum(CashSessionStatus), nullable=False, default=CashSessionStatus.OPEN, index=True)
    opening_float = Column(Numeric(12, 2), nullable=False, default=0)

    # Registrado por el sistema
    registered_cash = Column(Numeric(12, 2), nullable=False, default=0)
    registered_credit = Column(Numeric(12, 2), nullable=False, default=0)
    registered_debit = Column(Numeric(12, 2), nullable=False, default=0)
    registered_pix = Column(Numeric(12, 2), nullable=False, default=0)
    registered_other = Column(Numeric(12, 2), nullable=False, default=0)

    # Conferido por el operador (solo al cerrar)
    final_cash_count = Column(Numeric(12, 2), nullable=True)
    conferred_credit = Column(Numeric(12, 2), nullable=True)
    conferred_debit = Column(Numeric(12, 2), nullable=True)
    conferred_pix = Column(Numeric(12, 2), nullable=True)
    conferred_other = Column(Numeric(12, 2), nullable=True)

    # Control de apertura/cierre
    opened_by = Column(Integer, ForeignKey("operators.id"), nullable=False)
    closed_by = Column(Integer, ForeignKey("operators.id"), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    opened_by_operator = relationship("Operator", foreign_keys=[opened_by])
    closed_by_operator = relationship("Operator", foreign_keys=[closed_by])
    movements = relationship("CashMovement", back_populates="cash_session",
                             order_by="CashMovement.id", cascade="all, delete-orphan")
    sales = relationship("Sale", back_populates="cash_session")

    __table_args__ = (
        Index(
            "uq_cash_session_single_open",
            "status",
            unique=True,
            postgresql_where=text("status = 'OPEN'"),
            sqlite_where=text("status = 'OPEN'"),
        ),
        CheckConstraint("opening_float >= 0", name="ck_cash_session_opening_float"),
    )

    def registered_for(self, tender_type: TenderType):
        return getattr(self, REGISTERED_COUNTERS[tender_type])

    @property
    def registered_total(self):
        """Suma de lo registrado en las cinco formas de pago"""
        return sum_money(self.registered_for(tender) for tender in TenderType)

    @property
    def is_open(self) -> bool:
        return self.status == CashSessionStatus.OPEN


class CashMovement(Base, BaseMixin):
    """
    Movimiento manual de caja (solo se agrega, nunca se edita ni elimina)

    - DEPOSIT: inserción de efectivo
    - WITHDRAWAL: retiro de efectivo

    Un retiro equivocado se compensa con un nuevo depósito.
    """
    __tablename__ = "cash_movements"

    cash_session_id = Column(Integer, ForeignKey("cash_sessions.id"), nullable=False, index=True)
    type = Column(Enum(MovementType), nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)  # Siempre positivo
    reason = Column(String(255), nullable=False)
    created_by = Column(Integer, ForeignKey("operators.id"), nullable=False)

    # Relationships
    cash_session = relationship("CashSession", back_populates="movements")
    created_by_operator = relationship("Operator")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_cash_movement_positive"),
    )


class Sale(Base, BaseMixin):
    """
    Venta POS

    total es siempre la suma de line_total de sus líneas. Solo se elimina
    (físicamente) por el estorno.
    """
    __tablename__ = "sales"

    customer_id = Column(Integer, ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)
    tender_type = Column(Enum(TenderType), nullable=False, index=True)
    total = Column(Numeric(12, 2), nullable=False)
    created_by = Column(Integer, ForeignKey("operators.id"), nullable=False)
    cash_session_id = Column(Integer, ForeignKey("cash_sessions.id"), nullable=True, index=True)

    # Relationships
    customer = relationship("Customer")
    created_by_operator = relationship("Operator")
    cash_session = relationship("CashSession", back_populates="sales")
    lines = relationship("SaleLine", back_populates="sale", order_by="SaleLine.id",
                         cascade="all, delete-orphan")


class SaleLine(Base, BaseMixin):
    __tablename__ = "sale_lines"

    sale_id = Column(Integer, ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    condition = Column(Enum(StockCondition), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship("Sale", back_populates="lines")
    book = relationship("Book")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_sale_line_quantity"),
        CheckConstraint("discount_percent >= 0 AND discount_percent <= 100", name="ck_sale_line_discount"),
    )
