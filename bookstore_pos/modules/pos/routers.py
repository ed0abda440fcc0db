"""
Routers FastAPI para el módulo POS (Point of Sale)

Define los endpoints REST para:
- CashSessions: Apertura/cierre de caja y conferencia
- CashMovements: Depósitos y retiros manuales
- Sales: Ventas POS y estorno

Todos los endpoints requieren un operador autenticado.
"""

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path
from sqlalchemy.orm import Session
from typing import Optional

from bookstore_pos.core.config import settings
from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.pos.models import CashSessionStatus, MovementType
from bookstore_pos.modules.pos.services import CashSessionService, CashMovementService, SaleService
from bookstore_pos.modules.pos.schemas import (
    # CashSession schemas
    CashSessionOpen, CashSessionClose, CashSessionOut, CashSessionCloseResult,
    CashSessionDetail, CashSessionList, CashSessionState, CashSessionStatistics,

    # CashMovement schemas
    CashMovementCreate, CashMovementOut, CashMovementList, MovementStatistics,

    # Sale schemas
    SaleCreate, SaleCreated, SaleDetail, SaleReversal
)


# ===== CASH SESSIONS ROUTER =====

cash_sessions_router = APIRouter(prefix="/cash-sessions", tags=["POS"])


@cash_sessions_router.post("/open", response_model=CashSessionOut, status_code=status.HTTP_201_CREATED)
def open_cash_session(
    session_data: CashSessionOpen,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Abrir caja.

    - **opening_float**: Fondo de caja inicial (>= 0)

    Validaciones:
    - Solo una caja abierta en todo el sistema (409 SESSION_ALREADY_OPEN)
    """
    service = CashSessionService(db)
    return service.open_session(session_data.opening_float, current_operator.id)


@cash_sessions_router.get("/current", response_model=CashSessionOut)
def get_current_cash_session(
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """Caja abierta actual. 404 si no hay caja abierta."""
    service = CashSessionService(db)
    session = service.get_current()
    if not session:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No hay caja abierta")
    return session


@cash_sessions_router.get("/status", response_model=CashSessionState)
def get_cash_session_status(
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Estado de la caja: si está abierta, totales registrados, movimientos
    manuales con su resumen y el efectivo esperado en este momento.
    """
    service = CashSessionService(db)
    return service.get_status()


@cash_sessions_router.get("/statistics", response_model=CashSessionStatistics)
def get_cash_session_statistics(
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """Resumen global de cajas y de sus movimientos manuales"""
    service = CashSessionService(db)
    return service.statistics()


@cash_sessions_router.post("/{session_id}/close", response_model=CashSessionCloseResult)
def close_cash_session(
    close_data: CashSessionClose,
    current_operator: operator_dependency,
    session_id: int = Path(..., description="ID de la caja"),
    db: Session = Depends(get_db)
):
    """
    Cerrar caja con conferencia.

    - **final_cash_count**: Efectivo contado
    - **conferred_credit / debit / pix / other**: Valores conferidos por forma de pago

    Devuelve la caja cerrada y la quebra:
    - expected_cash = fondo + depósitos - retiros + efectivo registrado
    - cash_variance = contado - esperado
    - total_variance = cash_variance + variaciones de las demás formas de pago
    """
    service = CashSessionService(db)
    return service.close_session(session_id, close_data, current_operator.id)


@cash_sessions_router.get("/", response_model=CashSessionList)
def list_cash_sessions(
    current_operator: operator_dependency,
    status_filter: Optional[CashSessionStatus] = Query(None, alias="status", description="OPEN o CLOSED"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    service = CashSessionService(db)
    return service.list_sessions(status=status_filter, limit=limit, offset=offset)


@cash_sessions_router.get("/{session_id}", response_model=CashSessionDetail)
def get_cash_session_detail(
    current_operator: operator_dependency,
    session_id: int = Path(..., description="ID de la caja"),
    db: Session = Depends(get_db)
):
    """Detalle de caja con movimientos y conferencia (null mientras esté abierta)."""
    service = CashSessionService(db)
    return service.get_session_detail(session_id)


# ===== CASH MOVEMENTS ROUTER =====

cash_movements_router = APIRouter(prefix="/cash-movements", tags=["POS"])


@cash_movements_router.post("/", response_model=CashMovementOut, status_code=status.HTTP_201_CREATED)
def create_cash_movement(
    movement_data: CashMovementCreate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Registrar movimiento manual en la caja abierta.

    - **type**: DEPOSIT (inserción) o WITHDRAWAL (retiro)
    - **amount**: Monto positivo
    - **reason**: Motivo (obligatorio)
    """
    service = CashMovementService(db)
    return service.record_manual_movement(movement_data, current_operator.id)


@cash_movements_router.get("/", response_model=CashMovementList)
def list_cash_movements(
    current_operator: operator_dependency,
    cash_session_id: Optional[int] = Query(None, description="Caja (por defecto la abierta)"),
    movement_type: Optional[MovementType] = Query(None, alias="type"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    service = CashMovementService(db)
    return service.list_movements(
        session_id=cash_session_id,
        movement_type=movement_type,
        limit=limit,
        offset=offset
    )


@cash_movements_router.get("/statistics", response_model=MovementStatistics)
def get_cash_movement_statistics(
    current_operator: operator_dependency,
    cash_session_id: Optional[int] = Query(None, description="Caja (por defecto la abierta)"),
    db: Session = Depends(get_db)
):
    service = CashMovementService(db)
    return service.movement_statistics(session_id=cash_session_id)


# ===== SALES ROUTER =====

sales_router = APIRouter(prefix="/sales", tags=["POS"])


@sales_router.post("/", response_model=SaleCreated, status_code=status.HTTP_201_CREATED)
def create_sale(
    sale_data: SaleCreate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Crear venta POS.

    - **customer_id**: Cliente (opcional)
    - **tender_type**: CASH, CREDIT, DEBIT, PIX u OTHER
    - **lines**: book_id o isbn, condition, quantity, discount_percent
    - **total**: Total calculado por el cliente (solo informativo)

    El precio de cada línea lo define el catálogo. Descuenta stock y suma
    el total al contador de la forma de pago de la caja abierta.
    """
    service = SaleService(db)
    return service.create_sale(sale_data, current_operator.id)


@sales_router.get("/{sale_id}", response_model=SaleDetail)
def get_sale(
    current_operator: operator_dependency,
    sale_id: int = Path(..., description="ID de la venta"),
    db: Session = Depends(get_db)
):
    service = SaleService(db)
    return service.get_sale(sale_id)


@sales_router.post("/{sale_id}/reverse", response_model=SaleReversal)
def reverse_sale(
    current_operator: operator_dependency,
    sale_id: int = Path(..., description="ID de la venta"),
    db: Session = Depends(get_db)
):
    """
    Estorno de venta.

    Devuelve el stock, descuenta el total de la caja (si sigue abierta) y
    elimina la venta. No se permite si la caja de la venta ya fue cerrada.
    """
    service = SaleService(db)
    return service.reverse_sale(sale_id, current_operator.id)
