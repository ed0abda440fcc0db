"""
Servicios de negocio para el módulo POS (Point of Sale)

Implementa la lógica de negocio para:
- CashSessionService: Apertura/cierre de caja y conferencia (quebra)
- CashMovementService: Depósitos y retiros manuales
- SaleService: Ventas POS y estorno, integradas con stock y caja

Cada operación que modifica estado es una única transacción: o se
confirma completa o se revierte completa.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from bookstore_pos.common.exceptions import (
    BookstoreError, InsufficientStock, InternalError, InvalidAmount, NoOpenSession,
    NotFoundError, PriceNotFound, ReversalNotAllowed, SessionAlreadyOpen, SessionNotOpen,
    ValidationError
)
from bookstore_pos.common.money import ZERO, line_total, round_money, sum_money, to_decimal
from bookstore_pos.modules.catalog.models import Book
from bookstore_pos.modules.catalog.service import CatalogService
from bookstore_pos.modules.customers.service import CustomerService
from bookstore_pos.modules.inventory.service import StockLedger
from bookstore_pos.modules.pos.models import (
    CashMovement, CashSession, CashSessionStatus, MovementType, Sale, SaleLine, TenderType,
    CONFERRED_COUNTERS, REGISTERED_COUNTERS, utcnow
)
from bookstore_pos.modules.pos.schemas import (
    CashMovementCreate, CashMovementList, CashMovementOut, CashSessionClose,
    CashSessionCloseResult, CashSessionDetail, CashSessionList, CashSessionOut,
    CashSessionState, CashSessionStatistics, MovementStatistics, MovementSummary, MovementTypeStatistics,
    Reconciliation, SaleCreate, SaleCreated, SaleDetail, SaleLineOut, SaleOut, SaleReversal
)

logger = logging.getLogger(__name__)


def compute_reconciliation(session: CashSession, total_deposited, total_withdrawn) -> Dict[str, Decimal]:
    """
    Conferencia de una caja a partir de sus campos guardados.

    expected_cash = fondo + (depósitos - retiros) + efectivo registrado
    cash_variance = efectivo contado - expected_cash
    <forma>_variance = conferido - registrado (crédito, débito, pix, otros)
    total_variance = cash_variance + suma de las variaciones no efectivo
    """
    manual_net = round_money(to_decimal(total_deposited) - to_decimal(total_withdrawn))
    expected_cash = round_money(to_decimal(session.opening_float) + manual_net + to_decimal(session.registered_cash))
    final_cash = to_decimal(session.final_cash_count or 0)
    cash_variance = round_money(final_cash - expected_cash)

    non_cash = {}
    for tender_type, attribute in CONFERRED_COUNTERS.items():
        conferred = to_decimal(getattr(session, attribute) or 0)
        registered = to_decimal(session.registered_for(tender_type))
        non_cash[f"{tender_type.value.lower()}_variance"] = round_money(conferred - registered)

    return {
        "manual_net": manual_net,
        "expected_cash": expected_cash,
        "cash_variance": cash_variance,
        **non_cash,
        "total_variance": round_money(cash_variance + sum(non_cash.values())),
        "total_registered": session.registered_total,
        "total_conferred": sum_money(
            [final_cash] + [getattr(session, attribute) or 0 for attribute in CONFERRED_COUNTERS.values()]
        ),
    }


def build_movement_summary(totals: Dict[MovementType, Tuple[int, Decimal]]) -> MovementSummary:
    deposit_count, deposited = totals.get(MovementType.DEPOSIT, (0, ZERO))
    withdrawal_count, withdrawn = totals.get(MovementType.WITHDRAWAL, (0, ZERO))
    return MovementSummary(
        count=deposit_count + withdrawal_count,
        total_deposited=round_money(deposited),
        total_withdrawn=round_money(withdrawn),
        net=round_money(deposited - withdrawn)
    )


def build_movement_statistics(session_id: Optional[int],
                              totals: Dict[MovementType, Tuple[int, Decimal]]) -> MovementStatistics:
    return MovementStatistics(
        cash_session_id=session_id,
        by_type=[
            MovementTypeStatistics(
                type=movement_type,
                count=totals.get(movement_type, (0, ZERO))[0],
                total=totals.get(movement_type, (0, ZERO))[1]
            )
            for movement_type in MovementType
        ],
        summary=build_movement_summary(totals)
    )


def build_sale_out(sale: Sale) -> SaleOut:
    return SaleOut(
        id=sale.id,
        created_at=sale.created_at,
        customer_id=sale.customer_id,
        customer_name=sale.customer.name if sale.customer else None,
        tender_type=sale.tender_type,
        total=sale.total,
        created_by=sale.created_by,
        cash_session_id=sale.cash_session_id,
        line_count=len(sale.lines)
    )


def build_sale_detail(sale: Sale) -> SaleDetail:
    return SaleDetail(
        **build_sale_out(sale).model_dump(),
        lines=[
            SaleLineOut(
                id=line.id,
                book_id=line.book_id,
                isbn=line.book.isbn if line.book else None,
                title=line.book.title if line.book else None,
                condition=line.condition,
                quantity=line.quantity,
                unit_price=line.unit_price,
                discount_percent=line.discount_percent,
                line_total=line.line_total
            )
            for line in sale.lines
        ]
    )


class CashSessionService:
    """Servicio para gestión de la caja"""

    def __init__(self, db: Session):
        self.db = db

    def open_session(self, opening_float, operator_id: int) -> CashSession:
        """Abrir caja. Solo puede haber una caja abierta."""
        opening_float = round_money(opening_float)
        if opening_float < 0:
            raise InvalidAmount("El fondo de caja no puede ser negativo", opening_float=opening_float)

        try:
            existing = self.get_current()
            if existing:
                raise SessionAlreadyOpen(session_id=existing.id)

            session = CashSession(
                status=CashSessionStatus.OPEN,
                opening_float=opening_float,
                opened_by=operator_id,
                opened_at=utcnow()
            )
            self.db.add(session)
            self.db.commit()
            self.db.refresh(session)
        except BookstoreError:
            self.db.rollback()
            raise
        except IntegrityError as e:
            self.db.rollback()
            # Otra apertura concurrente ganó el índice único parcial
            winner = self.get_current()
            if winner is None:
                logger.exception("Error abriendo caja")
                raise InternalError(f"Error interno del servidor: {str(e)}") from e
            raise SessionAlreadyOpen(session_id=winner.id)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error abriendo caja")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Caja abierta: id={session.id} fondo={opening_float} operador={operator_id}")
        return session

    def get_current(self, for_update: bool = False) -> Optional[CashSession]:
        """Caja abierta actual o None"""
        query = self.db.query(CashSession).filter(CashSession.status == CashSessionStatus.OPEN)
        if for_update:
            query = query.with_for_update()
        return query.first()

    def get_status(self) -> CashSessionState:
        session = self.get_current()
        if not session:
            return CashSessionState(is_open=False)

        movements = self.db.query(CashMovement).filter(
            CashMovement.cash_session_id == session.id
        ).order_by(CashMovement.id).all()
        summary = build_movement_summary(self.movement_totals(session.id))

        return CashSessionState(
            is_open=True,
            session=CashSessionOut.model_validate(session),
            movements=[CashMovementOut.model_validate(m) for m in movements],
            summary=summary,
            expected_cash=compute_reconciliation(
                session, summary.total_deposited, summary.total_withdrawn
            )["expected_cash"]
        )

    def close_session(self, session_id: int, close_data: CashSessionClose,
                      operator_id: int) -> CashSessionCloseResult:
        """
        Cerrar caja con los valores conferidos.

        La transición OPEN -> CLOSED es un UPDATE condicional sobre el
        estado, así que de dos cierres concurrentes solo uno tiene efecto.
        """
        amounts = {
            "final_cash_count": close_data.final_cash_count,
            "conferred_credit": close_data.conferred_credit,
            "conferred_debit": close_data.conferred_debit,
            "conferred_pix": close_data.conferred_pix,
            "conferred_other": close_data.conferred_other,
        }
        for field, value in amounts.items():
            if value is None or value < 0:
                raise InvalidAmount(f"Valor inválido para {field}", field=field, value=value)

        try:
            session = self.db.query(CashSession).filter(
                CashSession.id == session_id
            ).with_for_update().first()
            if not session:
                raise NotFoundError("Caja no encontrada", code="SESSION_NOT_FOUND", session_id=session_id)
            if not session.is_open:
                raise SessionNotOpen("La caja ya está cerrada", session_id=session_id)

            result = self.db.execute(
                update(CashSession)
                .where(
                    CashSession.id == session_id,
                    CashSession.status == CashSessionStatus.OPEN
                )
                .values(
                    status=CashSessionStatus.CLOSED,
                    closed_at=utcnow(),
                    closed_by=operator_id,
                    **{field: round_money(value) for field, value in amounts.items()}
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise SessionNotOpen("La caja ya está cerrada", session_id=session_id)

            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error cerrando caja")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        self.db.refresh(session)
        reconciliation = self.reconcile(session)
        logger.info(
            f"Caja cerrada: id={session.id} esperado={reconciliation['expected_cash']} "
            f"quebra_total={reconciliation['total_variance']}"
        )
        return CashSessionCloseResult(
            session=CashSessionOut.model_validate(session),
            reconciliation=Reconciliation(**reconciliation)
        )

    def reconcile(self, session: CashSession) -> Optional[Dict[str, Decimal]]:
        """Recalcular la conferencia de una caja cerrada. None si sigue abierta."""
        if session.is_open:
            return None
        totals = self.movement_totals(session.id)
        return compute_reconciliation(
            session,
            totals.get(MovementType.DEPOSIT, (0, ZERO))[1],
            totals.get(MovementType.WITHDRAWAL, (0, ZERO))[1]
        )

    def movement_totals(self, session_id: Optional[int]) -> Dict[MovementType, Tuple[int, Decimal]]:
        """(cantidad, total) de movimientos por tipo para una caja, o de todas con None"""
        query = self.db.query(
            CashMovement.type,
            func.count(CashMovement.id),
            func.sum(CashMovement.amount)
        )
        if session_id is not None:
            query = query.filter(CashMovement.cash_session_id == session_id)
        rows = query.group_by(CashMovement.type).all()

        return {
            movement_type: (count, round_money(total or 0))
            for movement_type, count, total in rows
        }

    # ===== CONTADORES POR FORMA DE PAGO =====

    def record_sale_tender(self, session: CashSession, tender_type: TenderType, amount) -> None:
        """Sumar una venta al contador registrado. No hace commit."""
        self._adjust_counter(session, tender_type, round_money(amount))

    def reverse_sale_tender(self, session: CashSession, tender_type: TenderType, amount) -> None:
        """Inverso de record_sale_tender (estorno). No hace commit."""
        self._adjust_counter(session, tender_type, -round_money(amount))

    def _adjust_counter(self, session: CashSession, tender_type: TenderType, delta: Decimal) -> None:
        counter = getattr(CashSession, REGISTERED_COUNTERS[tender_type])
        result = self.db.execute(
            update(CashSession)
            .where(
                CashSession.id == session.id,
                CashSession.status == CashSessionStatus.OPEN
            )
            .values({counter: counter + delta})
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise SessionNotOpen(session_id=session.id)
        self.db.expire(session, [REGISTERED_COUNTERS[tender_type]])

    # ===== CONSULTAS =====

    def list_sessions(self, status: Optional[CashSessionStatus] = None,
                      limit: int = 20, offset: int = 0) -> CashSessionList:
        query = self.db.query(CashSession)
        if status:
            query = query.filter(CashSession.status == status)

        total = query.count()
        sessions = query.order_by(CashSession.opened_at.desc(), CashSession.id.desc()) \
            .offset(offset).limit(limit).all()

        return CashSessionList(
            items=[CashSessionOut.model_validate(s) for s in sessions],
            total=total,
            limit=limit,
            offset=offset
        )

    def statistics(self) -> CashSessionStatistics:
        """Conteo de cajas por estado y fondo de apertura, más los movimientos de todas"""
        counts = dict(
            self.db.query(CashSession.status, func.count(CashSession.id))
            .group_by(CashSession.status).all()
        )
        total_sessions = sum(counts.values())
        total_float = round_money(
            self.db.query(func.coalesce(func.sum(CashSession.opening_float), 0)).scalar()
        )
        average_float = round_money(total_float / total_sessions) if total_sessions else ZERO

        return CashSessionStatistics(
            total_sessions=total_sessions,
            open_sessions=counts.get(CashSessionStatus.OPEN, 0),
            closed_sessions=counts.get(CashSessionStatus.CLOSED, 0),
            total_opening_float=total_float,
            average_opening_float=average_float,
            movements=build_movement_statistics(None, self.movement_totals(None))
        )

    def get_session(self, session_id: int) -> CashSession:
        session = self.db.query(CashSession).options(
            selectinload(CashSession.movements),
            selectinload(CashSession.opened_by_operator),
            selectinload(CashSession.closed_by_operator)
        ).filter(CashSession.id == session_id).first()
        if not session:
            raise NotFoundError("Caja no encontrada", code="SESSION_NOT_FOUND", session_id=session_id)
        return session

    def get_session_detail(self, session_id: int) -> CashSessionDetail:
        session = self.get_session(session_id)
        reconciliation = self.reconcile(session)
        return CashSessionDetail(
            **CashSessionOut.model_validate(session).model_dump(),
            opened_by_name=session.opened_by_operator.name if session.opened_by_operator else None,
            closed_by_name=session.closed_by_operator.name if session.closed_by_operator else None,
            movements=[CashMovementOut.model_validate(m) for m in session.movements],
            reconciliation=Reconciliation(**reconciliation) if reconciliation else None
        )


class CashMovementService:
    """Servicio para movimientos manuales de caja"""

    def __init__(self, db: Session):
        self.db = db
        self.cash_sessions = CashSessionService(db)

    def record_manual_movement(self, movement_data: CashMovementCreate, operator_id: int) -> CashMovement:
        """
        Registrar depósito o retiro en la caja abierta.

        No modifica los contadores por forma de pago: el neto manual se
        recalcula desde estos registros al cerrar.
        """
        amount = round_money(movement_data.amount)
        if amount <= 0:
            raise InvalidAmount("El monto debe ser mayor a cero", amount=amount)

        try:
            session = self.cash_sessions.get_current(for_update=True)
            if not session:
                raise NoOpenSession()

            movement = CashMovement(
                cash_session_id=session.id,
                type=movement_data.type,
                amount=amount,
                reason=movement_data.reason,
                created_by=operator_id
            )
            self.db.add(movement)
            self.db.commit()
            self.db.refresh(movement)
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error registrando movimiento de caja")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(
            f"Movimiento de caja: {movement.type.value} {movement.amount} "
            f"caja={movement.cash_session_id} motivo='{movement.reason}'"
        )
        return movement

    def _resolve_session_id(self, session_id: Optional[int]) -> int:
        if session_id is not None:
            if self.db.query(CashSession.id).filter(CashSession.id == session_id).scalar() is None:
                raise NotFoundError("Caja no encontrada", code="SESSION_NOT_FOUND", session_id=session_id)
            return session_id
        current = self.cash_sessions.get_current()
        if not current:
            raise NoOpenSession()
        return current.id

    def list_movements(self, session_id: Optional[int] = None,
                       movement_type: Optional[MovementType] = None,
                       limit: int = 20, offset: int = 0) -> CashMovementList:
        """Movimientos de una caja (por defecto, la abierta)"""
        session_id = self._resolve_session_id(session_id)

        query = self.db.query(CashMovement).filter(CashMovement.cash_session_id == session_id)
        if movement_type:
            query = query.filter(CashMovement.type == movement_type)

        total = query.count()
        movements = query.order_by(CashMovement.id.desc()).offset(offset).limit(limit).all()

        return CashMovementList(
            items=[CashMovementOut.model_validate(m) for m in movements],
            summary=build_movement_summary(self.cash_sessions.movement_totals(session_id)),
            total=total,
            limit=limit,
            offset=offset
        )

    def movement_statistics(self, session_id: Optional[int] = None) -> MovementStatistics:
        session_id = self._resolve_session_id(session_id)
        return build_movement_statistics(session_id, self.cash_sessions.movement_totals(session_id))


class SaleService:
    """
    Coordinador de ventas POS

    Una venta toca tres agregados (venta, stock y caja) dentro de una
    sola transacción. El estorno deshace los tres.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = StockLedger(db)
        self.catalog = CatalogService(db)
        self.customers = CustomerService(db)
        self.cash_sessions = CashSessionService(db)

    def create_sale(self, sale_data: SaleCreate, operator_id: int) -> SaleCreated:
        """
        Crear venta POS.

        Orden: cliente -> caja abierta (bloqueada) -> libros -> precios ->
        stock -> totales -> venta + líneas + descuento de stock + contador
        de la forma de pago -> commit.
        """
        if not sale_data.lines:
            raise ValidationError("La venta debe tener al menos una línea")

        try:
            if sale_data.customer_id is not None and not self.customers.customer_exists(sale_data.customer_id):
                raise NotFoundError("Cliente no encontrado", code="CUSTOMER_NOT_FOUND",
                                    customer_id=sale_data.customer_id)

            session = self.cash_sessions.get_current(for_update=True)
            if not session:
                raise NoOpenSession()

            priced_lines = self._price_lines(sale_data)
            self._check_availability(priced_lines)

            total = sum_money(line["line_total"] for line in priced_lines)
            if sale_data.total is not None and round_money(sale_data.total) != total:
                logger.warning(
                    f"Total informado ({round_money(sale_data.total)}) difiere del calculado ({total}); "
                    f"se usa el calculado"
                )

            sale = Sale(
                customer_id=sale_data.customer_id,
                tender_type=sale_data.tender_type,
                total=total,
                created_by=operator_id,
                cash_session_id=session.id
            )
            self.db.add(sale)
            self.db.flush()

            for line in priced_lines:
                self.db.add(SaleLine(sale_id=sale.id, **line))
                self.ledger.allocate(line["book_id"], line["condition"], line["quantity"])

            self.cash_sessions.record_sale_tender(session, sale_data.tender_type, total)

            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error creando venta")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(
            f"Venta registrada: id={sale.id} total={total} forma={sale_data.tender_type.value} "
            f"líneas={len(priced_lines)} caja={sale.cash_session_id}"
        )
        return SaleCreated(sale_id=sale.id, total=total, line_count=len(priced_lines))

    def _price_lines(self, sale_data: SaleCreate) -> List[Dict]:
        """Resolver libro y precio vigente de cada línea y calcular su total"""
        priced = []
        for index, line in enumerate(sale_data.lines, start=1):
            if line.book_id is not None:
                book_id = line.book_id
                if self.db.query(Book.id).filter(Book.id == book_id).scalar() is None:
                    raise NotFoundError("Libro no encontrado", code="BOOK_NOT_FOUND", book_id=book_id, line=index)
            else:
                book_id = self.catalog.resolve_book(line.isbn)

            unit_price = self.catalog.unit_price(book_id, line.condition)
            if unit_price is None or unit_price <= 0:
                raise PriceNotFound(
                    f"El libro {book_id} no tiene precio definido para {line.condition.value}",
                    book_id=book_id,
                    condition=line.condition,
                    line=index
                )
            unit_price = round_money(unit_price)
            if line.unit_price is not None and round_money(line.unit_price) != unit_price:
                logger.debug(
                    f"Línea {index}: precio informado {line.unit_price} ignorado, vigente {unit_price}"
                )

            discount = round_money(line.discount_percent)
            priced.append({
                "book_id": book_id,
                "condition": line.condition,
                "quantity": line.quantity,
                "unit_price": unit_price,
                "discount_percent": discount,
                "line_total": line_total(unit_price, line.quantity, discount),
            })
        return priced

    def _check_availability(self, priced_lines: List[Dict]) -> None:
        # El mismo libro puede venir en varias líneas: se valida la suma
        requested = defaultdict(int)
        for line in priced_lines:
            requested[(line["book_id"], line["condition"])] += line["quantity"]

        for (book_id, condition), quantity in requested.items():
            available = self.ledger.available(book_id, condition)
            if available < quantity:
                raise InsufficientStock(
                    f"Stock insuficiente para el libro {book_id} ({condition.value}). "
                    f"Disponible: {available}, Solicitado: {quantity}",
                    book_id=book_id,
                    condition=condition,
                    requested=quantity,
                    available=available
                )

    def reverse_sale(self, sale_id: int, operator_id: int) -> SaleReversal:
        """
        Estorno de una venta.

        Devuelve el stock de cada línea, descuenta el contador de la forma
        de pago si la caja sigue abierta y elimina la venta. Si la caja de
        la venta ya fue cerrada, el estorno no se permite.
        """
        try:
            sale = self.db.query(Sale).options(
                selectinload(Sale.lines)
            ).filter(Sale.id == sale_id).with_for_update().first()
            if not sale:
                raise NotFoundError("Venta no encontrada", code="SALE_NOT_FOUND", sale_id=sale_id)
            if not sale.lines:
                raise ValidationError("La venta no tiene ítems", sale_id=sale_id)

            session = None
            if sale.cash_session_id is not None:
                session = self.db.query(CashSession).filter(
                    CashSession.id == sale.cash_session_id
                ).with_for_update().first()
                if session is not None and not session.is_open:
                    raise ReversalNotAllowed(sale_id=sale.id, session_id=session.id)

            for line in sale.lines:
                self.ledger.release(line.book_id, line.condition, line.quantity)

            if session is not None:
                self.cash_sessions.reverse_sale_tender(session, sale.tender_type, sale.total)

            reversal = SaleReversal(
                sale_id=sale.id,
                reversed_total=round_money(sale.total),
                line_count=len(sale.lines),
                cash_session_affected=session is not None
            )
            self.db.delete(sale)
            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error en estorno de venta")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(
            f"Estorno: venta={sale_id} total={reversal.reversed_total} "
            f"caja_afectada={reversal.cash_session_affected} operador={operator_id}"
        )
        return reversal

    def get_sale(self, sale_id: int) -> SaleDetail:
        sale = self.db.query(Sale).options(
            selectinload(Sale.lines).selectinload(SaleLine.book),
            selectinload(Sale.customer)
        ).filter(Sale.id == sale_id).first()
        if not sale:
            raise NotFoundError("Venta no encontrada", code="SALE_NOT_FOUND", sale_id=sale_id)
        return build_sale_detail(sale)
