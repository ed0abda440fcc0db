import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

from sqlalchemy import and_, func, or_, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from bookstore_pos.common.exceptions import (
    BookstoreError, ConflictError, InternalError, NotFoundError, ValidationError
)
from bookstore_pos.common.validators import only_digits, validate_cpf
from bookstore_pos.modules.customers.models import Customer
from bookstore_pos.modules.customers.schemas import (
    CustomerCreate, CustomerList, CustomerStatistics, CustomerUpdate
)
from bookstore_pos.modules.pos.models import Sale

logger = logging.getLogger(__name__)


class CustomerService:
    """Servicio para gestión de clientes"""

    def __init__(self, db: Session):
        self.db = db

    def customer_exists(self, customer_id: int) -> bool:
        return self.db.query(Customer.id).filter(Customer.id == customer_id).scalar() is not None

    def _cpf_taken(self, cpf: str, exclude_id: Optional[int] = None) -> bool:
        query = self.db.query(Customer.id).filter(Customer.cpf == cpf)
        if exclude_id is not None:
            query = query.filter(Customer.id != exclude_id)
        return query.first() is not None

    def create_customer(self, customer_data: CustomerCreate) -> Customer:
        """Crear cliente con CPF único"""
        try:
            if self._cpf_taken(customer_data.cpf):
                raise ConflictError("Ya existe un cliente con este CPF", cpf=customer_data.cpf)

            customer = Customer(
                name=customer_data.name,
                cpf=customer_data.cpf,
                email=customer_data.email
            )
            self.db.add(customer)
            self.db.commit()
            self.db.refresh(customer)
        except BookstoreError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Ya existe un cliente con este CPF", cpf=customer_data.cpf)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error creando cliente")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Cliente registrado: id={customer.id}")
        return customer

    def get_customer(self, customer_id: int) -> Customer:
        customer = self.db.query(Customer).filter(Customer.id == customer_id).first()
        if not customer:
            raise NotFoundError("Cliente no encontrado", code="CUSTOMER_NOT_FOUND", customer_id=customer_id)
        return customer

    def get_by_cpf(self, cpf: str) -> Customer:
        """Buscar cliente por CPF, con o sin máscara"""
        if not validate_cpf(cpf):
            raise ValidationError("CPF inválido", cpf=cpf)
        digits = only_digits(cpf)
        customer = self.db.query(Customer).filter(Customer.cpf == digits).first()
        if not customer:
            raise NotFoundError("Cliente no encontrado", code="CUSTOMER_NOT_FOUND", cpf=digits)
        return customer

    def update_customer(self, customer_id: int, customer_data: CustomerUpdate) -> Customer:
        """
        Actualizar cliente.

        El CPF sigue siendo único, pero un cliente puede reenviar el suyo.
        """
        try:
            customer = self.get_customer(customer_id)
            changes = customer_data.model_dump(exclude_unset=True)

            if any(changes.get(field, "") is None for field in ("name", "cpf")):
                raise ValidationError("Nombre y CPF no pueden ser nulos")
            if "cpf" in changes and self._cpf_taken(changes["cpf"], exclude_id=customer_id):
                raise ConflictError("Ya existe un cliente con este CPF", cpf=changes["cpf"])

            for field, value in changes.items():
                setattr(customer, field, value)

            self.db.commit()
            self.db.refresh(customer)
        except BookstoreError:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Ya existe un cliente con este CPF", cpf=customer_data.cpf)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error actualizando cliente")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Cliente actualizado: id={customer.id} campos={sorted(changes)}")
        return customer

    def delete_customer(self, customer_id: int) -> dict:
        """
        Eliminar cliente.

        Las ventas del cliente se conservan y quedan sin cliente asociado.
        """
        try:
            customer = self.get_customer(customer_id)
            detached = self.db.execute(
                update(Sale).where(Sale.customer_id == customer_id).values(customer_id=None)
            ).rowcount
            self.db.delete(customer)
            self.db.commit()
        except BookstoreError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Error eliminando cliente")
            raise InternalError(f"Error interno del servidor: {str(e)}") from e

        logger.info(f"Cliente eliminado: id={customer_id} ventas_desvinculadas={detached}")
        return {"message": "Cliente eliminado", "customer_id": customer_id, "sales_detached": detached}

    def list_customers(self, search: Optional[str] = None, limit: int = 20, offset: int = 0) -> CustomerList:
        """Listar clientes con búsqueda por nombre o CPF"""
        query = self.db.query(Customer)

        if search:
            term = search.strip()
            conditions = [Customer.name.ilike(f"%{term}%")]
            digits = only_digits(term)
            if digits:
                conditions.append(Customer.cpf.like(f"%{digits}%"))
            query = query.filter(or_(*conditions))

        total = query.count()
        customers = query.order_by(Customer.name).offset(offset).limit(limit).all()

        return CustomerList(
            items=customers,
            total=total,
            limit=limit,
            offset=offset
        )

    def statistics(self) -> CustomerStatistics:
        today = datetime.now(timezone.utc).date()

        def registered_since(days: int) -> int:
            cutoff = datetime.combine(today - timedelta(days=days), time.min)
            return self.db.query(func.count(Customer.id)).filter(Customer.created_at >= cutoff).scalar()

        with_email = self.db.query(func.count(Customer.id)).filter(
            and_(Customer.email.isnot(None), Customer.email != "")
        ).scalar()

        return CustomerStatistics(
            total_customers=self.db.query(func.count(Customer.id)).scalar(),
            customers_with_email=with_email,
            customers_today=registered_since(0),
            customers_last_7_days=registered_since(7),
            customers_last_30_days=registered_since(30)
        )
