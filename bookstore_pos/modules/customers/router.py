from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from bookstore_pos.core.config import settings
from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.customers.service import CustomerService
from bookstore_pos.modules.customers.schemas import (
    CustomerCreate, CustomerList, CustomerOut, CustomerStatistics, CustomerUpdate
)

router = APIRouter(prefix="/customers", tags=["Customers"])


@router.post("/", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
def create_customer(
    customer_data: CustomerCreate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Registrar cliente.

    - **cpf**: se valida con dígitos verificadores y debe ser único
    """
    service = CustomerService(db)
    return service.create_customer(customer_data)


@router.get("/", response_model=CustomerList)
def list_customers(
    current_operator: operator_dependency,
    search: Optional[str] = Query(None, description="Buscar por nombre o CPF"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    service = CustomerService(db)
    return service.list_customers(search=search, limit=limit, offset=offset)


@router.get("/statistics", response_model=CustomerStatistics)
def customer_statistics(
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """Totales de clientes: con email, registrados hoy, últimos 7 y 30 días"""
    service = CustomerService(db)
    return service.statistics()


@router.get("/cpf/{cpf}", response_model=CustomerOut)
def get_customer_by_cpf(
    cpf: str,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    service = CustomerService(db)
    return service.get_by_cpf(cpf)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(
    customer_id: int,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    service = CustomerService(db)
    return service.get_customer(customer_id)


@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(
    customer_id: int,
    customer_data: CustomerUpdate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    service = CustomerService(db)
    return service.update_customer(customer_id, customer_data)


@router.delete("/{customer_id}")
def delete_customer(
    customer_id: int,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Eliminar cliente.

    Sus ventas se conservan sin cliente asociado.
    """
    service = CustomerService(db)
    return service.delete_customer(customer_id)
