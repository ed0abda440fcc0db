"""
Esquemas Pydantic para el módulo de Clientes
"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List
from datetime import datetime

from bookstore_pos.common.validators import only_digits, validate_cpf


class CustomerCreate(BaseModel):
    """Esquema para registrar cliente"""
    name: str = Field(..., min_length=1, max_length=200, description="Nombre completo")
    cpf: str = Field(..., description="CPF (con o sin puntuación)")
    email: Optional[EmailStr] = Field(None, description="Email opcional")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned

    @field_validator('cpf')
    @classmethod
    def validate_cpf_field(cls, v: str) -> str:
        if not validate_cpf(v):
            raise ValueError('CPF inválido')
        return only_digits(v)


class CustomerUpdate(BaseModel):
    """Actualización parcial: solo se modifican los campos enviados"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    cpf: Optional[str] = None
    email: Optional[EmailStr] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El nombre no puede estar vacío')
        return cleaned

    @field_validator('cpf')
    @classmethod
    def validate_cpf_field(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not validate_cpf(v):
            raise ValueError('CPF inválido')
        return only_digits(v)


class CustomerOut(BaseModel):
    id: int
    name: str
    cpf: str
    email: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CustomerList(BaseModel):
    items: List[CustomerOut]
    total: int
    limit: int
    offset: int


class CustomerStatistics(BaseModel):
    """Conteos de clientes registrados (fechas en UTC)"""
    total_customers: int
    customers_with_email: int
    customers_today: int
    customers_last_7_days: int
    customers_last_30_days: int
