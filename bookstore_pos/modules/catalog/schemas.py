"""
Esquemas Pydantic para el catálogo (libros y precios)
"""

from pydantic import BaseModel, Field, field_validator
from decimal import Decimal
from typing import Optional, List
from datetime import datetime
from bookstore_pos.common.validators import only_digits, validate_isbn
from bookstore_pos.modules.catalog.models import StockCondition


class BookCreate(BaseModel):
    """Esquema para registrar un libro"""
    isbn: str = Field(..., description="ISBN (10 a 13 dígitos)")
    title: str = Field(..., min_length=1, max_length=255, description="Título")
    author: str = Field(..., min_length=1, max_length=255, description="Autor")
    publisher: Optional[str] = Field(None, max_length=255, description="Editora")

    @field_validator('isbn')
    @classmethod
    def validate_isbn_field(cls, v: str) -> str:
        cleaned = only_digits(v)
        if not validate_isbn(cleaned):
            raise ValueError('ISBN inválido (debe contener solo números y tener 10-13 dígitos)')
        return cleaned

    @field_validator('title', 'author')
    @classmethod
    def strip_required(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError('El campo no puede estar vacío')
        return cleaned


class BookUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    author: Optional[str] = Field(None, min_length=1, max_length=255)
    publisher: Optional[str] = Field(None, max_length=255)


class PriceLineOut(BaseModel):
    condition: StockCondition
    unit_price: Decimal

    model_config = {"from_attributes": True}


class StockLineBrief(BaseModel):
    condition: StockCondition
    quantity: int

    model_config = {"from_attributes": True}


class BookOut(BaseModel):
    id: int
    isbn: str
    title: str
    author: str
    publisher: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class BookDetail(BookOut):
    """Libro con precios y stock por condición"""
    prices: List[PriceLineOut] = Field(default=[], description="Precios por condición")
    stock_lines: List[StockLineBrief] = Field(default=[], description="Stock por condición")


class BookList(BaseModel):
    items: List[BookOut]
    total: int
    limit: int
    offset: int


class PriceUpdate(BaseModel):
    """Esquema para definir el precio de una condición"""
    condition: StockCondition = Field(..., description="Condición: NEW o DISCOUNTED")
    unit_price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2, description="Precio unitario")


class ImportResult(BaseModel):
    """Resultado de una importación CSV"""
    message: str
    successes: int
    errors: int
    total_lines: int
    error_details: List[str] = []
