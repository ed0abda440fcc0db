from pydantic import BaseModel, Field
from typing import List
from datetime import datetime
from enum import Enum

from bookstore_pos.modules.catalog.models import StockCondition


class StockUpdateMode(str, Enum):
    REPLACE = "replace"   # substituir
    ADD = "add"           # adicionar


class StockUpdate(BaseModel):
    condition: StockCondition = Field(..., description="Condición: NEW o DISCOUNTED")
    quantity: int = Field(..., description="Cantidad (en modo add puede ser negativa)")
    mode: StockUpdateMode = Field(StockUpdateMode.REPLACE, description="replace o add")


class StockLineOut(BaseModel):
    book_id: int
    condition: StockCondition
    quantity: int
    updated_at: datetime

    model_config = {"from_attributes": True}


class BookStockOut(BaseModel):
    book_id: int
    isbn: str
    title: str
    lines: List[StockLineOut]
    total_quantity: int
