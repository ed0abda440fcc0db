"""
Modelos SQLAlchemy para el catálogo de la librería

- Book: libro identificado por ISBN
- PriceLine: precio unitario por (libro, condición)

La condición (NEW / DISCOUNTED) es la dimensión compartida entre
precio y stock: un mismo libro puede venderse nuevo o de saldo.
"""

from bookstore_pos.database.database import Base
from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from bookstore_pos.common.mixins import BaseMixin
import enum


class StockCondition(str, enum.Enum):
    """Condición de stock/precio de un libro"""
    NEW = "NEW"                 # Novo
    DISCOUNTED = "DISCOUNTED"   # Saldo


class Book(Base, BaseMixin):
    __tablename__ = "books"

    isbn = Column(String(13), unique=True, nullable=False, index=True)
    title = Column(String(255), nullable=False, index=True)
    author = Column(String(255), nullable=False)
    publisher = Column(String(255), nullable=True)

    # Relationships
    prices = relationship("PriceLine", back_populates="book", cascade="all, delete-orphan")
    stock_lines = relationship("StockLine", back_populates="book", cascade="all, delete-orphan")


class PriceLine(Base, BaseMixin):
    __tablename__ = "price_lines"

    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    condition = Column(Enum(StockCondition), nullable=False)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)

    # Relationships
    book = relationship("Book", back_populates="prices")

    __table_args__ = (
        UniqueConstraint("book_id", "condition", name="uq_price_line_book_condition"),
        CheckConstraint("unit_price >= 0", name="ck_price_line_non_negative"),
    )
