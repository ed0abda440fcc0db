from bookstore_pos.database.database import Base
from sqlalchemy import Column, Integer, ForeignKey, Enum, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from bookstore_pos.common.mixins import BaseMixin
from bookstore_pos.modules.catalog.models import StockCondition


class StockLine(Base, BaseMixin):
    """Cantidad disponible por (libro, condición). Nunca negativa, nunca se elimina."""
    __tablename__ = "stock_lines"

    book_id = Column(Integer, ForeignKey("books.id"), nullable=False, index=True)
    condition = Column(Enum(StockCondition), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)

    # Relationships
    book = relationship("Book", back_populates="stock_lines")

    __table_args__ = (
        UniqueConstraint("book_id", "condition", name="uq_stock_line_book_condition"),
        CheckConstraint("quantity >= 0", name="ck_stock_line_non_negative"),
    )
