"""
Modelos SQLAlchemy para el módulo de Clientes

Cliente identificado por CPF. La venta solo lo usa como referencia
opcional de atribución.
"""

from bookstore_pos.database.database import Base
from sqlalchemy import Column, String
from bookstore_pos.common.mixins import BaseMixin


class Customer(Base, BaseMixin):
    __tablename__ = "customers"

    name = Column(String(200), nullable=False, index=True)
    cpf = Column(String(11), unique=True, nullable=False, index=True)  # Solo dígitos
    email = Column(String(100), nullable=True)
