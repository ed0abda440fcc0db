from sqlalchemy import Column, String, Boolean
from bookstore_pos.database.database import Base
from bookstore_pos.common.mixins import BaseMixin


class Operator(Base, BaseMixin):
    """Operador del punto de venta (abre/cierra caja, registra ventas)"""
    __tablename__ = "operators"

    username = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(150), nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
