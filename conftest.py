"""
Fixtures compartidas de los tests

Base SQLite en memoria (una sola conexión compartida) recreada en cada test.
Las variables de entorno se fijan antes de importar la aplicación.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from bookstore_pos.database.database import Base, SessionLocal, engine, get_db, init_db
from bookstore_pos.main import app
from bookstore_pos.modules.auth.schemas import OperatorCreate
from bookstore_pos.modules.auth.service import AuthService
from bookstore_pos.modules.auth.utils import create_access_token
from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.catalog.schemas import BookCreate, PriceUpdate
from bookstore_pos.modules.catalog.service import CatalogService
from bookstore_pos.modules.customers.schemas import CustomerCreate
from bookstore_pos.modules.customers.service import CustomerService
from bookstore_pos.modules.inventory.service import StockLedger
from bookstore_pos.modules.pos.services import CashSessionService


# ===== BASE DE DATOS =====

@pytest.fixture
def db_session():
    """Sesión sobre una base limpia"""
    Base.metadata.drop_all(bind=engine)
    init_db()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client(db_session):
    """TestClient que usa la misma sesión que el test"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ===== OPERADOR =====

@pytest.fixture
def operator(db_session):
    return AuthService(db_session).create_operator(
        OperatorCreate(username="caixa01", name="Caixa 01", password="secret123")
    )


@pytest.fixture
def auth_headers(operator):
    token = create_access_token({"sub": str(operator.id)})
    return {"Authorization": f"Bearer {token}"}


# ===== CATÁLOGO =====

@pytest.fixture
def make_book(db_session):
    """
    Fábrica de libros con precio y stock.

    make_book(isbn, price=..., stock=..., condition=NEW)
    """
    def _make_book(isbn: str, title: str = "Dom Casmurro", author: str = "Machado de Assis",
                   price: Decimal = Decimal("50.00"), stock: int = 5,
                   condition: StockCondition = StockCondition.NEW):
        catalog = CatalogService(db_session)
        book = catalog.create_book(BookCreate(isbn=isbn, title=title, author=author))
        catalog.set_price(book.id, PriceUpdate(condition=condition, unit_price=price))
        StockLedger(db_session).set_quantity(book.id, condition, stock)
        db_session.commit()
        return book

    return _make_book


@pytest.fixture
def book_a(make_book):
    """Libro A: NEW, stock 5, precio 50.00"""
    return make_book("9788535914849")


@pytest.fixture
def customer(db_session):
    return CustomerService(db_session).create_customer(
        CustomerCreate(name="Maria Silva", cpf="529.982.247-25", email="maria@livraria.com.br")
    )


# ===== CAJA =====

@pytest.fixture
def open_session(db_session, operator):
    """Caja abierta con fondo 100.00"""
    return CashSessionService(db_session).open_session(Decimal("100.00"), operator.id)
