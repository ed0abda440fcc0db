"""
Endpoints del catálogo: libros, precios e importación CSV
"""

from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.orm import Session

from bookstore_pos.common.exceptions import ValidationError
from bookstore_pos.core.config import settings
from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.catalog.service import CatalogService
from bookstore_pos.modules.catalog.schemas import (
    BookCreate, BookUpdate, BookOut, BookDetail, BookList, PriceUpdate, ImportResult
)

books_router = APIRouter(prefix="/books", tags=["Catalog"])


async def _read_upload(file: UploadFile) -> bytes:
    content = await file.read()
    if len(content) > settings.MAX_IMPORT_FILE_SIZE:
        raise ValidationError("Archivo demasiado grande", size=len(content))
    return content


@books_router.post("/", response_model=BookDetail, status_code=status.HTTP_201_CREATED)
def create_book(
    book_data: BookCreate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Registrar un libro.

    - **isbn**: 10 a 13 dígitos, único
    - **title**, **author**: obligatorios
    - **publisher**: opcional

    Se crean precio 0 y stock 0 para NEW y DISCOUNTED.
    """
    service = CatalogService(db)
    book = service.create_book(book_data)
    return service.get_book(book.id)


@books_router.get("/", response_model=BookList)
def list_books(
    current_operator: operator_dependency,
    search: Optional[str] = Query(None, description="Buscar por título, autor o ISBN"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db)
):
    service = CatalogService(db)
    return BookList(**service.list_books(search=search, limit=limit, offset=offset))


@books_router.get("/isbn/{isbn}", response_model=BookDetail)
def get_book_by_isbn(
    isbn: str,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """Buscar libro por ISBN (uso típico del lector de código de barras)."""
    service = CatalogService(db)
    return service.get_by_isbn(isbn)


@books_router.post("/import", response_model=ImportResult)
async def import_books(
    current_operator: operator_dependency,
    file: UploadFile = File(..., description="CSV con cabecera isbn;title;author;publisher"),
    db: Session = Depends(get_db)
):
    """Importar o actualizar libros desde CSV (separador ';')."""
    content = await _read_upload(file)
    service = CatalogService(db)
    return service.import_books_csv(content)


@books_router.post("/prices/import", response_model=ImportResult)
async def import_prices(
    current_operator: operator_dependency,
    file: UploadFile = File(..., description="CSV con cabecera isbn;condition;price"),
    db: Session = Depends(get_db)
):
    """Importar precios desde CSV (separador ';')."""
    content = await _read_upload(file)
    service = CatalogService(db)
    return service.import_prices_csv(content)


@books_router.get("/{book_id}", response_model=BookDetail)
def get_book(
    book_id: int,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    service = CatalogService(db)
    return service.get_book(book_id)


@books_router.patch("/{book_id}", response_model=BookOut)
def update_book(
    book_id: int,
    book_data: BookUpdate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    service = CatalogService(db)
    return service.update_book(book_id, book_data)


@books_router.put("/{book_id}/price", response_model=BookDetail)
def set_book_price(
    book_id: int,
    price_data: PriceUpdate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Definir precio unitario para una condición.

    Un precio 0 deja el libro sin precio utilizable: la venta lo rechaza.
    """
    service = CatalogService(db)
    return service.set_price(book_id, price_data)
