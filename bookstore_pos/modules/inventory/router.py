from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.catalog.schemas import ImportResult
from bookstore_pos.modules.inventory.service import InventoryService
from bookstore_pos.modules.inventory.schemas import BookStockOut, StockUpdate, StockUpdateMode
from bookstore_pos.common.exceptions import ValidationError
from bookstore_pos.core.config import settings

stock_router = APIRouter(prefix="/stock", tags=["Stock"])


@stock_router.post("/import", response_model=ImportResult)
async def import_stock(
    current_operator: operator_dependency,
    file: UploadFile = File(..., description="CSV con cabecera isbn;condition;quantity"),
    mode: StockUpdateMode = Query(StockUpdateMode.REPLACE, description="replace o add"),
    db: Session = Depends(get_db)
):
    """Importar stock desde CSV (separador ';')."""
    content = await file.read()
    if len(content) > settings.MAX_IMPORT_FILE_SIZE:
        raise ValidationError("Archivo demasiado grande", size=len(content))

    service = InventoryService(db)
    return service.import_stock_csv(content, mode)


@stock_router.get("/{book_id}", response_model=BookStockOut)
def get_book_stock(
    book_id: int,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """Stock de un libro en ambas condiciones."""
    service = InventoryService(db)
    return service.get_book_stock(book_id)


@stock_router.put("/{book_id}", response_model=BookStockOut)
def update_book_stock(
    book_id: int,
    stock_data: StockUpdate,
    current_operator: operator_dependency,
    db: Session = Depends(get_db)
):
    """
    Ajustar stock de un libro.

    - **condition**: NEW o DISCOUNTED
    - **quantity**: cantidad
    - **mode**: replace (fija el valor) o add (suma al valor actual)

    El resultado nunca puede ser negativo.
    """
    service = InventoryService(db)
    return service.adjust_stock(book_id, stock_data)
