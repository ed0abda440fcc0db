"""
Sales Reports Router

FastAPI router for all sales-related report endpoints.
Includes the filtered sales list, statistics and sales grouped by book.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bookstore_pos.core.config import settings
from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.pos.models import TenderType

from ..services.sales import SalesReportService
from ..schemas import SalesListResponse, SalesStatisticsResponse, SalesByBookResponse
from ..utils import (
    create_csv_response,
    prepare_sales_list_csv,
    prepare_sales_by_book_csv,
    CSV_HEADERS
)


router = APIRouter(prefix="/reports/sales", tags=["Reports"])


@router.get("/", response_model=None)
def list_sales(
    current_operator: operator_dependency,
    start_date: Optional[date] = Query(None, description="Start date for the report period"),
    end_date: Optional[date] = Query(None, description="End date for the report period"),
    tender_type: Optional[TenderType] = Query(None, description="Filter by tender type"),
    customer_id: Optional[int] = Query(None, description="Filter by customer"),
    condition: Optional[StockCondition] = Query(None, description="Sales with at least one line of this condition"),
    cash_session_id: Optional[int] = Query(None, description="Filter by cash session"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    db: Session = Depends(get_db)
):
    """
    List sales with filters and pagination, newest first.

    Can export the current page as CSV.
    """
    service = SalesReportService(db)
    report_data = service.list_sales(
        start_date=start_date,
        end_date=end_date,
        tender_type=tender_type,
        customer_id=customer_id,
        condition=condition,
        cash_session_id=cash_session_id,
        page=page,
        limit=limit
    )

    if export == "csv":
        return create_csv_response(
            data=prepare_sales_list_csv(report_data),
            filename=f"sales_{start_date or 'all'}_{end_date or 'all'}.csv",
            headers=CSV_HEADERS["sales_list"]
        )

    return SalesListResponse(**report_data)


@router.get("/statistics", response_model=SalesStatisticsResponse)
def get_sales_statistics(
    current_operator: operator_dependency,
    start_date: Optional[date] = Query(None, description="Start date for the report period"),
    end_date: Optional[date] = Query(None, description="End date for the report period"),
    db: Session = Depends(get_db)
):
    """Sales count, revenue and average ticket, grouped by tender type and by condition."""
    service = SalesReportService(db)
    return SalesStatisticsResponse(**service.statistics(start_date=start_date, end_date=end_date))


@router.get("/by-book", response_model=None)
def get_sales_by_book(
    current_operator: operator_dependency,
    start_date: Optional[date] = Query(None, description="Start date for the report period"),
    end_date: Optional[date] = Query(None, description="End date for the report period"),
    condition: Optional[StockCondition] = Query(None, description="Filter by condition"),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    db: Session = Depends(get_db)
):
    """
    Sales grouped by book and condition.

    Returns units, revenue, average unit price and sales count per group,
    plus a summary with the tender type breakdown.
    """
    service = SalesReportService(db)
    report_data = service.sales_by_book(start_date=start_date, end_date=end_date, condition=condition)

    if export == "csv":
        return create_csv_response(
            data=prepare_sales_by_book_csv(report_data),
            filename=f"sales_by_book_{start_date or 'all'}_{end_date or 'all'}.csv",
            headers=CSV_HEADERS["sales_by_book"]
        )

    return SalesByBookResponse(**report_data)
