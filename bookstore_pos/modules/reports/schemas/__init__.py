"""
Pydantic schemas for Reports module

Response models for the sales and cash session reports.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from bookstore_pos.modules.catalog.models import StockCondition
from bookstore_pos.modules.pos.models import CashSessionStatus, TenderType
from bookstore_pos.modules.pos.schemas import CashMovementOut, Reconciliation, SaleOut


class ReportPeriod(BaseModel):
    start_date: Optional[date] = Field(None, description="Start of the report period")
    end_date: Optional[date] = Field(None, description="End of the report period")


# Sales Reports

class SalesListResponse(BaseModel):
    """Paginated sales list"""
    items: List[SaleOut]
    total: int = Field(description="Total number of matching sales")
    page: int
    limit: int
    pages: int


class SalesOverview(BaseModel):
    sales_count: int
    revenue: Decimal
    average_ticket: Decimal


class SalesByTenderItem(BaseModel):
    tender_type: TenderType
    count: int
    total: Decimal


class SalesByConditionItem(BaseModel):
    condition: StockCondition
    units: int
    total: Decimal


class SalesStatisticsResponse(BaseModel):
    """Sales statistics grouped by tender type and by condition"""
    period: ReportPeriod
    overall: SalesOverview
    by_tender: List[SalesByTenderItem]
    by_condition: List[SalesByConditionItem]


class SalesByBookItem(BaseModel):
    book_id: int
    isbn: str
    title: str
    author: str
    publisher: Optional[str] = None
    condition: StockCondition
    quantity_total: int
    revenue_total: Decimal
    average_unit_price: Decimal
    sales_count: int


class SalesByBookSummary(BaseModel):
    sales_count: int
    units_sold: int
    revenue_total: Decimal
    distinct_books: int
    tender_types: List[SalesByTenderItem]


class SalesByBookResponse(BaseModel):
    """Sales grouped by (book, condition)"""
    period: ReportPeriod
    condition: Optional[StockCondition] = None
    items: List[SalesByBookItem]
    summary: SalesByBookSummary


# Cash Session Reports

class CashSessionHistoryItem(BaseModel):
    id: int
    status: CashSessionStatus
    opened_at: datetime
    closed_at: Optional[datetime] = None
    opened_by: int
    closed_by: Optional[int] = None
    opening_float: Decimal
    registered_cash: Decimal
    registered_credit: Decimal
    registered_debit: Decimal
    registered_pix: Decimal
    registered_other: Decimal
    final_cash_count: Optional[Decimal] = None
    conferred_credit: Optional[Decimal] = None
    conferred_debit: Optional[Decimal] = None
    conferred_pix: Optional[Decimal] = None
    conferred_other: Optional[Decimal] = None
    total_registered: Decimal
    total_conferred: Optional[Decimal] = Field(None, description="Null while the session is open")
    reconciliation: Optional[Reconciliation] = Field(None, description="Null while the session is open")
    movements: List[CashMovementOut]


class CashSessionHistoryResponse(BaseModel):
    period: ReportPeriod
    items: List[CashSessionHistoryItem]
    total: int
    limit: int
    offset: int
