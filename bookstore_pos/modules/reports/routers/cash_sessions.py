"""
Cash Session Reports Router

FastAPI router for the cash session history report.
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from bookstore_pos.core.config import settings
from bookstore_pos.dependencies.dbDependecies import get_db
from bookstore_pos.dependencies.userDependencies import operator_dependency
from bookstore_pos.modules.pos.models import CashSessionStatus

from ..services.cash_sessions import CashSessionReportService
from ..schemas import CashSessionHistoryResponse
from ..utils import create_csv_response, prepare_cash_session_history_csv, CSV_HEADERS


router = APIRouter(prefix="/reports/cash-sessions", tags=["Reports"])


@router.get("/history", response_model=None)
def get_cash_session_history(
    current_operator: operator_dependency,
    start_date: Optional[date] = Query(None, description="Sessions opened on or after this date"),
    end_date: Optional[date] = Query(None, description="Sessions opened on or before this date"),
    status: Optional[CashSessionStatus] = Query(None, description="Filter by status"),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    export: Optional[str] = Query(None, pattern="^(csv)$", description="Export format: csv"),
    db: Session = Depends(get_db)
):
    """
    Cash session history with totals, movements and reconciliation.

    Open sessions report reconciliation = null.
    """
    service = CashSessionReportService(db)
    report_data = service.history(
        start_date=start_date,
        end_date=end_date,
        status=status,
        limit=limit,
        offset=offset
    )

    if export == "csv":
        return create_csv_response(
            data=prepare_cash_session_history_csv(report_data),
            filename=f"cash_sessions_{start_date or 'all'}_{end_date or 'all'}.csv",
            headers=CSV_HEADERS["cash_session_history"]
        )

    return CashSessionHistoryResponse(**report_data)
