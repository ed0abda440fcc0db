"""
Cash Session Reports Service

History of cash sessions with registered/conferred totals and the
reconciliation recomputed from stored fields.
"""

from datetime import date
from typing import Dict, Optional

from sqlalchemy import desc
from sqlalchemy.orm import selectinload

from .base import BaseReportService
from bookstore_pos.common.money import sum_money
from bookstore_pos.modules.pos.models import CashSession, CashSessionStatus, CONFERRED_COUNTERS
from bookstore_pos.modules.pos.schemas import CashMovementOut, CashSessionOut
from bookstore_pos.modules.pos.services import CashSessionService


class CashSessionReportService(BaseReportService):
    """Service for generating cash session reports"""

    def history(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        status: Optional[CashSessionStatus] = None,
        limit: int = 20,
        offset: int = 0
    ) -> Dict:
        """
        Cash session history filtered by opened_at.

        Open sessions report total_conferred and reconciliation as None.
        The reconciliation is recomputed on every call, so it always matches
        the one returned at close time.
        """
        query = self.db.query(CashSession)
        query = self._apply_date_filter(query, CashSession.opened_at, start_date, end_date)
        if status:
            query = query.filter(CashSession.status == status)

        total = query.count()
        sessions = query.options(
            selectinload(CashSession.movements)
        ).order_by(
            desc(CashSession.opened_at), desc(CashSession.id)
        ).offset(offset).limit(limit).all()

        cash_sessions = CashSessionService(self.db)
        items = []
        for session in sessions:
            is_closed = not session.is_open
            items.append({
                **CashSessionOut.model_validate(session).model_dump(),
                "total_registered": session.registered_total,
                "total_conferred": sum_money(
                    [session.final_cash_count or 0] +
                    [getattr(session, attribute) or 0 for attribute in CONFERRED_COUNTERS.values()]
                ) if is_closed else None,
                "reconciliation": cash_sessions.reconcile(session),
                "movements": [CashMovementOut.model_validate(m) for m in session.movements]
            })

        return {
            "period": self._period(start_date, end_date),
            "items": items,
            "total": total,
            "limit": limit,
            "offset": offset
        }
