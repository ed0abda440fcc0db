"""
Sales Reports Service

Handles all sales-related reports: filtered sales list, statistics by
tender type and condition, and sales grouped by book.
"""

from datetime import date
from typing import Dict, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import selectinload

from .base import BaseReportService
from bookstore_pos.common.money import ZERO, round_money
from bookstore_pos.modules.catalog.models import Book, StockCondition
from bookstore_pos.modules.pos.models import Sale, SaleLine, TenderType
from bookstore_pos.modules.pos.services import build_sale_out


class SalesReportService(BaseReportService):
    """Service for generating sales reports"""

    def list_sales(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        tender_type: Optional[TenderType] = None,
        customer_id: Optional[int] = None,
        condition: Optional[StockCondition] = None,
        cash_session_id: Optional[int] = None,
        page: int = 1,
        limit: int = 20
    ) -> Dict:
        """
        Filtered, paginated sales list, newest first.

        The condition filter matches sales having at least one line of that condition.
        """
        query = self.db.query(Sale)
        query = self._apply_date_filter(query, Sale.created_at, start_date, end_date)

        if tender_type:
            query = query.filter(Sale.tender_type == tender_type)
        if customer_id:
            query = query.filter(Sale.customer_id == customer_id)
        if cash_session_id:
            query = query.filter(Sale.cash_session_id == cash_session_id)
        if condition:
            query = query.filter(Sale.lines.any(SaleLine.condition == condition))

        total = query.count()
        sales = query.options(
            selectinload(Sale.lines),
            selectinload(Sale.customer)
        ).order_by(
            desc(Sale.created_at), desc(Sale.id)
        ).offset((page - 1) * limit).limit(limit).all()

        return {
            "items": [build_sale_out(sale) for sale in sales],
            "total": total,
            "page": page,
            "limit": limit,
            "pages": (total + limit - 1) // limit
        }

    def statistics(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict:
        """Overall totals plus breakdowns by tender type and by condition."""
        sales_query = self._apply_date_filter(self.db.query(Sale), Sale.created_at, start_date, end_date)

        sales_count, revenue = sales_query.with_entities(
            func.count(Sale.id),
            func.sum(Sale.total)
        ).one()
        revenue = round_money(revenue or 0)

        by_tender = sales_query.with_entities(
            Sale.tender_type,
            func.count(Sale.id),
            func.sum(Sale.total)
        ).group_by(Sale.tender_type).order_by(desc(func.sum(Sale.total))).all()

        lines_query = self.db.query(SaleLine).join(Sale, SaleLine.sale_id == Sale.id)
        lines_query = self._apply_date_filter(lines_query, Sale.created_at, start_date, end_date)
        by_condition = lines_query.with_entities(
            SaleLine.condition,
            func.sum(SaleLine.quantity),
            func.sum(SaleLine.line_total)
        ).group_by(SaleLine.condition).all()

        return {
            "period": self._period(start_date, end_date),
            "overall": {
                "sales_count": sales_count,
                "revenue": revenue,
                "average_ticket": round_money(revenue / sales_count) if sales_count else ZERO
            },
            "by_tender": [
                {"tender_type": tender, "count": count, "total": round_money(total or 0)}
                for tender, count, total in by_tender
            ],
            "by_condition": [
                {"condition": condition, "units": int(units or 0), "total": round_money(total or 0)}
                for condition, units, total in by_condition
            ]
        }

    def sales_by_book(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        condition: Optional[StockCondition] = None
    ) -> Dict:
        """
        Sales grouped by (book, condition).

        Each group reports units, revenue, average unit price (revenue / units)
        and the number of sales it appears in.
        """
        query = self.db.query(SaleLine).join(
            Sale, SaleLine.sale_id == Sale.id
        ).join(
            Book, SaleLine.book_id == Book.id
        )
        query = self._apply_date_filter(query, Sale.created_at, start_date, end_date)
        if condition:
            query = query.filter(SaleLine.condition == condition)

        revenue_expr = func.sum(SaleLine.line_total)
        rows = query.with_entities(
            Book.id,
            Book.isbn,
            Book.title,
            Book.author,
            Book.publisher,
            SaleLine.condition,
            func.sum(SaleLine.quantity),
            revenue_expr,
            func.count(SaleLine.sale_id.distinct())
        ).group_by(
            Book.id, Book.isbn, Book.title, Book.author, Book.publisher, SaleLine.condition
        ).order_by(desc(revenue_expr), Book.title).all()

        items = []
        for book_id, isbn, title, author, publisher, line_condition, quantity, revenue, sales_count in rows:
            quantity = int(quantity or 0)
            revenue = round_money(revenue or 0)
            items.append({
                "book_id": book_id,
                "isbn": isbn,
                "title": title,
                "author": author,
                "publisher": publisher,
                "condition": line_condition,
                "quantity_total": quantity,
                "revenue_total": revenue,
                "average_unit_price": round_money(revenue / quantity) if quantity else ZERO,
                "sales_count": sales_count
            })

        sales_count, units_sold, revenue_total, distinct_books = query.with_entities(
            func.count(Sale.id.distinct()),
            func.sum(SaleLine.quantity),
            func.sum(SaleLine.line_total),
            func.count(SaleLine.book_id.distinct())
        ).one()

        tender_rows = query.with_entities(
            Sale.tender_type,
            func.count(Sale.id.distinct()),
            func.sum(SaleLine.line_total)
        ).group_by(Sale.tender_type).order_by(desc(func.sum(SaleLine.line_total))).all()

        return {
            "period": self._period(start_date, end_date),
            "condition": condition,
            "items": items,
            "summary": {
                "sales_count": sales_count,
                "units_sold": int(units_sold or 0),
                "revenue_total": round_money(revenue_total or 0),
                "distinct_books": distinct_books,
                "tender_types": [
                    {"tender_type": tender, "count": count, "total": round_money(total or 0)}
                    for tender, count, total in tender_rows
                ]
            }
        }
