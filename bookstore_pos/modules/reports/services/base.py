"""
Base service class for Reports module

Provides common functionality for all report services: database session
management and date range filtering. Reports never write.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from bookstore_pos.common.exceptions import ValidationError


class BaseReportService:
    """Base service class for all report services"""

    def __init__(self, db: Session):
        self.db = db

    def _validate_date_range(self, start_date: Optional[date], end_date: Optional[date]) -> None:
        if start_date and end_date and end_date < start_date:
            raise ValidationError(
                "end_date must be greater than or equal to start_date",
                start_date=start_date,
                end_date=end_date
            )

    def _apply_date_filter(self, query, date_field, start_date: Optional[date], end_date: Optional[date]):
        """
        Apply an inclusive date range filter to a timestamp column.

        end_date covers the whole day: the upper bound is the next midnight.
        """
        self._validate_date_range(start_date, end_date)
        if start_date:
            query = query.filter(date_field >= datetime.combine(start_date, time.min))
        if end_date:
            query = query.filter(date_field < datetime.combine(end_date + timedelta(days=1), time.min))
        return query

    @staticmethod
    def _period(start_date: Optional[date], end_date: Optional[date]) -> dict:
        return {"start_date": start_date, "end_date": end_date}
