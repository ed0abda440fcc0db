"""
Services package for Reports module

Exports all report service classes for easy importing.
"""

from .sales import SalesReportService
from .cash_sessions import CashSessionReportService

__all__ = [
    "SalesReportService",
    "CashSessionReportService"
]
