"""
Routers package for Reports module

Exports all report router instances for easy importing.
"""

from .sales import router as sales_router
from .cash_sessions import router as cash_sessions_router

__all__ = [
    "sales_router",
    "cash_sessions_router"
]
