"""
Reports Module

Read-only reports over the sales and cash session tables. This module
does not create tables.

Functionalities:
- Sales list with filters and pagination
- Sales statistics by tender type and by condition
- Sales grouped by book
- Cash session history with recomputed reconciliation
- CSV export

Architecture Pattern: Service Layer
- routers/ -> FastAPI endpoints
- services/ -> Queries and aggregation
- schemas/ -> Pydantic response models
- utils/ -> CSV export and formatting
"""
