from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
import logging

# Import database components
from bookstore_pos.database.database import init_db

# Import middleware
from bookstore_pos.common.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from bookstore_pos.common.exceptions import BookstoreError

# Import routers
from bookstore_pos.modules.auth.router import auth_router
from bookstore_pos.modules.catalog.router import books_router
from bookstore_pos.modules.inventory.router import stock_router
from bookstore_pos.modules.customers.router import router as customers_router
from bookstore_pos.modules.pos.routers import (
    cash_sessions_router,
    cash_movements_router,
    sales_router
)
from bookstore_pos.modules.reports.routers import (
    sales_router as sales_reports_router,
    cash_sessions_router as cash_sessions_reports_router
)

from bookstore_pos.core.config import settings

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.ENVIRONMENT == "production" else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="Bookstore POS API",
    description="Point of sale for a bookstore: stock ledger, cash sessions, sales and reports",
    version="1.0.0",
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT != "production" else None
)

# Add middleware (order matters!)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Add your frontend URLs
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BookstoreError)
async def bookstore_error_handler(request: Request, exc: BookstoreError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path}: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["Auth"])
app.include_router(books_router, prefix="/api/v1")
app.include_router(stock_router, prefix="/api/v1")
app.include_router(customers_router, prefix="/api/v1")
app.include_router(cash_sessions_router, prefix="/api/v1")
app.include_router(cash_movements_router, prefix="/api/v1")
app.include_router(sales_router, prefix="/api/v1")
app.include_router(sales_reports_router, prefix="/api/v1")
app.include_router(cash_sessions_reports_router, prefix="/api/v1")

# Development and tests create tables from the models; production runs `python migrate.py upgrade`
if settings.ENVIRONMENT in ("development", "test"):
    init_db()


@app.get("/")
async def read_root():
    return {
        "message": "Bookstore POS API is running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy", "environment": settings.ENVIRONMENT}


@app.on_event("startup")
async def startup_event():
    logger.info("Bookstore POS API starting up...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Bookstore POS API shutting down...")
