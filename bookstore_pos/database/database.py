from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from bookstore_pos.core.config import settings
import logging

logger = logging.getLogger(__name__)


def _engine_kwargs() -> dict:
    if settings.is_sqlite:
        # SQLite en memoria: una sola conexión compartida entre hilos
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(
    settings.database_url,
    echo=settings.DEBUG,
    **_engine_kwargs()
)


if settings.is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Genera una sesión de base de datos por request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def load_models():
    """Importa los modelos para registrarlos en Base.metadata"""
    import bookstore_pos.modules.auth.models  # noqa: F401
    import bookstore_pos.modules.catalog.models  # noqa: F401
    import bookstore_pos.modules.inventory.models  # noqa: F401
    import bookstore_pos.modules.customers.models  # noqa: F401
    import bookstore_pos.modules.pos.models  # noqa: F401
    return Base.metadata


def init_db():
    """
    Crea las tablas registradas en Base (desarrollo y tests).

    En producción el esquema se crea con `python migrate.py upgrade`.
    """
    load_models()
    Base.metadata.create_all(bind=engine)
    logger.info("Tablas verificadas en %s", engine.url.get_backend_name())
