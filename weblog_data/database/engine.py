# weblog_data/database/engine.py
import logging

from motor.motor_asyncio import AsyncIOMotorClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from weblog_data.core.config import Settings, settings as default_settings
from weblog_data.data.interfaces import IData
from weblog_data.document.data import DocumentData
from weblog_data.hybrid.data import HybridData
from weblog_data.relational.data import RelationalData

logger = logging.getLogger(__name__)

BACKENDS = ("relational", "hybrid", "document")


def create_sql_engine(settings: Settings = default_settings) -> AsyncEngine:
    url = settings.database_url
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=settings.SQL_ECHO)
    return create_async_engine(
        url,
        echo=settings.SQL_ECHO,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600
    )


def create_data(settings: Settings = default_settings) -> IData:
    """Build the storage adapter named by DATA_BACKEND; call start_up() before use."""
    backend = settings.DATA_BACKEND.lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unknown data backend {settings.DATA_BACKEND}; expected one of {', '.join(BACKENDS)}")

    if backend == "document":
        logger.info(f"Using document storage in database {settings.MONGODB_DATABASE}")
        return DocumentData(AsyncIOMotorClient(settings.MONGODB_URL), settings)

    if backend == "hybrid":
        # JSON documents are queried with SQLite's JSON1 functions
        if not settings.database_url.startswith("sqlite"):
            raise ValueError("The hybrid backend requires a SQLite database")
        engine = create_sql_engine(settings)
        logger.info(f"Using hybrid storage at {engine.url}")
        return HybridData(engine, settings)

    engine = create_sql_engine(settings)
    logger.info(f"Using relational storage at {engine.url}")
    return RelationalData(engine, settings)
