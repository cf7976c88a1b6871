"""
Database Package

Database models, connection management, and data persistence layer.
"""
from src.taxsale.db.base import Base
from src.taxsale.db.session import (
    build_engine,
    build_session_factory,
    get_engine,
    get_session_factory,
    get_db_session,
    health_check,
    create_all_tables,
    close_connections,
)
from src.taxsale.db.models import (
    DataSource,
    Property,
    CollectionRun,
)
from src.taxsale.db.repository import (
    BaseRepository,
    PropertyRepository,
    SourceRepository,
    CollectionRunRepository,
)

__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "get_db_session",
    "health_check",
    "create_all_tables",
    "close_connections",
    "DataSource",
    "Property",
    "CollectionRun",
    "BaseRepository",
    "PropertyRepository",
    "SourceRepository",
    "CollectionRunRepository",
]
