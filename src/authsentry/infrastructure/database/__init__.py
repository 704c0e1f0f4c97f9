from .async_db import (
    check_database_health,
    create_db_and_tables,
    create_engine_from_settings,
    create_session_factory,
    get_async_db,
)

__all__ = [
    "check_database_health",
    "create_db_and_tables",
    "create_engine_from_settings",
    "create_session_factory",
    "get_async_db",
]
