"""
Database module.
Contains database connection, models, the repository and the job store.
"""

from queuewizard.db.connection import (
    close_db,
    create_schema,
    create_session_factory,
    get_async_session,
    get_engine,
    get_session_context,
    init_db,
)
from queuewizard.db.models import Base, Job, User

__all__ = [
    "get_async_session",
    "get_session_context",
    "get_engine",
    "create_session_factory",
    "create_schema",
    "init_db",
    "close_db",
    "Job",
    "User",
    "Base",
]
