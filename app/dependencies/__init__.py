"""
Dependencies module initialization
"""

from .imports import (
    ImportSessionStore,
    get_import_session,
    get_publisher,
    get_reports,
    get_session_store,
    get_write_service,
)

__all__ = [
    "ImportSessionStore",
    "get_import_session",
    "get_publisher",
    "get_reports",
    "get_session_store",
    "get_write_service",
]
