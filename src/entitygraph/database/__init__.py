"""
Database connection and transaction handling
"""

from .connection import (
    Transaction,
    get_async_engine,
    get_async_session,
    init_database,
    reset_database,
    test_database_connection,
    transaction,
)

__all__ = [
    "Transaction",
    "get_async_engine",
    "get_async_session",
    "init_database",
    "reset_database",
    "test_database_connection",
    "transaction",
]
