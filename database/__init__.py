"""
Marketplace store access.

Async engine and session management. ORM models for the
tables the provider metrics aggregator reads live in
``provider_risk.models``.
"""

from .engine import (
    Base,
    PoolSettings,
    create_database_engine,
    dispose_engine,
    get_database_url,
    get_db_session,
    get_engine,
    get_session_factory,
    verify_database_connection,
    DatabaseConnectionError,
)


__all__ = [
    "Base",
    "PoolSettings",
    "create_database_engine",
    "dispose_engine",
    "get_database_url",
    "get_db_session",
    "get_engine",
    "get_session_factory",
    "verify_database_connection",
    "DatabaseConnectionError",
]
