"""Database connectors for executing generated SQL."""

from querypilot.connectors.base import (
    BaseConnector,
    ConnectionError,
    ConnectorError,
    QueryError,
    QueryResult,
)
from querypilot.connectors.mysql import MySQLConnector

__all__ = [
    "BaseConnector",
    "ConnectionError",
    "ConnectorError",
    "MySQLConnector",
    "QueryError",
    "QueryResult",
]
