"""Adapter registry for data source URLs."""
from __future__ import annotations
from typing import Optional, Tuple

from .base_adapter import BaseDbAdapter
from .mssql_adapter import SqlServerAdapter
from .mysql_adapter import MysqlAdapter
from .oracle_adapter import OracleAdapter
from .postgres_adapter import PostgresAdapter


_ADAPTERS: Tuple[BaseDbAdapter, ...] = (
    OracleAdapter(),
    PostgresAdapter(),
    MysqlAdapter(),
    SqlServerAdapter(),
)


def get_adapter_for_url(jdbc_url: str) -> Optional[BaseDbAdapter]:
    """Adapter whose JDBC prefix matches ``jdbc_url``, or None."""
    for adapter in _ADAPTERS:
        if adapter.matches_url(jdbc_url):
            return adapter
    return None
