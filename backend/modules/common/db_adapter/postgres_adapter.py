"""PostgreSQL adapter implementation."""
from __future__ import annotations
from typing import Dict

from .base_adapter import BaseDbAdapter


class PostgresAdapter(BaseDbAdapter):
    db_type = "POSTGRESQL"
    jdbc_prefix = "jdbc:postgresql:"
    sqlalchemy_driver = "postgresql+psycopg2"
    connect_timeout_arg = "connect_timeout"

    def translate_query(self, query: Dict[str, str]) -> Dict[str, str]:
        if query.get("sslmode"):
            return {"sslmode": query["sslmode"]}
        if str(query.get("ssl", "")).lower() == "true":
            return {"sslmode": "require"}
        return {}
