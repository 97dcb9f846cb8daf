"""SQL Server adapter implementation."""
from __future__ import annotations
from typing import Dict
from urllib.parse import urlsplit

from .base_adapter import BaseDbAdapter


class SqlServerAdapter(BaseDbAdapter):
    db_type = "SQL_SERVER"
    jdbc_prefix = "jdbc:sqlserver:"
    sqlalchemy_driver = "mssql+pyodbc"
    connect_timeout_arg = "timeout"

    def parse_jdbc_url(self, jdbc_url: str) -> Dict[str, object]:
        """jdbc:sqlserver://host:port;databaseName=db;encrypt=true"""
        address, _, properties = jdbc_url[len("jdbc:"):].partition(";")
        parts = urlsplit(address)
        props = {}
        for item in properties.split(";"):
            key, sep, value = item.partition("=")
            if sep:
                props[key.strip()] = value.strip()
        database = props.pop("databaseName", None) or props.pop("database", None)
        return {"host": parts.hostname, "port": parts.port, "database": database, "query": props}

    def translate_query(self, query: Dict[str, str]) -> Dict[str, str]:
        translated = {"driver": "ODBC Driver 18 for SQL Server"}
        if str(query.get("encrypt", "")).lower() == "false":
            translated["Encrypt"] = "no"
        if str(query.get("trustServerCertificate", "")).lower() == "true":
            translated["TrustServerCertificate"] = "yes"
        return translated
