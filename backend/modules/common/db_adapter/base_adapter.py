"""
Base database adapter contract for data sources.

A source is stored with a JDBC-style URL; adapters translate it into a
SQLAlchemy URL. Adapters of databases that accept uploads also render
the DDL/DML of the upload path.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional
from urllib.parse import parse_qsl, urlsplit

from sqlalchemy.engine import URL


@dataclass
class IndexKey:
    """Secondary index on an uploaded table."""
    name: str
    columns: List[str] = field(default_factory=list)


class BaseDbAdapter:
    db_type: str = ""
    jdbc_prefix: str = ""
    sqlalchemy_driver: str = ""
    supports_upload: bool = False
    # Driver keyword for the connect timeout, passed through connect_args
    connect_timeout_arg: Optional[str] = None

    def ping_sql(self) -> str:
        return "SELECT 1"

    def matches_url(self, jdbc_url: str) -> bool:
        return bool(self.jdbc_prefix) and (jdbc_url or "").lower().startswith(self.jdbc_prefix)

    def parse_jdbc_url(self, jdbc_url: str) -> Dict[str, object]:
        """
        Split ``jdbc:<db>://host:port/database?k=v`` into its parts.
        Adapters with a different URL grammar override this.
        """
        parts = urlsplit(jdbc_url[len("jdbc:"):])
        return {
            "host": parts.hostname,
            "port": parts.port,
            "database": parts.path.lstrip("/") or None,
            "query": dict(parse_qsl(parts.query)),
        }

    def translate_query(self, query: Dict[str, str]) -> Dict[str, str]:
        """JDBC connection properties have no SQLAlchemy equivalent by default."""
        return {}

    def to_sqlalchemy_url(self, jdbc_url: str, username: Optional[str], password: Optional[str]) -> URL:
        parsed = self.parse_jdbc_url(jdbc_url)
        if not parsed.get("host"):
            raise ValueError(f"Invalid {self.db_type} url: {jdbc_url}")
        return URL.create(
            self.sqlalchemy_driver,
            username=username or None,
            password=password or None,
            host=parsed["host"],
            port=parsed.get("port"),
            database=parsed.get("database"),
            query=self.translate_query(parsed.get("query") or {}),
        )
