"""MySQL adapter implementation."""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional, Sequence

from .base_adapter import BaseDbAdapter, IndexKey


class MysqlAdapter(BaseDbAdapter):
    db_type = "MYSQL"
    jdbc_prefix = "jdbc:mysql:"
    sqlalchemy_driver = "mysql+mysqlconnector"
    supports_upload = True
    connect_timeout_arg = "connection_timeout"

    def translate_query(self, query: Dict[str, str]) -> Dict[str, str]:
        charset = query.get("characterEncoding") or query.get("charset")
        if charset and charset.lower().replace("-", "") in ("utf8", "utf8mb4"):
            return {"charset": "utf8mb4"}
        return {}

    def quote_identifier(self, name: str) -> str:
        """
        MySQL uses database-level connections, so the connection already
        selects the database and tables are referenced by name only.
        """
        return "`" + name.replace("`", "``") + "`"

    def build_create_table(
        self,
        table: str,
        column_defs: Iterable[str],
        primary_keys: Optional[List[str]] = None,
        index_keys: Optional[List[IndexKey]] = None,
    ) -> str:
        parts = list(column_defs)
        if not parts:
            raise ValueError("No columns provided for CREATE TABLE")
        if primary_keys:
            pk_cols = ", ".join(self.quote_identifier(col) for col in primary_keys)
            parts.append(f"PRIMARY KEY ({pk_cols})")
        for index in index_keys or []:
            if not index.columns:
                continue
            idx_cols = ", ".join(self.quote_identifier(col) for col in index.columns)
            parts.append(f"KEY {self.quote_identifier(index.name)} ({idx_cols})")
        columns_sql = ",\n    ".join(parts)
        return (
            f"CREATE TABLE IF NOT EXISTS {self.quote_identifier(table)} (\n    {columns_sql}\n)"
            " ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
        )

    def build_drop_table(self, table: str) -> str:
        return f"DROP TABLE IF EXISTS {self.quote_identifier(table)}"

    def build_truncate_table(self, table: str) -> str:
        return f"TRUNCATE TABLE {self.quote_identifier(table)}"

    def build_insert(self, table: str, columns: Sequence[str]) -> str:
        """
        Parameterised INSERT. Column ``i`` binds to ``:c{i}`` so headers with
        spaces or punctuation never leak into parameter names.
        """
        if not columns:
            raise ValueError("No columns provided for INSERT")
        cols = ", ".join(self.quote_identifier(col) for col in columns)
        params = ", ".join(f":c{i}" for i in range(len(columns)))
        return f"INSERT INTO {self.quote_identifier(table)} ({cols}) VALUES ({params})"
