"""
Connectivity and schema introspection for data sources.

Engines are cached per (url, username, password) so repeated requests
against one source share a connection pool.
"""
import os
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from backend.modules.common.db_adapter.base_adapter import BaseDbAdapter
from backend.modules.common.db_adapter.registry import get_adapter_for_url
from backend.modules.common.exceptions import SourceError
from backend.modules.logger import debug, error
from backend.modules.sources.models import QueryColumn, TableInfo

SOURCE_CONNECT_TIMEOUT = int(os.getenv("SOURCE_CONNECT_TIMEOUT", "10"))

_ENGINE_CACHE: Dict[Tuple[str, Optional[str], Optional[str]], Engine] = {}
_ENGINE_LOCK = threading.Lock()


def release_engine(jdbc_url: str, username: Optional[str], password: Optional[str]) -> None:
    """Dispose the cached engine of a source (after its config changed)."""
    with _ENGINE_LOCK:
        engine = _ENGINE_CACHE.pop((jdbc_url, username, password), None)
    if engine is not None:
        engine.dispose()


class SqlUtils:
    def __init__(self, jdbc_url: str, username: Optional[str] = None, password: Optional[str] = None):
        adapter = get_adapter_for_url(jdbc_url)
        if adapter is None:
            raise SourceError(f"Unsupported data source: {jdbc_url}")
        self.jdbc_url = jdbc_url
        self.username = username
        self.password = password
        self.adapter: BaseDbAdapter = adapter

    @property
    def engine(self) -> Engine:
        key = (self.jdbc_url, self.username, self.password)
        with _ENGINE_LOCK:
            engine = _ENGINE_CACHE.get(key)
            if engine is None:
                engine = self._create_engine()
                _ENGINE_CACHE[key] = engine
                debug(f"Created engine for {self.adapter.db_type} source {self.jdbc_url}")
        return engine

    def _create_engine(self) -> Engine:
        try:
            url = self.adapter.to_sqlalchemy_url(self.jdbc_url, self.username, self.password)
        except ValueError as e:
            raise SourceError(str(e))
        connect_args = {}
        if self.adapter.connect_timeout_arg:
            connect_args[self.adapter.connect_timeout_arg] = SOURCE_CONNECT_TIMEOUT
        try:
            return create_engine(url, pool_pre_ping=True, pool_recycle=3600, connect_args=connect_args)
        except (SQLAlchemyError, ImportError) as e:
            raise SourceError(f"Unable to create engine for {self.jdbc_url}: {str(e)}")

    def test_connection(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(text(self.adapter.ping_sql()))
            return True
        except SQLAlchemyError as e:
            error(f"Test connection failed for {self.jdbc_url}: {str(e)}")
            raise SourceError(f"Unable to connect to {self.jdbc_url}: {str(e.__cause__ or e)}")

    def table_is_exist(self, table_name: str) -> bool:
        try:
            return inspect(self.engine).has_table(table_name)
        except SQLAlchemyError as e:
            raise SourceError(str(e.__cause__ or e))

    def get_table_list(self) -> List[str]:
        """Tables and views of the source's default schema."""
        try:
            inspector = inspect(self.engine)
            return list(inspector.get_table_names()) + list(inspector.get_view_names())
        except SQLAlchemyError as e:
            raise SourceError(str(e.__cause__ or e))

    def get_table_columns(self, table_name: str) -> TableInfo:
        try:
            inspector = inspect(self.engine)
            columns = inspector.get_columns(table_name)
            pk = inspector.get_pk_constraint(table_name) or {}
        except SQLAlchemyError as e:
            raise SourceError(str(e.__cause__ or e))
        return TableInfo(
            table_name=table_name,
            primary_keys=list(pk.get("constrained_columns") or []),
            columns=[QueryColumn(name=col["name"], type=str(col["type"])) for col in columns],
        )

    def execute(self, sql: str) -> None:
        try:
            with self.engine.begin() as conn:
                conn.execute(text(sql))
        except SQLAlchemyError as e:
            raise SourceError(str(e.__cause__ or e))

    def execute_batch(self, sql: str, headers: Sequence[str], rows: Sequence[Dict[str, Any]]) -> int:
        """
        Execute a parameterised statement once per row in a single transaction.
        ``sql`` binds column ``i`` of ``headers`` to ``:c{i}``.
        """
        if not rows:
            return 0
        params = [{f"c{i}": row.get(name) for i, name in enumerate(headers)} for row in rows]
        try:
            with self.engine.begin() as conn:
                conn.execute(text(sql), params)
        except SQLAlchemyError as e:
            raise SourceError(str(e.__cause__ or e))
        return len(params)
