"""Oracle adapter implementation."""
from __future__ import annotations
import re
from typing import Dict

from .base_adapter import BaseDbAdapter

# jdbc:oracle:thin:@host:port:SID
_SID_URL = re.compile(r"^jdbc:oracle:thin:@(?P<host>[^:/]+):(?P<port>\d+):(?P<sid>\w+)$", re.IGNORECASE)
# jdbc:oracle:thin:@//host:port/service
_SERVICE_URL = re.compile(
    r"^jdbc:oracle:thin:@//(?P<host>[^:/]+)(?::(?P<port>\d+))?/(?P<service>[\w.]+)$", re.IGNORECASE
)


class OracleAdapter(BaseDbAdapter):
    db_type = "ORACLE"
    jdbc_prefix = "jdbc:oracle:"
    sqlalchemy_driver = "oracle+oracledb"
    connect_timeout_arg = "tcp_connect_timeout"

    def ping_sql(self) -> str:
        return "SELECT 1 FROM DUAL"

    def parse_jdbc_url(self, jdbc_url: str) -> Dict[str, object]:
        match = _SERVICE_URL.match(jdbc_url or "")
        if match:
            return {
                "host": match.group("host"),
                "port": int(match.group("port") or 1521),
                "database": None,
                "query": {"service_name": match.group("service")},
            }
        match = _SID_URL.match(jdbc_url or "")
        if match:
            return {
                "host": match.group("host"),
                "port": int(match.group("port")),
                "database": match.group("sid"),
                "query": {},
            }
        return {"host": None}

    def translate_query(self, query: Dict[str, str]) -> Dict[str, str]:
        return {"service_name": query["service_name"]} if query.get("service_name") else {}
