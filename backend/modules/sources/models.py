import json
from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SourceType(str, Enum):
    JDBC = "jdbc"
    CSV = "csv"

    @classmethod
    def type_of(cls, value: Optional[str]) -> Optional["SourceType"]:
        for member in cls:
            if member.value == (value or "").lower():
                return member
        return None


class UploadMode(IntEnum):
    NEW = 0
    REPLACE = 1
    APPEND = 2


class FileType(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
    XLS = "xls"

    @classmethod
    def type_of(cls, value: Optional[str]) -> Optional["FileType"]:
        for member in cls:
            if member.value == (value or "").lower().lstrip("."):
                return member
        return None


class SourceConfig(BaseModel):
    url: str = Field(..., min_length=1)
    username: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None
    # Extra JDBC connection properties
    properties: Optional[Dict[str, str]] = None


class Source(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    type: str
    project_id: int
    # JSON-serialised SourceConfig
    config: str
    create_by: Optional[int] = None
    create_time: Optional[datetime] = None
    update_by: Optional[int] = None
    update_time: Optional[datetime] = None

    def source_config(self) -> Dict[str, Any]:
        try:
            return json.loads(self.config or "{}")
        except ValueError:
            return {}

    @property
    def jdbc_url(self) -> Optional[str]:
        return self.source_config().get("url")

    @property
    def username(self) -> Optional[str]:
        return self.source_config().get("username")

    @property
    def password(self) -> Optional[str]:
        return self.source_config().get("password")

    @property
    def database(self) -> Optional[str]:
        return self.source_config().get("database")

    def safe_dump(self) -> str:
        """JSON for logs and responses, without the password."""
        config = self.source_config()
        config.pop("password", None)
        return self.model_copy(update={"config": json.dumps(config)}).model_dump_json()


class SourceCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str
    project_id: int = Field(..., gt=0)
    config: SourceConfig


class SourceInfo(BaseModel):
    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str
    config: SourceConfig


class SourceTest(BaseModel):
    url: str = Field(..., min_length=1)
    username: Optional[str] = None
    password: Optional[str] = None


class UploadMeta(BaseModel):
    table_name: str = Field(..., min_length=1, max_length=64)
    mode: UploadMode = UploadMode.NEW


class IndexKeyModel(BaseModel):
    index_name: str = Field(..., min_length=1, max_length=64)
    columns: List[str] = Field(..., min_length=1)


class SourceDataUpload(UploadMeta):
    # Comma separated column names
    primary_keys: Optional[str] = None
    index_list: Optional[List[IndexKeyModel]] = None

    def primary_key_list(self) -> List[str]:
        if not self.primary_keys:
            return []
        return [key.strip() for key in self.primary_keys.split(",") if key.strip()]


class QueryColumn(BaseModel):
    name: str
    type: str


class TableInfo(BaseModel):
    table_name: str
    primary_keys: List[str] = []
    columns: List[QueryColumn] = []


class UploadedFile(BaseModel):
    """An uploaded file saved to disk, with what the client said about it."""
    path: str
    filename: Optional[str] = None
    content_type: Optional[str] = None

    def head(self, size: int = 8) -> bytes:
        with open(self.path, "rb") as f:
            return f.read(size)
