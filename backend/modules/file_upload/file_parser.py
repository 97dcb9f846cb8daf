"""
File Parser Manager
Selects the parser for an uploaded file and turns its content into
typed headers plus row dictionaries ready for insertion.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import pandas as pd
from pandas.api import types as ptypes

from backend.modules.sources.models import QueryColumn
from .parsers.base_parser import BaseFileParser
from .parsers.csv_parser import CSVParser
from .parsers.excel_parser import ExcelParser

VARCHAR_MAX_LENGTH = 255

DATE_PATTERN = re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}([ T]\d{1,2}:\d{2}(:\d{2}(\.\d+)?)?)?$")


@dataclass
class DataUploadEntity:
    """Parsed upload: ordered typed headers and one dict per data row."""
    headers: List[QueryColumn] = field(default_factory=list)
    values: List[Dict[str, Any]] = field(default_factory=list)


def infer_sql_type(series: pd.Series) -> str:
    """
    MySQL column type for a parsed column.

    Columns with no values at all fall back to VARCHAR so later appends of
    any text still fit.
    """
    non_null = series.dropna()
    if non_null.empty:
        return f"VARCHAR({VARCHAR_MAX_LENGTH})"
    if ptypes.is_bool_dtype(series):
        return "TINYINT(1)"
    if ptypes.is_integer_dtype(series):
        return "BIGINT"
    if ptypes.is_float_dtype(series):
        # Integers with gaps are read as float
        if (non_null == non_null.round()).all():
            return "BIGINT"
        return "DOUBLE"
    if ptypes.is_datetime64_any_dtype(series):
        return "DATETIME"
    max_length = int(non_null.astype(str).str.len().max())
    if max_length > VARCHAR_MAX_LENGTH:
        return "TEXT"
    return f"VARCHAR({VARCHAR_MAX_LENGTH})"


def _looks_like_dates(series: pd.Series) -> bool:
    if not (ptypes.is_object_dtype(series) or ptypes.is_string_dtype(series)):
        return False
    non_null = series.dropna()
    if non_null.empty:
        return False
    return bool(non_null.astype(str).str.strip().str.match(DATE_PATTERN).all())


def _to_python(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if hasattr(value, 'item'):  # numpy scalars
        return value.item()
    return value


def dataframe_to_entity(df: pd.DataFrame) -> DataUploadEntity:
    """
    Build the upload entity from a parsed DataFrame.

    Raises:
        ValueError: if a header is blank
    """
    df = df.dropna(how='all').copy()
    names = [str(col).strip() for col in df.columns]
    for name in names:
        if not name or name.startswith('Unnamed:'):
            raise ValueError("There is an empty column header in the file")
    df.columns = names

    for name in names:
        if _looks_like_dates(df[name]):
            df[name] = pd.to_datetime(df[name], format='mixed')

    headers = [QueryColumn(name=name, type=infer_sql_type(df[name])) for name in names]

    records = df.astype(object).where(pd.notna(df), None).to_dict('records')
    values = [{key: _to_python(value) for key, value in record.items()} for record in records]
    return DataUploadEntity(headers=headers, values=values)


class FileParserManager:
    """Manages file parsers and selects appropriate parser for each file."""

    def __init__(self):
        self.parsers: List[BaseFileParser] = [
            CSVParser(),
            ExcelParser(),
        ]

    def get_parser(self, file_path: str) -> Optional[BaseFileParser]:
        for parser in self.parsers:
            if parser.detect_format(file_path):
                return parser
        return None

    def parse_file(self, file_path: str, options: Optional[Dict] = None) -> pd.DataFrame:
        """
        Parse file using appropriate parser.

        Raises:
            ValueError: If no parser found for file type
        """
        parser = self.get_parser(file_path)
        if parser is None:
            raise ValueError(f"No parser available for file: {file_path}")
        return parser.parse(file_path, options)

    def parse_with_first_as_header(self, file_path: str, options: Optional[Dict] = None) -> DataUploadEntity:
        """Parse a file whose first row holds the column names."""
        return dataframe_to_entity(self.parse_file(file_path, options))
