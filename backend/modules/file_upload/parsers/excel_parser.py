"""
Excel Parser
Handles XLSX and XLS files.
"""
import os
import pandas as pd
from typing import Dict, Optional
from .base_parser import BaseFileParser


def _engine_for(file_path: str, options: Dict) -> str:
    engine = options.get('engine')
    if engine is None:
        ext = os.path.splitext(file_path.lower())[1]
        engine = 'openpyxl' if ext == '.xlsx' else 'xlrd'
    return engine


class ExcelParser(BaseFileParser):
    """Parser for Excel files (XLSX, XLS)."""

    extensions = ('.xlsx', '.xls')

    def parse(self, file_path: str, options: Optional[Dict] = None) -> pd.DataFrame:
        """
        Parse the first sheet of an Excel file with the first row as header.

        Options:
            - sheet_name: Sheet name or index (default: 0, first sheet)
            - engine: 'openpyxl' for .xlsx, 'xlrd' for .xls (default: auto-detect)
        """
        if options is None:
            options = {}

        return pd.read_excel(
            file_path,
            sheet_name=options.get('sheet_name', 0),
            header=0,
            engine=_engine_for(file_path, options)
        )
