"""
CSV Parser
Handles comma, semicolon, pipe and tab separated files.
"""
import pandas as pd
from typing import Dict, Optional
from .base_parser import BaseFileParser


def detect_delimiter(file_path: str, encoding: str = 'utf-8') -> str:
    """Guess the delimiter from the header line."""
    with open(file_path, 'r', encoding=_read_encoding(encoding), errors='ignore') as f:
        first_line = f.readline()
    for candidate in ('\t', ',', ';', '|'):
        if candidate in first_line:
            return candidate
    return ','


def _read_encoding(encoding: str) -> str:
    # utf-8-sig drops a BOM written by Excel "Save as CSV"
    if encoding.lower().replace("-", "") == "utf8":
        return "utf-8-sig"
    return encoding


class CSVParser(BaseFileParser):
    """Parser for CSV files."""

    extensions = ('.csv', '.tsv', '.txt')

    def parse(self, file_path: str, options: Optional[Dict] = None) -> pd.DataFrame:
        """
        Parse a CSV file with the first row as header.

        Options:
            - delimiter: Delimiter character (default: auto-detect)
            - encoding: File encoding (default: 'utf-8')
            - quotechar: Quote character (default: '"')
        """
        if options is None:
            options = {}

        encoding = options.get('encoding', 'utf-8')
        delimiter = options.get('delimiter') or detect_delimiter(file_path, encoding)

        return pd.read_csv(
            file_path,
            delimiter=delimiter,
            encoding=_read_encoding(encoding),
            header=0,
            quotechar=options.get('quotechar', '"'),
            skipinitialspace=True,
        )
