"""
Base Parser Interface
Abstract base class for upload file parsers.
"""
from abc import ABC, abstractmethod
from typing import Dict, Optional
import pandas as pd


class BaseFileParser(ABC):
    """Base class for upload file parsers. The first row is always the header."""

    # Extensions handled by the parser, lower case with the leading dot
    extensions: tuple = ()

    def detect_format(self, file_path: str) -> bool:
        """
        Detect if file matches this parser's format.

        Args:
            file_path: Path to the file

        Returns:
            True if file matches this parser's format, False otherwise
        """
        return file_path.lower().endswith(self.extensions)

    @abstractmethod
    def parse(self, file_path: str, options: Optional[Dict] = None) -> pd.DataFrame:
        """
        Parse file and return DataFrame.

        Args:
            file_path: Path to the file
            options: Parser-specific options (e.g., delimiter, sheet_name, etc.)

        Returns:
            pandas DataFrame with parsed data
        """
        pass
