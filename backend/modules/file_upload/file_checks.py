"""
Upload content checks.
The extension alone is not trusted; Excel files must carry the matching
container signature and CSV files must not be binary.
"""
import os
from typing import Optional

XLSX_SIGNATURE = b"PK\x03\x04"
XLS_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

CSV_CONTENT_TYPES = {
    "text/csv",
    "text/plain",
    "application/csv",
    "application/vnd.ms-excel",  # browsers on Windows send this for .csv
    "application/octet-stream",
}


def _extension(filename: Optional[str]) -> str:
    return os.path.splitext((filename or "").lower())[1]


def is_csv(filename: Optional[str], content_type: Optional[str], head: bytes) -> bool:
    if _extension(filename) != ".csv":
        return False
    if content_type and content_type.split(";")[0].strip().lower() not in CSV_CONTENT_TYPES:
        return False
    if head.startswith(XLSX_SIGNATURE) or head.startswith(XLS_SIGNATURE):
        return False
    return b"\x00" not in head


def is_excel(
    filename: Optional[str],
    content_type: Optional[str],
    head: bytes,
    expected_extension: Optional[str] = None,
) -> bool:
    """``expected_extension`` pins the declared format, so a .xls file is not accepted as xlsx."""
    ext = _extension(filename)
    if expected_extension and ext != expected_extension:
        return False
    if ext == ".xlsx":
        return head.startswith(XLSX_SIGNATURE)
    if ext == ".xls":
        return head.startswith(XLS_SIGNATURE)
    return False
