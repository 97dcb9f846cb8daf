"""
Data Loader Service for File Upload Module
Inserts parsed rows into the target table in fixed-size batches executed
on a bounded thread pool.
"""
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from backend.modules.common.exceptions import ServerError, SourceError
from backend.modules.logger import error, info
from backend.modules.sources.models import QueryColumn, SourceDataUpload, UploadMode

UPLOAD_BATCH_SIZE = int(os.getenv("UPLOAD_BATCH_SIZE", "1000"))
UPLOAD_MAX_WORKERS = int(os.getenv("UPLOAD_MAX_WORKERS", "0")) or max(1, (os.cpu_count() or 1) - 1)


@dataclass
class BatchResult:
    """Result of inserting one batch"""
    batch_no: int
    start: int
    end: int
    rows_inserted: int = 0
    error: Optional[str] = None


@dataclass
class BatchInsertResult:
    """Aggregated result of a batched insert"""
    total_rows: int = 0
    rows_inserted: int = 0
    batches_total: int = 0
    batches_failed: int = 0
    batch_results: List[BatchResult] = field(default_factory=list)
    processing_time: float = 0.0

    @property
    def failed_batches(self) -> List[BatchResult]:
        return [result for result in self.batch_results if result.error]


def split_batches(total_size: int, batch_size: int) -> List[tuple]:
    """(start, end) row ranges covering ``total_size`` rows."""
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")
    return [(start, min(start + batch_size, total_size)) for start in range(0, total_size, batch_size)]


def _insert_batch(sql_utils, sql: str, header_names: List[str], rows: List[Dict[str, Any]],
                  batch_no: int, start: int, end: int) -> BatchResult:
    info(f"executeInsert batch-{batch_no} : start:{start}, end: {end}")
    inserted = sql_utils.execute_batch(sql, header_names, rows)
    return BatchResult(batch_no=batch_no, start=start, end=end, rows_inserted=inserted)


def execute_insert(
    sql_utils,
    table_name: str,
    headers: List[QueryColumn],
    values: List[Dict[str, Any]],
    batch_size: int = UPLOAD_BATCH_SIZE,
    max_workers: int = UPLOAD_MAX_WORKERS,
) -> BatchInsertResult:
    """
    Insert ``values`` into ``table_name`` in batches of ``batch_size`` rows.

    Every batch is awaited. Batches run in their own transactions, so rows of
    successful batches stay committed when another batch fails.

    Raises:
        ServerError: one or more batches failed
    """
    result = BatchInsertResult(total_rows=len(values))
    if not values:
        return result

    header_names = [header.name for header in headers]
    sql = sql_utils.adapter.build_insert(table_name, header_names)
    info(f"sql : {sql}")

    batches = split_batches(len(values), batch_size)
    result.batches_total = len(batches)

    start_time = time.time()
    info(f"execute insert start ----  {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")

    workers = max(1, min(max_workers, len(batches)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="upload") as executor:
        futures = {}
        for batch_no, (start, end) in enumerate(batches, start=1):
            future = executor.submit(
                _insert_batch, sql_utils, sql, header_names, values[start:end], batch_no, start, end
            )
            futures[future] = (batch_no, start, end)

        for future in as_completed(futures):
            batch_no, start, end = futures[future]
            try:
                batch_result = future.result()
            except Exception as e:
                error(f"Batch {batch_no} ({start}-{end}) failed: {str(e)}")
                batch_result = BatchResult(batch_no=batch_no, start=start, end=end, error=str(e))
            result.batch_results.append(batch_result)

    result.batch_results.sort(key=lambda r: r.batch_no)
    result.rows_inserted = sum(r.rows_inserted for r in result.batch_results)
    result.batches_failed = len(result.failed_batches)
    result.processing_time = time.time() - start_time

    info(f"execute insert end ----  {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    info(f"execution time {result.processing_time:.2f} second, "
         f"{result.rows_inserted}/{result.total_rows} rows in {result.batches_total} batches")

    if result.batches_failed:
        failed = result.failed_batches
        details = "; ".join(f"rows {r.start}-{r.end}: {r.error}" for r in failed[:3])
        raise ServerError(
            f"{result.batches_failed} of {result.batches_total} batches failed to insert "
            f"({result.rows_inserted} rows inserted): {details}"
        )
    return result


def insert_data(
    sql_utils,
    headers: List[QueryColumn],
    values: List[Dict[str, Any]],
    upload: SourceDataUpload,
    batch_size: int = UPLOAD_BATCH_SIZE,
    max_workers: int = UPLOAD_MAX_WORKERS,
) -> BatchInsertResult:
    """
    Load the parsed rows according to the upload mode.
    REPLACE truncates the table first; the other modes require the table.
    """
    if not values:
        return BatchInsertResult()

    try:
        if upload.mode == UploadMode.REPLACE:
            sql_utils.execute(sql_utils.adapter.build_truncate_table(upload.table_name))
        elif not sql_utils.table_is_exist(upload.table_name):
            raise ServerError(f"table {upload.table_name} is not exist")
    except SourceError as e:
        raise ServerError(str(e))

    return execute_insert(sql_utils, upload.table_name, headers, values, batch_size, max_workers)
