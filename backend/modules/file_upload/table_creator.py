"""
Table Creator Service for File Upload Module
Prepares the target table of an upload according to the upload mode.
"""
from typing import List, Optional

from backend.modules.common.db_adapter.base_adapter import IndexKey
from backend.modules.common.db_adapter.mysql_adapter import MysqlAdapter
from backend.modules.common.exceptions import ServerError, SourceError
from backend.modules.logger import info
from backend.modules.sources.models import QueryColumn, SourceDataUpload, UploadMode


def build_column_defs(adapter: MysqlAdapter, fields: List[QueryColumn]) -> List[str]:
    return [f"{adapter.quote_identifier(field.name)} {field.type}" for field in fields]


def build_create_table_sql(
    adapter: MysqlAdapter,
    fields: List[QueryColumn],
    upload: SourceDataUpload,
) -> str:
    """
    Render CREATE TABLE for the parsed headers.

    Raises:
        ServerError: a primary key or index column is not in the file
    """
    names = {field.name for field in fields}
    primary_keys = upload.primary_key_list()
    missing = [key for key in primary_keys if key not in names]
    if missing:
        raise ServerError(f"primary key column {', '.join(missing)} is not in the file")

    index_keys = []
    for index in upload.index_list or []:
        missing = [col for col in index.columns if col not in names]
        if missing:
            raise ServerError(f"index column {', '.join(missing)} is not in the file")
        index_keys.append(IndexKey(name=index.index_name, columns=index.columns))

    return adapter.build_create_table(
        upload.table_name,
        build_column_defs(adapter, fields),
        primary_keys=primary_keys or None,
        index_keys=index_keys or None,
    )


def create_table(sql_utils, fields: List[QueryColumn], upload: SourceDataUpload) -> Optional[str]:
    """
    Prepare the target table.

    REPLACE drops and recreates the table, NEW creates it and requires that it
    does not exist yet, APPEND requires an existing table and creates nothing.

    Returns:
        The CREATE TABLE statement executed, or None
    """
    if not fields:
        raise ServerError("there is have not any fields")

    adapter = sql_utils.adapter
    sql = None
    try:
        if upload.mode == UploadMode.REPLACE:
            sql = build_create_table_sql(adapter, fields, upload)
            drop_sql = adapter.build_drop_table(upload.table_name)
            sql_utils.execute(drop_sql)
            info(f"drop table sql : {drop_sql}")
        else:
            table_exists = sql_utils.table_is_exist(upload.table_name)
            if upload.mode == UploadMode.NEW:
                if table_exists:
                    raise ServerError(f"table {upload.table_name} is already exist")
                sql = build_create_table_sql(adapter, fields, upload)
            elif not table_exists:
                raise ServerError(f"table {upload.table_name} is not exist")

        info(f"create table sql : {sql}")
        if sql:
            sql_utils.execute(sql)
    except SourceError as e:
        raise ServerError(str(e))
    return sql
