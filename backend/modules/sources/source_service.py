"""
Data Source Service
Business logic for source CRUD, connection tests, schema introspection and
CSV/Excel data upload into a source.
"""
import threading
from datetime import datetime
from typing import List, Optional

from backend.modules.common.exceptions import NotFoundError, ServerError, SourceError, UnauthorizedError
from backend.modules.common.permissions import UserPermission
from backend.modules.file_upload.data_loader import insert_data
from backend.modules.file_upload.file_checks import is_csv, is_excel
from backend.modules.file_upload.file_parser import FileParserManager
from backend.modules.file_upload.table_creator import create_table
from backend.modules.logger import error, info, operation, warning
from backend.modules.projects.project_service import (
    ProjectDetail,
    get_project_detail,
    get_project_permission,
    is_maintainer,
)
from backend.modules.sources import source_dao
from backend.modules.sources.models import (
    FileType,
    Source,
    SourceConfig,
    SourceCreate,
    SourceDataUpload,
    SourceInfo,
    SourceTest,
    SourceType,
    TableInfo,
    UploadedFile,
    UploadMeta,
    UploadMode,
)
from backend.modules.sources.sql_utils import SqlUtils, release_engine

_EXIST_LOCK = threading.Lock()


def is_exist(session, name: str, source_id: Optional[int], project_id: int) -> bool:
    """True if ``name`` is used by another source of the project."""
    with _EXIST_LOCK:
        existing_id = source_dao.get_id_by_name_with_project_id(session, name, project_id)
    if source_id is not None and existing_id is not None:
        return source_id != existing_id
    return existing_id is not None and existing_id > 0


def _source_permission(session, project_detail: ProjectDetail, user) -> UserPermission:
    return get_project_permission(session, project_detail, user).source_permission


def _hidden_for(session, project_detail: ProjectDetail, user) -> bool:
    if is_maintainer(project_detail, user):
        return False
    return _source_permission(session, project_detail, user) == UserPermission.HIDDEN


def _sql_utils(jdbc_url: Optional[str], username: Optional[str], password: Optional[str]) -> SqlUtils:
    try:
        return SqlUtils(jdbc_url or "", username, password)
    except SourceError as e:
        raise ServerError(str(e))


def is_test_connection(config: SourceConfig) -> bool:
    try:
        return _sql_utils(config.url, config.username, config.password).test_connection()
    except SourceError as e:
        error(str(e))
        raise ServerError(str(e))


def get_sources(session, project_id: int, user) -> Optional[List[Source]]:
    try:
        project_detail = get_project_detail(session, project_id, user)
    except UnauthorizedError:
        return None

    sources = source_dao.get_by_project(session, project_id)
    if sources and _hidden_for(session, project_detail, user):
        return None
    return sources


def create_source(session, source_create: SourceCreate, user) -> Source:
    project_detail = get_project_detail(session, source_create.project_id, user)
    if _source_permission(session, project_detail, user) < UserPermission.WRITE:
        raise UnauthorizedError("you have not permission to create source")

    if is_exist(session, source_create.name, None, source_create.project_id):
        info(f"the source {source_create.name} name is already taken")
        raise ServerError("the source name is already taken")

    if SourceType.type_of(source_create.type) is None:
        raise ServerError("Invalid source type")

    if not is_test_connection(source_create.config):
        raise ServerError("get source connection fail")

    source = Source(
        name=source_create.name,
        description=source_create.description,
        type=SourceType.type_of(source_create.type).value,
        project_id=source_create.project_id,
        config=source_create.config.model_dump_json(),
        create_by=user.id,
        create_time=datetime.now(),
    )
    if source_dao.insert(session, source) <= 0:
        raise ServerError("create source fail")

    operation("source ({}) create by user (:{})", source.safe_dump(), user.id)
    return source


def update_source(session, source_info: SourceInfo, user) -> Source:
    origin = source_dao.get_by_id(session, source_info.id)
    if origin is None:
        warning(f"source (:{source_info.id}) is not found")
        raise NotFoundError("this source is not found")

    project_detail = get_project_detail(session, origin.project_id, user)
    if _source_permission(session, project_detail, user) < UserPermission.WRITE:
        raise UnauthorizedError("you have not permission to update this source")

    if is_exist(session, source_info.name, source_info.id, project_detail.id):
        info(f"the source {source_info.name} name is already taken")
        raise ServerError("the source name is already taken")

    source_type = SourceType.type_of(source_info.type)
    if source_type is None:
        raise ServerError("Invalid source type")

    if not is_test_connection(source_info.config):
        raise ServerError("get source connection fail")

    source = origin.model_copy(
        update={
            "name": source_info.name,
            "description": source_info.description,
            "type": source_type.value,
            "config": source_info.config.model_dump_json(),
            "update_by": user.id,
            "update_time": datetime.now(),
        }
    )
    if source_dao.update(session, source) <= 0:
        info(f"update source fail: {source.safe_dump()}")
        raise ServerError("update source fail: unspecified error")

    if source.source_config() != origin.source_config():
        release_engine(origin.jdbc_url, origin.username, origin.password)

    operation(
        "source ({}) update by user(:{}), origin ( {} )",
        source.safe_dump(), user.id, origin.safe_dump(),
    )
    return source


def delete_source(session, source_id: int, user) -> bool:
    source = source_dao.get_by_id(session, source_id)
    if source is None:
        info(f"source (:{source_id}) is not found")
        raise NotFoundError("this source is not found")

    project_detail = get_project_detail(session, source.project_id, user)
    if _source_permission(session, project_detail, user) < UserPermission.DELETE:
        raise UnauthorizedError("you have not permission to delete this source")

    if source_dao.get_view_ids_by_source_id(session, source_id):
        warning(f"There is at least one view using the source({source_id}), it is can not be deleted")
        raise ServerError("There is at least one view using the source, it is can not be deleted")

    if source_dao.delete_by_id(session, source_id) <= 0:
        return False

    release_engine(source.jdbc_url, source.username, source.password)
    operation("source ({}) delete by user(:{})", source.safe_dump(), user.id)
    return True


def test_source(source_test: SourceTest) -> bool:
    config = SourceConfig(url=source_test.url, username=source_test.username, password=source_test.password)
    if not is_test_connection(config):
        raise ServerError("get source connection fail")
    return True


def valid_csvmeta(session, source_id: int, upload_meta: UploadMeta, user) -> None:
    """Check that ``upload_meta`` can be applied to the source before a file is sent."""
    source = source_dao.get_by_id(session, source_id)
    if source is None:
        info(f"source (:{source_id}) not found")
        raise ServerError("source not found")

    project_detail = get_project_detail(session, source.project_id, user)
    if _source_permission(session, project_detail, user) < UserPermission.WRITE:
        raise UnauthorizedError("you have not permisson to upload csv file in this source")

    if upload_meta.mode == UploadMode.REPLACE:
        return

    try:
        table_exists = _sql_utils(source.jdbc_url, source.username, source.password).table_is_exist(
            upload_meta.table_name
        )
    except SourceError as e:
        error(str(e))
        raise ServerError(str(e))

    if upload_meta.mode == UploadMode.NEW and table_exists:
        raise ServerError(f"table {upload_meta.table_name} is already exist")
    if upload_meta.mode == UploadMode.APPEND and not table_exists:
        raise ServerError(f"table {upload_meta.table_name} is not exist")


def _check_file_content(file_type: FileType, uploaded: UploadedFile) -> None:
    head = uploaded.head()
    if file_type == FileType.CSV and not is_csv(uploaded.filename, uploaded.content_type, head):
        raise ServerError("Please upload csv file")
    if file_type in (FileType.XLSX, FileType.XLS) and not is_excel(
        uploaded.filename, uploaded.content_type, head, expected_extension=f".{file_type.value}"
    ):
        raise ServerError("Please upload excel file")


def data_upload(
    session,
    source_id: int,
    upload: SourceDataUpload,
    uploaded: UploadedFile,
    user,
    file_type: str,
) -> bool:
    """
    Load a CSV or Excel file into a table of a MySQL source.

    The first row of the file holds the column names; column types are
    inferred from the data. The table is prepared according to
    ``upload.mode`` before the rows are inserted in batches.
    """
    source = source_dao.get_by_id(session, source_id)
    if source is None:
        info(f"source ({source_id}) not found")
        raise NotFoundError("source not found")

    project_detail = get_project_detail(session, source.project_id, user)
    if _source_permission(session, project_detail, user) < UserPermission.WRITE:
        raise UnauthorizedError("you have not permission to upload data in this source")

    upload_type = FileType.type_of(file_type)
    if upload_type is None:
        raise ServerError("Unsupported file format")

    _check_file_content(upload_type, uploaded)

    sql_utils = _sql_utils(source.jdbc_url, source.username, source.password)
    if not sql_utils.adapter.supports_upload:
        info(f"Unsupported data source, {source.jdbc_url}")
        raise ServerError(f"Unsupported data source: {source.jdbc_url}")

    try:
        entity = FileParserManager().parse_with_first_as_header(uploaded.path)
        if entity.headers:
            create_table(sql_utils, entity.headers, upload)
            result = insert_data(sql_utils, entity.headers, entity.values, upload)
            info(
                f"upload {uploaded.filename} into {upload.table_name} of source (:{source_id}): "
                f"{result.rows_inserted} rows"
            )
    except ServerError:
        raise
    except Exception as e:
        error(f"Failed to upload {uploaded.filename} into {upload.table_name}: {str(e)}")
        raise ServerError(str(e))
    return True


def get_source_tables(session, source_id: int, user) -> Optional[List[str]]:
    source = source_dao.get_by_id(session, source_id)
    if source is None:
        info(f"source (:{source_id}) not found")
        raise NotFoundError("source is not found")

    project_detail = get_project_detail(session, source.project_id, user)

    try:
        tables = _sql_utils(source.jdbc_url, source.username, source.password).get_table_list()
    except SourceError as e:
        raise ServerError(str(e))

    if tables and _hidden_for(session, project_detail, user):
        info(f"user (:{user.id}) have not permission to get source(:{source_id}) tables")
        return None
    return tables


def get_table_columns(session, source_id: int, table_name: str, user) -> Optional[TableInfo]:
    source = source_dao.get_by_id(session, source_id)
    if source is None:
        info(f"source (:{source_id}) is not found")
        raise NotFoundError("source is not found")

    project_detail = get_project_detail(session, source.project_id, user)

    try:
        table_info = _sql_utils(source.jdbc_url, source.username, source.password).get_table_columns(table_name)
    except SourceError as e:
        error(str(e))
        raise ServerError(str(e))

    if _hidden_for(session, project_detail, user):
        info(f"user (:{user.id}) have not permission to get source(:{source_id}) table columns")
        return None
    return table_info
