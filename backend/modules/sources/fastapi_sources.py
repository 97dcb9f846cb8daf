"""
FastAPI Router for Data Sources
Provides endpoints for source CRUD, connection tests, schema introspection
and CSV/Excel data upload.
"""
import json
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pydantic import BaseModel, ValidationError

from backend.database.dbconnect import get_session
from backend.modules.common.exceptions import ServerError
from backend.modules.logger import info, warning
from backend.modules.login.token_auth import User, get_current_user
from backend.modules.sources import source_service
from backend.modules.sources.models import (
    Source,
    SourceCreate,
    SourceDataUpload,
    SourceInfo,
    SourceTest,
    TableInfo,
    UploadedFile,
    UploadMeta,
)

router = APIRouter(tags=["sources"])

UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join("data", "file_uploads"))


class SourceView(BaseModel):
    """Source as returned to clients: config without the password."""
    id: int
    name: str
    description: Optional[str] = None
    type: str
    project_id: int
    config: dict

    @classmethod
    def of(cls, source: Source) -> "SourceView":
        config = source.source_config()
        config.pop("password", None)
        return cls(
            id=source.id,
            name=source.name,
            description=source.description,
            type=source.type,
            project_id=source.project_id,
            config=config,
        )


class SourceListResponse(BaseModel):
    success: bool
    data: Optional[List[SourceView]] = None


class SourceResponse(BaseModel):
    success: bool
    data: Optional[SourceView] = None


class TablesResponse(BaseModel):
    success: bool
    data: Optional[List[str]] = None


class TableColumnsResponse(BaseModel):
    success: bool
    data: Optional[TableInfo] = None


class SimpleResponse(BaseModel):
    success: bool
    message: Optional[str] = None


def _save_upload(file: UploadFile) -> str:
    os.makedirs(UPLOAD_DIR, exist_ok=True)
    suffix = Path(file.filename or "").suffix
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix, dir=UPLOAD_DIR) as temp_file:
        shutil.copyfileobj(file.file, temp_file)
        return temp_file.name


def _build_upload(table_name: str, mode: int, primary_keys: Optional[str], index_list: Optional[str]) -> SourceDataUpload:
    try:
        indexes = json.loads(index_list) if index_list else None
        return SourceDataUpload(
            table_name=table_name,
            mode=mode,
            primary_keys=primary_keys,
            index_list=indexes,
        )
    except (ValueError, ValidationError) as e:
        raise ServerError(f"Invalid upload settings: {str(e)}")


@router.get("", response_model=SourceListResponse)
def get_sources(
    project_id: int = Query(..., alias="projectId", gt=0),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    sources = source_service.get_sources(session, project_id, user)
    data = None if sources is None else [SourceView.of(source) for source in sources]
    return SourceListResponse(success=True, data=data)


@router.post("", response_model=SourceResponse)
def create_source(
    payload: SourceCreate,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    source = source_service.create_source(session, payload, user)
    return SourceResponse(success=True, data=SourceView.of(source))


@router.put("/{source_id}", response_model=SourceResponse)
def update_source(
    source_id: int,
    payload: SourceInfo,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    if payload.id != source_id:
        raise ServerError("Invalid source id")
    source = source_service.update_source(session, payload, user)
    return SourceResponse(success=True, data=SourceView.of(source))


@router.delete("/{source_id}", response_model=SimpleResponse)
def delete_source(
    source_id: int,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    if not source_service.delete_source(session, source_id, user):
        raise ServerError("delete source fail")
    return SimpleResponse(success=True, message="Source deleted")


@router.post("/test", response_model=SimpleResponse)
def test_source_connection(payload: SourceTest, user: User = Depends(get_current_user)):
    source_service.test_source(payload)
    return SimpleResponse(success=True, message="Connection succeeded")


@router.post("/{source_id}/uploadMeta", response_model=SimpleResponse)
def valid_upload_meta(
    source_id: int,
    payload: UploadMeta,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    source_service.valid_csvmeta(session, source_id, payload, user)
    return SimpleResponse(success=True)


@router.post("/{source_id}/upload/{file_type}", response_model=SimpleResponse)
def upload_data(
    source_id: int,
    file_type: str,
    file: UploadFile = File(...),
    table_name: str = Form(..., alias="tableName"),
    mode: int = Form(0),
    primary_keys: Optional[str] = Form(None, alias="primaryKeys"),
    index_list: Optional[str] = Form(None, alias="indexList"),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    """
    Upload a CSV or Excel file into a table of the source.
    ``indexList`` is a JSON array of ``{"index_name": ..., "columns": [...]}``.
    """
    if not file.filename:
        raise ServerError("No file selected")

    upload = _build_upload(table_name, mode, primary_keys, index_list)

    temp_file_path = _save_upload(file)
    info(f"File uploaded: {file.filename} -> {temp_file_path}")
    try:
        uploaded = UploadedFile(path=temp_file_path, filename=file.filename, content_type=file.content_type)
        source_service.data_upload(session, source_id, upload, uploaded, user, file_type)
    finally:
        try:
            os.remove(temp_file_path)
        except OSError as e:
            warning(f"Could not remove uploaded file {temp_file_path}: {str(e)}")

    return SimpleResponse(success=True, message=f"File {file.filename} uploaded into {upload.table_name}")


@router.get("/{source_id}/tables", response_model=TablesResponse)
def get_source_tables(
    source_id: int,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    return TablesResponse(success=True, data=source_service.get_source_tables(session, source_id, user))


@router.get("/{source_id}/tables/columns", response_model=TableColumnsResponse)
def get_table_columns(
    source_id: int,
    table_name: str = Query(..., alias="tableName", min_length=1),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    table_info = source_service.get_table_columns(session, source_id, table_name, user)
    return TableColumnsResponse(success=True, data=table_info)
