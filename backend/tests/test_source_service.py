"""Data source service with the source connectivity layer mocked out."""
import json
import zipfile
from unittest.mock import MagicMock, patch

import pandas as pd
import pytest

from backend.modules.common.db_adapter.mysql_adapter import MysqlAdapter
from backend.modules.common.db_adapter.postgres_adapter import PostgresAdapter
from backend.modules.common.exceptions import NotFoundError, ServerError, SourceError, UnauthorizedError
from backend.modules.file_upload.file_checks import XLS_SIGNATURE
from backend.modules.sources import source_dao, source_service
from backend.modules.sources.models import (
    SourceConfig,
    SourceCreate,
    SourceDataUpload,
    SourceInfo,
    SourceTest,
    TableInfo,
    QueryColumn,
    UploadedFile,
    UploadMeta,
    UploadMode,
)

MYSQL_URL = "jdbc:mysql://db:3306/sales"


def _fake_sql_utils(adapter=None, table_exists=False):
    sql_utils = MagicMock()
    sql_utils.adapter = adapter or MysqlAdapter()
    sql_utils.test_connection.return_value = True
    sql_utils.table_is_exist.return_value = table_exists
    sql_utils.execute_batch.side_effect = lambda sql, headers, rows: len(rows)
    return sql_utils


@pytest.fixture
def sql_utils():
    fake = _fake_sql_utils()
    with patch("backend.modules.sources.source_service.SqlUtils", return_value=fake) as factory:
        fake.factory = factory
        yield fake


@pytest.fixture
def project(session, seed):
    """Owner alice, member bob (sources hidden), writer dave, deleter erin."""
    alice, bob, dave, erin = (seed.user(name) for name in ("alice", "bob", "dave", "erin"))
    project_id = seed.project(alice)
    for user in (bob, dave, erin):
        seed.member(project_id, user)
    seed.role(project_id, [dave], name="writers", source_permission=2)
    seed.role(project_id, [erin], name="deleters", source_permission=3)
    return {"id": project_id, "alice": alice, "bob": bob, "dave": dave, "erin": erin}


def _create_payload(project_id, name="warehouse", source_type="jdbc"):
    return SourceCreate(
        name=name,
        type=source_type,
        project_id=project_id,
        config=SourceConfig(url=MYSQL_URL, username="etl", password="secret"),
    )


class TestCreateSource:

    def test_create(self, session, project, sql_utils, operation_log):
        source = source_service.create_source(session, _create_payload(project["id"]), project["dave"])

        assert source.id is not None
        stored = source_dao.get_by_id(session, source.id)
        assert stored.jdbc_url == MYSQL_URL
        assert stored.password == "secret"
        assert stored.create_by == project["dave"].id
        sql_utils.factory.assert_called_with(MYSQL_URL, "etl", "secret")

        line = operation_log()[-1]
        assert f"create by user (:{project['dave'].id})" in line
        assert "password" not in line and "secret" not in line

    def test_member_without_source_permission(self, session, project, sql_utils):
        with pytest.raises(UnauthorizedError):
            source_service.create_source(session, _create_payload(project["id"]), project["bob"])

    def test_duplicate_name(self, session, seed, project, sql_utils):
        seed.source(project["id"], name="warehouse")
        with pytest.raises(ServerError, match="already taken"):
            source_service.create_source(session, _create_payload(project["id"]), project["alice"])

    def test_invalid_type(self, session, project, sql_utils):
        with pytest.raises(ServerError, match="Invalid source type"):
            source_service.create_source(
                session, _create_payload(project["id"], source_type="mongo"), project["alice"]
            )

    def test_connection_failure(self, session, project, sql_utils):
        sql_utils.test_connection.side_effect = SourceError("Access denied for user 'etl'")
        with pytest.raises(ServerError, match="Access denied"):
            source_service.create_source(session, _create_payload(project["id"]), project["alice"])
        assert source_dao.get_by_project(session, project["id"]) == []

    def test_connection_returns_false(self, session, project, sql_utils):
        sql_utils.test_connection.return_value = False
        with pytest.raises(ServerError, match="get source connection fail"):
            source_service.create_source(session, _create_payload(project["id"]), project["alice"])


class TestUpdateSource:

    def test_update_serializes_config(self, session, seed, project, sql_utils, operation_log):
        source_id = seed.source(project["id"])
        info = SourceInfo(
            id=source_id, name="warehouse v2", type="jdbc",
            config=SourceConfig(url="jdbc:mysql://db2:3306/sales", username="etl", password="new"),
        )
        source = source_service.update_source(session, info, project["dave"])

        stored = source_dao.get_by_id(session, source_id)
        assert stored.name == "warehouse v2"
        assert stored.jdbc_url == "jdbc:mysql://db2:3306/sales"
        assert stored.password == "new"
        assert source.update_by == project["dave"].id

        line = operation_log()[-1]
        assert f"update by user(:{project['dave'].id})" in line
        assert "warehouse v2" in line and "origin" in line
        assert "password" not in line

    def test_missing_source(self, session, project, sql_utils):
        info = SourceInfo(id=99, name="x", type="jdbc", config=SourceConfig(url=MYSQL_URL))
        with pytest.raises(NotFoundError):
            source_service.update_source(session, info, project["alice"])

    def test_name_taken(self, session, seed, project, sql_utils):
        seed.source(project["id"], name="warehouse")
        source_id = seed.source(project["id"], name="lake")
        info = SourceInfo(id=source_id, name="warehouse", type="jdbc", config=SourceConfig(url=MYSQL_URL))
        with pytest.raises(ServerError):
            source_service.update_source(session, info, project["alice"])


class TestDeleteSource:

    def test_delete(self, session, seed, project, operation_log):
        source_id = seed.source(project["id"])
        assert source_service.delete_source(session, source_id, project["erin"]) is True
        assert source_dao.get_by_id(session, source_id) is None
        assert f"delete by user(:{project['erin'].id})" in operation_log()[-1]

    def test_writer_cannot_delete(self, session, seed, project):
        source_id = seed.source(project["id"])
        with pytest.raises(UnauthorizedError):
            source_service.delete_source(session, source_id, project["dave"])

    def test_source_in_use_by_view(self, session, seed, project):
        source_id = seed.source(project["id"])
        seed.view(project["id"], source_id)
        with pytest.raises(ServerError, match="at least one view"):
            source_service.delete_source(session, source_id, project["alice"])
        assert source_dao.get_by_id(session, source_id) is not None

    def test_missing_source(self, session, project):
        with pytest.raises(NotFoundError):
            source_service.delete_source(session, 404, project["alice"])


class TestGetSources:

    def test_maintainer_lists_sources(self, session, seed, project):
        seed.source(project["id"], name="a")
        seed.source(project["id"], name="b")
        sources = source_service.get_sources(session, project["id"], project["alice"])
        assert [s.name for s in sources] == ["a", "b"]

    def test_hidden_for_member_without_source_permission(self, session, seed, project):
        seed.source(project["id"])
        assert source_service.get_sources(session, project["id"], project["bob"]) is None

    def test_outsider_gets_none(self, session, seed, project):
        assert source_service.get_sources(session, project["id"], seed.user("mallory")) is None


def test_source_connection_check(sql_utils):
    assert source_service.test_source(SourceTest(url=MYSQL_URL, username="etl")) is True

    sql_utils.test_connection.side_effect = SourceError("timed out")
    with pytest.raises(ServerError, match="timed out"):
        source_service.test_source(SourceTest(url=MYSQL_URL))


def test_unsupported_url_is_a_server_error():
    with pytest.raises(ServerError, match="Unsupported data source"):
        source_service.is_test_connection(SourceConfig(url="jdbc:db2://host:50000/x"))


class TestValidCsvmeta:

    def test_new_requires_absent_table(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        sql_utils.table_is_exist.return_value = True
        with pytest.raises(ServerError, match="already exist"):
            source_service.valid_csvmeta(session, source_id, UploadMeta(table_name="orders"), project["dave"])

    def test_append_requires_existing_table(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        meta = UploadMeta(table_name="orders", mode=UploadMode.APPEND)
        with pytest.raises(ServerError, match="is not exist"):
            source_service.valid_csvmeta(session, source_id, meta, project["dave"])

    def test_replace_is_not_checked(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        meta = UploadMeta(table_name="orders", mode=UploadMode.REPLACE)
        source_service.valid_csvmeta(session, source_id, meta, project["dave"])
        sql_utils.table_is_exist.assert_not_called()

    def test_missing_source(self, session, project, sql_utils):
        with pytest.raises(ServerError, match="source not found"):
            source_service.valid_csvmeta(session, 404, UploadMeta(table_name="orders"), project["alice"])

    def test_permission(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        with pytest.raises(UnauthorizedError):
            source_service.valid_csvmeta(session, source_id, UploadMeta(table_name="orders"), project["bob"])


class TestDataUpload:

    @pytest.fixture
    def csv_file(self, tmp_path):
        path = tmp_path / "orders.csv"
        path.write_text("id,customer,amount\n1,acme,10.5\n2,globex,7\n3,initech,\n", encoding="utf-8")
        return UploadedFile(path=str(path), filename="orders.csv", content_type="text/csv")

    def test_upload_new_table(self, session, seed, project, sql_utils, csv_file):
        source_id = seed.source(project["id"])
        upload = SourceDataUpload(table_name="orders", mode=UploadMode.NEW, primary_keys="id")
        # absent before the create, present for the insert
        sql_utils.table_is_exist.side_effect = [False, True]

        assert source_service.data_upload(session, source_id, upload, csv_file, project["dave"], "csv") is True

        create_sql = sql_utils.execute.call_args_list[0].args[0]
        assert create_sql.startswith("CREATE TABLE IF NOT EXISTS `orders`")
        assert "`id` BIGINT" in create_sql
        assert "`amount` DOUBLE" in create_sql
        assert "PRIMARY KEY (`id`)" in create_sql

        insert_sql, headers, rows = sql_utils.execute_batch.call_args.args
        assert insert_sql.startswith("INSERT INTO `orders`")
        assert headers == ["id", "customer", "amount"]
        assert rows[2] == {"id": 3, "customer": "initech", "amount": None}

    def test_upload_replace_drops_and_truncates(self, session, seed, project, sql_utils, csv_file):
        source_id = seed.source(project["id"])
        upload = SourceDataUpload(table_name="orders", mode=UploadMode.REPLACE)

        source_service.data_upload(session, source_id, upload, csv_file, project["alice"], "csv")

        executed = [c.args[0] for c in sql_utils.execute.call_args_list]
        assert executed[0] == "DROP TABLE IF EXISTS `orders`"
        assert executed[1].startswith("CREATE TABLE IF NOT EXISTS `orders`")
        assert executed[2] == "TRUNCATE TABLE `orders`"

    def test_missing_source_is_checked_first(self, session, project, sql_utils, csv_file):
        upload = SourceDataUpload(table_name="orders")
        with pytest.raises(NotFoundError):
            source_service.data_upload(session, 404, upload, csv_file, project["alice"], "csv")

    def test_unsupported_format(self, session, seed, project, sql_utils, csv_file):
        source_id = seed.source(project["id"])
        upload = SourceDataUpload(table_name="orders")
        with pytest.raises(ServerError, match="Unsupported file format"):
            source_service.data_upload(session, source_id, upload, csv_file, project["alice"], "json")

    def test_content_must_match_type(self, session, seed, project, sql_utils, tmp_path):
        source_id = seed.source(project["id"])
        path = tmp_path / "orders.xlsx"
        path.write_bytes(b"id,amount\n1,2\n")
        uploaded = UploadedFile(path=str(path), filename="orders.xlsx")
        with pytest.raises(ServerError, match="Please upload excel file"):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="orders"), uploaded, project["alice"], "xlsx"
            )

    def test_upload_xlsx(self, session, seed, project, sql_utils, tmp_path):
        source_id = seed.source(project["id"])
        path = tmp_path / "upload.xlsx"
        pd.DataFrame({"sku": ["A-1", "B-2"], "qty": [3, 4]}).to_excel(path, index=False, engine="openpyxl")
        uploaded = UploadedFile(path=str(path), filename="stock.xlsx")
        upload = SourceDataUpload(table_name="stock", mode=UploadMode.NEW)
        sql_utils.table_is_exist.side_effect = [False, True]

        assert source_service.data_upload(session, source_id, upload, uploaded, project["dave"], "xlsx") is True

        create_sql = sql_utils.execute.call_args_list[0].args[0]
        assert "`sku` VARCHAR(255)" in create_sql and "`qty` BIGINT" in create_sql
        insert_sql, headers, rows = sql_utils.execute_batch.call_args.args
        assert insert_sql == "INSERT INTO `stock` (`sku`, `qty`) VALUES (:c0, :c1)"
        assert rows == [{"sku": "A-1", "qty": 3}, {"sku": "B-2", "qty": 4}]

    def test_corrupt_xls(self, session, seed, project, sql_utils, tmp_path):
        source_id = seed.source(project["id"])
        path = tmp_path / "upload.xls"
        path.write_bytes(XLS_SIGNATURE + b"\x00" * 512)
        uploaded = UploadedFile(path=str(path), filename="stock.xls")
        with pytest.raises(ServerError):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="stock"), uploaded, project["alice"], "xls"
            )
        sql_utils.execute.assert_not_called()

    def test_zip_that_is_not_a_workbook(self, session, seed, project, sql_utils, tmp_path):
        source_id = seed.source(project["id"])
        path = tmp_path / "upload.xlsx"
        with zipfile.ZipFile(path, "w") as archive:
            archive.writestr("hello.txt", "hello")
        uploaded = UploadedFile(path=str(path), filename="stock.xlsx")
        with pytest.raises(ServerError):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="stock"), uploaded, project["alice"], "xlsx"
            )

    def test_declared_excel_type_must_match_file(self, session, seed, project, sql_utils, tmp_path):
        source_id = seed.source(project["id"])
        path = tmp_path / "upload.xls"
        path.write_bytes(XLS_SIGNATURE + b"\x00" * 16)
        uploaded = UploadedFile(path=str(path), filename="stock.xls")
        with pytest.raises(ServerError, match="Please upload excel file"):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="stock"), uploaded, project["alice"], "xlsx"
            )

    def test_unexpected_insert_failure(self, session, seed, project, sql_utils, csv_file):
        source_id = seed.source(project["id"])
        sql_utils.table_is_exist.side_effect = [False, True]
        sql_utils.execute_batch.side_effect = RuntimeError("connection reset")
        with pytest.raises(ServerError, match="connection reset"):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="orders"), csv_file, project["alice"], "csv"
            )

    def test_only_mysql_sources(self, session, seed, project, csv_file):
        source_id = seed.source(
            project["id"], config=json.dumps({"url": "jdbc:postgresql://pg:5432/sales"})
        )
        with patch("backend.modules.sources.source_service.SqlUtils",
                   return_value=_fake_sql_utils(PostgresAdapter())):
            with pytest.raises(ServerError, match="Unsupported data source"):
                source_service.data_upload(
                    session, source_id, SourceDataUpload(table_name="orders"), csv_file, project["alice"], "csv"
                )

    def test_permission(self, session, seed, project, sql_utils, csv_file):
        source_id = seed.source(project["id"])
        with pytest.raises(UnauthorizedError):
            source_service.data_upload(
                session, source_id, SourceDataUpload(table_name="orders"), csv_file, project["bob"], "csv"
            )


class TestIntrospection:

    def test_tables(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        sql_utils.get_table_list.return_value = ["orders", "customers"]
        assert source_service.get_source_tables(session, source_id, project["dave"]) == ["orders", "customers"]
        assert source_service.get_source_tables(session, source_id, project["bob"]) is None

    def test_columns(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        table_info = TableInfo(
            table_name="orders", primary_keys=["id"],
            columns=[QueryColumn(name="id", type="BIGINT"), QueryColumn(name="amount", type="DOUBLE")],
        )
        sql_utils.get_table_columns.return_value = table_info
        assert source_service.get_table_columns(session, source_id, "orders", project["alice"]) == table_info
        assert source_service.get_table_columns(session, source_id, "orders", project["bob"]) is None

    def test_driver_failure(self, session, seed, project, sql_utils):
        source_id = seed.source(project["id"])
        sql_utils.get_table_list.side_effect = SourceError("Unknown database 'sales'")
        with pytest.raises(ServerError, match="Unknown database"):
            source_service.get_source_tables(session, source_id, project["alice"])

    def test_missing_source(self, session, project):
        with pytest.raises(NotFoundError):
            source_service.get_table_columns(session, 404, "orders", project["alice"])
