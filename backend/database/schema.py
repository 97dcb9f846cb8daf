"""
Metadata store tables.

Declared with SQLAlchemy Core so the same definitions create the schema on
SQLite (development, tests) and MySQL (production). Queries against these
tables are written as plain SQL in the DAO modules.
"""
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

# BIGINT does not autoincrement on SQLite
Id = BigInteger().with_variant(Integer, "sqlite")


def _audit_columns():
    return [
        Column("create_by", Id),
        Column("create_time", DateTime),
        Column("update_by", Id),
        Column("update_time", DateTime),
    ]


user_table = Table(
    "users", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("email", String(255)),
    Column("admin", Boolean, default=False),
)

project_table = Table(
    "project", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", String(255)),
    Column("user_id", Id, nullable=False),
    Column("visibility", Boolean, default=True),
    *_audit_columns(),
)

# role: 0 member, 1 maintainer
rel_user_project_table = Table(
    "rel_user_project", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("project_id", Id, nullable=False),
    Column("user_id", Id, nullable=False),
    Column("role", SmallInteger, default=0),
    UniqueConstraint("project_id", "user_id", name="idx_project_user"),
)

role_table = Table(
    "role", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(100), nullable=False),
    Column("description", String(255)),
    *_audit_columns(),
)

rel_role_user_table = Table(
    "rel_role_user", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("role_id", Id, nullable=False),
    Column("user_id", Id, nullable=False),
)

rel_role_project_table = Table(
    "rel_role_project", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("role_id", Id, nullable=False),
    Column("project_id", Id, nullable=False),
    Column("source_permission", SmallInteger, default=0),
    Column("view_permission", SmallInteger, default=0),
    Column("widget_permission", SmallInteger, default=0),
    Column("viz_permission", SmallInteger, default=1),
    Column("schedule_permission", SmallInteger, default=0),
    Column("share_permission", Boolean, default=False),
    Column("download_permission", Boolean, default=False),
)

team_table = Table(
    "team", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
)

rel_user_team_table = Table(
    "rel_user_team", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("team_id", Id, nullable=False),
    Column("user_id", Id, nullable=False),
)

dashboard_portal_table = Table(
    "dashboard_portal", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", String(255)),
    Column("project_id", Id, nullable=False),
    Column("avatar", String(255)),
    Column("publish", Boolean, default=False),
    *_audit_columns(),
)

dashboard_table = Table(
    "dashboard", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("dashboard_portal_id", Id, nullable=False),
    Column("type", SmallInteger, default=1),
    Column("sort_index", Integer, default=0),
    Column("parent_id", Id, default=0),
    Column("config", Text),
    *_audit_columns(),
)

rel_role_portal_table = Table(
    "rel_role_portal", metadata,
    Column("role_id", Id, primary_key=True),
    Column("portal_id", Id, primary_key=True),
    Column("visible", Boolean, default=False),
    Column("create_by", Id),
    Column("create_time", DateTime),
)

exclude_portal_team_table = Table(
    "exclude_portal_team", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("team_id", Id, nullable=False),
    Column("portal_id", Id, nullable=False),
    Column("create_by", Id),
    Column("create_time", DateTime),
    UniqueConstraint("team_id", "portal_id", name="idx_team_portal"),
)

source_table = Table(
    "source", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", String(255)),
    Column("config", Text, nullable=False),
    Column("type", String(10), nullable=False),
    Column("project_id", Id, nullable=False),
    *_audit_columns(),
)

view_table = Table(
    "views", metadata,
    Column("id", Id, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False),
    Column("description", String(255)),
    Column("project_id", Id, nullable=False),
    Column("source_id", Id, nullable=False),
    Column("query_sql", Text),
    *_audit_columns(),
)


def init_metadata_schema(engine=None):
    """Create any missing metadata tables."""
    if engine is None:
        from backend.database.dbconnect import metadata_engine as engine
    metadata.create_all(engine)
