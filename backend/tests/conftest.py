"""Shared fixtures: an in-memory metadata store and seed helpers."""
import os
import sys
import tempfile

import pytest

WORKSPACE_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
if WORKSPACE_ROOT not in sys.path:
    sys.path.insert(0, WORKSPACE_ROOT)

os.environ.setdefault("METADATA_DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "biportal-test-logs"))

from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.database import schema
from backend.modules.common.permissions import ProjectRole
from backend.modules.login.token_auth import User


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    schema.init_metadata_schema(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def session(session_factory):
    session = session_factory()
    yield session
    session.rollback()
    session.close()


class Seeder:
    """Insert metadata rows for a test and hand back their ids."""

    def __init__(self, session):
        self.session = session

    def _insert(self, table, **values) -> int:
        result = self.session.execute(insert(table).values(**values))
        return result.inserted_primary_key[0]

    def user(self, username: str) -> User:
        user_id = self._insert(schema.user_table, username=username, email=f"{username}@example.com")
        return User(id=user_id, username=username, email=f"{username}@example.com")

    def project(self, owner: User, name: str = "sales", visibility: bool = False) -> int:
        return self._insert(schema.project_table, name=name, user_id=owner.id, visibility=visibility)

    def member(self, project_id: int, user: User, role: ProjectRole = ProjectRole.MEMBER) -> None:
        self._insert(schema.rel_user_project_table, project_id=project_id, user_id=user.id, role=int(role))

    def role(self, project_id: int, users=(), name: str = "analysts", **permissions) -> int:
        role_id = self._insert(schema.role_table, name=name)
        for user in users:
            self._insert(schema.rel_role_user_table, role_id=role_id, user_id=user.id)
        self._insert(schema.rel_role_project_table, role_id=role_id, project_id=project_id, **permissions)
        return role_id

    def team(self, users=(), name: str = "finance") -> int:
        team_id = self._insert(schema.team_table, name=name)
        for user in users:
            self._insert(schema.rel_user_team_table, team_id=team_id, user_id=user.id)
        return team_id

    def portal(self, project_id: int, name: str, publish: bool = True) -> int:
        return self._insert(schema.dashboard_portal_table, name=name, project_id=project_id, publish=publish)

    def dashboard(self, portal_id: int, name: str = "overview") -> int:
        return self._insert(schema.dashboard_table, name=name, dashboard_portal_id=portal_id)

    def hide_portal(self, role_id: int, portal_id: int) -> None:
        self._insert(schema.rel_role_portal_table, role_id=role_id, portal_id=portal_id, visible=False)

    def exclude_team(self, team_id: int, portal_id: int) -> None:
        self._insert(schema.exclude_portal_team_table, team_id=team_id, portal_id=portal_id)

    def source(self, project_id: int, name: str = "warehouse",
               config: str = '{"url": "jdbc:mysql://db:3306/sales", "username": "etl", "password": "secret"}') -> int:
        return self._insert(schema.source_table, name=name, type="jdbc", project_id=project_id, config=config)

    def view(self, project_id: int, source_id: int, name: str = "orders") -> int:
        return self._insert(schema.view_table, name=name, project_id=project_id, source_id=source_id,
                            query_sql="SELECT 1")


@pytest.fixture
def seed(session):
    return Seeder(session)


@pytest.fixture
def operation_log():
    """Returns a callable giving the business-log lines written since the test started."""
    from backend.modules import logger as app_logger

    operation_logger = app_logger.logger.operation_logger
    handler = operation_logger.handlers[0]
    handler.flush()
    path = handler.baseFilename
    start = os.path.getsize(path) if os.path.exists(path) else 0

    def lines():
        handler.flush()
        with open(path, "rb") as f:
            f.seek(start)
            return f.read().decode("utf-8").splitlines()

    return lines
