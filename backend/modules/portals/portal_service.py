"""
Dashboard Portal Service
Business logic for dashboard portal CRUD and team exclusions.
"""
import threading
from datetime import datetime
from typing import List, Optional

from backend.modules.common.exceptions import NotFoundError, ServerError, UnauthorizedError
from backend.modules.common.permissions import UserPermission
from backend.modules.logger import info, operation
from backend.modules.portals import portal_dao
from backend.modules.portals.models import (
    DashboardPortal,
    DashboardPortalCreate,
    DashboardPortalUpdate,
)
from backend.modules.projects.project_service import (
    ProjectDetail,
    get_project_detail,
    get_project_permission,
    is_maintainer,
)

_EXIST_LOCK = threading.Lock()


def is_exist(session, name: str, portal_id: Optional[int], project_id: int) -> bool:
    """True if ``name`` is used by another portal of the project."""
    with _EXIST_LOCK:
        existing_id = portal_dao.get_id_by_name_with_project_id(session, name, project_id)
    if portal_id is not None and existing_id is not None:
        return portal_id != existing_id
    return existing_id is not None and existing_id > 0


def _allow(session, project_id: int, user, level: UserPermission) -> bool:
    project_detail = get_project_detail(session, project_id, user)
    permission = get_project_permission(session, project_detail, user)
    return permission.viz_permission >= level


def get_dashboard_portals(session, project_id: int, user) -> Optional[List[DashboardPortal]]:
    """
    Portals of a project visible to ``user``.

    Returns None when the user may not see the project or has no viz access.
    """
    try:
        project_detail = get_project_detail(session, project_id, user)
    except UnauthorizedError:
        return None

    permission = get_project_permission(session, project_detail, user)
    if permission.viz_permission < UserPermission.READ:
        return None

    portals = portal_dao.get_by_project(session, project_id, user.id)
    if not is_maintainer(project_detail, user) and permission.viz_permission < UserPermission.WRITE:
        portals = [portal for portal in portals if portal.publish]
    return portals


def create_dashboard_portal(session, portal_create: DashboardPortalCreate, user) -> DashboardPortal:
    project_detail: ProjectDetail = get_project_detail(session, portal_create.project_id, user)
    permission = get_project_permission(session, project_detail, user)

    if permission.viz_permission < UserPermission.WRITE:
        info(f"user {user.username} have not permission to create portal")
        raise UnauthorizedError("you have not permission to create portal")

    if is_exist(session, portal_create.name, None, portal_create.project_id):
        info(f'the dashboard portal "{portal_create.name}" name is already taken')
        raise ServerError("the dashboard portal name is already taken")

    portal = DashboardPortal(
        name=portal_create.name,
        description=portal_create.description,
        project_id=portal_create.project_id,
        avatar=portal_create.avatar,
        publish=portal_create.publish,
        create_by=user.id,
        create_time=datetime.now(),
    )

    if portal_dao.insert(session, portal) <= 0:
        raise ServerError("create dashboard portal fail")

    operation("portal ({}) is created by user (:{})", portal.model_dump_json(), user.id)

    if portal_create.role_ids:
        role_ids = portal_dao.get_existing_role_ids(session, portal_create.role_ids)
        portal_dao.insert_rel_role_portal_batch(session, role_ids, portal.id, user.id)
        operation("portal ({}) limit role ({}) access", portal.id, role_ids)

    return portal


def update_dashboard_portal(session, portal_update: DashboardPortalUpdate, user) -> DashboardPortal:
    portal_with_project = portal_dao.get_portal_with_project_by_id(session, portal_update.id)
    if portal_with_project is None:
        info(f"dashboard portal (:{portal_update.id}) is not found")
        raise NotFoundError("dashboard portal is not found")

    if not portal_with_project.has_project:
        raise NotFoundError("project is not found")

    project_id = portal_with_project.project_id
    if not _allow(session, project_id, user, UserPermission.WRITE):
        info(f"user {user.username} have not permission to update portal {portal_update.id}")
        raise UnauthorizedError("you have not permission to update this portal")

    if is_exist(session, portal_update.name, portal_update.id, project_id):
        info(f'the dashboard portal "{portal_update.name}" name is already taken')
        raise ServerError("the dashboard portal name is already taken")

    origin = portal_with_project.portal
    portal = origin.model_copy(
        update={
            "name": portal_update.name,
            "description": portal_update.description,
            "avatar": portal_update.avatar,
            "publish": portal_update.publish,
            "project_id": project_id,
            "update_by": user.id,
            "update_time": datetime.now(),
        }
    )

    if portal_dao.update(session, portal) <= 0:
        raise ServerError("update dashboard portal fail")

    exclude_teams = portal_dao.select_exclude_teams_by_portal_id(session, portal.id)
    exclude_team_for_portal(session, portal_update.team_ids, portal.id, user.id, exclude_teams)

    operation(
        "portal ({}) is updated by user (:{}), origin ({})",
        portal.model_dump_json(), user.id, origin.model_dump_json(),
    )
    return portal


def get_exclude_teams(session, portal_id: int) -> List[int]:
    return portal_dao.select_exclude_teams_by_portal_id(session, portal_id)


def get_portal_exclude_teams(session, portal_id: int, user) -> List[int]:
    """Exclusion list of a portal, for users who may edit the portal."""
    portal_with_project = portal_dao.get_portal_with_project_by_id(session, portal_id)
    if portal_with_project is None:
        info(f"dashboard portal (:{portal_id}) is not found")
        raise NotFoundError("dashboard portal is not found")

    if not portal_with_project.has_project:
        raise NotFoundError("project is not found")

    if not _allow(session, portal_with_project.project_id, user, UserPermission.WRITE):
        info(f"user {user.username} have not permission to view exclude teams of portal {portal_id}")
        raise UnauthorizedError("you have not permission to view this portal's exclude teams")

    return get_exclude_teams(session, portal_id)


def exclude_team_for_portal(
    session,
    team_ids: Optional[List[int]],
    portal_id: int,
    user_id: int,
    exclude_teams: Optional[List[int]],
) -> None:
    """
    Make the portal's exclusion list equal to ``team_ids``.

    Existing exclusions missing from ``team_ids`` are removed (all of them
    when ``team_ids`` is empty); ids not yet excluded are added.
    """
    team_ids = list(dict.fromkeys(team_ids or []))
    exclude_teams = exclude_teams or []

    if exclude_teams:
        if team_ids:
            rm_team_ids = [tid for tid in exclude_teams if tid > 0 and tid not in team_ids]
            if rm_team_ids:
                portal_dao.delete_exclude_teams_by_portal_id_and_team_ids(session, portal_id, rm_team_ids)
        else:
            portal_dao.delete_exclude_teams_by_portal_id(session, portal_id)

    new_team_ids = [tid for tid in team_ids if tid not in exclude_teams]
    if new_team_ids:
        portal_dao.insert_exclude_teams_batch(session, new_team_ids, portal_id, user_id)
        info(f"portal (:{portal_id}) exclude teams {new_team_ids}")


def delete_dashboard_portal(session, portal_id: int, user) -> bool:
    portal_with_project = portal_dao.get_portal_with_project_by_id(session, portal_id)
    if portal_with_project is None:
        info(f"dashboard portal (:{portal_id}) is not found")
        raise NotFoundError("dashboard portal is not found")

    if not portal_with_project.has_project:
        raise NotFoundError("project is not found")

    if not _allow(session, portal_with_project.project_id, user, UserPermission.DELETE):
        info(f"user {user.username} have not permission to delete the dashboard portal {portal_id}")
        raise UnauthorizedError("you have not permission to delete the dashboard portal")

    portal_dao.delete_dashboards_by_portal_id(session, portal_id)
    if portal_dao.delete_by_id(session, portal_id) > 0:
        portal_dao.delete_exclude_teams_by_portal_id(session, portal_id)
        portal_dao.delete_rel_role_portal_by_portal_id(session, portal_id)
        operation(
            "portal ({}) is deleted by user (:{})",
            portal_with_project.portal.model_dump_json(), user.id,
        )
    return True
