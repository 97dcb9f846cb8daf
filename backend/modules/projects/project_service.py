"""
Project access and permission resolution.

Every portal and source operation starts here: load the project the entity
belongs to, make sure the caller may see it, then work out the caller's
permission level for the area being touched.
"""
from typing import Optional

from pydantic import BaseModel

from backend.modules.common.exceptions import NotFoundError, UnauthorizedError
from backend.modules.common.permissions import ProjectPermission, ProjectRole
from backend.modules.logger import info
from backend.modules.projects import project_dao


class ProjectDetail(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    user_id: int
    visibility: bool = True
    # Relation of the requesting user to the project, None for non-members
    user_role: Optional[int] = None


def get_project_detail(session, project_id: int, user) -> ProjectDetail:
    """
    Load a project on behalf of ``user``.

    Raises:
        NotFoundError: the project does not exist
        UnauthorizedError: the user may not see the project
    """
    row = project_dao.get_project_by_id(session, project_id)
    if row is None:
        info(f"project (:{project_id}) is not found")
        raise NotFoundError("project is not found")

    detail = ProjectDetail(
        id=row.id,
        name=row.name,
        description=row.description,
        user_id=row.user_id,
        visibility=bool(row.visibility),
        user_role=project_dao.get_user_project_role(session, project_id, user.id),
    )

    is_owner = detail.user_id == user.id
    if not is_owner and detail.user_role is None and not detail.visibility:
        info(f"user (:{user.id}) have not permission to access project (:{project_id})")
        raise UnauthorizedError("you have not permission to access this project")

    return detail


def is_maintainer(project_detail: ProjectDetail, user) -> bool:
    if project_detail is None or user is None:
        return False
    if project_detail.user_id == user.id:
        return True
    return project_detail.user_role == ProjectRole.MAINTAINER


def get_project_permission(session, project_detail: ProjectDetail, user) -> ProjectPermission:
    if is_maintainer(project_detail, user):
        return ProjectPermission.admin_permission()

    if project_detail.user_role is None:
        # Visitor of a public project
        return ProjectPermission.read_only_permission()

    permission = ProjectPermission()
    for grant in project_dao.get_role_permissions(session, project_detail.id, user.id):
        permission = permission.merge(
            ProjectPermission(
                source_permission=grant.source_permission or 0,
                view_permission=grant.view_permission or 0,
                widget_permission=grant.widget_permission or 0,
                viz_permission=grant.viz_permission or 0,
                schedule_permission=grant.schedule_permission or 0,
                share_permission=bool(grant.share_permission),
                download_permission=bool(grant.download_permission),
            )
        )
    return permission
