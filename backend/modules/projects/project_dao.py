"""Data access for projects, project members and role grants."""
from typing import List, Optional

from sqlalchemy import text


def get_project_by_id(session, project_id: int):
    return session.execute(
        text(
            "SELECT id, name, description, user_id, visibility "
            "FROM project WHERE id = :project_id"
        ),
        {"project_id": project_id},
    ).fetchone()


def get_user_project_role(session, project_id: int, user_id: int) -> Optional[int]:
    row = session.execute(
        text(
            "SELECT role FROM rel_user_project "
            "WHERE project_id = :project_id AND user_id = :user_id"
        ),
        {"project_id": project_id, "user_id": user_id},
    ).fetchone()
    return None if row is None else int(row.role or 0)


def get_role_permissions(session, project_id: int, user_id: int) -> List:
    """Permission grants of every role the user holds in the project."""
    return session.execute(
        text(
            """
            SELECT rrp.source_permission, rrp.view_permission, rrp.widget_permission,
                   rrp.viz_permission, rrp.schedule_permission,
                   rrp.share_permission, rrp.download_permission
            FROM rel_role_project rrp
            INNER JOIN rel_role_user rru ON rru.role_id = rrp.role_id
            WHERE rrp.project_id = :project_id AND rru.user_id = :user_id
            """
        ),
        {"project_id": project_id, "user_id": user_id},
    ).fetchall()
