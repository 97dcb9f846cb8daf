"""
Data access for dashboard portals and the tables hanging off them:
dashboards, role visibility (rel_role_portal) and team exclusions
(exclude_portal_team).
"""
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import bindparam, text

from backend.modules.portals.models import DashboardPortal, PortalWithProject

PORTAL_COLUMNS = (
    "p.id, p.name, p.description, p.project_id, p.avatar, p.publish, "
    "p.create_by, p.create_time, p.update_by, p.update_time"
)


def _to_portal(row) -> DashboardPortal:
    data = {name: row._mapping[name] for name in DashboardPortal.model_fields}
    data["publish"] = bool(data.get("publish"))
    return DashboardPortal(**data)


# ----- dashboard_portal -----

def get_id_by_name_with_project_id(session, name: str, project_id: int) -> Optional[int]:
    row = session.execute(
        text("SELECT id FROM dashboard_portal WHERE name = :name AND project_id = :project_id"),
        {"name": name, "project_id": project_id},
    ).fetchone()
    return None if row is None else row.id


def get_by_id(session, portal_id: int) -> Optional[DashboardPortal]:
    row = session.execute(
        text(f"SELECT {PORTAL_COLUMNS} FROM dashboard_portal p WHERE p.id = :id"),
        {"id": portal_id},
    ).fetchone()
    return None if row is None else _to_portal(row)


def get_by_project(session, project_id: int, user_id: Optional[int] = None) -> List[DashboardPortal]:
    """
    Portals of a project. With ``user_id``, portals hidden from one of the
    user's roles or excluding one of the user's teams are left out.
    """
    sql = f"SELECT {PORTAL_COLUMNS} FROM dashboard_portal p WHERE p.project_id = :project_id"
    params = {"project_id": project_id}
    if user_id is not None:
        sql += """
            AND p.id NOT IN (
                SELECT rrp.portal_id FROM rel_role_portal rrp
                INNER JOIN rel_role_user rru ON rru.role_id = rrp.role_id
                WHERE rru.user_id = :user_id AND rrp.visible = 0
            )
            AND p.id NOT IN (
                SELECT ept.portal_id FROM exclude_portal_team ept
                INNER JOIN rel_user_team rut ON rut.team_id = ept.team_id
                WHERE rut.user_id = :user_id
            )
        """
        params["user_id"] = user_id
    sql += " ORDER BY p.id"
    return [_to_portal(row) for row in session.execute(text(sql), params).fetchall()]


def get_portal_with_project_by_id(session, portal_id: int) -> Optional[PortalWithProject]:
    row = session.execute(
        text(
            f"""
            SELECT {PORTAL_COLUMNS},
                   pr.id AS project_ref_id, pr.name AS project_name, pr.user_id AS project_user_id
            FROM dashboard_portal p
            LEFT JOIN project pr ON pr.id = p.project_id
            WHERE p.id = :id
            """
        ),
        {"id": portal_id},
    ).fetchone()
    if row is None:
        return None
    return PortalWithProject(
        portal=_to_portal(row),
        project_id=row.project_ref_id,
        project_name=row.project_name,
        project_user_id=row.project_user_id,
    )


def insert(session, portal: DashboardPortal) -> int:
    result = session.execute(
        text(
            """
            INSERT INTO dashboard_portal
                (name, description, project_id, avatar, publish, create_by, create_time)
            VALUES (:name, :description, :project_id, :avatar, :publish, :create_by, :create_time)
            """
        ),
        {
            "name": portal.name,
            "description": portal.description,
            "project_id": portal.project_id,
            "avatar": portal.avatar,
            "publish": portal.publish,
            "create_by": portal.create_by,
            "create_time": portal.create_time or datetime.now(),
        },
    )
    portal.id = result.lastrowid
    return result.rowcount


def update(session, portal: DashboardPortal) -> int:
    result = session.execute(
        text(
            """
            UPDATE dashboard_portal
            SET name = :name, description = :description, avatar = :avatar,
                publish = :publish, update_by = :update_by, update_time = :update_time
            WHERE id = :id
            """
        ),
        {
            "id": portal.id,
            "name": portal.name,
            "description": portal.description,
            "avatar": portal.avatar,
            "publish": portal.publish,
            "update_by": portal.update_by,
            "update_time": portal.update_time or datetime.now(),
        },
    )
    return result.rowcount


def delete_by_id(session, portal_id: int) -> int:
    result = session.execute(
        text("DELETE FROM dashboard_portal WHERE id = :id"), {"id": portal_id}
    )
    return result.rowcount


# ----- dashboard -----

def delete_dashboards_by_portal_id(session, portal_id: int) -> int:
    result = session.execute(
        text("DELETE FROM dashboard WHERE dashboard_portal_id = :portal_id"),
        {"portal_id": portal_id},
    )
    return result.rowcount


# ----- role visibility -----

def get_existing_role_ids(session, role_ids: Iterable[int]) -> List[int]:
    role_ids = list(role_ids)
    if not role_ids:
        return []
    stmt = text("SELECT id FROM role WHERE id IN :ids ORDER BY id").bindparams(
        bindparam("ids", expanding=True)
    )
    return [row.id for row in session.execute(stmt, {"ids": role_ids}).fetchall()]


def insert_rel_role_portal_batch(session, role_ids: Iterable[int], portal_id: int, user_id: int) -> None:
    now = datetime.now()
    rows = [
        {"role_id": role_id, "portal_id": portal_id, "visible": False,
         "create_by": user_id, "create_time": now}
        for role_id in role_ids
    ]
    if not rows:
        return
    session.execute(
        text(
            """
            INSERT INTO rel_role_portal (role_id, portal_id, visible, create_by, create_time)
            VALUES (:role_id, :portal_id, :visible, :create_by, :create_time)
            """
        ),
        rows,
    )


def delete_rel_role_portal_by_portal_id(session, portal_id: int) -> int:
    result = session.execute(
        text("DELETE FROM rel_role_portal WHERE portal_id = :portal_id"),
        {"portal_id": portal_id},
    )
    return result.rowcount


# ----- team exclusions -----

def select_exclude_teams_by_portal_id(session, portal_id: int) -> List[int]:
    rows = session.execute(
        text("SELECT team_id FROM exclude_portal_team WHERE portal_id = :portal_id ORDER BY team_id"),
        {"portal_id": portal_id},
    ).fetchall()
    return [row.team_id for row in rows]


def delete_exclude_teams_by_portal_id(session, portal_id: int) -> int:
    result = session.execute(
        text("DELETE FROM exclude_portal_team WHERE portal_id = :portal_id"),
        {"portal_id": portal_id},
    )
    return result.rowcount


def delete_exclude_teams_by_portal_id_and_team_ids(session, portal_id: int, team_ids: Iterable[int]) -> int:
    team_ids = list(team_ids)
    if not team_ids:
        return 0
    stmt = text(
        "DELETE FROM exclude_portal_team WHERE portal_id = :portal_id AND team_id IN :team_ids"
    ).bindparams(bindparam("team_ids", expanding=True))
    result = session.execute(stmt, {"portal_id": portal_id, "team_ids": team_ids})
    return result.rowcount


def insert_exclude_teams_batch(session, team_ids: Iterable[int], portal_id: int, user_id: int) -> None:
    now = datetime.now()
    rows = [
        {"team_id": team_id, "portal_id": portal_id, "create_by": user_id, "create_time": now}
        for team_id in team_ids
    ]
    if not rows:
        return
    session.execute(
        text(
            """
            INSERT INTO exclude_portal_team (team_id, portal_id, create_by, create_time)
            VALUES (:team_id, :portal_id, :create_by, :create_time)
            """
        ),
        rows,
    )
