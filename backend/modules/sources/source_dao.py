"""
Data access for data sources and the views built on them.
"""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import text

from backend.modules.sources.models import Source

SOURCE_COLUMNS = (
    "s.id, s.name, s.description, s.type, s.project_id, s.config, "
    "s.create_by, s.create_time, s.update_by, s.update_time"
)


def _to_source(row) -> Source:
    return Source(**{name: row._mapping[name] for name in Source.model_fields})


def get_id_by_name_with_project_id(session, name: str, project_id: int) -> Optional[int]:
    row = session.execute(
        text("SELECT id FROM source WHERE name = :name AND project_id = :project_id"),
        {"name": name, "project_id": project_id},
    ).fetchone()
    return None if row is None else row.id


def get_by_project(session, project_id: int) -> List[Source]:
    rows = session.execute(
        text(f"SELECT {SOURCE_COLUMNS} FROM source s WHERE s.project_id = :project_id ORDER BY s.id"),
        {"project_id": project_id},
    ).fetchall()
    return [_to_source(row) for row in rows]


def get_by_id(session, source_id: int) -> Optional[Source]:
    row = session.execute(
        text(f"SELECT {SOURCE_COLUMNS} FROM source s WHERE s.id = :id"),
        {"id": source_id},
    ).fetchone()
    return None if row is None else _to_source(row)


def insert(session, source: Source) -> int:
    result = session.execute(
        text(
            """
            INSERT INTO source (name, description, type, project_id, config, create_by, create_time)
            VALUES (:name, :description, :type, :project_id, :config, :create_by, :create_time)
            """
        ),
        {
            "name": source.name,
            "description": source.description,
            "type": source.type,
            "project_id": source.project_id,
            "config": source.config,
            "create_by": source.create_by,
            "create_time": source.create_time or datetime.now(),
        },
    )
    source.id = result.lastrowid
    return result.rowcount


def update(session, source: Source) -> int:
    result = session.execute(
        text(
            """
            UPDATE source
            SET name = :name, description = :description, type = :type, config = :config,
                update_by = :update_by, update_time = :update_time
            WHERE id = :id
            """
        ),
        {
            "id": source.id,
            "name": source.name,
            "description": source.description,
            "type": source.type,
            "config": source.config,
            "update_by": source.update_by,
            "update_time": source.update_time or datetime.now(),
        },
    )
    return result.rowcount


def delete_by_id(session, source_id: int) -> int:
    result = session.execute(text("DELETE FROM source WHERE id = :id"), {"id": source_id})
    return result.rowcount


def get_view_ids_by_source_id(session, source_id: int) -> List[int]:
    rows = session.execute(
        text("SELECT id FROM views WHERE source_id = :source_id ORDER BY id"),
        {"source_id": source_id},
    ).fetchall()
    return [row.id for row in rows]
