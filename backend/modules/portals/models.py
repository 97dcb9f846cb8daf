from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DashboardPortal(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    project_id: int
    avatar: Optional[str] = None
    publish: bool = False
    create_by: Optional[int] = None
    create_time: Optional[datetime] = None
    update_by: Optional[int] = None
    update_time: Optional[datetime] = None


class DashboardPortalCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    project_id: int = Field(..., gt=0)
    avatar: Optional[str] = None
    publish: bool = False
    # Roles the new portal is hidden from
    role_ids: Optional[List[int]] = None


class DashboardPortalUpdate(BaseModel):
    id: int = Field(..., gt=0)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    avatar: Optional[str] = None
    publish: bool = False
    # Teams the portal is excluded from; replaces the current list
    team_ids: Optional[List[int]] = None


class PortalWithProject(BaseModel):
    portal: DashboardPortal
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    project_user_id: Optional[int] = None

    @property
    def has_project(self) -> bool:
        return self.project_id is not None
