"""
FastAPI Router for Dashboard Portals
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from backend.database.dbconnect import get_session
from backend.modules.common.exceptions import ServerError
from backend.modules.login.token_auth import User, get_current_user
from backend.modules.portals import portal_service
from backend.modules.portals.models import (
    DashboardPortal,
    DashboardPortalCreate,
    DashboardPortalUpdate,
)

router = APIRouter(tags=["dashboard_portals"])


class PortalListResponse(BaseModel):
    success: bool
    data: Optional[List[DashboardPortal]] = None


class PortalResponse(BaseModel):
    success: bool
    data: Optional[DashboardPortal] = None


class ExcludeTeamsResponse(BaseModel):
    success: bool
    data: List[int] = []


class SimpleResponse(BaseModel):
    success: bool
    message: Optional[str] = None


@router.get("", response_model=PortalListResponse)
def get_dashboard_portals(
    project_id: int = Query(..., alias="projectId", gt=0),
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    portals = portal_service.get_dashboard_portals(session, project_id, user)
    return PortalListResponse(success=True, data=portals)


@router.post("", response_model=PortalResponse)
def create_dashboard_portal(
    payload: DashboardPortalCreate,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    portal = portal_service.create_dashboard_portal(session, payload, user)
    return PortalResponse(success=True, data=portal)


@router.put("/{portal_id}", response_model=PortalResponse)
def update_dashboard_portal(
    portal_id: int,
    payload: DashboardPortalUpdate,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    if payload.id != portal_id:
        raise ServerError("Invalid dashboard portal id")
    portal = portal_service.update_dashboard_portal(session, payload, user)
    return PortalResponse(success=True, data=portal)


@router.delete("/{portal_id}", response_model=SimpleResponse)
def delete_dashboard_portal(
    portal_id: int,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    portal_service.delete_dashboard_portal(session, portal_id, user)
    return SimpleResponse(success=True, message="Dashboard portal deleted")


@router.get("/{portal_id}/excludeTeams", response_model=ExcludeTeamsResponse)
def get_exclude_teams(
    portal_id: int,
    user: User = Depends(get_current_user),
    session=Depends(get_session),
):
    team_ids = portal_service.get_portal_exclude_teams(session, portal_id, user)
    return ExcludeTeamsResponse(success=True, data=team_ids)
