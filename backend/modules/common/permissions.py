"""
Project permission levels.

Each project area (sources, views, widgets, viz, schedules) carries a
hierarchical level; a higher level implies every lower one.
"""
from enum import IntEnum

from pydantic import BaseModel


class UserPermission(IntEnum):
    HIDDEN = 0
    READ = 1
    WRITE = 2
    DELETE = 3


class ProjectRole(IntEnum):
    MEMBER = 0
    MAINTAINER = 1


class ProjectPermission(BaseModel):
    """Effective permission of one user in one project."""

    source_permission: int = UserPermission.HIDDEN
    view_permission: int = UserPermission.HIDDEN
    widget_permission: int = UserPermission.HIDDEN
    viz_permission: int = UserPermission.READ
    schedule_permission: int = UserPermission.HIDDEN
    share_permission: bool = False
    download_permission: bool = False

    @classmethod
    def admin_permission(cls) -> "ProjectPermission":
        return cls(
            source_permission=UserPermission.DELETE,
            view_permission=UserPermission.DELETE,
            widget_permission=UserPermission.DELETE,
            viz_permission=UserPermission.DELETE,
            schedule_permission=UserPermission.DELETE,
            share_permission=True,
            download_permission=True,
        )

    @classmethod
    def read_only_permission(cls) -> "ProjectPermission":
        return cls(viz_permission=UserPermission.READ)

    def merge(self, other: "ProjectPermission") -> "ProjectPermission":
        """Per-area maximum of two permissions."""
        return ProjectPermission(
            source_permission=max(self.source_permission, other.source_permission),
            view_permission=max(self.view_permission, other.view_permission),
            widget_permission=max(self.widget_permission, other.widget_permission),
            viz_permission=max(self.viz_permission, other.viz_permission),
            schedule_permission=max(self.schedule_permission, other.schedule_permission),
            share_permission=self.share_permission or other.share_permission,
            download_permission=self.download_permission or other.download_permission,
        )
