"""
Tenant context helper.

The engine treats tenant scopes as opaque strings; this model only builds
them consistently as "organization/project/subproject".
"""

from typing import Optional

from pydantic import Field

from contextrank.models.base import FrozenModel


class TenantContext(FrozenModel):
    """Hierarchical tenant identity."""

    organization_id: str = Field(..., min_length=1)
    project_id: Optional[str] = None
    subproject_id: Optional[str] = None

    @property
    def scope(self) -> str:
        """Tenant path; the subproject is ignored without a project."""
        path = self.organization_id
        if self.project_id:
            path += f"/{self.project_id}"
            if self.subproject_id:
                path += f"/{self.subproject_id}"
        return path

    def __str__(self) -> str:
        return self.scope
