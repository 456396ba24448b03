"""Project entity models."""

from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, validator

from .group import normalize_path


class Project(BaseModel):
    """GitLab project snapshot."""

    id: int = Field(..., description='Project ID')
    name: str = Field(..., description='Project name')
    path: str = Field(..., description='Repository path segment')
    description: Optional[str] = Field(default=None, description='Project description')
    visibility: Optional[str] = Field(
        default=None, description='Project visibility (private, internal, public)'
    )

    # Namespace (group or user)
    namespace: Optional[Dict[str, Any]] = Field(
        default=None, description='Owning namespace'
    )
    path_with_namespace: str = Field(
        ..., description='Full path of the project, used to match across servers'
    )

    # Clone URLs
    ssh_url_to_repo: Optional[str] = Field(default=None, description='SSH clone URL')
    http_url_to_repo: Optional[str] = Field(default=None, description='HTTP clone URL')
    default_branch: Optional[str] = Field(
        default=None, description='Default branch name'
    )

    @property
    def namespace_full_path(self) -> str:
        """Full path of the owning namespace."""
        if self.namespace:
            full_path = self.namespace.get('full_path') or self.namespace.get('path')
            if full_path:
                return full_path
        return self.path_with_namespace.rsplit('/', 1)[0]

    def belongs_to(self, group_full_path: str) -> bool:
        """Check whether the project sits directly in the given group."""
        return normalize_path(self.namespace_full_path) == normalize_path(
            group_full_path
        )

    def repository_url(self, transport: str) -> str:
        """Return the clone URL for the given transport.

        Args:
            transport: ``ssh`` or ``http``

        Raises:
            ValueError: If the project exposes no URL for the transport
        """
        url = self.ssh_url_to_repo if transport == 'ssh' else self.http_url_to_repo
        if not url:
            raise ValueError(
                f'Project {self.path_with_namespace} has no {transport} repository URL'
            )
        return url

    class Config:
        """Pydantic configuration."""

        frozen = True


class ProjectCreate(BaseModel):
    """Model for creating a new project."""

    name: str = Field(..., description='Project name')
    path: str = Field(..., description='Project path')
    namespace_id: int = Field(..., description='Namespace ID')
    description: Optional[str] = Field(default=None, description='Project description')
    visibility: str = Field(default='private', description='Project visibility')

    @validator('visibility')
    def validate_visibility(cls, v):
        """Validate project visibility."""
        valid_visibility = ['private', 'internal', 'public']
        if v not in valid_visibility:
            raise ValueError(f'Visibility must be one of: {valid_visibility}')
        return v
