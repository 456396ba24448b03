"""Group entity models."""

from typing import Optional
from pydantic import BaseModel, Field, validator


def normalize_path(path: str) -> str:
    """Normalize a GitLab path for case-insensitive comparison."""
    return path.strip().strip('/').lower()


class Group(BaseModel):
    """GitLab group snapshot."""

    id: int = Field(..., description='Group ID')
    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path segment')
    description: Optional[str] = Field(default=None, description='Group description')
    visibility: Optional[str] = Field(
        default=None, description='Group visibility (private, internal, public)'
    )

    # Hierarchy
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')
    full_name: Optional[str] = Field(
        default=None, description='Full group name with parent'
    )
    full_path: Optional[str] = Field(
        default=None, description='Full group path with parent'
    )

    web_url: Optional[str] = Field(default=None, description='Web URL')

    @validator('full_path', always=True)
    def default_full_path(cls, v, values):
        """Top-level groups fall back to their own path."""
        if not v:
            return values.get('path')
        return v.strip('/')

    @property
    def parent_full_path(self) -> Optional[str]:
        """Full path of the parent group, or None for a top-level group."""
        if '/' not in self.full_path:
            return None
        return self.full_path.rsplit('/', 1)[0]

    def matches_path(self, full_path: str) -> bool:
        """Check whether this group lives at ``full_path`` (case-insensitive)."""
        return normalize_path(self.full_path) == normalize_path(full_path)

    class Config:
        """Pydantic configuration."""

        frozen = True


class GroupCreate(BaseModel):
    """Model for creating a new group."""

    name: str = Field(..., description='Group name')
    path: str = Field(..., description='Group path')
    description: Optional[str] = Field(default=None, description='Group description')
    visibility: str = Field(default='private', description='Group visibility')
    parent_id: Optional[int] = Field(default=None, description='Parent group ID')

    @validator('visibility')
    def validate_visibility(cls, v):
        """Validate group visibility."""
        valid_visibility = ['private', 'internal', 'public']
        if v not in valid_visibility:
            raise ValueError(f'Visibility must be one of: {valid_visibility}')
        return v
