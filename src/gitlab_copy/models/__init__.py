"""Data models for GitLab entities."""

from .group import Group, GroupCreate, normalize_path
from .project import Project, ProjectCreate

__all__ = [
    'Group',
    'GroupCreate',
    'Project',
    'ProjectCreate',
    'normalize_path',
]
