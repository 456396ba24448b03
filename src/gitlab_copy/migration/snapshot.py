"""Read-only view of both servers taken at startup."""

from dataclasses import dataclass
from typing import Tuple

from ..models.group import Group
from ..models.project import Project


@dataclass(frozen=True)
class MigrationSnapshot:
    """Groups and projects of both servers, fetched once per run."""

    source_groups: Tuple[Group, ...] = ()
    source_projects: Tuple[Project, ...] = ()
    destination_groups: Tuple[Group, ...] = ()
    destination_projects: Tuple[Project, ...] = ()

    def projects_in_group(self, group: Group) -> Tuple[Project, ...]:
        """Source projects placed directly in ``group``, in listing order."""
        return tuple(p for p in self.source_projects if p.belongs_to(group.full_path))
