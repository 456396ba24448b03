"""Destination namespace resolution."""

import asyncio
from typing import Dict, Iterable, Optional

from loguru import logger

from ..api.client import GitLabClient
from ..api.exceptions import GitLabAPIError, GitLabConflictError
from ..models.group import Group, GroupCreate, normalize_path


class NamespaceResolutionError(Exception):
    """A destination group could neither be found nor created."""

    pass


def find_group(full_path: str, groups: Iterable[Group]) -> Optional[Group]:
    """Return the group whose full path equals ``full_path``, ignoring case."""
    for group in groups:
        if group.matches_path(full_path):
            return group
    return None


class NamespaceReconciler:
    """Ensures every source group has a destination group at the same path.

    Destination groups start from the pre-fetched snapshot. Groups resolved or
    created during the run are added to a run-local registry, and each path is
    resolved under its own lock, so concurrent group tasks never create the
    same group twice.
    """

    def __init__(
        self,
        destination_client: GitLabClient,
        source_groups: Iterable[Group],
        destination_groups: Iterable[Group],
    ):
        """Initialize namespace reconciler.

        Args:
            destination_client: Destination GitLab API client
            source_groups: Source group snapshot, used to create missing parents
            destination_groups: Destination group snapshot
        """
        self.destination_client = destination_client
        self.destination_groups = tuple(destination_groups)
        self._source_groups: Dict[str, Group] = {
            normalize_path(g.full_path): g for g in source_groups
        }
        self._resolved: Dict[str, Group] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self.logger = logger.bind(component='NamespaceReconciler')

    async def ensure_group(self, source_group: Group) -> Group:
        """Return the destination group for ``source_group``, creating it if absent.

        Raises:
            NamespaceResolutionError: If the group cannot be created
        """
        key = normalize_path(source_group.full_path)
        lock = self._locks.setdefault(key, asyncio.Lock())

        async with lock:
            if key in self._resolved:
                return self._resolved[key]

            self.logger.info(f'Checking if group {source_group.full_path} exists')
            existing = find_group(source_group.full_path, self.destination_groups)

            if existing:
                self.logger.info(
                    f'Group {source_group.full_path} exists (ID: {existing.id})'
                )
                self._resolved[key] = existing
                return existing

            parent_id = await self._resolve_parent_id(source_group)
            created = await self._create_group(source_group, parent_id)
            self._resolved[key] = created
            return created

    async def _resolve_parent_id(self, source_group: Group) -> Optional[int]:
        """Destination id of the source group's parent, ensuring it first."""
        parent_path = source_group.parent_full_path
        if parent_path is None:
            return None

        source_parent = self._source_groups.get(normalize_path(parent_path))
        if source_parent is not None:
            parent = await self.ensure_group(source_parent)
            return parent.id

        # The parent is not visible in the source snapshot; it can only be reused.
        parent = find_group(parent_path, self.destination_groups)
        if parent is None:
            try:
                parent = await self.destination_client.find_group(parent_path)
            except GitLabAPIError as e:
                raise NamespaceResolutionError(
                    f'Could not look up parent group {parent_path}: {e}'
                ) from e
        if parent is None:
            raise NamespaceResolutionError(
                f'Parent group {parent_path} of {source_group.full_path} is not '
                f'accessible on the source and missing on the destination'
            )
        return parent.id

    async def _create_group(
        self, source_group: Group, parent_id: Optional[int]
    ) -> Group:
        """Create the destination group, tolerating a concurrent creation."""
        self.logger.info(f'Group {source_group.full_path} does not exist, creating it')

        group_create = GroupCreate(
            name=source_group.name,
            path=source_group.path,
            description=source_group.description,
            visibility=source_group.visibility or 'private',
            parent_id=parent_id,
        )

        try:
            created = await self.destination_client.create_group(group_create)
            self.logger.info(
                f'Created group {source_group.full_path} with ID: {created.id}'
            )
        except GitLabConflictError as e:
            self.logger.warning(
                f'Group {source_group.full_path} was created elsewhere, looking it up: {e}'
            )
            created = await self._lookup_after_conflict(source_group.full_path, e)
        except GitLabAPIError as e:
            raise NamespaceResolutionError(
                f'Failed to create group {source_group.full_path}: {e}'
            ) from e

        return created

    async def _lookup_after_conflict(
        self, full_path: str, conflict: GitLabConflictError
    ) -> Group:
        try:
            group = await self.destination_client.find_group(full_path)
        except GitLabAPIError as e:
            raise NamespaceResolutionError(
                f'Group {full_path} conflicts but could not be looked up: {e}'
            ) from e
        if group is None:
            raise NamespaceResolutionError(
                f'Failed to create group {full_path}: {conflict}'
            ) from conflict
        return group
