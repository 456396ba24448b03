"""Fan-out of project migrations over source groups."""

import asyncio
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger
from pydantic import BaseModel, Field

from ..models.group import Group
from .migrator import ProjectMigrationResult, ProjectMigrator, ProjectState
from .reconciler import NamespaceReconciler
from .snapshot import MigrationSnapshot


class GroupMigrationResult(BaseModel):
    """Outcome of migrating one source group."""

    full_path: str = Field(..., description='Source group full path')
    destination_group_id: Optional[int] = Field(default=None)
    success: bool = Field(default=True, description='Namespace was resolved')
    error_message: Optional[str] = Field(default=None)
    projects: List[ProjectMigrationResult] = Field(default_factory=list)


class MigrationSummary(BaseModel):
    """Summary of a migration run."""

    started_at: datetime = Field(..., description='Migration start time')
    completed_at: Optional[datetime] = Field(
        default=None, description='Migration completion time'
    )
    groups: List[GroupMigrationResult] = Field(default_factory=list)

    @property
    def project_results(self) -> List[ProjectMigrationResult]:
        return [p for g in self.groups for p in g.projects]

    @property
    def recorded(self) -> int:
        return self._count(ProjectState.RECORDED)

    @property
    def skipped(self) -> int:
        return self._count(ProjectState.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(ProjectState.FAILED)

    @property
    def failed_groups(self) -> int:
        return sum(1 for g in self.groups if not g.success)

    def _count(self, state: ProjectState) -> int:
        return sum(1 for p in self.project_results if p.state == state)


class MigrationCoordinator:
    """Runs the project migrator over every source group.

    Groups run one after another, or concurrently with at most
    ``max_concurrent_groups`` in flight. Projects of one group always run in
    listing order. A failing group never stops its siblings.
    """

    def __init__(
        self,
        snapshot: MigrationSnapshot,
        reconciler: NamespaceReconciler,
        migrator: ProjectMigrator,
        working_directory: Union[str, Path],
        concurrent: bool = True,
        max_concurrent_groups: int = 8,
    ):
        """Initialize migration coordinator.

        Args:
            snapshot: Read-only view of both servers
            reconciler: Destination namespace resolver
            migrator: Per-project state machine
            working_directory: Root of the per-group working directories
            concurrent: Run groups concurrently
            max_concurrent_groups: Bound on concurrently running groups
        """
        self.snapshot = snapshot
        self.reconciler = reconciler
        self.migrator = migrator
        self.working_directory = Path(working_directory)
        self.concurrent = concurrent
        self.max_concurrent_groups = max_concurrent_groups
        self.logger = logger.bind(component='MigrationCoordinator')

    async def run(self) -> MigrationSummary:
        """Migrate every source group and summarize the outcome."""
        summary = MigrationSummary(started_at=datetime.now())
        groups = list(self.snapshot.source_groups)

        mode = (
            f'concurrently (max {self.max_concurrent_groups})'
            if self.concurrent
            else 'sequentially'
        )
        self.logger.info(f'Migrating {len(groups)} groups {mode}')

        if self.concurrent:
            summary.groups = await self._run_concurrently(groups)
        else:
            summary.groups = [await self._run_group(group) for group in groups]

        summary.completed_at = datetime.now()
        self.logger.info(
            f'Complete: {summary.recorded} migrated, {summary.skipped} skipped, '
            f'{summary.failed} failed, {summary.failed_groups} groups failed'
        )
        return summary

    async def _run_concurrently(
        self, groups: List[Group]
    ) -> List[GroupMigrationResult]:
        semaphore = asyncio.Semaphore(self.max_concurrent_groups)

        async def run_bounded(group: Group) -> GroupMigrationResult:
            async with semaphore:
                return await self.migrate_group(group)

        outcomes = await asyncio.gather(
            *(run_bounded(group) for group in groups), return_exceptions=True
        )

        results = []
        for group, outcome in zip(groups, outcomes):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                results.append(self._group_failure(group, outcome))
            else:
                results.append(outcome)
        return results

    async def _run_group(self, group: Group) -> GroupMigrationResult:
        try:
            return await self.migrate_group(group)
        except Exception as e:
            return self._group_failure(group, e)

    async def migrate_group(self, group: Group) -> GroupMigrationResult:
        """Resolve the group's namespace and migrate its projects in order."""
        self.logger.info(f'Working on group: {group.name} (/{group.full_path})')
        result = GroupMigrationResult(full_path=group.full_path)

        group_dir = self.working_directory.joinpath(*group.full_path.split('/'))
        group_dir.mkdir(parents=True, exist_ok=True)

        try:
            namespace = await self.reconciler.ensure_group(group)
        except Exception as e:
            self.logger.error(
                f'Skipping projects of group {group.full_path}, '
                f'no destination namespace: {e}'
            )
            result.success = False
            result.error_message = str(e)
            return result

        result.destination_group_id = namespace.id

        for project in self.snapshot.projects_in_group(group):
            result.projects.append(
                await self.migrator.migrate(project, namespace, group_dir)
            )

        return result

    def _group_failure(
        self, group: Group, error: BaseException
    ) -> GroupMigrationResult:
        self.logger.error(f'Group {group.full_path} failed: {error}')
        return GroupMigrationResult(
            full_path=group.full_path, success=False, error_message=str(error)
        )
