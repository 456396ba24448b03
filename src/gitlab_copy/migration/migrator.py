"""Per-project migration state machine."""

import shutil
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from ..api.client import GitLabClient
from ..api.exceptions import GitLabConflictError
from ..git.operations import GitOperations, inject_token
from ..git.runner import mask_credentials
from ..models.group import Group, normalize_path
from ..models.project import Project, ProjectCreate
from .ledger import CompletionLedger, LedgerWriteError


class ProjectState(str, Enum):
    """Steps of a project migration, in order."""

    PENDING = 'pending'
    SKIPPED = 'skipped'
    PROJECT_RESOLVED = 'project_resolved'
    CLONED = 'cloned'
    BRANCHES_CHECKED_OUT = 'branches_checked_out'
    REMOTE_ADDED = 'remote_added'
    PUSHED = 'pushed'
    RECORDED = 'recorded'
    FAILED = 'failed'


class ProjectMigrationResult(BaseModel):
    """Outcome of one project migration attempt."""

    path_with_namespace: str = Field(..., description='Source project path')
    state: ProjectState = Field(
        default=ProjectState.PENDING, description='State the attempt ended in'
    )
    last_completed_state: ProjectState = Field(
        default=ProjectState.PENDING,
        description='Last step completed before a failure',
    )

    started_at: datetime = Field(default_factory=datetime.now)
    completed_at: Optional[datetime] = Field(default=None)

    destination_project_id: Optional[int] = Field(default=None)
    branches: List[str] = Field(
        default_factory=list, description='Branches checked out before pushing'
    )

    error_message: Optional[str] = Field(default=None)
    warnings: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state in (ProjectState.RECORDED, ProjectState.SKIPPED)

    def advance(self, state: ProjectState) -> None:
        """Move to ``state`` after the corresponding step succeeded."""
        self.state = state
        self.last_completed_state = state


class ProjectMigrator:
    """Drives a single project from PENDING to RECORDED, SKIPPED or FAILED.

    The ledger is the only authority on completion: a project that is not
    recorded is migrated again from a clean working copy, whatever is left on
    disk or on the destination from an earlier attempt.
    """

    def __init__(
        self,
        destination_client: GitLabClient,
        git: GitOperations,
        ledger: CompletionLedger,
        destination_projects: Iterable[Project],
        transport: str = 'ssh',
        remote_name: str = 'new',
        source_token: Optional[str] = None,
        destination_token: Optional[str] = None,
    ):
        """Initialize project migrator.

        Args:
            destination_client: Destination GitLab API client
            git: Git operations used for clone, checkout and push
            ledger: Completion ledger shared by all group tasks
            destination_projects: Destination project snapshot
            transport: ``ssh`` or ``http`` repository URLs
            remote_name: Name of the remote pointing at the destination
            source_token: Token injected into source http URLs
            destination_token: Token injected into destination http URLs
        """
        self.destination_client = destination_client
        self.git = git
        self.ledger = ledger
        self.transport = transport
        self.remote_name = remote_name
        self.source_token = source_token
        self.destination_token = destination_token
        self._destination_projects: Dict[str, Project] = {}
        for project in destination_projects:
            self._destination_projects.setdefault(
                normalize_path(project.path_with_namespace), project
            )
        self.logger = logger.bind(component='ProjectMigrator')

    async def migrate(
        self, project: Project, namespace: Group, group_dir: Path
    ) -> ProjectMigrationResult:
        """Migrate ``project`` into ``namespace``.

        Never raises for a per-project failure; the error is logged and
        returned in the result.

        Args:
            project: Source project snapshot
            namespace: Resolved destination group
            group_dir: Working directory of the project's group
        """
        result = ProjectMigrationResult(path_with_namespace=project.path_with_namespace)

        try:
            if await self.ledger.contains(project.path_with_namespace):
                self.logger.info(
                    f'Project {project.path_with_namespace} already moved. Skipping'
                )
                result.advance(ProjectState.SKIPPED)
                return result

            project_dir = Path(group_dir) / project.path

            destination = await self._resolve_destination_project(project, namespace)
            result.destination_project_id = destination.id
            self._reset_working_copy(project_dir)
            result.advance(ProjectState.PROJECT_RESOLVED)

            self.logger.info(f'Cloning {project.path_with_namespace}')
            source_url = inject_token(
                project.repository_url(self.transport), self._token(self.source_token)
            )
            await self.git.clone(source_url, group_dir, project.path)
            result.advance(ProjectState.CLONED)

            result.branches = await self.git.checkout_all_branches(project_dir)
            result.advance(ProjectState.BRANCHES_CHECKED_OUT)

            destination_url = inject_token(
                destination.repository_url(self.transport),
                self._token(self.destination_token),
            )
            await self.git.add_remote(project_dir, self.remote_name, destination_url)
            result.advance(ProjectState.REMOTE_ADDED)

            await self.git.push_all(project_dir, self.remote_name)
            await self.git.push_tags(project_dir, self.remote_name)
            result.advance(ProjectState.PUSHED)

            await self.ledger.append(project.path_with_namespace)
            result.advance(ProjectState.RECORDED)

            self.logger.info(
                f'Project {project.path_with_namespace} migrated '
                f'({len(result.branches)} branches)'
            )

        except LedgerWriteError as e:
            message = (
                f'Project {project.path_with_namespace} was pushed but not recorded, '
                f'it will be migrated again on the next run: {e}'
            )
            self.logger.warning(message)
            result.state = ProjectState.FAILED
            result.error_message = str(e)
            result.warnings.append(message)

        except Exception as e:
            message = mask_credentials(str(e))
            self.logger.error(
                f'Project {project.path_with_namespace} failed after '
                f'{result.last_completed_state.value}: {message}'
            )
            result.state = ProjectState.FAILED
            result.error_message = message

        finally:
            result.completed_at = datetime.now()

        return result

    async def _resolve_destination_project(
        self, project: Project, namespace: Group
    ) -> Project:
        """Find the destination project by path, creating it if absent."""
        self.logger.info(
            f'Checking if project already exists: {project.path_with_namespace}'
        )
        existing = self._destination_projects.get(
            normalize_path(project.path_with_namespace)
        )
        if existing:
            self.logger.info(f'Project already exists (ID: {existing.id})')
            return existing

        self.logger.info('Project does not exist on the destination, creating it')
        project_create = ProjectCreate(
            name=project.name,
            path=project.path,
            namespace_id=namespace.id,
            description=project.description,
            visibility=project.visibility or 'private',
        )

        try:
            created = await self.destination_client.create_project(project_create)
            self.logger.info(f'Project created with ID: {created.id}')
        except GitLabConflictError:
            self.logger.warning(
                f'Project {project.path_with_namespace} was created elsewhere, '
                f'looking it up'
            )
            created = await self.destination_client.find_project(
                f'{namespace.full_path}/{project.path}'
            )
            if created is None:
                raise

        return created

    def _reset_working_copy(self, project_dir: Path) -> None:
        """Delete what a previous attempt left in the project directory."""
        if project_dir.exists():
            self.logger.info(f'Removing previous working copy {project_dir}')
            shutil.rmtree(project_dir)
        project_dir.parent.mkdir(parents=True, exist_ok=True)

    def _token(self, token: Optional[str]) -> Optional[str]:
        return token if self.transport == 'http' else None
