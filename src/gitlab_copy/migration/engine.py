"""Migration engine - main entry point for migration operations."""

from pathlib import Path
from typing import Any, Dict, List, Type, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from ..api.client import GitLabClientFactory
from ..config.config import Config
from ..git.operations import GitOperations
from ..git.runner import GitRunner
from ..models.group import Group
from ..models.project import Project
from .coordinator import MigrationCoordinator, MigrationSummary
from .ledger import CompletionLedger
from .migrator import ProjectMigrator
from .reconciler import NamespaceReconciler
from .snapshot import MigrationSnapshot

ModelType = TypeVar('ModelType', bound=BaseModel)


class MigrationEngine:
    """Main migration engine that coordinates the entire migration process."""

    def __init__(self, config: Config):
        """Initialize migration engine.

        Args:
            config: Migration configuration
        """
        self.config = config
        self.logger = logger.bind(component='MigrationEngine')

        self.source_client = GitLabClientFactory.create_client(config.source)
        self.destination_client = GitLabClientFactory.create_client(config.destination)

        self.ledger = CompletionLedger(config.migration.completed_file)
        self.git = GitOperations(
            GitRunner(executable=config.git.executable, timeout=config.git.timeout)
        )

    async def migrate(self) -> MigrationSummary:
        """Run the whole migration.

        Returns:
            Migration summary

        Raises:
            ConnectionError: If either instance is unreachable
        """
        self.logger.info('Starting GitLab copy')

        try:
            self._test_connectivity()

            working_directory = Path(self.config.migration.working_directory)
            working_directory.mkdir(parents=True, exist_ok=True)

            snapshot = self.fetch_snapshot()
            already_done = len(self.ledger.load())
            if already_done:
                self.logger.info(f'{already_done} projects already recorded as migrated')

            coordinator = self.build_coordinator(snapshot, working_directory)
            return await coordinator.run()

        except Exception as e:
            self.logger.error(f'Migration failed: {e}')
            raise
        finally:
            self.source_client.close()
            self.destination_client.close()

    def build_coordinator(
        self, snapshot: MigrationSnapshot, working_directory: Path
    ) -> MigrationCoordinator:
        """Wire reconciler and migrator around ``snapshot``."""
        reconciler = NamespaceReconciler(
            self.destination_client,
            source_groups=snapshot.source_groups,
            destination_groups=snapshot.destination_groups,
        )
        migrator = ProjectMigrator(
            self.destination_client,
            self.git,
            self.ledger,
            destination_projects=snapshot.destination_projects,
            transport=self.config.git.transport,
            remote_name=self.config.git.remote_name,
            source_token=self.config.source.token or self.config.source.oauth_token,
            destination_token=(
                self.config.destination.token or self.config.destination.oauth_token
            ),
        )
        return MigrationCoordinator(
            snapshot,
            reconciler,
            migrator,
            working_directory,
            concurrent=self.config.migration.concurrent,
            max_concurrent_groups=self.config.migration.max_concurrent_groups,
        )

    def fetch_snapshot(self) -> MigrationSnapshot:
        """Fetch groups and projects of both instances once."""
        self.logger.info('Getting source groups')
        source_groups = self._parse(Group, self.source_client.list_groups())
        self.logger.info('Getting source projects')
        source_projects = self._parse(Project, self.source_client.list_projects())
        self.logger.info('Getting destination groups')
        destination_groups = self._parse(Group, self.destination_client.list_groups())
        self.logger.info('Getting destination projects')
        destination_projects = self._parse(
            Project, self.destination_client.list_projects()
        )

        return MigrationSnapshot(
            source_groups=tuple(source_groups),
            source_projects=tuple(source_projects),
            destination_groups=tuple(destination_groups),
            destination_projects=tuple(destination_projects),
        )

    def _parse(
        self, model: Type[ModelType], items: List[Dict[str, Any]]
    ) -> List[ModelType]:
        """Parse API items, skipping the ones that do not validate."""
        parsed = []
        for item in items:
            try:
                parsed.append(model(**item))
            except ValidationError as e:
                self.logger.warning(f'Failed to parse {model.__name__} data: {e}')
        return parsed

    def _test_connectivity(self) -> None:
        """Test connectivity to both GitLab instances.

        Raises:
            ConnectionError: If connectivity test fails
        """
        self.logger.info('Testing connectivity to GitLab instances')

        if not self.source_client.test_connection():
            raise ConnectionError('Cannot connect to source GitLab instance')

        if not self.destination_client.test_connection():
            raise ConnectionError('Cannot connect to destination GitLab instance')

        self.logger.info('Connectivity tests passed')
