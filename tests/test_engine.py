"""Tests for the migration engine wiring."""

import pytest
from unittest.mock import patch

from src.gitlab_copy.config.config import Config
from src.gitlab_copy.migration.engine import MigrationEngine


def make_config(tmp_path, **migration):
    migration.setdefault('working_directory', str(tmp_path / 'work'))
    migration.setdefault('completed_file', str(tmp_path / 'completed.txt'))
    return Config(
        source={'url': 'https://source.gitlab.com', 'token': 'source-token'},
        destination={'url': 'https://dest.gitlab.com', 'token': 'dest-token'},
        migration=migration,
        git={'transport': 'http', 'remote_name': 'mirror'},
    )


class TestMigrationEngine:
    """Test migration engine."""

    def test_fetch_snapshot_skips_invalid_items(self, tmp_path):
        """Test items that do not parse are left out of the snapshot."""
        engine = MigrationEngine(make_config(tmp_path))
        groups = [
            {'id': 1, 'name': 'Team', 'path': 'team', 'full_path': 'team'},
            {'name': 'no id'},
        ]
        projects = [
            {
                'id': 2,
                'name': 'App',
                'path': 'app',
                'path_with_namespace': 'team/app',
            },
        ]

        with patch.object(engine.source_client, 'list_groups', return_value=groups), \
                patch.object(engine.source_client, 'list_projects', return_value=projects), \
                patch.object(engine.destination_client, 'list_groups', return_value=[]), \
                patch.object(engine.destination_client, 'list_projects', return_value=[]):
            snapshot = engine.fetch_snapshot()

        assert [g.full_path for g in snapshot.source_groups] == ['team']
        assert [p.path_with_namespace for p in snapshot.source_projects] == ['team/app']
        assert snapshot.destination_groups == ()

    def test_build_coordinator(self, tmp_path):
        """Test configuration flows into the coordinator and migrator."""
        engine = MigrationEngine(make_config(tmp_path, concurrent=False))
        with patch.object(engine.source_client, 'get_paginated', return_value=[]), \
                patch.object(engine.destination_client, 'get_paginated', return_value=[]):
            snapshot = engine.fetch_snapshot()

        coordinator = engine.build_coordinator(snapshot, tmp_path / 'work')

        assert coordinator.concurrent is False
        assert coordinator.migrator.transport == 'http'
        assert coordinator.migrator.remote_name == 'mirror'
        assert coordinator.migrator.source_token == 'source-token'
        assert coordinator.migrator.destination_token == 'dest-token'

    @pytest.mark.asyncio
    async def test_connectivity_failure(self, tmp_path):
        """Test an unreachable server aborts before anything is migrated."""
        engine = MigrationEngine(make_config(tmp_path))

        with patch.object(engine.source_client, 'test_connection', return_value=False), \
                patch.object(engine.source_client, 'list_groups') as mock_list:
            with pytest.raises(ConnectionError):
                await engine.migrate()

        mock_list.assert_not_called()
        assert not (tmp_path / 'work').exists()

    @pytest.mark.asyncio
    async def test_empty_run(self, tmp_path):
        """Test a run with nothing to migrate finishes with an empty summary."""
        engine = MigrationEngine(make_config(tmp_path))

        with patch.object(engine.source_client, 'test_connection', return_value=True), \
                patch.object(engine.destination_client, 'test_connection', return_value=True), \
                patch.object(engine.source_client, 'get_paginated', return_value=[]), \
                patch.object(engine.destination_client, 'get_paginated', return_value=[]):
            summary = await engine.migrate()

        assert summary.groups == []
        assert summary.recorded == 0
        assert (tmp_path / 'work').is_dir()
