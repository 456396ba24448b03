"""Tests for destination namespace resolution."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from src.gitlab_copy.api.exceptions import GitLabConflictError, GitLabValidationError
from src.gitlab_copy.migration.reconciler import (
    NamespaceReconciler,
    NamespaceResolutionError,
    find_group,
)
from src.gitlab_copy.models.group import Group


def make_group(group_id, full_path, **kwargs):
    """Build a group snapshot from its full path."""
    path = full_path.rsplit('/', 1)[-1]
    return Group(
        id=group_id,
        name=kwargs.pop('name', path.title()),
        path=path,
        full_path=full_path,
        **kwargs,
    )


def make_client():
    client = Mock()
    client.create_group = AsyncMock()
    client.find_group = AsyncMock(return_value=None)
    return client


class TestFindGroup:
    """Test group matching by full path."""

    def test_match_ignores_case(self):
        """Test full paths compare case-insensitively."""
        groups = [make_group(1, 'team/sub2'), make_group(2, 'team/sub')]

        assert find_group('Team/Sub', groups).id == 2
        assert find_group('team/SUB2', groups).id == 1

    def test_no_prefix_match(self):
        """Test a path never matches a longer sibling."""
        assert find_group('Team/Sub', [make_group(1, 'team/sub2')]) is None


class TestNamespaceReconciler:
    """Test namespace reconciliation."""

    @pytest.mark.asyncio
    async def test_existing_group_is_reused(self):
        """Test an existing destination group is returned without creation."""
        client = make_client()
        source = make_group(10, 'team')
        reconciler = NamespaceReconciler(client, [source], [make_group(99, 'Team')])

        group = await reconciler.ensure_group(source)

        assert group.id == 99
        client.create_group.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_group_is_created(self):
        """Test a missing top-level group is created from the source group."""
        client = make_client()
        client.create_group.return_value = make_group(5, 'team')
        source = make_group(10, 'team', description='Team repos', visibility='internal')
        reconciler = NamespaceReconciler(client, [source], [])

        group = await reconciler.ensure_group(source)

        assert group.id == 5
        request = client.create_group.await_args.args[0]
        assert request.path == 'team'
        assert request.description == 'Team repos'
        assert request.visibility == 'internal'
        assert request.parent_id is None

    @pytest.mark.asyncio
    async def test_nested_group_creates_parent_first(self):
        """Test missing parents are created before their children."""
        client = make_client()
        client.create_group.side_effect = [
            make_group(1, 'team'),
            make_group(2, 'team/sub'),
        ]
        parent = make_group(10, 'team')
        child = make_group(11, 'team/sub', parent_id=10)
        reconciler = NamespaceReconciler(client, [parent, child], [])

        group = await reconciler.ensure_group(child)

        assert group.id == 2
        first, second = [call.args[0] for call in client.create_group.await_args_list]
        assert first.path == 'team'
        assert first.parent_id is None
        assert second.path == 'sub'
        assert second.parent_id == 1

    @pytest.mark.asyncio
    async def test_parent_on_destination_only(self):
        """Test a parent absent from the source is looked up on the destination."""
        client = make_client()
        client.find_group.return_value = make_group(7, 'team')
        client.create_group.return_value = make_group(8, 'team/sub')
        child = make_group(11, 'team/sub', parent_id=10)
        reconciler = NamespaceReconciler(client, [child], [])

        await reconciler.ensure_group(child)

        client.find_group.assert_awaited_once_with('team')
        assert client.create_group.await_args.args[0].parent_id == 7

    @pytest.mark.asyncio
    async def test_unreachable_parent_fails(self):
        """Test a parent missing everywhere fails the group."""
        client = make_client()
        child = make_group(11, 'team/sub', parent_id=10)
        reconciler = NamespaceReconciler(client, [child], [])

        with pytest.raises(NamespaceResolutionError):
            await reconciler.ensure_group(child)

        client.create_group.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_conflict_falls_back_to_lookup(self):
        """Test a group created concurrently elsewhere is looked up."""
        client = make_client()
        client.create_group.side_effect = GitLabConflictError(
            'Resource already exists', status_code=400
        )
        client.find_group.return_value = make_group(42, 'team')
        source = make_group(10, 'team')
        reconciler = NamespaceReconciler(client, [source], [])

        group = await reconciler.ensure_group(source)

        assert group.id == 42
        client.find_group.assert_awaited_once_with('team')

    @pytest.mark.asyncio
    async def test_creation_failure(self):
        """Test a rejected creation is reported as a resolution error."""
        client = make_client()
        client.create_group.side_effect = GitLabValidationError(
            'Invalid request: path is reserved', status_code=400
        )
        source = make_group(10, 'team')
        reconciler = NamespaceReconciler(client, [source], [])

        with pytest.raises(NamespaceResolutionError) as exc_info:
            await reconciler.ensure_group(source)

        assert 'path is reserved' in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_concurrent_calls_create_once(self):
        """Test concurrent resolution of one path creates a single group."""
        client = make_client()

        async def create(request):
            await asyncio.sleep(0.01)
            return make_group(3, 'team')

        client.create_group.side_effect = create
        source = make_group(10, 'team')
        reconciler = NamespaceReconciler(client, [source], [])

        groups = await asyncio.gather(
            *(reconciler.ensure_group(source) for _ in range(5))
        )

        assert {g.id for g in groups} == {3}
        assert client.create_group.await_count == 1
