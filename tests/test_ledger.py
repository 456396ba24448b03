"""Tests for the completion ledger."""

import asyncio
import os

import pytest
from unittest.mock import patch

from src.gitlab_copy.migration.ledger import CompletionLedger, LedgerWriteError


class TestCompletionLedger:
    """Test completion ledger reads and writes."""

    def test_missing_file_is_empty(self, tmp_path):
        """Test that a missing ledger loads as empty."""
        ledger = CompletionLedger(tmp_path / 'completed.txt')

        assert ledger.load() == set()
        assert not (tmp_path / 'completed.txt').exists()

    def test_load_trims_entries(self, tmp_path):
        """Test that whitespace and blank lines are ignored."""
        path = tmp_path / 'completed.txt'
        path.write_text('team/app  \n\n  team/sub/lib\n\n')

        ledger = CompletionLedger(path)

        assert ledger.load() == {'team/app', 'team/sub/lib'}

    @pytest.mark.asyncio
    async def test_contains_ignores_case(self, tmp_path):
        """Test lookups are case-insensitive."""
        path = tmp_path / 'completed.txt'
        path.write_text('Team/App\n')

        ledger = CompletionLedger(path)

        assert await ledger.contains('team/app') is True
        assert await ledger.contains('TEAM/APP') is True
        assert await ledger.contains('team/app2') is False

    @pytest.mark.asyncio
    async def test_contains_rereads_file(self, tmp_path):
        """Test entries added to the file by hand are picked up."""
        path = tmp_path / 'completed.txt'
        ledger = CompletionLedger(path)

        assert await ledger.contains('team/app') is False
        path.write_text('team/app\n')
        assert await ledger.contains('team/app') is True

    @pytest.mark.asyncio
    async def test_append_persists(self, tmp_path):
        """Test appended entries survive a new ledger instance."""
        path = tmp_path / 'state' / 'completed.txt'
        ledger = CompletionLedger(path)

        await ledger.append('team/app')
        await ledger.append('team/lib')

        assert path.read_text() == 'team/app\nteam/lib\n'
        assert CompletionLedger(path).load() == {'team/app', 'team/lib'}
        assert ledger.entries == {'team/app', 'team/lib'}

    @pytest.mark.asyncio
    async def test_append_is_deduplicated(self, tmp_path):
        """Test recording a project twice keeps one entry."""
        path = tmp_path / 'completed.txt'
        ledger = CompletionLedger(path)

        await ledger.append('team/app')
        await ledger.append('Team/App')

        assert path.read_text().splitlines() == ['team/app']

    @pytest.mark.asyncio
    async def test_concurrent_appends_keep_every_entry(self, tmp_path):
        """Test concurrent appends from many tasks lose nothing."""
        path = tmp_path / 'completed.txt'
        ledger = CompletionLedger(path)
        names = [f'group{i % 5}/project{i}' for i in range(50)]

        await asyncio.gather(*(ledger.append(name) for name in names))

        lines = path.read_text().splitlines()
        assert sorted(lines) == sorted(names)
        assert len(lines) == len(set(lines))

    @pytest.mark.asyncio
    async def test_write_failure(self, tmp_path):
        """Test a failed rewrite raises and leaves the ledger untouched."""
        path = tmp_path / 'completed.txt'
        path.write_text('team/app\n')
        ledger = CompletionLedger(path)

        with patch(
            'src.gitlab_copy.migration.ledger.os.replace',
            side_effect=OSError('disk full'),
        ):
            with pytest.raises(LedgerWriteError) as exc_info:
                await ledger.append('team/lib')

        assert 'team/lib' in str(exc_info.value)
        assert path.read_text() == 'team/app\n'
        assert 'team/lib' not in ledger.entries
        assert [p for p in os.listdir(tmp_path) if p.endswith('.tmp')] == []

    @pytest.mark.asyncio
    async def test_hand_edited_file_with_bom_and_crlf(self, tmp_path):
        """Test a file saved by a Windows editor is read without stray characters."""
        path = tmp_path / 'completed.txt'
        path.write_bytes('team/app\r\nteam/lib\r\n'.encode('utf-8-sig'))
        ledger = CompletionLedger(path)

        assert ledger.load() == {'team/app', 'team/lib'}
        assert await ledger.contains('team/app') is True

        await ledger.append('team/app')

        assert path.read_text(encoding='utf-8-sig').splitlines() == [
            'team/app',
            'team/lib',
        ]
