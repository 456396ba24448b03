"""Durable record of fully migrated projects."""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Set, Union

from loguru import logger

from ..models.group import normalize_path


class LedgerWriteError(Exception):
    """The ledger could not be durably updated."""

    pass


class CompletionLedger:
    """Newline-delimited file of ``path_with_namespace`` entries.

    Writes go through a single lock and replace the file atomically, so
    concurrent group tasks never lose an entry and an interrupted write
    leaves the previous ledger in place. Entries are only ever added.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize completion ledger.

        Args:
            path: Location of the ledger file
        """
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self._entries: Set[str] = set()
        self.logger = logger.bind(component='CompletionLedger')

    @property
    def entries(self) -> Set[str]:
        """Entries as of the last read or successful append."""
        return set(self._entries)

    def load(self) -> Set[str]:
        """Read the ledger; a missing file is an empty ledger."""
        if not self.path.exists():
            entries: Set[str] = set()
        else:
            with open(self.path, 'r', encoding='utf-8-sig') as f:
                entries = {line.strip() for line in f if line.strip()}

        self._entries = entries
        return set(entries)

    async def contains(self, path_with_namespace: str) -> bool:
        """Check case-insensitively whether a project is recorded.

        The file is re-read on every call so manual edits made while the
        tool runs are honored.
        """
        async with self._lock:
            entries = self.load()
        key = normalize_path(path_with_namespace)
        return any(normalize_path(entry) == key for entry in entries)

    async def append(self, path_with_namespace: str) -> None:
        """Record a project as migrated.

        Raises:
            LedgerWriteError: If the ledger file cannot be rewritten
        """
        entry = path_with_namespace.strip()

        async with self._lock:
            try:
                lines = self._read_lines()
                key = normalize_path(entry)
                if any(normalize_path(line) == key for line in lines):
                    self.logger.debug(f'{entry} already recorded')
                    return

                lines.append(entry)
                self._write_atomic(lines)
            except OSError as e:
                raise LedgerWriteError(
                    f'Could not record {entry} in {self.path}: {e}'
                ) from e

            self._entries = set(lines)

        self.logger.info(f'Recorded {entry} as migrated')

    def _read_lines(self):
        """Current entries in file order."""
        if not self.path.exists():
            return []
        with open(self.path, 'r', encoding='utf-8-sig') as f:
            return [line.strip() for line in f if line.strip()]

    def _write_atomic(self, lines) -> None:
        """Write ``lines`` to a sibling temp file and move it over the ledger."""
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=str(directory), prefix=f'.{self.path.name}.', suffix='.tmp'
        )
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write('\n'.join(lines) + '\n')
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.path)
        except OSError:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise
