"""Migration engine and its components."""

from .ledger import CompletionLedger, LedgerWriteError
from .reconciler import NamespaceReconciler, NamespaceResolutionError, find_group
from .migrator import ProjectMigrator, ProjectMigrationResult, ProjectState
from .snapshot import MigrationSnapshot
from .coordinator import (
    GroupMigrationResult,
    MigrationCoordinator,
    MigrationSummary,
)
from .engine import MigrationEngine

__all__ = [
    'CompletionLedger',
    'LedgerWriteError',
    'NamespaceReconciler',
    'NamespaceResolutionError',
    'find_group',
    'ProjectMigrator',
    'ProjectMigrationResult',
    'ProjectState',
    'MigrationSnapshot',
    'GroupMigrationResult',
    'MigrationCoordinator',
    'MigrationSummary',
    'MigrationEngine',
]
