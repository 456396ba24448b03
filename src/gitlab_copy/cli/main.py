"""Main CLI entry point for GitLab Copy."""

import sys
import asyncio
from typing import Optional
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..config.config import Config
from ..utils.logging import setup_logging
from ..migration.coordinator import MigrationSummary
from ..migration.engine import MigrationEngine

console = Console()

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.gitlab-copy.yaml']


@click.command()
@click.version_option(version='0.1.0', prog_name='gitlab-copy')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging',
)
@click.option(
    '--pause',
    is_flag=True,
    help='Wait for a key press before exiting',
)
def cli(config: Optional[str], verbose: bool, pause: bool) -> None:
    """GitLab Copy - Copy groups and repositories from one GitLab server to another.

    Projects already listed in the completion file are skipped, so the
    command can be re-run after a partial failure.
    """
    setup_logging('DEBUG' if verbose else 'INFO')

    console.print(
        Panel.fit(
            '[bold blue]GitLab Copy[/bold blue]\nStarting migration process...',
            border_style='blue',
        )
    )

    try:
        loaded = _load_config(config)
        _setup_logging_with_config(loaded, verbose)

        summary = _run_migration(loaded)
        _display_migration_summary(summary)
        console.print('[green]✓[/green] Complete')

    except Exception as e:
        console.print(f'[red]✗[/red] Migration failed: {escape(str(e))}')
        if verbose:
            console.print_exception()
        sys.exit(1)
    finally:
        if pause:
            click.pause()


def _load_config(config_path: Optional[str]) -> Config:
    """Load configuration from file or environment."""
    if config_path:
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    try:
        return Config.from_env()
    except Exception:
        raise FileNotFoundError(
            'No configuration found. Use --config to specify a file or set '
            'SOURCE_GITLAB_URL, SOURCE_GITLAB_TOKEN, DEST_GITLAB_URL and DEST_GITLAB_TOKEN.'
        )


def _setup_logging_with_config(config: Config, verbose: bool) -> None:
    """Setup logging with configuration from config file."""
    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _run_migration(config: Config) -> MigrationSummary:
    """Run the migration to completion."""
    engine = MigrationEngine(config)
    return asyncio.run(engine.migrate())


def _display_migration_summary(summary: MigrationSummary) -> None:
    """Display migration summary results."""
    table = Table(title='Migration Summary')
    table.add_column('Group', style='cyan')
    table.add_column('Migrated', style='green')
    table.add_column('Skipped', style='yellow')
    table.add_column('Failed', style='red')

    for group in summary.groups:
        states = [p.state.value for p in group.projects]
        table.add_row(
            escape(group.full_path if group.success else f'{group.full_path} (failed)'),
            str(states.count('recorded')),
            str(states.count('skipped')),
            str(states.count('failed')),
        )

    table.add_row(
        '[bold]Total[/bold]',
        str(summary.recorded),
        str(summary.skipped),
        str(summary.failed),
    )
    console.print(table)

    if summary.completed_at:
        duration = summary.completed_at - summary.started_at
        console.print(f'\n[blue]Migration Duration:[/blue] {duration}')

    errors = [
        f'{g.full_path}: {g.error_message}' for g in summary.groups if not g.success
    ]
    errors.extend(
        f'{p.path_with_namespace}: {p.error_message}'
        for p in summary.project_results
        if p.error_message
    )

    if errors:
        console.print(f'\n[red]Errors ({len(errors)}):[/red]')
        for error in errors[:10]:
            console.print(f'  • {escape(error)}')
        if len(errors) > 10:
            console.print(f'  ... and {len(errors) - 10} more errors')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
