"""Git steps of a project migration."""

from pathlib import Path
from typing import Iterable, List, Optional, Union

from loguru import logger

from .runner import GitRunner

REMOTE_BRANCH_PREFIX = 'remotes/origin/'

PathLike = Union[str, Path]


def inject_token(url: str, token: Optional[str]) -> str:
    """Insert a token into an http(s) clone URL.

    ``https://gitlab.com/group/repo.git`` becomes
    ``https://oauth2:<token>@gitlab.com/group/repo.git``. SSH URLs and URLs
    without a token are returned unchanged.
    """
    if not token:
        return url
    for scheme in ('https://', 'http://'):
        if url.startswith(scheme):
            return url.replace(scheme, f'{scheme}oauth2:{token}@', 1)
    return url


def parse_remote_branches(lines: Iterable[str]) -> List[str]:
    """Derive the branches to check out from ``git branch -a`` output.

    The current branch (``*``) and symbolic refs (``->``) are dropped and the
    remote-tracking prefix is stripped. Listing order is kept.
    """
    branches = []
    for line in lines:
        if '*' in line or '->' in line:
            continue
        name = line.strip()
        if name.startswith(REMOTE_BRANCH_PREFIX):
            name = name[len(REMOTE_BRANCH_PREFIX):]
        if name:
            branches.append(name)
    return branches


class GitOperations:
    """The git subcommands a project migration is made of."""

    def __init__(self, runner: GitRunner):
        """Initialize git operations.

        Args:
            runner: Runner executing the git subprocesses
        """
        self.runner = runner
        self.logger = logger.bind(component='GitOperations')

    async def clone(self, url: str, parent_dir: PathLike, directory: str) -> None:
        """Clone ``url`` into ``parent_dir/directory``."""
        await self.runner.run(['clone', url, directory], parent_dir)

    async def remote_branches(self, repo_dir: PathLike) -> List[str]:
        """List the remote branches that still need a local branch."""
        return parse_remote_branches(await self.runner.run(['branch', '-a'], repo_dir))

    async def checkout(self, repo_dir: PathLike, branch: str) -> None:
        """Check out ``branch``, creating the local tracking branch."""
        await self.runner.run(['checkout', branch, '--'], repo_dir)

    async def checkout_all_branches(self, repo_dir: PathLike) -> List[str]:
        """Materialize every remote branch as a local branch.

        Returns:
            The branches checked out, in listing order
        """
        branches = await self.remote_branches(repo_dir)
        for branch in branches:
            self.logger.info(f'Checking out: {branch}')
            await self.checkout(repo_dir, branch)
        return branches

    async def add_remote(self, repo_dir: PathLike, name: str, url: str) -> None:
        """Register ``url`` as remote ``name``."""
        await self.runner.run(['remote', 'add', name, url], repo_dir)

    async def push_all(self, repo_dir: PathLike, remote: str) -> None:
        """Push every local branch to ``remote`` with upstream tracking."""
        await self.runner.run(['push', '-u', remote, '--all'], repo_dir)

    async def push_tags(self, repo_dir: PathLike, remote: str) -> None:
        """Push every tag to ``remote``."""
        await self.runner.run(['push', '-u', remote, '--tags'], repo_dir)
