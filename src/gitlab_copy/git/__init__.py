"""Git operations module for repository migration."""

from .runner import GitRunner, GitCommandError, GitTimeoutError, mask_credentials
from .operations import GitOperations, inject_token, parse_remote_branches

__all__ = [
    'GitRunner',
    'GitCommandError',
    'GitTimeoutError',
    'GitOperations',
    'inject_token',
    'mask_credentials',
    'parse_remote_branches',
]
