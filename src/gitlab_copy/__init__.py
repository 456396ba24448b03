"""GitLab Copy

Copies groups and git repositories from one GitLab instance to another,
recording every finished project so interrupted runs can be resumed.
"""

__version__ = '0.1.0'

from .cli import main

__all__ = ['main']
