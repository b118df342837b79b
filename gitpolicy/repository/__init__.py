"""Repository access for gitpolicy."""

from .runner import GitOutput, GitRunner
from .git_config import GitConfigStore
from .handle import Repository
from .fork import ForkResolver, GitHubForkAPI

__all__ = [
    'GitOutput',
    'GitRunner',
    'GitConfigStore',
    'Repository',
    'ForkResolver',
    'GitHubForkAPI'
]
