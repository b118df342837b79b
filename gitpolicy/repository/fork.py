"""Fork-parent resolution with a per-repository cache."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Dict, Optional, Tuple

from .handle import Repository
from .urls import parse_github_repo

CACHE_KEY = "remote.origin.gh-parent"
NOT_A_FORK = "none"


class GitHubForkAPI:
    """Queries GitHub for a repository's fork parent through the gh CLI."""

    def __init__(self, executable: str = "gh", timeout: float = 30):
        self.executable = executable
        self.timeout = timeout
        self.logger = logging.getLogger('gitpolicy.repository.fork')

    def query(self, owner: str, repo: str) -> Tuple[str, bool]:
        """
        Look up the fork parent of ``owner/repo``.

        Returns:
            ("parent-owner/parent-repo", True) for a fork, ("", True) for a
            repository that is not a fork, ("", False) on any failure
            (gh missing or unauthenticated, network, 404, private repo).
        """
        if shutil.which(self.executable) is None:
            self.logger.debug(f"{self.executable} not found; fork lookup unavailable")
            return "", False

        try:
            result = subprocess.run(
                [self.executable, "api", f"repos/{owner}/{repo}", "--jq", ".parent.full_name // empty"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            self.logger.warning(f"Fork lookup for {owner}/{repo} timed out")
            return "", False
        except OSError as e:
            self.logger.debug(f"Fork lookup for {owner}/{repo} failed: {e}")
            return "", False

        if result.returncode != 0:
            self.logger.debug(f"Fork lookup for {owner}/{repo} failed: {result.stderr.strip()}")
            return "", False

        return result.stdout.strip(), True


class ForkResolver:
    """
    Resolves origin's fork parent and the local remote that points at it.

    A successful lookup is written to ``remote.origin.gh-parent`` straight
    away (``none`` for a repository that is not a fork), so later runs never
    query the API again. A failed lookup is only remembered for the lifetime
    of this resolver. A cached value is trusted as-is; correcting a wrong
    value means removing the key by hand (see ``forget``).
    """

    def __init__(self, api: Optional[GitHubForkAPI] = None):
        self.api = api or GitHubForkAPI()
        self.logger = logging.getLogger('gitpolicy.repository.fork')
        self._failed: Dict[Path, bool] = {}

    def fork_parent(self, repo: Repository) -> str:
        """Return origin's fork parent as "owner/repo", or ""."""
        cached = repo.git_config.get(CACHE_KEY)
        if cached == NOT_A_FORK:
            return ""
        if cached:
            return cached

        parsed = parse_github_repo(repo.remote_url("origin"))
        if parsed is None:
            return ""

        key = repo.directory.resolve()
        if key in self._failed:
            return ""

        owner, name = parsed
        parent, ok = self.api.query(owner, name)
        if not ok:
            self.logger.info(f"Fork parent of {owner}/{name} unavailable; skipping fork checks")
            self._failed[key] = True
            return ""

        repo.git_config.set(CACHE_KEY, parent or NOT_A_FORK)
        self.logger.debug(f"Fork parent of {owner}/{name}: {parent or 'not a fork'}")
        return parent

    def parent_remote(self, repo: Repository) -> str:
        """Name of the non-origin remote matching the fork parent, or ""."""
        parent = self.fork_parent(repo)
        if not parent:
            return ""

        for name in repo.remotes():
            if name == "origin":
                continue
            parsed = parse_github_repo(repo.remote_url(name))
            if parsed and "/".join(parsed) == parent:
                return name
        return ""

    def forget(self, repo: Repository) -> bool:
        """Drop the cached fork parent so the next lookup queries the API."""
        self._failed.pop(repo.directory.resolve(), None)
        return repo.git_config.unset(CACHE_KEY)
