"""Repository handle shared by every rule."""

import logging
from pathlib import Path
from typing import List, Optional, Union

from ..config import Config
from ..errors import NotARepositoryError
from .git_config import GitConfigStore
from .runner import GitOutput, GitRunner
from .urls import work_org_in_url

MAIN_BRANCH_NAMES = ("main", "master")


class Repository:
    """
    A git working directory together with the policy configuration.

    The work/personal classification is computed once when the handle is
    built and cannot change afterwards. Remote URLs are read from the local
    configuration store every time they are needed.
    """

    def __init__(
        self,
        directory: Union[str, Path],
        config: Config,
        runner: Optional[GitRunner] = None,
        work: Optional[bool] = None
    ):
        """
        Initialize the handle and verify the directory is a working copy.

        Args:
            directory: Working directory of the repository
            config: Policy configuration
            runner: Git runner; a GitRunner is created when omitted
            work: Pre-computed classification (used for nested handles)

        Raises:
            NotARepositoryError: If git cannot resolve a repository here
        """
        self.directory = Path(directory)
        self.config = config
        self.runner = runner or GitRunner()
        self.git_config = GitConfigStore(self.runner, self.directory)
        self.logger = logging.getLogger('gitpolicy.repository')

        if not self.git("rev-parse", "--git-dir").ok:
            raise NotARepositoryError(self.directory)

        self._work = self._classify() if work is None else work
        self.logger.debug(f"{self.directory} classified as {'work' if self._work else 'personal'}")

    @property
    def work(self) -> bool:
        """True if this is a work repository."""
        return self._work

    def _classify(self) -> bool:
        for name in self.remotes():
            if work_org_in_url(self.remote_url(name), self.config.work_orgs):
                return True

        # A globally configured work email still means work
        email = self.git_config.get_effective("user.email")
        return bool(email) and email == self.config.identity.work_email

    def git(self, *args: str) -> GitOutput:
        """Run a git command in the repository directory."""
        return self.runner.run(self.directory, *args)

    def at(self, path: Union[str, Path]) -> "Repository":
        """
        Handle for a nested working copy (a submodule) below this one.

        Commands run with the nested directory as their working directory,
        so they resolve the nested repository instead of this one.
        """
        return Repository(self.directory / path, self.config, runner=self.runner, work=self._work)

    def remotes(self) -> List[str]:
        """Names of configured remotes."""
        output, ok = self.git("remote")
        if not ok or not output:
            return []
        return output.splitlines()

    def remote_url(self, name: str) -> str:
        """Fetch URL as stored in .git/config, bypassing insteadOf rewriting."""
        return self.git_config.get(f"remote.{name}.url")

    def git_path(self, name: str) -> Path:
        """
        Location of ``name`` inside the git directory.

        Asks git so linked worktrees and submodules (whose ``.git`` is a
        file) resolve correctly; falls back to ``.git/<name>``.
        """
        output, ok = self.git("rev-parse", "--git-path", name)
        if ok and output:
            return self.directory / output
        return self.directory / ".git" / name

    def main_branch(self) -> str:
        """Name of the main branch ("main" or "master"), or "" if neither exists."""
        for name in MAIN_BRANCH_NAMES:
            if self.git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}").ok:
                return name
        return ""

    def current_branch(self) -> str:
        """Checked-out branch, or "" for a detached HEAD."""
        output, ok = self.git("symbolic-ref", "--short", "HEAD")
        return output if ok else ""

    def __repr__(self) -> str:
        return f"Repository({str(self.directory)!r}, work={self._work})"
