"""Scoped access to a repository's git configuration."""

import logging
from pathlib import Path
from typing import Dict

from .runner import GitRunner


class GitConfigStore:
    """
    Reads and writes git configuration for one working directory.

    ``get`` only consults the repository-local store (.git/config), so a
    value inherited from global or system configuration does not count as a
    local override. ``get_effective`` consults every scope git knows about.
    """

    def __init__(self, runner: GitRunner, directory: Path):
        self.runner = runner
        self.directory = directory
        self.logger = logging.getLogger('gitpolicy.repository.git_config')

    def get(self, key: str) -> str:
        """Local value of ``key``, or "" when unset."""
        output, ok = self.runner.run(self.directory, "config", "--local", "--get", key)
        return output if ok else ""

    def get_effective(self, key: str) -> str:
        """Effective value of ``key`` from all configuration sources."""
        output, ok = self.runner.run(self.directory, "config", "--get", key)
        return output if ok else ""

    def get_regexp(self, pattern: str) -> Dict[str, str]:
        """Local keys matching ``pattern`` mapped to their values."""
        output, ok = self.runner.run(self.directory, "config", "--local", "--get-regexp", pattern)
        if not ok or not output:
            return {}

        values = {}
        for line in output.splitlines():
            key, _, value = line.partition(" ")
            values[key] = value
        return values

    def set(self, key: str, value: str) -> bool:
        """Set a local value. Returns whether git accepted the write."""
        _, ok = self.runner.run(self.directory, "config", "--local", key, value)
        if ok:
            self.logger.info(f"Set {key}={value} in {self.directory}")
        else:
            self.logger.warning(f"Failed to set {key} in {self.directory}")
        return ok

    def unset(self, key: str) -> bool:
        """Remove a local value. Returns whether git removed it."""
        _, ok = self.runner.run(self.directory, "config", "--local", "--unset", key)
        if ok:
            self.logger.info(f"Unset {key} in {self.directory}")
        return ok
