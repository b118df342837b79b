"""Git subprocess execution through GitPython."""

import logging
from pathlib import Path
from typing import NamedTuple, Union

from git.cmd import Git
from git.exc import GitCommandNotFound

# Porcelain markers such as "[gone]" are translated in other locales
_GIT_ENV = {"LC_ALL": "C", "LANG": "C"}


class GitOutput(NamedTuple):
    """Output of a single git invocation."""
    output: str
    ok: bool


class GitRunner:
    """
    Runs git subcommands against a working directory.

    Non-zero exit codes are reported through ``GitOutput.ok`` and never
    raised. Trailing newlines are stripped from stdout; nothing else is.
    """

    def __init__(self):
        self.logger = logging.getLogger('gitpolicy.repository.runner')

    def run(self, workdir: Union[str, Path], *args: str) -> GitOutput:
        """
        Run ``git <args>`` with ``workdir`` as the current directory.

        Args:
            workdir: Directory the command runs in
            *args: Git subcommand and its arguments

        Returns:
            GitOutput with the trimmed stdout and whether git exited with 0
        """
        git = Git(str(workdir))
        command = [Git.GIT_PYTHON_GIT_EXECUTABLE or "git", *args]

        try:
            status, stdout, stderr = git.execute(
                command,
                with_extended_output=True,
                with_exceptions=False,
                strip_newline_in_stdout=False,
                env=_GIT_ENV,
            )
        except GitCommandNotFound as e:
            # Raised for a missing executable and for a missing workdir alike
            self.logger.error(f"Cannot run git in {workdir}: {e}")
            return GitOutput("", False)

        if status != 0:
            self.logger.debug(f"git {' '.join(args)} exited {status} in {workdir}: {stderr.strip()}")

        return GitOutput(stdout.rstrip("\n"), status == 0)
