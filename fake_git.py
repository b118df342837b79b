"""Scripted git runner used by the unit tests."""

import re
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple, Union

from gitpolicy.config import Config, IdentityConfig, ThresholdsConfig
from gitpolicy.repository.runner import GitOutput

Response = Union[GitOutput, Callable[[], GitOutput]]


class FakeGitRunner:
    """
    Stand-in for GitRunner that answers from scripted responses.

    ``git config`` and ``git remote`` are served from in-memory local and
    global stores unless a response was scripted for the exact arguments.
    Every invocation is recorded in ``calls``.
    """

    def __init__(self):
        self.responses: Dict[Tuple[Optional[str], Tuple[str, ...]], Response] = {}
        self.calls: List[Tuple[Path, Tuple[str, ...]]] = []
        self.local_config: Dict[str, Dict[str, str]] = {}
        self.global_config: Dict[str, str] = {}
        self.not_repositories = set()

    # Scripting helpers

    def respond(self, *args: str, output: str = "", ok: bool = True, workdir=None) -> None:
        self.responses[(self._key(workdir), args)] = GitOutput(output, ok)

    def respond_with(self, *args: str, handler: Callable[[], GitOutput], workdir=None) -> None:
        self.responses[(self._key(workdir), args)] = handler

    def local(self, workdir) -> Dict[str, str]:
        return self.local_config.setdefault(self._key(workdir), {})

    def add_remote(self, workdir, name: str, url: str) -> None:
        self.local(workdir)[f"remote.{name}.url"] = url

    def calls_for(self, *prefix: str) -> List[Tuple[str, ...]]:
        return [args for _, args in self.calls if args[:len(prefix)] == prefix]

    # GitRunner interface

    def run(self, workdir, *args: str) -> GitOutput:
        self.calls.append((Path(workdir), args))

        for key in ((self._key(workdir), args), (None, args)):
            if key in self.responses:
                response = self.responses[key]
                return response() if callable(response) else response

        if args == ("rev-parse", "--git-dir"):
            return GitOutput("", False) if self._key(workdir) in self.not_repositories else GitOutput(".git", True)
        if args and args[0] == "config":
            return self._config(workdir, args[1:])
        if args[:1] == ("for-each-ref",):
            # No refs unless scripted
            return GitOutput("", True)
        if args == ("remote",):
            names = [key.split(".")[1] for key in self.local(workdir) if re.match(r"^remote\.[^.]+\.url$", key)]
            return GitOutput("\n".join(names), True)
        return GitOutput("", False)

    def _config(self, workdir, args: Tuple[str, ...]) -> GitOutput:
        local = self.local(workdir)
        if args[:2] == ("--local", "--get"):
            value = local.get(args[2])
            return GitOutput(value or "", value is not None)
        if args[:1] == ("--get",):
            value = local.get(args[1], self.global_config.get(args[1]))
            return GitOutput(value or "", value is not None)
        if args[:2] == ("--local", "--get-regexp"):
            pattern = re.compile(args[2])
            lines = [f"{key} {value}" for key, value in local.items() if pattern.search(key)]
            return GitOutput("\n".join(lines), bool(lines))
        if args[:2] == ("--local", "--unset"):
            existed = local.pop(args[2], None) is not None
            return GitOutput("", existed)
        if args[:1] == ("--local",) and len(args) == 3:
            local[args[1]] = args[2]
            return GitOutput("", True)
        return GitOutput("", False)

    @staticmethod
    def _key(workdir) -> Optional[str]:
        return None if workdir is None else str(Path(workdir))


def make_config(**overrides) -> Config:
    """Policy configuration used throughout the tests."""
    identity = overrides.pop("identity", None) or IdentityConfig(
        name="Test User",
        work_email="test.user@company.example",
        personal_email="test@personal.example",
    )
    thresholds = overrides.pop("thresholds", None) or ThresholdsConfig()
    return Config(
        work_orgs=overrides.pop("work_orgs", ["acme"]),
        identity=identity,
        thresholds=thresholds,
        **overrides
    )
