"""Submodule consistency policy."""

from dataclasses import dataclass
from typing import List, Optional

from ..errors import NotARepositoryError
from ..repository.handle import Repository
from .base import Rule
from .results import Result, Status, create_result
from .staleness import parse_porcelain

NOT_INITIALIZED = "-"
OUT_OF_SYNC = "+"


@dataclass
class SubmoduleStatus:
    prefix: str
    commit: str
    path: str


def submodule_status(repo: Repository) -> Optional[List[SubmoduleStatus]]:
    """
    Parse ``git submodule status``.

    Each line reads ``<prefix><sha> <path> [(<describe>)]`` where the prefix
    is "-" (not initialized), "+" (checked-out commit differs from the one
    the parent records), "U" (merge conflicts) or a space.
    Returns None when the command fails.
    """
    output, ok = repo.git("submodule", "status")
    if not ok:
        return None

    statuses = []
    for line in output.splitlines():
        if len(line) < 2:
            continue
        fields = line[1:].split()
        if len(fields) < 2:
            continue
        statuses.append(SubmoduleStatus(line[0], fields[0], fields[1]))
    return statuses


class SubmoduleRule(Rule):
    """
    Checks every submodule for initialization, sync and local work.

    Uninitialized submodules get no further checks: git run inside their
    empty directory would operate on the parent repository instead.
    """

    family = "submodule"

    def check(self, repo: Repository) -> List[Result]:
        if not (repo.directory / ".gitmodules").exists():
            return []

        statuses = submodule_status(repo)
        if statuses is None:
            return [create_result("submodule/status", Status.WARN, "cannot read submodule status")]
        if not statuses:
            return []

        results = []
        for status in statuses:
            results.extend(self._check_submodule(repo, status))

        if not results:
            return [create_result("submodule/status", Status.OK, f"{len(statuses)} submodules in sync")]
        return results

    def _check_submodule(self, repo: Repository, status: SubmoduleStatus) -> List[Result]:
        path = status.path
        if status.prefix == NOT_INITIALIZED:
            return [create_result(
                "submodule/init", Status.WARN, "submodule not initialized", entity=path, fixable=True
            )]

        results = []
        if status.prefix == OUT_OF_SYNC:
            results.append(create_result(
                "submodule/sync", Status.WARN, "checked-out commit differs from parent", entity=path
            ))

        try:
            nested = repo.at(path)
        except NotARepositoryError:
            results.append(create_result(
                "submodule/status", Status.WARN, "cannot open submodule working copy", entity=path
            ))
            return results

        output, ok = nested.git("status", "--porcelain")
        if ok and output:
            changes, untracked = parse_porcelain(output)
            if changes:
                results.append(create_result(
                    "submodule/uncommitted",
                    Status.WARN,
                    f"{len(changes)} uncommitted changes",
                    entity=path,
                    details=changes
                ))
            if untracked:
                results.append(create_result(
                    "submodule/untracked",
                    Status.WARN,
                    f"{len(untracked)} untracked files",
                    entity=path,
                    details=untracked
                ))

        # Fails when no upstream is configured; nothing to report then
        output, ok = nested.git("log", "@{upstream}..HEAD", "--oneline")
        if ok and output:
            lines = output.splitlines()
            results.append(create_result(
                "submodule/unpushed",
                Status.WARN,
                f"{len(lines)} unpushed commits",
                entity=path,
                details=lines
            ))

        return results

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        paths = [r.entity for r in results if r.needs_fix and r.rule == "submodule/init" and r.entity]
        if not paths:
            return list(results)

        ok = repo.git("submodule", "update", "--init", "--recursive", "--", *paths).ok
        if not ok:
            self.logger.warning(f"Failed to initialize submodules: {', '.join(paths)}")

        return self._fix_each(
            results,
            lambda r: r.fixed(f"initialized {r.entity}") if ok and r.entity in paths else None
        )
