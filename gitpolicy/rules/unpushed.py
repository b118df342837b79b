"""Unpushed commit staleness policy."""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from ..repository.handle import Repository
from .base import Rule
from .branches import Branch, Tracking, is_orphan, list_branches
from .results import Result, Status, create_result
from .staleness import Clock, format_duration, from_timestamp, is_older, utc_now

LOG_FORMAT = "--format=%H %ct %s"


@dataclass
class UnpushedCommit:
    commit: str
    created: datetime
    subject: str


def _parse_log(output: str) -> List[UnpushedCommit]:
    commits = []
    for line in output.splitlines():
        parts = line.split(" ", 2)
        if len(parts) < 2:
            continue
        try:
            created = from_timestamp(parts[1])
        except ValueError:
            continue
        commits.append(UnpushedCommit(parts[0], created, parts[2] if len(parts) > 2 else ""))
    return commits


def unpushed_commits(repo: Repository, branch: Branch) -> Optional[List[UnpushedCommit]]:
    """
    Commits on ``branch`` missing from its upstream.

    Falls back to commits missing from every remote-tracking branch when the
    branch has no usable upstream. Returns None if git cannot answer.
    """
    tip = f"refs/heads/{branch.name}"
    if branch.tracking is Tracking.TRACKING:
        output, ok = repo.git("log", tip, "--not", f"{branch.name}@{{upstream}}", LOG_FORMAT)
        if ok:
            return _parse_log(output)

    output, ok = repo.git("log", tip, "--not", "--remotes", LOG_FORMAT)
    if not ok:
        return None
    return _parse_log(output)


class UnpushedRule(Rule):
    """
    Warns about local commits that have not been pushed for too long.

    Pull-request checkouts and orphan branches are left to the branch
    cleanup rule, which already reports them.
    """

    family = "staleness"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__()
        self.clock = clock or utc_now

    def check(self, repo: Repository) -> List[Result]:
        max_age = repo.config.thresholds.unpushed_max_age
        if not max_age:
            return []

        now = self.clock()
        identity_name = repo.config.identity.name
        threshold = format_duration(max_age)

        branches = list_branches(repo)
        if branches is None:
            return [create_result("staleness/unpushed", Status.WARN, "cannot list branches")]

        results = []
        for branch in branches:
            if branch.pull_request is not None or is_orphan(branch, identity_name):
                continue

            commits = unpushed_commits(repo, branch)
            if commits is None:
                results.append(create_result(
                    "staleness/unpushed",
                    Status.WARN,
                    "cannot list unpushed commits",
                    entity=branch.name
                ))
                continue
            if not commits:
                continue

            stale = sum(1 for commit in commits if is_older(commit.created, now, max_age))
            details = [
                f"{commit.commit[:7]} {commit.subject} ({format_duration(now - commit.created)} ago)"
                for commit in commits
            ]

            if stale:
                results.append(create_result(
                    "staleness/unpushed",
                    Status.WARN,
                    f"{stale}/{len(commits)} commits older than {threshold}",
                    entity=branch.name,
                    details=details
                ))
            else:
                results.append(create_result(
                    "staleness/unpushed",
                    Status.OK,
                    f"{len(commits)} unpushed commits (all recent)",
                    entity=branch.name
                ))

        if not results:
            return [create_result("staleness/unpushed", Status.OK, "no unpushed commits")]
        return results
