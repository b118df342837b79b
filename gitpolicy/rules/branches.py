"""Stale branch classification and cleanup."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from ..repository.handle import Repository
from .base import Rule
from .results import Result, Status, create_result

PULL_REQUEST_REF = re.compile(r"^refs/pull/(\d+)/head$")

BRANCH_FORMAT = "%(refname:short)|%(objectname)|%(upstream:track)|%(upstream)|%(authorname)"


class Tracking(Enum):
    """Upstream-tracking state of a local branch."""
    NONE = "none"           # no upstream configured
    TRACKING = "tracking"   # upstream configured and present
    GONE = "gone"           # upstream configured, remote branch deleted


@dataclass(frozen=True)
class Branch:
    """A local branch as reported by for-each-ref and branch.* config."""
    name: str
    commit: str
    author: str
    tracking: Tracking
    merge_ref: Optional[str] = None
    remote: Optional[str] = None

    @property
    def short_commit(self) -> str:
        return self.commit[:7]

    @property
    def pull_request(self) -> Optional[int]:
        """Pull request number when checked out from a PR ref."""
        if not self.merge_ref:
            return None
        match = PULL_REQUEST_REF.match(self.merge_ref)
        return int(match.group(1)) if match else None


def _branch_settings(repo: Repository) -> Dict[str, Dict[str, str]]:
    settings: Dict[str, Dict[str, str]] = {}
    for key, value in repo.git_config.get_regexp(r"^branch\.").items():
        # branch.<name>.<setting>; names may themselves contain dots
        name, _, setting = key[len("branch."):].rpartition(".")
        if name:
            settings.setdefault(name, {})[setting] = value
    return settings


def list_branches(repo: Repository) -> Optional[List[Branch]]:
    """Read every local branch in one for-each-ref call, or None if git fails."""
    output, ok = repo.git("for-each-ref", f"--format={BRANCH_FORMAT}", "refs/heads/")
    if not ok:
        return None
    if not output:
        return []

    settings = _branch_settings(repo)
    branches = []
    for line in output.splitlines():
        parts = line.split("|", 4)
        if len(parts) < 5:
            continue
        name, commit, track, upstream, author = parts
        config = settings.get(name, {})

        if "gone" in track:
            tracking = Tracking.GONE
        elif upstream or config.get("remote"):
            tracking = Tracking.TRACKING
        else:
            tracking = Tracking.NONE

        branches.append(Branch(
            name=name,
            commit=commit,
            author=author,
            tracking=tracking,
            merge_ref=config.get("merge"),
            remote=config.get("remote"),
        ))
    return branches


def is_orphan(branch: Branch, identity_name: str) -> bool:
    """No upstream, and the tip was authored by someone else."""
    return bool(identity_name) and branch.tracking is Tracking.NONE and branch.author != identity_name


def merged_branches(repo: Repository, main: str) -> Optional[Set[str]]:
    """
    Names of local branches whose tip is an ancestor of the main branch.

    Checked against main's remote-tracking branch so branches merged
    upstream are found before local main is fast-forwarded; local main is
    used when no upstream resolves. Returns None when neither query works.
    """
    if not main:
        return set()

    fmt = "--format=%(refname:short)"
    output, ok = repo.git("branch", "--merged", f"{main}@{{upstream}}", fmt)
    if not ok:
        output, ok = repo.git("branch", "--merged", main, fmt)
    if not ok:
        return None
    if not output:
        return set()
    return {name.strip() for name in output.splitlines() if name.strip()}


def remote_pull_request_head(repo: Repository, remote: str, number: int) -> Optional[str]:
    """Current commit of a pull request ref on the remote, or None if unreachable."""
    output, ok = repo.git("ls-remote", remote, f"refs/pull/{number}/head")
    if not ok or not output:
        return None
    return output.split()[0]


class BranchCleanupRule(Rule):
    """
    Finds local branches that are safe to delete.

    Classifiers run in priority order and the first match wins: upstream
    gone, merged into main, stale pull-request checkout, orphan. Cheap,
    unambiguous signals come first; the pull-request check needs one remote
    query per candidate and orphan detection is the weakest signal.
    """

    family = "branch"

    def check(self, repo: Repository) -> List[Result]:
        branches = list_branches(repo)
        if branches is None:
            return [create_result("branch/cleanup", Status.WARN, "cannot list branches")]
        if not branches:
            return []

        current = repo.current_branch()
        main = repo.main_branch()
        identity_name = repo.config.identity.name

        results = []
        merged = merged_branches(repo, main)
        if merged is None:
            results.append(create_result(
                "branch/merged", Status.WARN, f"cannot list branches merged into {main}"
            ))
            merged = set()

        for branch in branches:
            if branch.name == main:
                continue

            match = self._classify(repo, branch, main, merged, identity_name)
            if match is None:
                continue

            rule, message = match
            if branch.name == current:
                results.append(create_result(
                    rule,
                    Status.WARN,
                    f"{message}; checked out, switch branches before deleting",
                    entity=branch.name
                ))
            else:
                results.append(create_result(rule, Status.WARN, message, entity=branch.name, fixable=True))

        if not results:
            return [create_result("branch/cleanup", Status.OK, "no stale branches")]
        return results

    def _classify(
        self,
        repo: Repository,
        branch: Branch,
        main: str,
        merged: Set[str],
        identity_name: str
    ) -> Optional[Tuple[str, str]]:
        origin = f"{branch.short_commit} by {branch.author}"

        if branch.tracking is Tracking.GONE:
            return "branch/gone", f"upstream deleted ({origin})"

        if branch.name in merged:
            return "branch/merged", f"merged into {main} ({origin})"

        number = branch.pull_request
        if number is not None:
            state = self._pull_request_state(repo, branch, number, main)
            if state:
                return "branch/pr", f"PR #{number} {state} ({origin})"

        if is_orphan(branch, identity_name):
            return "branch/orphan", f"no upstream, last commit {origin}"

        return None

    def _pull_request_state(self, repo: Repository, branch: Branch, number: int, main: str) -> str:
        remote = branch.remote
        if not remote:
            return ""

        # The PR remote's main, not origin's, decides whether the PR landed
        if main and repo.git(
            "merge-base", "--is-ancestor", branch.commit, f"refs/remotes/{remote}/{main}"
        ).ok:
            return "merged"

        head = remote_pull_request_head(repo, remote, number)
        if head is None:
            self.logger.debug(f"Cannot query {remote} for PR #{number}; skipping {branch.name}")
            return ""
        if not head.startswith(branch.short_commit):
            return "updated since checkout"
        return ""

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        current = repo.current_branch()

        def apply(result: Result) -> Optional[Result]:
            if not result.entity or result.entity == current:
                return None
            if not repo.git("branch", "-D", result.entity).ok:
                return None
            return result.fixed(f"deleted {result.entity}")

        return self._fix_each(results, apply)
