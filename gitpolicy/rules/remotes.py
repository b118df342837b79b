"""Remote topology policy for work repositories."""

from typing import List, Optional

from ..repository.fork import ForkResolver
from ..repository.handle import Repository
from ..repository.urls import work_org_in_url
from .base import Rule
from .results import Result, Status, create_result

NO_PUSH = "no_push"
GH_RESOLVED_BASE = "base"


class RemoteTopologyRule(Rule):
    """
    Checks the fork workflow layout of a work repository.

    origin must be the personal fork, the main branch must track the fork
    parent and must not be pushable, and every work-org remote must be the
    base repository for the gh CLI.
    """

    family = "remote"

    def __init__(self, fork_resolver: Optional[ForkResolver] = None):
        super().__init__()
        self.fork_resolver = fork_resolver or ForkResolver()

    def check(self, repo: Repository) -> List[Result]:
        if not repo.work:
            return []
        remotes = repo.remotes()
        if len(remotes) < 2:
            return []

        results = []
        orgs = repo.config.work_orgs

        org = work_org_in_url(repo.remote_url("origin"), orgs)
        if org:
            results.append(create_result(
                "remote/origin",
                Status.FAIL,
                f"origin points to work org {org} (expected personal fork)"
            ))
        else:
            results.append(create_result("remote/origin", Status.OK, "origin points to personal fork"))

        main = repo.main_branch()
        if main:
            results.extend(self._check_main(repo, main))

        for name in remotes:
            if name == "origin" or not work_org_in_url(repo.remote_url(name), orgs):
                continue
            resolved = repo.git_config.get(f"remote.{name}.gh-resolved")
            if resolved == GH_RESOLVED_BASE:
                results.append(create_result(
                    "remote/gh-resolved", Status.OK, f"{name} gh-resolved is base", entity=name
                ))
            else:
                results.append(create_result(
                    "remote/gh-resolved",
                    Status.FAIL,
                    f"{name} gh-resolved is {resolved!r}, should be base",
                    entity=name,
                    fixable=True
                ))

        return results

    def _check_main(self, repo: Repository, main: str) -> List[Result]:
        results = []

        # Only checkable when the fork parent resolves to a local remote
        upstream = self.fork_resolver.parent_remote(repo)
        if upstream:
            tracked = repo.git_config.get(f"branch.{main}.remote")
            if tracked == upstream:
                results.append(create_result("remote/tracking", Status.OK, f"{main} tracks {tracked}"))
            else:
                results.append(create_result(
                    "remote/tracking",
                    Status.FAIL,
                    f"{main} tracks {tracked!r}, should track {upstream!r}",
                    fixable=True
                ))

        push_remote = repo.git_config.get(f"branch.{main}.pushRemote")
        if push_remote == NO_PUSH:
            results.append(create_result("remote/push-guard", Status.OK, f"{main} pushRemote is no_push"))
        else:
            results.append(create_result(
                "remote/push-guard",
                Status.FAIL,
                f"{main} pushRemote is {push_remote!r}, should be no_push",
                fixable=True
            ))

        return results

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        main = repo.main_branch()

        def apply(result: Result) -> Optional[Result]:
            if result.rule == "remote/tracking" and main:
                upstream = self.fork_resolver.parent_remote(repo)
                if not upstream or not repo.git_config.set(f"branch.{main}.remote", upstream):
                    return None
                merge_key = f"branch.{main}.merge"
                merge_ref = f"refs/heads/{main}"
                if repo.git_config.get(merge_key) != merge_ref and not repo.git_config.set(merge_key, merge_ref):
                    return None
                return result.fixed(f"set {main} to track {upstream}/{main}")

            if result.rule == "remote/push-guard" and main:
                if not repo.git_config.set(f"branch.{main}.pushRemote", NO_PUSH):
                    return None
                return result.fixed(f"set {main} pushRemote to no_push")

            if result.rule == "remote/gh-resolved" and result.entity:
                if not repo.git_config.set(f"remote.{result.entity}.gh-resolved", GH_RESOLVED_BASE):
                    return None
                return result.fixed(f"set {result.entity} gh-resolved to base")

            return None

        return self._fix_each(results, apply)
