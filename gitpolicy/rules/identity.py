"""Commit identity policy."""

from typing import List, Optional

from ..repository.handle import Repository
from .base import Rule
from .results import Result, Status, create_result


class IdentityRule(Rule):
    """
    Checks user.name and user.email.

    Work repositories must carry a local override with the work email.
    Personal repositories accept the work or personal email from any
    configuration source.
    """

    family = "identity"

    def _read(self, repo: Repository, key: str) -> str:
        if repo.work:
            return repo.git_config.get(key)
        return repo.git_config.get_effective(key)

    def check(self, repo: Repository) -> List[Result]:
        results = []
        identity = repo.config.identity

        if identity.name:
            name = self._read(repo, "user.name")
            if name == identity.name:
                results.append(create_result("identity/name", Status.OK, name))
            else:
                results.append(create_result(
                    "identity/name",
                    Status.FAIL,
                    f"got {name!r}, want {identity.name!r}",
                    fixable=True
                ))

        email = self._read(repo, "user.email")
        is_work = bool(email) and email == identity.work_email
        is_personal = bool(email) and email == identity.personal_email

        if repo.work and is_work:
            results.append(create_result("identity/email", Status.OK, email))
        elif repo.work:
            results.append(create_result(
                "identity/email",
                Status.FAIL,
                f"got {email!r}, want {identity.work_email!r}",
                fixable=True
            ))
        elif is_work or is_personal:
            results.append(create_result("identity/email", Status.OK, email))
        else:
            results.append(create_result(
                "identity/email",
                Status.FAIL,
                f"got {email!r}, want {identity.work_email!r} or {identity.personal_email!r}",
                fixable=True
            ))

        return results

    def _wanted_email(self, repo: Repository) -> str:
        identity = repo.config.identity
        if repo.work:
            return identity.work_email
        return identity.personal_email or identity.work_email

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        def apply(result: Result) -> Optional[Result]:
            if result.rule == "identity/name":
                key, value = "user.name", repo.config.identity.name
            elif result.rule == "identity/email":
                key, value = "user.email", self._wanted_email(repo)
            else:
                return None

            if not value or not repo.git_config.set(key, value):
                return None
            return result.fixed(f"set to {value}")

        return self._fix_each(results, apply)
