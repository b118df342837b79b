"""The contract every policy rule implements."""

import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from ..repository.handle import Repository
from .results import Result


class Rule(ABC):
    """
    A policy rule with a read-only check and an idempotent fix.

    ``check`` returns an empty list when the rule does not apply.
    ``fix`` receives the output of ``check`` (or of an earlier ``fix``) and
    returns a new list in which every entry it managed to remediate is
    replaced by a FIX result; everything else passes through unchanged.
    """

    #: Rule family used for degraded results (e.g. "branch/error")
    family = "rule"

    def __init__(self):
        self.logger = logging.getLogger(f'gitpolicy.rules.{self.family}')

    @abstractmethod
    def check(self, repo: Repository) -> List[Result]:
        """Evaluate the policy against the current repository state."""

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        """Warn-only rules pass their results through."""
        return list(results)

    def _fix_each(
        self,
        results: List[Result],
        apply: Callable[[Result], Optional[Result]]
    ) -> List[Result]:
        """
        Apply ``apply`` to every entry that needs fixing.

        ``apply`` returns the replacement FIX result, or None when the
        remediation could not be applied, in which case the original entry
        is kept.
        """
        fixed = []
        for result in results:
            if not result.needs_fix:
                fixed.append(result)
                continue

            replacement = apply(result)
            if replacement is None:
                self.logger.warning(f"Could not fix {result.name}")
                fixed.append(result)
            else:
                self.logger.info(f"Fixed {result.name}: {replacement.message}")
                fixed.append(replacement)
        return fixed

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
