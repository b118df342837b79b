"""Result and status types produced by policy rules."""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple


class Status(Enum):
    """Outcome of evaluating one policy for one entity."""
    OK = "ok"       # compliant
    WARN = "warn"   # non-compliant, remediation optional or impossible
    FAIL = "fail"   # non-compliant, remediation exists and is recommended
    FIX = "fix"     # remediation was just applied


@dataclass(frozen=True)
class Result:
    """
    One policy outcome.

    ``rule`` identifies the policy (e.g. "branch/gone") and ``entity`` the
    branch, remote or submodule path it concerns, if any.
    """
    rule: str
    status: Status
    message: str
    entity: Optional[str] = None
    details: Tuple[str, ...] = ()
    fixable: bool = False

    @property
    def name(self) -> str:
        """Display name in the ``rule[entity]`` form."""
        if self.entity is None:
            return self.rule
        return f"{self.rule}[{self.entity}]"

    @property
    def family(self) -> str:
        """Rule family, e.g. "branch" for "branch/gone"."""
        return self.rule.split("/", 1)[0]

    @property
    def needs_fix(self) -> bool:
        """Whether a fix pass should attempt this entry."""
        return self.fixable and self.status in (Status.FAIL, Status.WARN)

    def fixed(self, message: str) -> "Result":
        """FIX result replacing this entry."""
        return Result(rule=self.rule, status=Status.FIX, message=message, entity=self.entity)


def create_result(
    rule: str,
    status: Status,
    message: str,
    entity: Optional[str] = None,
    details: Iterable[str] = (),
    fixable: bool = False
) -> Result:
    """Build a Result, converting ``details`` to a tuple."""
    return Result(
        rule=rule,
        status=status,
        message=message,
        entity=entity,
        details=tuple(details),
        fixable=fixable
    )
