"""Runs every policy rule against repositories and aggregates the outcome."""

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .config import Config
from .errors import NotARepositoryError, error_handler
from .performance_logger import PerformanceLogger
from .repository.fork import ForkResolver
from .repository.handle import Repository
from .repository.runner import GitRunner
from .rules import (
    AttributionRule,
    BranchCleanupRule,
    IdentityRule,
    ProtocolRule,
    RemoteTopologyRule,
    Result,
    Rule,
    StalenessRule,
    Status,
    SubmoduleRule,
    UnpushedRule,
)
from .rules.staleness import Clock


class ExitStatus(IntEnum):
    """Process exit status derived from a run."""
    OK = 0
    PROBLEMS = 1    # at least one FAIL remains
    ERROR = 2       # a repository could not be processed at all


@dataclass
class LintReport:
    """Outcome of one repository run."""
    directory: Path
    results: List[Result] = field(default_factory=list)
    exit_status: ExitStatus = ExitStatus.OK
    error: Optional[str] = None

    @property
    def has_failures(self) -> bool:
        return has_failures(self.results)

    @property
    def has_problems(self) -> bool:
        return any(r.status is not Status.OK for r in self.results)


def has_failures(results: Iterable[Result]) -> bool:
    """True if any result is still FAIL."""
    return any(r.status is Status.FAIL for r in results)


def build_rules(
    fork_resolver: Optional[ForkResolver] = None,
    clock: Optional[Clock] = None
) -> List[Rule]:
    """The fixed, ordered rule set."""
    return [
        IdentityRule(),
        ProtocolRule(),
        RemoteTopologyRule(fork_resolver),
        AttributionRule(),
        StalenessRule(clock),
        SubmoduleRule(),
        BranchCleanupRule(),
        UnpushedRule(clock),
    ]


def run_rules(
    repo: Repository,
    rules: List[Rule],
    fix: bool = False,
    perf_logger: Optional[PerformanceLogger] = None
) -> List[Result]:
    """
    Check (and optionally fix) every rule, flattening results in rule order.

    A rule that raises during its check contributes a single WARN result
    instead; a rule that raises during its fix keeps its check results.
    """
    logger = logging.getLogger('gitpolicy.lint')
    perf_logger = perf_logger or PerformanceLogger()
    context = {'repository_path': str(repo.directory)}

    all_results: List[Result] = []
    for rule in rules:
        name = type(rule).__name__
        try:
            with perf_logger.time_operation(f"{name}.check", context):
                results = rule.check(repo)
        except Exception as e:
            logger.debug(f"{name} check failed", exc_info=True)
            all_results.append(error_handler.handle_rule_error(rule.family, e, dict(context, rule=name)))
            continue

        if fix:
            try:
                with perf_logger.time_operation(f"{name}.fix", context):
                    results = rule.fix(repo, results)
            except Exception as e:
                logger.warning(f"{name} fix failed in {repo.directory}: {e}", exc_info=True)

        all_results.extend(results)

    return all_results


def lint_repository(
    directory: Union[str, Path],
    config: Config,
    fix: bool = False,
    rules: Optional[List[Rule]] = None,
    runner: Optional[GitRunner] = None,
    perf_logger: Optional[PerformanceLogger] = None
) -> LintReport:
    """
    Run every rule against one repository.

    Args:
        directory: Working directory of the repository
        config: Policy configuration
        fix: Apply available fixes after checking
        rules: Rule list; build_rules() when omitted
        runner: Git runner shared by the repository handle
        perf_logger: Collects rule timings; a fresh logger whose summary
            is logged at the end of the run when omitted

    Returns:
        LintReport whose exit status is ERROR if the directory is not a
        repository, PROBLEMS if any FAIL remains, OK otherwise
    """
    logger = logging.getLogger('gitpolicy.lint')
    directory = Path(directory)

    try:
        repo = Repository(directory, config, runner=runner)
    except NotARepositoryError as e:
        logger.error(str(e))
        return LintReport(directory=directory, exit_status=ExitStatus.ERROR, error=str(e))

    logger.info(f"Checking {directory} ({'work' if repo.work else 'personal'}{', fixing' if fix else ''})")
    owns_perf_logger = perf_logger is None
    if owns_perf_logger:
        perf_logger = PerformanceLogger()
    results = run_rules(repo, rules if rules is not None else build_rules(), fix=fix, perf_logger=perf_logger)
    if owns_perf_logger:
        perf_logger.log_performance_summary()

    exit_status = ExitStatus.PROBLEMS if has_failures(results) else ExitStatus.OK
    return LintReport(directory=directory, results=results, exit_status=exit_status)


def lint_repositories(
    directories: Iterable[Union[str, Path]],
    config: Config,
    fix: bool = False,
    runner: Optional[GitRunner] = None,
    fork_resolver: Optional[ForkResolver] = None
) -> List[LintReport]:
    """
    Run every rule against several repositories, one after another.

    Repositories share only the configuration and the fork resolver; a
    fatal error in one does not affect the others.
    """
    fork_resolver = fork_resolver or ForkResolver()
    perf_logger = PerformanceLogger()
    reports = []
    for directory in directories:
        reports.append(lint_repository(
            directory,
            config,
            fix=fix,
            rules=build_rules(fork_resolver),
            runner=runner,
            perf_logger=perf_logger
        ))
    perf_logger.log_performance_summary()
    return reports


def overall_status(reports: Iterable[LintReport]) -> ExitStatus:
    """The most severe exit status among ``reports``."""
    return max((report.exit_status for report in reports), default=ExitStatus.OK)
