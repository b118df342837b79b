#!/usr/bin/env python3
"""
Unit tests for the orchestrator, logging setup and performance timing.

Full-pipeline tests run the real rule set against the scripted runner
with a mocked fork resolver, so no network access is attempted.
"""

import logging
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

sys.path.insert(0, str(Path(__file__).parent))

from fake_git import FakeGitRunner, make_config
from gitpolicy.config import Config
from gitpolicy.lint import (
    ExitStatus,
    LintReport,
    build_rules,
    lint_repositories,
    lint_repository,
    overall_status,
    run_rules,
)
from gitpolicy.logging_config import LOGGERS, StructuredFormatter, setup_logging
from gitpolicy.performance_logger import PerformanceLogger
from gitpolicy.repository.fork import ForkResolver, GitHubForkAPI
from gitpolicy.repository.handle import Repository
from gitpolicy.rules import (
    AttributionRule,
    BranchCleanupRule,
    IdentityRule,
    ProtocolRule,
    RemoteTopologyRule,
    Rule,
    StalenessRule,
    SubmoduleRule,
    UnpushedRule,
)
from gitpolicy.rules.results import Status, create_result

REPO_DIR = Path("/work/lint")
OTHER_DIR = Path("/work/other")


class StubRule(Rule):
    """Rule returning canned results and recording its invocations."""

    family = "stub"

    def __init__(self, label, log, results=(), check_error=None, fix_error=None):
        super().__init__()
        self.label = label
        self.log = log
        self.results = list(results)
        self.check_error = check_error
        self.fix_error = fix_error

    def check(self, repo):
        self.log.append(f"{self.label}.check")
        if self.check_error:
            raise self.check_error
        return list(self.results)

    def fix(self, repo, results):
        self.log.append(f"{self.label}.fix")
        if self.fix_error:
            raise self.fix_error
        return self._fix_each(results, lambda r: r.fixed("done"))


class TestRunRules(unittest.TestCase):
    """Ordering and failure isolation."""

    def setUp(self):
        self.runner = FakeGitRunner()
        self.repo = Repository(REPO_DIR, make_config(), runner=self.runner)
        self.log = []
        self.perf = PerformanceLogger()

    def test_build_rules_order(self):
        rules = build_rules(ForkResolver(Mock()))
        self.assertEqual([type(r) for r in rules], [
            IdentityRule,
            ProtocolRule,
            RemoteTopologyRule,
            AttributionRule,
            StalenessRule,
            SubmoduleRule,
            BranchCleanupRule,
            UnpushedRule,
        ])

    def test_results_are_flattened_in_rule_order(self):
        rules = [
            StubRule("first", self.log, [create_result("a/one", Status.OK, "")]),
            StubRule("second", self.log, []),
            StubRule("third", self.log, [create_result("c/one", Status.WARN, ""), create_result("c/two", Status.OK, "")]),
        ]
        results = run_rules(self.repo, rules, perf_logger=self.perf)

        self.assertEqual([r.rule for r in results], ["a/one", "c/one", "c/two"])
        self.assertEqual(self.log, ["first.check", "second.check", "third.check"])

    def test_fix_runs_after_each_check(self):
        rules = [
            StubRule("first", self.log, [create_result("a/one", Status.FAIL, "", fixable=True)]),
            StubRule("second", self.log, [create_result("b/one", Status.OK, "")]),
        ]
        results = run_rules(self.repo, rules, fix=True, perf_logger=self.perf)

        self.assertEqual(self.log, ["first.check", "first.fix", "second.check", "second.fix"])
        self.assertEqual([r.status for r in results], [Status.FIX, Status.OK])

    def test_check_error_becomes_warning(self):
        failing = StubRule("broken", self.log, check_error=RuntimeError("boom"))
        failing.family = "branch"
        rules = [failing, StubRule("after", self.log, [create_result("b/one", Status.OK, "")])]
        results = run_rules(self.repo, rules, fix=True, perf_logger=self.perf)

        self.assertEqual(results[0].rule, "branch/error")
        self.assertEqual(results[0].status, Status.WARN)
        self.assertIn("boom", results[0].message)
        self.assertEqual(results[1].rule, "b/one")
        self.assertNotIn("broken.fix", self.log)

    def test_fix_error_keeps_check_results(self):
        original = create_result("a/one", Status.FAIL, "", fixable=True)
        rules = [StubRule("flaky", self.log, [original], fix_error=OSError("disk"))]
        results = run_rules(self.repo, rules, fix=True, perf_logger=self.perf)

        self.assertEqual(results, [original])

    def test_phases_are_timed(self):
        rules = [StubRule("first", self.log, [create_result("a/one", Status.OK, "")])]
        run_rules(self.repo, rules, fix=True, perf_logger=self.perf)

        operations = [m.operation for m in self.perf.metrics]
        self.assertEqual(operations, ["StubRule.check", "StubRule.fix"])
        self.assertEqual(self.perf.metrics[0].context, {"repository_path": str(REPO_DIR)})
        self.assertEqual(self.perf.get_performance_summary()["total_operations"], 2)


class TestLintRepository(unittest.TestCase):
    """
    End-to-end runs with the real rule set.

    Work repositories get files written by their fixes, so each test runs
    against a temporary directory.
    """

    def setUp(self):
        self.repo_dir = Path(tempfile.mkdtemp())
        self.runner = FakeGitRunner()
        self.resolver = Mock()
        self.resolver.parent_remote.return_value = "upstream"

    def tearDown(self):
        if self.repo_dir.exists():
            shutil.rmtree(self.repo_dir)

    def _rules(self):
        return build_rules(self.resolver)

    def _work_repository(self):
        self.runner.add_remote(self.repo_dir, "origin", "git@github.com:someone/widget.git")
        self.runner.add_remote(self.repo_dir, "upstream", "git@github.com:acme/widget.git")
        self.runner.respond("rev-parse", "--verify", "--quiet", "refs/heads/main", output="abc")

    def test_clean_personal_repository(self):
        self.runner.add_remote(self.repo_dir, "origin", "git@github.com:someone/dotfiles.git")
        self.runner.global_config["user.name"] = "Test User"
        self.runner.global_config["user.email"] = "test@personal.example"
        report = lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)

        self.assertEqual(report.exit_status, ExitStatus.OK)
        self.assertEqual([r.name for r in report.results], ["identity/name", "identity/email"])
        self.assertFalse(report.has_problems)

    def test_unconfigured_work_repository(self):
        self._work_repository()

        report = lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)
        self.assertEqual(report.exit_status, ExitStatus.PROBLEMS)
        self.assertTrue(report.has_failures)
        failing = {r.name for r in report.results if r.status is Status.FAIL}
        self.assertIn("claude/attribution", failing)
        self.assertIn("claude/exclude", failing)

        fixed = lint_repository(self.repo_dir, make_config(), fix=True, rules=self._rules(), runner=self.runner)
        self.assertEqual(fixed.exit_status, ExitStatus.OK)
        self.assertTrue(any(r.status is Status.FIX for r in fixed.results))
        self.assertTrue((self.repo_dir / ".claude" / "settings.local.json").exists())

        again = lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)
        self.assertEqual(again.exit_status, ExitStatus.OK)
        self.assertFalse(any(r.status is Status.FIX for r in again.results))

    def test_not_a_repository(self):
        self.runner.not_repositories.add(str(self.repo_dir))
        report = lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)

        self.assertEqual(report.exit_status, ExitStatus.ERROR)
        self.assertEqual(report.results, [])
        self.assertIn("not a git repository", report.error)

    @patch('gitpolicy.repository.fork.shutil.which', return_value=None)
    def test_fork_api_unavailable(self, mock_which):
        self._work_repository()
        rules = build_rules(ForkResolver(GitHubForkAPI()))

        report = lint_repository(self.repo_dir, make_config(), rules=rules, runner=self.runner)
        names = [r.name for r in report.results]

        self.assertNotIn("remote/tracking", names)
        self.assertIn("remote/push-guard", names)
        self.assertNotIn("remote.origin.gh-parent", self.runner.local(self.repo_dir))

    def test_timings_go_to_the_given_logger(self):
        self.runner.global_config["user.email"] = "test@personal.example"
        perf = PerformanceLogger()

        lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner, perf_logger=perf)
        first_run = len(perf.metrics)
        lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner, perf_logger=perf)

        self.assertEqual(first_run, len(self._rules()))
        self.assertEqual(len(perf.metrics), 2 * first_run)

    def test_each_run_gets_its_own_timings(self):
        with patch('gitpolicy.lint.PerformanceLogger', wraps=PerformanceLogger) as factory:
            lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)
            lint_repository(self.repo_dir, make_config(), rules=self._rules(), runner=self.runner)

        self.assertEqual(factory.call_count, 2)


class TestLintRepositories(unittest.TestCase):

    def test_repositories_are_independent(self):
        runner = FakeGitRunner()
        runner.not_repositories.add(str(OTHER_DIR))
        runner.global_config["user.name"] = "Test User"
        runner.global_config["user.email"] = "test@personal.example"

        reports = lint_repositories([OTHER_DIR, REPO_DIR], make_config(), runner=runner, fork_resolver=ForkResolver(Mock()))

        self.assertEqual([r.exit_status for r in reports], [ExitStatus.ERROR, ExitStatus.OK])
        self.assertEqual(len(reports[1].results), 2)
        self.assertEqual(overall_status(reports), ExitStatus.ERROR)

    def test_batch_shares_one_timing_logger(self):
        runner = FakeGitRunner()
        with patch('gitpolicy.lint.PerformanceLogger', wraps=PerformanceLogger) as factory:
            lint_repositories([REPO_DIR, OTHER_DIR], make_config(), runner=runner, fork_resolver=ForkResolver(Mock()))

        self.assertEqual(factory.call_count, 1)

    def test_overall_status(self):
        self.assertEqual(overall_status([]), ExitStatus.OK)
        reports = [
            LintReport(REPO_DIR, exit_status=ExitStatus.OK),
            LintReport(OTHER_DIR, exit_status=ExitStatus.PROBLEMS),
        ]
        self.assertEqual(overall_status(reports), ExitStatus.PROBLEMS)


class TestLoggingSetup(unittest.TestCase):

    def tearDown(self):
        for name in LOGGERS:
            logger = logging.getLogger(name)
            logger.handlers.clear()
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    def test_levels_and_handlers(self):
        setup_logging(Config(log_level="debug"))
        for name in LOGGERS:
            logger = logging.getLogger(name)
            self.assertEqual(logger.level, logging.DEBUG)
            self.assertEqual(len(logger.handlers), 1)
            self.assertIsInstance(logger.handlers[0].formatter, StructuredFormatter)

        # Idempotent
        setup_logging(Config(log_level="debug"))
        self.assertEqual(len(logging.getLogger(LOGGERS[0]).handlers), 1)

    def test_operation_prefix(self):
        formatter = StructuredFormatter('%(message)s')
        record = logging.LogRecord("gitpolicy.lint", logging.WARNING, __file__, 1, "rule failed", None, None)
        record.operation = "rule_error"
        self.assertEqual(formatter.format(record), "[rule_error] rule failed")


def run_tests():
    """Run all orchestrator tests."""
    suite = unittest.defaultTestLoader.loadTestsFromModule(sys.modules[__name__])
    result = unittest.TextTestRunner(verbosity=2, stream=sys.stdout).run(suite)
    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_tests()
    sys.exit(0 if success else 1)
