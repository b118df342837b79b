#!/usr/bin/env python3
"""
Integration tests against real git repositories.

Repositories are created in a temporary directory with an isolated HOME
and global configuration. Skipped when no git executable is installed.
"""

import os
import shutil
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import Mock, patch

sys.path.insert(0, str(Path(__file__).parent))

from fake_git import make_config
from gitpolicy.config import ThresholdsConfig
from gitpolicy.lint import ExitStatus, build_rules, lint_repository
from gitpolicy.repository.fork import ForkResolver
from gitpolicy.repository.handle import Repository
from gitpolicy.repository.runner import GitRunner
from gitpolicy.rules.attribution import AttributionRule
from gitpolicy.rules.branches import BranchCleanupRule, Tracking, list_branches
from gitpolicy.rules.identity import IdentityRule
from gitpolicy.rules.results import Status
from gitpolicy.rules.staleness import StalenessRule


@unittest.skipIf(shutil.which("git") is None, "git executable not available")
class GitIntegrationTestCase(unittest.TestCase):

    def setUp(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        home = self.temp_dir / "home"
        home.mkdir()
        global_config = home / ".gitconfig"
        global_config.write_text("")

        self.env_patcher = patch.dict(os.environ, {
            "HOME": str(home),
            "XDG_CONFIG_HOME": str(home / ".config"),
            "GIT_CONFIG_GLOBAL": str(global_config),
            "GIT_CONFIG_NOSYSTEM": "1",
            "GIT_AUTHOR_NAME": "Test User",
            "GIT_AUTHOR_EMAIL": "test@personal.example",
            "GIT_COMMITTER_NAME": "Test User",
            "GIT_COMMITTER_EMAIL": "test@personal.example",
        })
        self.env_patcher.start()

        self.runner = GitRunner()
        self.work_dir = self.temp_dir / "work"
        self.work_dir.mkdir()
        self.git(self.work_dir, "init", "-q")
        self.git(self.work_dir, "symbolic-ref", "HEAD", "refs/heads/main")
        self.commit("README.md", "hello\n", "initial commit")

    def tearDown(self):
        self.env_patcher.stop()
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def git(self, workdir, *args):
        output, ok = self.runner.run(workdir, "-c", "commit.gpgsign=false", *args)
        self.assertTrue(ok, f"git {' '.join(args)} failed")
        return output

    def commit(self, name, content, message):
        (self.work_dir / name).write_text(content)
        self.git(self.work_dir, "add", name)
        self.git(self.work_dir, "commit", "-q", "-m", message)

    def add_origin(self):
        remote = self.temp_dir / "origin.git"
        self.git(self.temp_dir, "init", "-q", "--bare", str(remote))
        self.git(self.work_dir, "remote", "add", "origin", str(remote))
        return remote

    def _repo(self, config=None):
        return Repository(self.work_dir, config or make_config(), runner=self.runner)


class TestRealRepository(GitIntegrationTestCase):

    def test_not_a_repository(self):
        plain = self.temp_dir / "plain"
        plain.mkdir()
        report = lint_repository(plain, make_config(), rules=build_rules(ForkResolver(Mock())), runner=self.runner)
        self.assertEqual(report.exit_status, ExitStatus.ERROR)

    def test_handle_basics(self):
        repo = self._repo()
        self.assertEqual(repo.main_branch(), "main")
        self.assertEqual(repo.current_branch(), "main")
        self.assertEqual(repo.remotes(), [])
        self.assertFalse(repo.work)

    def test_identity_fix_on_work_repository(self):
        self.git(self.work_dir, "remote", "add", "upstream", "git@github.com:acme/widget.git")
        repo = self._repo()
        rule = IdentityRule()

        self.assertTrue(repo.work)
        self.assertTrue(all(r.status is Status.FAIL for r in rule.check(repo)))

        fixed = rule.fix(repo, rule.check(repo))
        self.assertTrue(all(r.status is Status.FIX for r in fixed))
        self.assertEqual(self.git(self.work_dir, "config", "--local", "user.email"), "test.user@company.example")
        self.assertTrue(all(r.status is Status.OK for r in rule.check(repo)))

    def test_stash_count(self):
        for n in range(2):
            (self.work_dir / "README.md").write_text(f"change {n}\n")
            self.git(self.work_dir, "stash", "push", "-q", "-m", f"attempt {n}")

        config = make_config(thresholds=ThresholdsConfig(stash_max_count=1))
        results = StalenessRule().check(self._repo(config))

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].rule, "staleness/stash-count")
        self.assertEqual(results[0].message, "2 entries (max 1)")
        self.assertIn("attempt 1", results[0].details[0])

    def test_attribution_files_stay_untracked(self):
        self.git(self.work_dir, "remote", "add", "upstream", "git@github.com:acme/widget.git")
        repo = self._repo()
        rule = AttributionRule()

        fixed = rule.fix(repo, rule.check(repo))
        self.assertEqual([r.status for r in fixed], [Status.FIX, Status.FIX])
        self.assertEqual(repo.git_path("info/exclude"), self.work_dir / ".git" / "info" / "exclude")

        (self.work_dir / "CLAUDE.md").write_text("notes\n")
        self.assertEqual(self.git(self.work_dir, "status", "--porcelain", "--untracked-files=all"), "")
        self.assertTrue(all(r.status is Status.OK for r in rule.check(repo)))


class TestRealBranchCleanup(GitIntegrationTestCase):

    def setUp(self):
        super().setUp()
        self.add_origin()
        self.git(self.work_dir, "push", "-q", "-u", "origin", "main")

    def test_gone_branch_is_deleted(self):
        self.git(self.work_dir, "checkout", "-q", "-b", "feature")
        self.commit("feature.txt", "work\n", "feature work")
        self.git(self.work_dir, "push", "-q", "-u", "origin", "feature")
        self.git(self.work_dir, "checkout", "-q", "main")
        self.git(self.work_dir, "push", "-q", "origin", "--delete", "feature")

        repo = self._repo()
        branches = {b.name: b for b in list_branches(repo)}
        self.assertIs(branches["feature"].tracking, Tracking.GONE)

        rule = BranchCleanupRule()
        results = rule.check(repo)
        self.assertEqual([r.name for r in results], ["branch/gone[feature]"])

        fixed = rule.fix(repo, results)
        self.assertEqual(fixed[0].status, Status.FIX)
        self.assertEqual(self.git(self.work_dir, "branch", "--list", "feature"), "")
        self.assertEqual([r.name for r in rule.check(repo)], ["branch/cleanup"])

    def test_merged_branch(self):
        self.git(self.work_dir, "branch", "done")
        results = BranchCleanupRule().check(self._repo())

        self.assertEqual([r.name for r in results], ["branch/merged[done]"])
        self.assertTrue(results[0].fixable)

    def test_checked_out_branch_is_not_deleted(self):
        self.git(self.work_dir, "checkout", "-q", "-b", "done")
        repo = self._repo()
        rule = BranchCleanupRule()
        results = rule.check(repo)

        self.assertFalse(results[0].fixable)
        rule.fix(repo, results)
        self.assertEqual(repo.current_branch(), "done")


def run_tests():
    """Run all git integration tests."""
    suite = unittest.defaultTestLoader.loadTestsFromModule(sys.modules[__name__])
    result = unittest.TextTestRunner(verbosity=2, stream=sys.stdout).run(suite)
    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_tests()
    sys.exit(0 if success else 1)
