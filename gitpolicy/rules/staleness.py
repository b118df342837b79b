"""Stash and working-tree staleness policies."""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from ..repository.handle import Repository
from .base import Rule
from .results import Result, Status, create_result

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def from_timestamp(value: str) -> datetime:
    """Convert a unix timestamp as printed by git (%ct) to an aware datetime."""
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def is_older(moment: datetime, now: datetime, threshold: timedelta) -> bool:
    """True if ``moment`` lies strictly more than ``threshold`` before ``now``."""
    return now - moment > threshold


def format_duration(duration: timedelta) -> str:
    """Compact rendering: whole days, else hours, else minutes."""
    if duration.days > 0:
        return f"{duration.days}d"
    hours = round(duration.total_seconds() / 3600)
    if hours > 0:
        return f"{hours}h"
    return f"{max(0, round(duration.total_seconds() / 60))}m"


def parse_porcelain(output: str) -> Tuple[List[str], List[str]]:
    """
    Split ``git status --porcelain`` output.

    Returns:
        (changes, untracked): full status lines for modified or staged
        entries, and bare paths for untracked ones.
    """
    changes = []
    untracked = []
    for line in output.splitlines():
        if not line:
            continue
        if line.startswith("?? "):
            untracked.append(line[3:])
        else:
            changes.append(line)
    return changes, untracked


@dataclass
class StashEntry:
    ref: str
    created: datetime
    subject: str


def list_stash_entries(repo: Repository) -> Optional[List[StashEntry]]:
    """Stash entries, or None when the stash cannot be read."""
    output, ok = repo.git("stash", "list", "--format=%gd|%ct|%s")
    if not ok:
        return None

    entries = []
    for line in output.splitlines():
        parts = line.split("|", 2)
        if len(parts) < 3:
            continue
        ref, timestamp, subject = parts
        try:
            entries.append(StashEntry(ref, from_timestamp(timestamp), subject))
        except ValueError:
            continue
    return entries


def last_commit_time(repo: Repository) -> Optional[datetime]:
    """Committer time of HEAD, or None for a repository without commits."""
    output, ok = repo.git("log", "-1", "--format=%ct")
    if not ok or not output:
        return None
    try:
        return from_timestamp(output)
    except ValueError:
        return None


class StalenessRule(Rule):
    """
    Warns about old stash entries and long-lived uncommitted work.

    The age of uncommitted or untracked changes is approximated by the time
    since the last commit: git does not record when a file became dirty.
    """

    family = "staleness"

    def __init__(self, clock: Optional[Clock] = None):
        super().__init__()
        self.clock = clock or utc_now

    def check(self, repo: Repository) -> List[Result]:
        now = self.clock()
        results = self._check_stash(repo, now)
        results.extend(self._check_working_tree(repo, now))
        return results

    def _check_stash(self, repo: Repository, now: datetime) -> List[Result]:
        thresholds = repo.config.thresholds
        max_age = thresholds.stash_max_age
        max_count = thresholds.stash_max_count
        if not max_age and not max_count:
            return []

        entries = list_stash_entries(repo)
        if entries is None:
            return [create_result("staleness/stash", Status.WARN, "cannot list stash entries")]
        if not entries:
            return []

        results = []
        if max_age:
            old = [entry for entry in entries if is_older(entry.created, now, max_age)]
            if old:
                results.append(create_result(
                    "staleness/stash-age",
                    Status.WARN,
                    f"{len(old)} stash entries older than {format_duration(max_age)}",
                    details=[self._describe(entry, now) for entry in old]
                ))
            else:
                results.append(create_result("staleness/stash-age", Status.OK, "no stale stash entries"))

        if max_count:
            if len(entries) > max_count:
                results.append(create_result(
                    "staleness/stash-count",
                    Status.WARN,
                    f"{len(entries)} entries (max {max_count})",
                    details=[self._describe(entry, now) for entry in entries]
                ))
            else:
                results.append(create_result("staleness/stash-count", Status.OK, f"{len(entries)} entries"))

        return results

    def _describe(self, entry: StashEntry, now: datetime) -> str:
        return f"{entry.ref} {entry.subject} ({format_duration(now - entry.created)} ago)"

    def _check_working_tree(self, repo: Repository, now: datetime) -> List[Result]:
        max_age = repo.config.thresholds.uncommitted_max_age
        if not max_age:
            return []

        output, ok = repo.git("status", "--porcelain")
        if not ok:
            return [create_result("staleness/uncommitted", Status.WARN, "cannot read working tree status")]

        changes, untracked = parse_porcelain(output)
        if not changes and not untracked:
            return [create_result("staleness/uncommitted", Status.OK, "working tree clean")]

        since = last_commit_time(repo)
        age = now - since if since is not None else timedelta(0)
        stale = since is not None and is_older(since, now, max_age)

        results = []
        for rule, entries, noun in (
            ("staleness/uncommitted", changes, "uncommitted changes"),
            ("staleness/untracked", untracked, "untracked files"),
        ):
            if not entries:
                continue
            if stale:
                results.append(create_result(
                    rule,
                    Status.WARN,
                    f"{len(entries)} {noun} for {format_duration(age)} (max {format_duration(max_age)})",
                    details=entries
                ))
            else:
                results.append(create_result(rule, Status.OK, f"{noun} are recent"))
        return results
