"""Structural inspection of remote URLs."""

from typing import Iterable, Optional, Tuple

GITHUB_PREFIXES = ("https://github.com/", "git@github.com:", "ssh://git@github.com/")


def parse_github_repo(url: str) -> Optional[Tuple[str, str]]:
    """
    Extract (owner, repo) from a GitHub remote URL.

    Handles HTTPS, SCP-like SSH and ssh:// forms, with or without a ``.git``
    suffix. Returns None for anything else.
    """
    for prefix in GITHUB_PREFIXES:
        if url.startswith(prefix):
            path = url[len(prefix):]
            break
    else:
        return None

    parts = path.split("/", 2)
    if len(parts) < 2:
        return None

    owner = parts[0]
    repo = parts[1]
    if repo.endswith(".git"):
        repo = repo[:-len(".git")]
    if not owner or not repo:
        return None
    return owner, repo


def url_protocol(url: str) -> str:
    """Return "https", "ssh" or "" for a remote URL."""
    if url.startswith("https://"):
        return "https"
    # SCP-like syntax (git@host:path) or explicit ssh:// URLs
    if url.startswith("ssh://") or "@" in url:
        return "ssh"
    return ""


def work_org_in_url(url: str, orgs: Iterable[str]) -> str:
    """Return the first work org referenced by the URL, or ""."""
    for org in orgs:
        if f"github.com/{org}/" in url or f"github.com:{org}/" in url:
            return org
    return ""
