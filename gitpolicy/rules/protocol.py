"""Remote transport protocol policy."""

from typing import List

from ..repository.handle import Repository
from ..repository.urls import url_protocol
from .base import Rule
from .results import Result, Status, create_result


class ProtocolRule(Rule):
    """Every remote must use the configured transport (ssh or https)."""

    family = "remote"

    def check(self, repo: Repository) -> List[Result]:
        want = repo.config.protocol
        if not want:
            return []

        remotes = repo.remotes()
        if not remotes:
            return []

        details = []
        for name in remotes:
            url = repo.remote_url(name)
            if url_protocol(url) != want:
                details.append(f"{name:<12} {url}")

        if details:
            return [create_result(
                "remote/protocol",
                Status.WARN,
                f"{len(details)} remotes not using {want}",
                details=details
            )]
        return [create_result("remote/protocol", Status.OK, f"all remotes use {want}")]
