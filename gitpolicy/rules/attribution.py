"""AI assistant settings policy for work repositories."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..repository.handle import Repository
from .base import Rule
from .results import Result, Status, create_result

SETTINGS_PATH = Path(".claude") / "settings.local.json"
EXCLUDE_PATTERNS = ("CLAUDE.md", ".claude/")


def _quote(value: str) -> str:
    return json.dumps(value, ensure_ascii=False)


def parse_attribution(value: Any) -> Tuple[str, str]:
    """
    Commit and pull request trailers from an ``attribution`` setting.

    A null setting or a missing field counts as empty.

    Raises:
        ValueError: If the setting is not an object of strings
    """
    if value is None:
        return "", ""
    if not isinstance(value, dict):
        raise ValueError(f"expected an object, got {type(value).__name__}")

    fields = []
    for key in ("commit", "pr"):
        field_value = value.get(key)
        if field_value is None:
            field_value = ""
        if not isinstance(field_value, str):
            raise ValueError(f"{key} must be a string")
        fields.append(field_value)
    return fields[0], fields[1]


def read_exclude_lines(path: Path) -> List[str]:
    """Lines of an exclude file; an unreadable file has none."""
    try:
        return path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError):
        return []


class AttributionRule(Rule):
    """
    Keeps assistant attribution out of work repositories.

    The local assistant settings must carry an empty ``attribution`` so no
    commit or pull request trailer is added, and the assistant's files must
    be listed in the repository's private exclude file so they are never
    committed by accident. Personal repositories are not checked.
    """

    family = "claude"

    def check(self, repo: Repository) -> List[Result]:
        if not repo.work:
            return []

        results = [self._check_settings(repo.directory / SETTINGS_PATH)]
        results.append(self._check_exclude(repo.git_path("info/exclude")))
        return results

    def _check_settings(self, path: Path) -> Result:
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return create_result("claude/attribution", Status.FAIL, f"{SETTINGS_PATH} missing", fixable=True)
        except OSError as e:
            return create_result("claude/attribution", Status.WARN, f"cannot read {SETTINGS_PATH}: {e}")

        try:
            settings = json.loads(text)
        except ValueError as e:
            return create_result("claude/attribution", Status.WARN, f"cannot parse {SETTINGS_PATH}: {e}")
        if not isinstance(settings, dict):
            return create_result(
                "claude/attribution",
                Status.WARN,
                f"cannot parse {SETTINGS_PATH}: top level is not an object"
            )

        if "attribution" not in settings:
            return create_result("claude/attribution", Status.FAIL, "attribution not configured", fixable=True)

        try:
            commit, pr = parse_attribution(settings["attribution"])
        except ValueError as e:
            return create_result("claude/attribution", Status.WARN, f"cannot parse attribution: {e}")

        if commit or pr:
            return create_result(
                "claude/attribution",
                Status.FAIL,
                f"attribution not empty (commit={_quote(commit)}, pr={_quote(pr)})",
                fixable=True
            )
        return create_result("claude/attribution", Status.OK, "attribution is empty")

    def _check_exclude(self, path: Path) -> Result:
        lines = read_exclude_lines(path)
        missing = [pattern for pattern in EXCLUDE_PATTERNS if pattern not in lines]
        if missing:
            return create_result(
                "claude/exclude",
                Status.FAIL,
                f".git/info/exclude missing: {', '.join(missing)}",
                fixable=True
            )
        return create_result("claude/exclude", Status.OK, "claude files excluded")

    def fix(self, repo: Repository, results: List[Result]) -> List[Result]:
        def apply(result: Result) -> Optional[Result]:
            try:
                if result.rule == "claude/attribution":
                    self._write_empty_attribution(repo.directory / SETTINGS_PATH)
                    return result.fixed(f"set empty attribution in {SETTINGS_PATH}")
                if result.rule == "claude/exclude":
                    self._append_exclude_patterns(repo.git_path("info/exclude"))
                    return result.fixed("added claude patterns to .git/info/exclude")
            except (OSError, ValueError) as e:
                self.logger.warning(f"Cannot update {result.rule} in {repo.directory}: {e}")
            return None

        return self._fix_each(results, apply)

    def _write_empty_attribution(self, path: Path) -> None:
        """Set an empty attribution, keeping every other setting."""
        settings: Dict[str, Any] = {}
        if path.exists():
            settings = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(settings, dict):
                raise ValueError(f"{path} does not hold a JSON object")

        settings["attribution"] = {"commit": "", "pr": ""}
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")

    def _append_exclude_patterns(self, path: Path) -> None:
        lines = read_exclude_lines(path)
        missing = [pattern for pattern in EXCLUDE_PATTERNS if pattern not in lines]
        if not missing:
            return

        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            for pattern in missing:
                f.write(f"{pattern}\n")
