"""Configuration management for gitpolicy."""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import ConfigurationError

try:
    from dotenv import load_dotenv
    load_dotenv()  # Load .env file if it exists
except ImportError:
    # python-dotenv not available, continue without it
    pass


# Longer suffixes first so "ms" is not read as "m"
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|d|h|m|s)")
_DURATION_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}

VALID_PROTOCOLS = ("", "ssh", "https")


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "7d", "12h", "1.5h", "300ms" or "1h30m".

    Args:
        value: Duration text. An empty string means zero.

    Returns:
        The parsed timedelta

    Raises:
        ValueError: If the text is not a valid duration
    """
    text = value.strip()
    if not text or text == "0":
        return timedelta(0)

    position = 0
    seconds = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        seconds += float(match.group(1)) * _DURATION_SECONDS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ValueError(f"invalid duration {value!r}")
    return timedelta(seconds=seconds)


@dataclass
class IdentityConfig:
    """Expected commit identity."""
    name: str = ""
    work_email: str = ""
    personal_email: str = ""


@dataclass
class ThresholdsConfig:
    """Staleness thresholds. Zero disables the corresponding check."""
    stash_max_age: timedelta = timedelta(0)
    stash_max_count: int = 0
    uncommitted_max_age: timedelta = timedelta(0)
    unpushed_max_age: timedelta = timedelta(0)

    def __post_init__(self):
        for name in ("stash_max_age", "uncommitted_max_age", "unpushed_max_age"):
            value = getattr(self, name)
            if isinstance(value, str):
                value = parse_duration(value)
                setattr(self, name, value)
            if value < timedelta(0):
                raise ValueError(f"{name} must be non-negative")

        if self.stash_max_count < 0:
            raise ValueError("stash_max_count must be non-negative")


@dataclass
class Config:
    """Policy configuration with validation and defaults."""

    # Organizations whose repositories are work repositories
    work_orgs: List[str] = field(default_factory=list)

    identity: IdentityConfig = field(default_factory=IdentityConfig)
    thresholds: ThresholdsConfig = field(default_factory=ThresholdsConfig)

    # Required transport for every remote ("ssh", "https" or "" for any)
    protocol: str = ""

    # Detail lines shown per result by the reporting layer (-1 = unlimited)
    detail_lines: int = 10

    # Logging
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate configuration after initialization."""
        valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        self.log_level = self.log_level.upper()
        if self.log_level not in valid_log_levels:
            raise ValueError(f"Invalid log level: {self.log_level}. Must be one of {valid_log_levels}")

        if self.protocol not in VALID_PROTOCOLS:
            raise ValueError(f"Invalid protocol: {self.protocol!r}. Must be 'ssh' or 'https'")

        if self.detail_lines < -1:
            raise ValueError("detail_lines must be -1 (unlimited) or non-negative")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Build a Config from the JSON document layout."""
        identity = data.get("identity") or {}
        thresholds = data.get("thresholds") or {}

        return cls(
            work_orgs=list(data.get("workOrgs") or []),
            identity=IdentityConfig(
                name=identity.get("name", ""),
                work_email=identity.get("workEmail", ""),
                personal_email=identity.get("personalEmail", ""),
            ),
            thresholds=ThresholdsConfig(
                stash_max_age=parse_duration(thresholds.get("stashMaxAge", "")),
                stash_max_count=int(thresholds.get("stashMaxCount", 0)),
                uncommitted_max_age=parse_duration(thresholds.get("uncommittedMaxAge", "")),
                unpushed_max_age=parse_duration(thresholds.get("unpushedMaxAge", "")),
            ),
            protocol=data.get("protocol", ""),
            detail_lines=int(data.get("detailLines", 10)),
            log_level=data.get("logLevel", "INFO"),
        )


def get_config_path() -> Path:
    """Location of the JSON configuration file."""
    explicit = os.getenv("GITPOLICY_CONFIG")
    if explicit:
        return Path(explicit).expanduser()

    xdg = os.getenv("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "git-lint" / "config.json"
    return Path.home() / ".config" / "git-lint" / "config.json"


def load_configuration(path: Optional[Path] = None) -> Config:
    """
    Load configuration from the JSON file, applying environment overrides.

    Args:
        path: Explicit configuration file; defaults to get_config_path()

    Returns:
        The validated Config

    Raises:
        ConfigurationError: If the file cannot be read or is invalid
    """
    logger = logging.getLogger('gitpolicy.config')
    path = path or get_config_path()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigurationError(f"reading config {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"parsing config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"parsing config {path}: top level must be an object")

    log_level = os.getenv("GITPOLICY_LOG_LEVEL")
    if log_level:
        data = dict(data, logLevel=log_level)

    try:
        config = Config.from_dict(data)
    except (ValueError, TypeError, AttributeError) as e:
        raise ConfigurationError(f"Configuration error in {path}: {e}") from e

    logger.debug(f"Loaded configuration from {path}")
    return config


def validate_configuration(config: Config) -> List[str]:
    """Return warnings about settings that will silently disable checks."""
    warnings = []

    if not config.identity.name:
        warnings.append("WARNING: identity.name is not set; name and orphan-branch checks are skipped")

    if config.work_orgs and not config.identity.work_email:
        warnings.append("WARNING: workOrgs configured without identity.workEmail")

    if not config.identity.personal_email:
        warnings.append("WARNING: identity.personalEmail is not set; personal repositories accept only the work email")

    thresholds = config.thresholds
    if not thresholds.stash_max_age and not thresholds.stash_max_count:
        warnings.append("WARNING: no stash thresholds configured; stash checks are disabled")

    return warnings
