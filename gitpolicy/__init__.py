"""
gitpolicy - audit and repair git working copies against personal policies.

Checks commit identity, remote layout, stale work and branch hygiene, and
fixes what can be fixed safely.
"""

__version__ = "1.0.0"
__description__ = "Policy audit and remediation for git repositories"

from .config import Config, load_configuration
from .lint import ExitStatus, LintReport, lint_repositories, lint_repository, overall_status
from .logging_config import setup_logging
from .rules import Result, Status

__all__ = [
    'Config',
    'load_configuration',
    'setup_logging',
    'ExitStatus',
    'LintReport',
    'lint_repository',
    'lint_repositories',
    'overall_status',
    'Result',
    'Status'
]
