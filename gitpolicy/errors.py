"""Error handling framework for gitpolicy."""

import logging
from enum import Enum
from typing import Any, Dict, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .rules.results import Result


class ErrorCategory(Enum):
    """Categories of errors for structured error handling."""
    REPOSITORY = "repository"
    CONFIGURATION = "configuration"
    RULE = "rule"
    SYSTEM = "system"


class PolicyError(Exception):
    """Base class for gitpolicy errors."""
    category = ErrorCategory.SYSTEM


class NotARepositoryError(PolicyError):
    """The directory is not inside a git working copy."""
    category = ErrorCategory.REPOSITORY

    def __init__(self, directory: Any):
        super().__init__(f"not a git repository: {directory}")
        self.directory = directory


class ConfigurationError(PolicyError):
    """The policy configuration is missing or invalid."""
    category = ErrorCategory.CONFIGURATION


class ErrorHandler:
    """Turns unexpected rule failures into degraded results."""

    def __init__(self):
        self.logger = logging.getLogger('gitpolicy.error_handler')

    def categorize(self, error: Exception) -> ErrorCategory:
        """Determine the category of an error."""
        if isinstance(error, PolicyError):
            return error.category
        if isinstance(error, (OSError, UnicodeDecodeError)):
            return ErrorCategory.SYSTEM
        return ErrorCategory.RULE

    def handle_rule_error(
        self,
        family: str,
        error: Exception,
        context: Optional[Dict[str, Any]] = None
    ) -> "Result":
        """
        Convert an exception raised by a rule check into a WARN result.

        Args:
            family: Rule family the failing rule reports under (e.g. "branch")
            error: The exception raised by the rule
            context: Additional context for the log record

        Returns:
            A WARN result named "<family>/error"
        """
        from .rules.results import Result, Status

        context = context or {}
        category = self.categorize(error)

        self.logger.warning(
            f"Rule {family} failed: {error}",
            extra={
                'operation': 'rule_error',
                'category': category.value,
                'repository_path': context.get('repository_path'),
                'rule': context.get('rule'),
            }
        )

        return Result(
            rule=f"{family}/error",
            status=Status.WARN,
            message=f"check could not run: {error}",
        )


# Initialize global error handler
error_handler = ErrorHandler()
