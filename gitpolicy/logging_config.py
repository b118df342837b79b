"""Logging setup for gitpolicy."""

import logging

from .config import Config


class StructuredFormatter(logging.Formatter):
    """Prefixes records that carry an ``operation`` extra."""

    def format(self, record):
        if hasattr(record, 'operation'):
            record.msg = f"[{record.operation}] {record.msg}"
        return super().format(record)


LOGGERS = [
    'gitpolicy.config',
    'gitpolicy.repository',
    'gitpolicy.rules',
    'gitpolicy.lint',
    'gitpolicy.error_handler',
    'gitpolicy.performance',
]


def setup_logging(config: Config) -> None:
    """Configure the gitpolicy logger hierarchy."""
    level = getattr(logging, config.log_level)

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    formatter = StructuredFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    for logger_name in LOGGERS:
        logger = logging.getLogger(logger_name)
        logger.setLevel(level)

        # Add console handler if not already present
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.propagate = False
