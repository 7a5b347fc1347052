"""Logging configuration for fusionsearch.

Provides a single place to configure the ``fusionsearch`` package logger and
to quiet noisy third-party HTTP loggers.
"""

import logging
import sys

PACKAGE_LOGGER = "fusionsearch"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Third-party loggers that are chatty at INFO level
_NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "openai",
    "semantic_kernel",
)


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging for the fusionsearch package.

    Args:
        verbose: Enable DEBUG level output for fusionsearch loggers
        quiet: Only emit WARNING and above (ignored when verbose is set)
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)

    if not package_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
        package_logger.addHandler(handler)
    else:
        for handler in package_logger.handlers:
            handler.setLevel(level)

    third_party_level = logging.INFO if verbose else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party_level)


def get_logger(name: str) -> logging.Logger:
    """Return a logger for the given module name.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
