#!/usr/bin/env python3
"""
Code Audit Logging
Library modules log through `logging.getLogger(__name__)`; the CLI calls
setup_logging() once to route records to a rich handler on stderr.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "codeaudit"


def setup_logging(level: Optional[str] = None, verbose: bool = False) -> logging.Logger:
    """
    Configure the `codeaudit` logger hierarchy

    Args:
        level: Explicit level name (DEBUG, INFO, WARNING, ...)
        verbose: Shortcut for DEBUG when no level is given

    Returns:
        The package root logger
    """
    if level is None:
        level = "DEBUG" if verbose else "WARNING"

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level.upper())

    # Idempotent: repeated CLI invocations in one process (tests) reuse the handler
    if not any(isinstance(h, RichHandler) for h in logger.handlers):
        handler = RichHandler(
            console=Console(stderr=True),
            show_time=verbose,
            show_path=False,
            markup=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    return logger
