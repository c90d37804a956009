"""Logging setup for command-line runs."""

from __future__ import annotations

import logging

__all__ = ["setup_logging"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty at DEBUG; kept at WARNING even in verbose mode
_NOISY_LOGGERS = ("matplotlib", "PIL")


def setup_logging(verbose: bool = False) -> None:
    """Configure the root logger.

    Args:
        verbose: If True, use DEBUG level (per-iteration fit detail); otherwise INFO.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
    )
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
