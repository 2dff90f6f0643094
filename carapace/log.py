"""Logging setup shared by the CLI and pipeline stages."""

from __future__ import annotations

import logging
import os

LOGGER_ROOT = "carapace"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(stage: str) -> logging.Logger:
    """Return the logger for a pipeline stage, e.g. ``carapace.analyzer``."""
    return logging.getLogger(f"{LOGGER_ROOT}.{stage}")


def configure_logging(verbose: bool = False) -> None:
    """Configure root logging for console use.

    ``CARAPACE_DEBUG=1`` forces debug output even without ``--verbose``.
    """
    debug_env = os.environ.get("CARAPACE_DEBUG", "").strip().lower() in {"1", "true", "yes"}
    level = logging.DEBUG if verbose or debug_env else logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger(LOGGER_ROOT).setLevel(level)
