"""Logging for the codeforge adapters and the ``codeforge-*`` scripts.

Records render on the shared Rich console next to progress bars and streamed
deltas.
"""

from __future__ import annotations

import logging
from typing import Optional

from rich.logging import RichHandler

from .console import console

NOISY_LOGGERS = ("urllib3", "requests")


def configure_logging(level: str = "INFO") -> None:
    """Install a Rich handler on the root logger at *level*.

    Markup is off because model output and file paths are logged verbatim.
    HTTP library chatter stays at WARNING unless the root level is higher.
    """

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[RichHandler(console=console, rich_tracebacks=False, markup=False)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, logging.getLogger().level))


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return *name*'s logger, or the package logger ``codeforge``."""

    return logging.getLogger(name or "codeforge")
