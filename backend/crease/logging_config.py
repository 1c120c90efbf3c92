"""Logging setup for the scoring service.

One console handler on the root logger; module loggers propagate to it.
"""

import logging
from typing import Optional

from .config import LOG_LEVEL

_console: Optional[logging.Handler] = None


def configure_logging(level: str | int | None = None) -> None:
    """Attach the console handler to the root logger.

    Calling again (reloads, tests) swaps the previous console handler for a
    new one; handlers installed by anything else are left alone.
    """

    global _console

    resolved = level if level is not None else LOG_LEVEL
    if isinstance(resolved, str):
        resolved = logging.getLevelName(resolved)
        if not isinstance(resolved, int):
            resolved = logging.INFO

    root = logging.getLogger()
    root.setLevel(resolved)
    if _console is not None:
        root.removeHandler(_console)

    _console = logging.StreamHandler()
    _console.setLevel(resolved)
    _console.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)-5s [%(name)s] %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root.addHandler(_console)
