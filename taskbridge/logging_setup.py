"""Console logging for the CLI."""

import logging

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "taskbridge"


def setup_logging(level: int | str = logging.WARNING) -> None:
    """Route taskbridge.* logs to stderr through rich.

    Safe to call more than once; the previous handler is replaced.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        rich_tracebacks=False,
    )
    handler.setFormatter(logging.Formatter("%(name)s: %(message)s"))
    logger.addHandler(handler)
