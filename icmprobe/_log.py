from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

# shared by the status lines and the log handler
console = Console()
FORMAT = "%(message)s"
logger = logging.getLogger("icmprobe")


def setup_logging(verbose: bool = False) -> None:
    """Route the package logger through a :class:`RichHandler`."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format=FORMAT,
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=console,
                rich_tracebacks=True,
                markup=True,
                show_time=False,
            )
        ],
        force=True,
    )
    logger.setLevel(level)
