"""Logging setup, configured once per run."""

import logging

from rich.console import Console
from rich.logging import RichHandler


def init(level: str = "INFO", console: Console | None = None) -> None:
    """Configure the root logger once per run."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(name)s | %(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
