"""Rich logging for the nutrivida CLI."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.console import Console

stderr_console = Console(stderr=True)

# Third-party loggers that log each HTTP request at info
NOISY_LOGGERS = ("openai", "httpx", "httpcore")


def resolve_level(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def setup_logging(level: str = "info", log_file: Path | None = None) -> None:
    """Send nutrivida logs to stderr through Rich, plus an optional debug file."""
    from rich.logging import RichHandler

    numeric = resolve_level(level)
    logger = logging.getLogger("nutrivida")
    logger.setLevel(logging.DEBUG if log_file is not None else numeric)
    logger.handlers.clear()

    console_handler = RichHandler(
        console=stderr_console,
        show_path=False,
        markup=False,
        rich_tracebacks=True,
    )
    console_handler.setLevel(numeric)
    logger.addHandler(console_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s")
        )
        logger.addHandler(file_handler)

    third_party = logging.DEBUG if numeric <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(third_party)
