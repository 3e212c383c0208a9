"""Logging setup: rich console output plus an optional plain log file."""

import logging
from pathlib import Path

from rich.logging import RichHandler

FILE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure the root logger once per process."""
    handlers: list[logging.Handler] = [
        RichHandler(rich_tracebacks=True, show_path=False),
    ]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )

    # Third-party clients are chatty at INFO
    for noisy in ("botocore", "boto3", "urllib3", "httpx"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
