"""
Utility functions for bosh-micro.

Includes logging, retries, checksums and console output.
"""

import hashlib
import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Tuple, Type

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape


# Global console for pretty output
console = Console()


def setup_logging(log_file: Path, log_level: str = "INFO", log_format: str = "structured", console_output: bool = False) -> logging.Logger:
    """
    Set up logging for a bosh-micro invocation.

    Args:
        log_file: Path to log file
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        console_output: Also log to console

    Returns:
        Configured logger
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.parent.chmod(0o700)

    logger = logging.getLogger("bosh_micro")
    logger.setLevel(getattr(logging, log_level.upper()))
    logger.handlers = []  # Clear existing handlers

    file_handler = logging.FileHandler(log_file)
    if log_format == "structured":
        file_handler.setFormatter(StructuredFormatter())
    else:
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(console=console, rich_tracebacks=True, show_time=False)
        else:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(
                logging.Formatter("%(levelname)s: %(message)s")
            )
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        # Add extra fields if present
        if hasattr(record, "stage"):
            log_data["stage"] = record.stage
        if hasattr(record, "event"):
            log_data["event"] = record.event
        if hasattr(record, "metadata"):
            log_data["metadata"] = record.metadata

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def retry_with_backoff(
    func: Callable,
    max_attempts: int = 3,
    backoff_seconds: float = 1,
    backoff_multiplier: float = 2.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    logger: Optional[logging.Logger] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """
    Retry a function with exponential backoff.

    Args:
        func: Function to retry
        max_attempts: Maximum number of attempts
        backoff_seconds: Initial backoff time in seconds
        backoff_multiplier: Multiplier for each retry (1.0 for a fixed delay)
        retry_on: Exception types that trigger another attempt
        logger: Logger for retry messages
        sleep: Sleep function (swapped out in tests)

    Returns:
        Result of successful function call

    Raises:
        Exception: The last error once all attempts are exhausted
    """
    attempt = 1
    wait_time = backoff_seconds

    while True:
        try:
            return func()
        except retry_on as e:
            if attempt >= max_attempts:
                if logger:
                    logger.error(f"All {max_attempts} attempts failed: {e}")
                raise

            if logger:
                logger.debug(
                    f"Attempt {attempt}/{max_attempts} failed: {e}. Retrying in {wait_time}s..."
                )

            sleep(wait_time)
            wait_time *= backoff_multiplier
            attempt += 1


def get_file_sha1(file_path: Path) -> str:
    """
    Calculate SHA1 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        Hex digest of SHA1 checksum
    """
    sha1 = hashlib.sha1()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(65536), b""):
            sha1.update(chunk)
    return sha1.hexdigest()


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1m 23s", "45s")
    """
    if seconds < 60:
        return f"{int(seconds)}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"


def print_success(message: str) -> None:
    """Print success message to console."""
    console.print(f"[bold green]✓[/bold green] {escape(message)}", soft_wrap=True)


def print_error(message: str) -> None:
    """Print error message to console."""
    console.print(f"[bold red]✗[/bold red] {escape(message)}", soft_wrap=True)
