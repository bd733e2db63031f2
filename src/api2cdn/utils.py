"""
Shared Helpers

Small utilities used by the pipeline stages and the CLI commands.

Sections:
- Logging setup and display helpers
- Output directory handling
- Retry wrapper for remote calls
- YAML sync file reading
"""

import functools
import logging
import sys
import time
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import yaml

from .types import RetryPolicy

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
LOGS_DIR = Path("logs")

# =============================================================================
# Logging Setup and Display Helpers
# =============================================================================

def setup_logging(
    verbose: bool,
    command: Optional[str] = None,
    environment: Optional[str] = None,
    log_to_file: bool = False,
) -> Optional[Path]:
    """
    Route log records to stdout and, on request, to a per-run log file.

    Args:
        verbose: Lower the threshold to DEBUG
        command: CLI command name, first part of the log file name
        environment: Target environment, second part of the log file name
        log_to_file: Also write ``logs/<command>_<environment>_<stamp>.log``

    Returns:
        The log file path, or None when only stdout is used
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_path = None

    if log_to_file and command and environment:
        LOGS_DIR.mkdir(exist_ok=True)
        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = LOGS_DIR / f"{command}_{environment}_{stamp}.log"
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
        print(f"Writing log to: {log_path}")

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        handlers=handlers,
        force=True,
    )
    # urllib3 logs full URLs at DEBUG; keep it at INFO
    logging.getLogger("urllib3").setLevel(logging.INFO)
    return log_path


def format_duration(seconds: float) -> str:
    """Seconds as ``12.3s`` or ``2m 5.0s``."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    whole_minutes, remainder = divmod(seconds, 60)
    return f"{int(whole_minutes)}m {remainder:.1f}s"


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Return a log-safe rendering of a credential."""
    if not value:
        return "<unset>"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{'*' * 4}"


# =============================================================================
# Output Directory Handling
# =============================================================================

def ensure_directory(directory: Path) -> Path:
    """Create ``directory`` and any missing parents; existing ones are left alone."""
    directory.mkdir(parents=True, exist_ok=True)
    return directory


# =============================================================================
# Retry Wrapper for Remote Calls
# =============================================================================

def retry_with_backoff(
    policy: RetryPolicy,
    sleep: Callable[[float], None] = time.sleep,
) -> Callable:
    """
    Wrap a callable so transient failures are retried with growing delays.

    Args:
        policy: Attempt budget, delays and the error kinds worth retrying
        sleep: Sleep function, replaceable in tests

    Returns:
        Decorator applying ``policy`` to the wrapped callable
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            attempt = 1
            while True:
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not policy.should_retry(e):
                        raise
                    if attempt >= policy.max_attempts:
                        logging.error(f"{func.__name__} failed after {attempt} attempts")
                        raise
                    delay = policy.delay_for(attempt)
                    logging.warning(
                        f"{func.__name__} attempt {attempt}/{policy.max_attempts} failed: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    sleep(delay)
                    attempt += 1

        return wrapper
    return decorator


# =============================================================================
# YAML Sync File Reading
# =============================================================================

def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Read a YAML mapping; an empty file yields ``{}``.

    Raises:
        FileNotFoundError: No file at ``path``
        ValueError: The file does not parse as YAML
    """
    if not path.is_file():
        raise FileNotFoundError(f"Sync file not found: {path}")

    try:
        return yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
