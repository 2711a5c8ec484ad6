"""
HOMESERVER Release Installer
Copyright (C) 2024 HOMESERVER LLC

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU General Public License for more details.

You should have received a copy of the GNU General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.
"""

import os
import sys
import shutil
import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from ..errors import DownloadFailed

LOGGER_NAME = "frpinstall"
LOG_FORMAT = '[%(asctime)s] [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger(LOGGER_NAME)


class _BelowErrorFilter(logging.Filter):
    """Let through only records that are not errors."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.ERROR


def setup_logging(debug: bool = False) -> None:
    """
    Configure installer logging.

    Informational output goes to stdout, errors go to stderr so the failing
    stage is visible even when stdout is redirected.

    Args:
        debug: Emit DEBUG records as well
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG if debug else logging.INFO)
    stdout_handler.addFilter(_BelowErrorFilter())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.ERROR)
    stderr_handler.setFormatter(formatter)

    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        logger.removeHandler(h)
    logger.addHandler(stdout_handler)
    logger.addHandler(stderr_handler)
    logger.propagate = False

    logger.debug("=" * 80)
    logger.debug("RELEASE INSTALLER SESSION STARTED")
    logger.debug(f"Command: {' '.join(sys.argv)}")
    logger.debug(f"Working Directory: {os.getcwd()}")
    logger.debug(f"Python Version: {sys.version}")
    logger.debug("=" * 80)


def log_message(message: str, level: str = "INFO"):
    """Unified logger used throughout the installer and helpers."""
    if level == "ERROR":
        logger.error(message)
    elif level == "WARNING":
        logger.warning(message)
    elif level == "DEBUG":
        logger.debug(message)
    else:
        logger.info(message)


@contextmanager
def workspace(root: Optional[str] = None, prefix: str = "frpinstall-") -> Iterator[Path]:
    """
    Provide a run-scoped scratch directory that is always removed.

    Args:
        root: Parent directory for the workspace (system temp dir if None)
        prefix: Directory name prefix

    Yields:
        Path: The workspace directory

    Raises:
        DownloadFailed: The directory could not be created
    """
    try:
        if root is not None:
            os.makedirs(root, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=root))
    except OSError as e:
        parent = root or tempfile.gettempdir()
        raise DownloadFailed(f"Cannot create download workspace under {parent}: {e}") from e
    log_message(f"Created workspace {path}", "DEBUG")
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
            log_message(f"Cleaned up workspace {path}", "DEBUG")
        except OSError as e:
            # Raising here would mask the error that ended the run
            log_message(f"Failed to remove workspace {path}: {e}", "WARNING")
