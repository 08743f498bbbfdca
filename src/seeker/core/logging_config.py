"""
Seeker - Self-hosted File Browser - Logging Configuration
Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published
by the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program. If not, see <https://www.gnu.org/licenses/>.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional, Union

from . import constants

LOG_FORMAT = "%(asctime)s - %(name)-22s - %(levelname)-8s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 5

# Libraries that log every query, decoded image or request at INFO/DEBUG.
NOISY_LOGGERS = ("aiosqlite", "sqlalchemy.engine", "PIL", "uvicorn.access")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_handlers(log_file: Path, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            log_file, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        ))
    except OSError as e:
        # Fall back to console-only logging.
        print(f"Seeker: file logging disabled ({log_file}): {e}", file=sys.stderr)

    handlers.append(logging.StreamHandler(sys.stdout))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(level: Union[int, str] = logging.INFO, log_dir: Optional[Path] = None) -> Path:
    """
    Routes all Seeker and library logging to a rotating file in the data
    directory plus stdout. Safe to call again; previous handlers are replaced.

    Returns the log file path.
    """
    log_file = Path(log_dir or constants.CONFIG_PATH) / constants.LOG_FILENAME

    root_logger = logging.getLogger()
    root_logger.setLevel(_resolve_level(level))
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    for handler in _build_handlers(log_file, logging.Formatter(LOG_FORMAT)):
        root_logger.addHandler(handler)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging to {log_file} at {logging.getLevelName(root_logger.level)}")
    return log_file
