# filename: src/seeker/core/constants.py
"""
Seeker - Self-hosted File Browser - Constants Module
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

import os
from pathlib import Path

from .version import __app_name__

# --- Application Metadata ---
APP_NAME = __app_name__

# --- Core Application Settings ---
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 3000

# --- File Names ---
CONFIG_FILENAME = "config.json"
MAIN_DB_FILENAME = "main.db"
THUMB_DB_FILENAME = "thumb.db"
LOG_FILENAME = "seeker.log"

# --- Application Paths ---
# Base directory for configuration, databases and logs.
CONFIG_PATH = Path(os.environ.get("SEEKER_CONFIG_PATH", Path.cwd() / "config"))
CONFIG_FILE = CONFIG_PATH / CONFIG_FILENAME

# --- Directory Listing ---
DIRECTORY_CACHE_TTL = 45  # in seconds
DIRECTORY_CACHE_MAX_ENTRIES = 20
LARGE_DIRECTORY_THRESHOLD = 10_000
DEFAULT_PAGE_SIZE = 50
STAT_BATCH_SIZE = 100
MAX_TEXT_FILE_BYTES = 10 * 1024 * 1024

# --- Chunked Uploads ---
UPLOAD_CHUNK_SIZE = 10 * 1024 * 1024  # 10MB, matches the web client
UPLOAD_MAX_AGE_HOURS = 24
UPLOAD_CLEANUP_INTERVAL = 60 * 60  # in seconds
PARTIAL_SUFFIX = ".partial"

# --- Thumbnails ---
THUMBNAIL_SIZE = (200, 200)
THUMBNAIL_QUALITY = 80
THUMBNAIL_MIME_TYPE = "image/webp"
PDF_RENDER_TIMEOUT = 30  # in seconds
PDF_RENDER_DPI = 72
