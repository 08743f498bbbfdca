# filename: src/seeker/main.py
#!/usr/bin/env python3
"""
Seeker - Self-hosted File Browser
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

import uvicorn

from .api_server.api import create_api_app
from .core.config import ConfigManager
from .core.exceptions import ConfigurationError
from .core.logging_config import setup_logging
from .core.version import __app_name__, __version__


def show_help():
    """Display help information."""
    print(f"{__app_name__} v{__version__}")
    print("Self-hosted file browser and media cache")
    print("")
    print("Usage:")
    print("   seeker                    # Start the API server")
    print("   seeker --help             # Show this help")
    print("")
    print("Settings are read from $SEEKER_CONFIG_PATH/config.json (default ./config).")
    print("")


def main() -> int:
    """Main entry point for Seeker."""

    if "--help" in sys.argv or "-h" in sys.argv:
        show_help()
        return 0

    try:
        config = ConfigManager()
    except ConfigurationError as e:
        print(f"ERROR: Invalid configuration: {e}")
        return 1

    setup_logging(config.get("log_level", "INFO"), config.data_dir)
    log = logging.getLogger(__name__)
    log.info(f"Starting {__app_name__} v{__version__}")

    if not config.mounts:
        log.warning("No mounts configured; every path will be denied until 'mounts' is set.")

    try:
        app = create_api_app(config=config, configure_logging=False)
        server = uvicorn.Server(uvicorn.Config(
            app=app,
            host=config.get("host"),
            port=config.get_int("port"),
            log_level="warning",
        ))
        server.run()
        return 0
    except Exception as e:
        log.critical(f"Failed to start {__app_name__}: {e}")
        print(f"ERROR: Could not start {__app_name__}: {e}")
        return 1


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
