# filename: src/seeker/api_server/api.py
"""
Seeker - Self-hosted File Browser - Main API Module
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
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..core.config import ConfigManager
from ..core.exceptions import SeekerError
from ..core.logging_config import setup_logging
from ..core.version import __app_name__, __version__
from ..services.container import ServiceContainer
from .file_browser import router as file_browser_router
from .thumbnail_router import router as thumbnail_router
from .transfer_router import upload_router

log = logging.getLogger(__name__)


# --- FastAPI App Factory ---
def create_api_app(
    container: Optional[ServiceContainer] = None,
    config: Optional[ConfigManager] = None,
    configure_logging: bool = True,
) -> FastAPI:
    if container is None:
        container = ServiceContainer(config or ConfigManager())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(container.config.get("log_level", "INFO"), container.config.data_dir)
        await container.init()
        log.info(f"{__app_name__} API v{__version__} started")
        try:
            yield
        finally:
            await container.dispose()
            log.info(f"{__app_name__} API stopped")

    app = FastAPI(title=f"{__app_name__} API", version=__version__, lifespan=lifespan)
    app.state.container = container
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(SeekerError)
    async def seeker_error_handler(request: Request, exc: SeekerError):
        if exc.status_code >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=exc.status_code, content={"success": False, "error": str(exc)})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        log.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    app.include_router(upload_router, prefix="/api/files/upload")
    app.include_router(file_browser_router, prefix="/api/files")
    app.include_router(thumbnail_router, prefix="/api/thumbnails")

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": __version__}

    return app
