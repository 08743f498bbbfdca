# src/seeker/services/pdf_renderer.py
# SPDX-License-Identifier: AGPL-3.0-or-later
# Copyright (C) 2025 AZHAR ZOUHIR / BYTEDz

import asyncio
import logging
import shutil
from typing import List, Optional, Protocol

from ..core import constants
from ..core.exceptions import TransientError

log = logging.getLogger(__name__)


class PageRenderer(Protocol):
    """Rasterizes the first page of a document to encoded image bytes."""

    def is_available(self) -> bool:
        ...

    async def render_first_page(self, path: str) -> bytes:
        ...


class PdftoppmRenderer:
    """Renders the first PDF page to JPEG through poppler's `pdftoppm`."""

    def __init__(
        self,
        timeout: float = constants.PDF_RENDER_TIMEOUT,
        dpi: int = constants.PDF_RENDER_DPI,
        quality: int = constants.THUMBNAIL_QUALITY,
        executable: str = "pdftoppm",
    ):
        self.timeout = timeout
        self.dpi = dpi
        self.quality = quality
        self.executable = executable
        self._resolved: Optional[str] = None
        self._probed = False

    def is_available(self) -> bool:
        if not self._probed:
            self._resolved = shutil.which(self.executable)
            self._probed = True
            if self._resolved is None:
                log.warning(f"{self.executable} not found; PDF thumbnails are disabled")
        return self._resolved is not None

    def build_command(self, path: str) -> List[str]:
        return [
            self._resolved or self.executable,
            "-f", "1", "-l", "1", "-singlefile",
            "-jpeg", "-jpegopt", f"quality={self.quality}",
            "-r", str(self.dpi),
            path,
        ]

    async def render_first_page(self, path: str) -> bytes:
        if not self.is_available():
            raise TransientError(f"{self.executable} is not installed")

        cmd = self.build_command(path)
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TransientError(f"Could not start {self.executable}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await process.wait()
            raise TransientError(f"{self.executable} timed out after {self.timeout}s")

        if process.returncode != 0:
            error_msg = stderr.decode(errors="replace").strip()
            raise TransientError(f"{self.executable} failed ({process.returncode}): {error_msg}")
        if not stdout:
            raise TransientError(f"{self.executable} produced no output")
        return stdout
