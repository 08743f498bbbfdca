"""Tests for the pdftoppm page renderer."""

import shutil

import pytest

from seeker.core.exceptions import TransientError
from seeker.services.pdf_renderer import PdftoppmRenderer


def test_command_renders_only_the_first_page():
    renderer = PdftoppmRenderer(timeout=30, dpi=72, quality=80)
    cmd = renderer.build_command("/data/doc.pdf")
    assert cmd[1:] == [
        "-f", "1", "-l", "1", "-singlefile",
        "-jpeg", "-jpegopt", "quality=80",
        "-r", "72",
        "/data/doc.pdf",
    ]


@pytest.mark.asyncio
async def test_missing_tool_is_reported_once():
    renderer = PdftoppmRenderer(executable="seeker-no-such-rasterizer")
    assert not renderer.is_available()
    assert renderer._probed
    with pytest.raises(TransientError):
        await renderer.render_first_page("/data/doc.pdf")


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("false") is None, reason="needs the 'false' utility")
async def test_nonzero_exit_is_a_failure():
    renderer = PdftoppmRenderer(executable="false")
    with pytest.raises(TransientError, match="failed"):
        await renderer.render_first_page("/data/doc.pdf")


class SleepingRenderer(PdftoppmRenderer):
    def build_command(self, path):
        return [self._resolved, "5"]


@pytest.mark.asyncio
@pytest.mark.skipif(shutil.which("sleep") is None, reason="needs the 'sleep' utility")
async def test_slow_render_is_killed_after_timeout():
    renderer = SleepingRenderer(executable="sleep", timeout=0.2)
    with pytest.raises(TransientError, match="timed out"):
        await renderer.render_first_page("/data/doc.pdf")
