"""Shared fixtures for render unit tests"""

import asyncio

import pytest

from one2mp.core.render.pipeline import WechatRender


@pytest.fixture(name="render")
def render_fixture(settings):
    """Render markdown text through the full extension chain, optionally against a vault note."""
    def _render(text: str, host=None, note_path: str = "", for_upload: bool = False) -> str:
        renderer = WechatRender(settings, host)
        return asyncio.run(renderer.render_text(text, note_path, for_upload))
    return _render
