"""Unit tests for core/render/side_channel.py"""

import asyncio
import base64

from bs4 import BeautifulSoup

from one2mp.core.render.side_channel import SideChannel, svg_size


def _svg(markup: str):
    return BeautifulSoup(markup, "html.parser").find("svg")


def test_wait_for_selector_times_out_without_raising():
    """A selector that never appears resolves False after the timeout."""
    channel = SideChannel()
    found = asyncio.run(channel.wait_for_selector(channel.container, ".never", 0.05))
    assert found is False


def test_wait_for_selector_wakes_on_load():
    """A node loaded while waiting is seen before the timeout."""
    async def scenario():
        channel = SideChannel()

        async def later():
            await asyncio.sleep(0.01)
            channel.load('<div class="callout">late</div>')

        task = asyncio.create_task(later())
        found = await channel.wait_for_selector(channel.container, ".callout", 2.0)
        await task
        return found

    assert asyncio.run(scenario()) is True


def test_query_is_positional_and_blocked_while_rendering():
    """query returns the n-th match; nothing is returned during a render."""
    channel = SideChannel()
    channel.load('<p class="x">0</p><p class="x">1</p>')
    assert channel.query(1, ".x").get_text() == "1"
    assert channel.query(2, ".x") is None
    channel.rendering = True
    assert channel.query(0, ".x") is None


def test_svg_size_order_of_sources():
    """Size comes from the measurer, then viewBox, then attributes, then 800x400."""
    assert svg_size(_svg('<svg viewBox="0 0 120 60" width="10" height="10"></svg>')) == (120, 60)
    assert svg_size(_svg('<svg width="300px" height="150"></svg>')) == (300, 150)
    assert svg_size(_svg("<svg></svg>")) == (800, 400)
    assert svg_size(_svg("<svg></svg>"), measurer=lambda s: (33.4, 20.6)) == (33, 21)


def test_capture_prefers_canvas_snapshot():
    """A canvas data-url wins over nested images and svgs."""
    channel = SideChannel()
    node = BeautifulSoup(
        '<div><canvas data-url="data:image/png;base64,AAA"></canvas><img src="x.png"><svg></svg></div>',
        "html.parser",
    ).div
    assert channel.capture(node) == "data:image/png;base64,AAA"


def test_capture_svg_falls_back_to_svg_data_url():
    """Without a rasterizer an svg is captured as a base64 SVG data URL with its size."""
    channel = SideChannel()
    node = BeautifulSoup('<div><svg viewBox="0 0 40 20"><rect/></svg></div>', "html.parser").div
    src = channel.capture(node)
    assert src.startswith("data:image/svg+xml;base64,")
    decoded = base64.b64decode(src.split(",", 1)[1]).decode("utf-8")
    assert 'width="40"' in decoded and 'xmlns="http://www.w3.org/2000/svg"' in decoded


def test_capture_uses_rasterizer_when_available():
    """A rasterizer result replaces the svg data URL."""
    channel = SideChannel(rasterizer=lambda svg, w, h: f"data:image/png;base64,{w}x{h}")
    node = BeautifulSoup('<svg viewBox="0 0 40 20"></svg>', "html.parser").svg
    assert channel.capture(node) == "data:image/png;base64,40x20"
