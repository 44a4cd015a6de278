"""Side-channel DOM: the host's native rendering of a note, queried by position"""

import asyncio
import base64
import logging
import re
from typing import Callable, Optional

from bs4 import BeautifulSoup, Tag


logger = logging.getLogger(__name__)

CALLOUT_RE = re.compile(r'^\s*>+\s*\[!', re.MULTILINE)
MERMAID_RE = re.compile(r'^\s*```\s*mermaid\b', re.MULTILINE | re.IGNORECASE)

DEFAULT_DIAGRAM_SIZE = (800, 400)

Rasterizer = Callable[[str, int, int], Optional[str]]
Measurer = Callable[[Tag], tuple[float, float]]


def _number(value: str | None) -> float:
    if not value:
        return 0.0
    m = re.match(r'\s*([0-9]*\.?[0-9]+)', value)
    return float(m.group(1)) if m else 0.0


def svg_to_data_url(svg: Tag, width: int = 0, height: int = 0) -> str:
    """Standalone base64 data URL for an inline <svg>."""
    clone = BeautifulSoup(str(svg), "html.parser").find("svg")
    clone["xmlns"] = clone.get("xmlns") or "http://www.w3.org/2000/svg"
    if width:
        clone["width"] = str(width)
    if height:
        clone["height"] = str(height)
    encoded = base64.b64encode(str(clone).encode("utf-8")).decode("ascii")
    return f"data:image/svg+xml;base64,{encoded}"


def svg_size(svg: Tag, measurer: Measurer = None) -> tuple[int, int]:
    """Pixel size from the live box, else viewBox, else width/height attributes, else 800x400."""
    width = height = 0
    if measurer:
        w, h = measurer(svg)
        width, height = round(w), round(h)
    if not width or not height:
        parts = (svg.get("viewBox") or svg.get("viewbox") or "").replace(",", " ").split()
        if len(parts) == 4 and _number(parts[2]) and _number(parts[3]):
            width, height = round(_number(parts[2])), round(_number(parts[3]))
    if not width or not height:
        if w := _number(svg.get("width")):
            width = round(w)
        if h := _number(svg.get("height")):
            height = round(h)
    return width or DEFAULT_DIAGRAM_SIZE[0], height or DEFAULT_DIAGRAM_SIZE[1]


class SideChannel:
    """Container holding the host-rendered DOM of the current note.

    The host fills it through `load`; anything that mutates `container` afterwards
    calls `notify` so pending `wait_for_selector` calls re-check.
    """

    def __init__(self, rasterizer: Rasterizer = None, measurer: Measurer = None):
        self.soup = BeautifulSoup('<div class="one2mp-render-preview"></div>', "html.parser")
        self.container: Tag = self.soup.div
        self.rendering = False
        self.rasterizer = rasterizer
        self.measurer = measurer
        self._changed = asyncio.Event()

    def load(self, html: str) -> None:
        self.container.clear()
        fragment = BeautifulSoup(html, "html.parser")
        for node in list(fragment.contents):
            self.container.append(node.extract())
        self.notify()

    def notify(self) -> None:
        self._changed.set()

    async def wait_for_selector(self, root: Tag, selector: str, timeout: float) -> bool:
        """Wait until root contains selector or timeout elapses. Never raises; returns whether it appeared."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            self._changed.clear()
            if root.select_one(selector) is not None:
                return True
            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.debug("timed out after %.1fs waiting for %r", timeout, selector)
                return False
            try:
                await asyncio.wait_for(self._changed.wait(), remaining)
            except asyncio.TimeoutError:
                logger.debug("timed out after %.1fs waiting for %r", timeout, selector)
                return False

    async def render(self, host, path: str, markdown: str, callout_timeout: float, diagram_timeout: float) -> None:
        """Populate the container through the host's native renderer and wait for slow widgets."""
        self._changed = asyncio.Event()
        self.rendering = True
        try:
            self.container.clear()
            await host.render_native(path, self)
            if CALLOUT_RE.search(markdown):
                await self.wait_for_selector(self.container, ".callout", callout_timeout)
            if MERMAID_RE.search(markdown):
                await self.wait_for_selector(self.container, ".mermaid svg", diagram_timeout)
        finally:
            self.rendering = False

    def query(self, index: int, selector: str) -> Tag | None:
        """The index-th node matching selector in document order, or None."""
        if self.rendering:
            return None
        nodes = self.container.select(selector)
        if 0 <= index < len(nodes):
            return nodes[index]
        return None

    def diagram_size(self, svg: Tag) -> tuple[int, int]:
        return svg_size(svg, self.measurer)

    def svg_image(self, svg: Tag, width: int, height: int) -> str:
        """Bitmap data URL via the rasterizer when available, else an SVG data URL."""
        if self.rasterizer:
            png = self.rasterizer(str(svg), width, height)
            if png:
                return png
        return svg_to_data_url(svg, width, height)

    def capture(self, node: Tag) -> Optional[str]:
        """Image data URL for a widget: canvas, img, nested canvas, nested img, then svg."""
        candidates = []
        if node.name in ("canvas", "img"):
            candidates.append(node)
        candidates += [node.find("canvas"), node.find("img")]
        for el in candidates:
            if el is None:
                continue
            src = el.get("data-url") if el.name == "canvas" else el.get("src")
            if src:
                return src
        svg = node if node.name == "svg" else node.find("svg")
        if svg is not None:
            return self.svg_image(svg, *self.diagram_size(svg))
        return None
