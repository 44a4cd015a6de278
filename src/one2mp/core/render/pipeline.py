"""Article render pipeline: frontmatter split, extension chain, and final list cleanup"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup
from markdown_it.token import Token

from one2mp.config import Settings
from one2mp.core.frontmatter import normalize_hr_after_image, split_frontmatter, strip_template_markers
from one2mp.core.host import NoteHost
from one2mp.core.markdown import make_parser
from one2mp.core.render.extension import RendererExtension
from one2mp.core.render.extensions.callout import CalloutExtension
from one2mp.core.render.extensions.code import CodeExtension
from one2mp.core.render.extensions.codespan import CodespanExtension
from one2mp.core.render.extensions.footnote import FootnoteExtension
from one2mp.core.render.extensions.heading import HeadingExtension
from one2mp.core.render.extensions.icon import IconExtension
from one2mp.core.render.extensions.image import ImageExtension
from one2mp.core.render.extensions.links import LinksExtension
from one2mp.core.render.extensions.lists import ListExtension
from one2mp.core.render.extensions.math import MathExtension
from one2mp.core.render.extensions.table import TableExtension
from one2mp.core.render.session import RenderSession
from one2mp.core.render.side_channel import SideChannel


logger = logging.getLogger(__name__)

BLANK_RE = re.compile(r'[\s\u00a0\u200b\u200c\u200d\ufeff]+')
MEDIA_TAGS = ["img", "video", "figure", "svg", "canvas"]


def default_extensions() -> list[RendererExtension]:
    return [
        FootnoteExtension(),
        HeadingExtension(),
        CodeExtension(),
        CodespanExtension(),
        MathExtension(),
        IconExtension(),
        CalloutExtension(),
        TableExtension(),
        LinksExtension(),
        ListExtension(),
        ImageExtension(),
    ]


def collapse_captured(tokens: list[Token]) -> list[Token]:
    """Replace every container whose opening token carries captured markup with one html_block."""
    out: list[Token] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.nesting == 1 and "html" in token.meta:
            j = i + 1
            while j < len(tokens) and not (tokens[j].nesting == -1 and tokens[j].level == token.level):
                j += 1
            block = Token("html_block", "", 0, content=token.meta["html"] + "\n")
            block.block = True
            out.append(block)
            i = j + 1
            continue
        out.append(token)
        i += 1
    return out


def remove_empty_list_items(html: str) -> str:
    """Drop <li> elements holding no text and no media once whitespace and <br> are ignored."""
    if "<li" not in html:
        return html
    soup = BeautifulSoup(html, "html.parser")
    removed = 0
    for li in reversed(soup.find_all("li")):
        if li.find(MEDIA_TAGS) is not None:
            continue
        if BLANK_RE.sub("", li.get_text()):
            continue
        li.decompose()
        removed += 1
    if not removed:
        return html
    logger.debug("removed %d empty list items", removed)
    return str(soup)


class WechatRender:
    """Renders a note into article HTML through a fixed chain of extensions.

    One instance serves one render at a time; every render gets a fresh RenderSession.
    """

    def __init__(
        self,
        settings: Settings,
        host: Optional[NoteHost] = None,
        side_channel: Optional[SideChannel] = None,
        extensions: Optional[list[RendererExtension]] = None,
        ):
        self.settings = settings
        self.host = host
        if side_channel is None:
            side_channel = SideChannel(rasterizer=host.rasterize_svg if host is not None else None)
        self.side_channel = side_channel
        self.extensions = extensions if extensions is not None else default_extensions()
        self.md = make_parser()
        for ext in self.extensions:
            ext.setup(self.md)

    async def _walk(self, tokens: list[Token], session: RenderSession) -> None:
        for token in tokens:
            for ext in self.extensions:
                await ext.walk(token, session)
            if token.children:
                await self._walk(token.children, session)

    async def render_text(self, text: str, note_path: str = "", for_upload: bool = False) -> str:
        fm, body = split_frontmatter(text)
        body = normalize_hr_after_image(strip_template_markers(body))
        session = RenderSession(
            settings=self.settings,
            side_channel=self.side_channel,
            host=self.host,
            note_path=note_path,
            frontmatter=fm,
            for_upload=for_upload,
        )
        if self.host is not None and note_path:
            await self.side_channel.render(
                self.host, note_path, body, self.settings.callout_timeout, self.settings.diagram_timeout,
            )
        else:
            self.side_channel.container.clear()

        for ext in self.extensions:
            await ext.prepare(session)
        env = {"session": session}
        tokens = self.md.parse(body, env)
        await self._walk(tokens, session)
        html = self.md.renderer.render(collapse_captured(tokens), self.md.options, env)
        for ext in self.extensions:
            html = await ext.postprocess(html, session)
        return remove_empty_list_items(html)

    async def render_note(self, path: str, for_upload: bool = False) -> str:
        if self.host is None:
            raise RuntimeError("render_note needs a host")
        return await self.render_text(self.host.read_note_text(path), path, for_upload)
