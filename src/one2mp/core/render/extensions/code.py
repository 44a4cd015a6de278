"""Fenced code: highlighted source, diagrams, admonitions, charts, and card widgets"""

import logging

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.token import Token

from one2mp.core.render.extension import RendererExtension, session_of
from one2mp.core.render.extensions.cards import render_card, render_profile, restore_cards
from one2mp.core.render.highlight import highlight


logger = logging.getLogger(__name__)

MERMAID_FAILED = "<p>Mermaid diagram render failed</p>"
ADMONITION_FAILED = "<p>Admonition render failed</p>"
CHART_FAILED = "<p>Chart render failed</p>"

CAPTURED = "html"


def fence_lang(token: Token) -> str:
    return token.info.strip().split(" ")[0].lower() if token.info else ""


def code_block_html(code: str, lang: str) -> str:
    if code.endswith("\n"):
        code = code[:-1]
    body = "".join(f"<code>{line or '<br>'}</code>" for line in highlight(code, lang))
    if lang:
        pre = f'<pre style="max-width:1000% !important;" class="hljs language-{lang}">{body}</pre>'
    else:
        pre = f'<pre class="hljs">{body}</pre>'
    return f'<section class="code-section code-snippet__fix">{pre}</section>'


def _render_fence(self, tokens, idx, options, env):
    token = tokens[idx]
    lang = fence_lang(token)
    if lang == "mermaid":
        return token.meta.get(CAPTURED, MERMAID_FAILED)
    if lang.startswith("ad-"):
        return token.meta.get(CAPTURED, ADMONITION_FAILED)
    if lang == "chart":
        return token.meta.get(CAPTURED, CHART_FAILED)
    if lang == "one2mp-profile":
        return render_profile(token.content)
    if lang == "mpcard":
        return render_card(token.content, session_of(env).cards)
    return code_block_html(token.content, lang)


def _render_code_block(self, tokens, idx, options, env):
    return code_block_html(tokens[idx].content, "")


class CodeExtension(RendererExtension):
    name = "code"

    def setup(self, md: MarkdownIt) -> None:
        md.add_render_rule("fence", _render_fence)
        md.add_render_rule("code_block", _render_code_block)

    async def prepare(self, session):
        session.counters.update(mermaid=0, admonition=0, chart=0)
        session.cards.clear()

    async def walk(self, token, session):
        if token.type != "fence":
            return
        lang = fence_lang(token)
        if lang == "mermaid":
            await self._capture_mermaid(token, session)
        elif lang.startswith("ad-"):
            self._capture_admonition(token, session)
        elif lang == "chart":
            self._capture_chart(token, session)

    async def _capture_mermaid(self, token, session):
        side = session.side_channel
        index = session.next_index("mermaid")
        root = side.query(index, ".mermaid")
        if root is None:
            logger.warning("mermaid #%d missing from native render", index)
            return
        await side.wait_for_selector(root, "svg", session.settings.diagram_timeout)
        svg = root.find("svg")
        if svg is None:
            logger.warning("mermaid #%d produced no svg", index)
            return
        width, height = side.diagram_size(svg)
        src = side.svg_image(svg, width, height)
        token.meta[CAPTURED] = (
            f'<section id="one2mp-mermaid-{index}" class="mermaid">'
            f'<img src="{src}" class="mermaid-image" style="width:{width}px;height:auto;"></section>'
        )

    def _capture_admonition(self, token, session):
        index = session.next_index("admonition")
        root = session.side_channel.query(index, ".callout.admonition")
        if root is None:
            logger.warning("admonition #%d missing from native render", index)
            return
        node = BeautifulSoup(str(root), "html.parser")
        for chrome in node.select(".edit-block-button, .callout-fold"):
            chrome.decompose()
        for div in node.find_all("div"):
            div.name = "section"
        token.meta[CAPTURED] = str(node)

    def _capture_chart(self, token, session):
        index = session.next_index("chart")
        root = session.side_channel.query(index, ".block-language-chart")
        src = session.side_channel.capture(root) if root is not None else None
        if not src:
            logger.warning("chart #%d missing from native render", index)
            return
        token.meta[CAPTURED] = (
            f'<section id="charts-img-{index}" class="charts"><img src="{src}" class="charts-image" /></section>'
        )

    async def postprocess(self, html, session):
        if session.for_upload and session.cards:
            return restore_cards(html, session.cards)
        return html
