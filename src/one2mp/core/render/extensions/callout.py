"""`> [!type]` callout blockquotes captured from the native render"""

import logging
import re

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore

from one2mp.core.render.extension import RendererExtension


logger = logging.getLogger(__name__)

CALLOUT_HEAD_RE = re.compile(r'^\[!([\w-]+)\]')
CALLOUT_SELECTOR = ".callout:not(.admonition)"
CALLOUT_FAILED = "<p>Callout render failed</p>"


def _mark_callouts(state: StateCore) -> None:
    tokens = state.tokens
    for i, token in enumerate(tokens[:-2]):
        if token.type != "blockquote_open":
            continue
        if tokens[i + 1].type == "paragraph_open" and tokens[i + 2].type == "inline":
            m = CALLOUT_HEAD_RE.match(tokens[i + 2].content)
            if m:
                token.meta["callout"] = m.group(1).lower()


class CalloutExtension(RendererExtension):
    """Callout blockquotes are replaced whole by the matching native node."""

    name = "callout"

    def setup(self, md: MarkdownIt) -> None:
        md.core.ruler.push("one2mp_callout", _mark_callouts)

    async def prepare(self, session):
        session.counters["callout"] = 0

    async def walk(self, token, session):
        if token.type != "blockquote_open" or "callout" not in token.meta:
            return
        index = session.next_index("callout")
        root = session.side_channel.query(index, CALLOUT_SELECTOR)
        if root is None:
            logger.warning("callout #%d (%s) missing from native render", index, token.meta["callout"])
            token.meta["html"] = CALLOUT_FAILED
            return
        node = BeautifulSoup(str(root), "html.parser")
        for chrome in node.select(".callout-fold"):
            chrome.decompose()
        for div in node.find_all("div"):
            div.name = "section"
        token.meta["html"] = str(node)
