"""`ris:name` / `fas:name` icon shortcodes captured from the native render"""

import logging
import re

from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline

from one2mp.core.render.extension import RendererExtension


logger = logging.getLogger(__name__)

ICON_RE = re.compile(r'`(ris|fas):([a-z0-9-]+)`')
ICON_SELECTOR = ".obsidian-icon.react-icon"
ICON_MISSING = "<span>remix icon not found </span>"


def _icon_rule(state: StateInline, silent: bool) -> bool:
    if state.src[state.pos] != "`":
        return False
    m = ICON_RE.match(state.src, state.pos)
    if not m:
        return False
    if not silent:
        token = state.push("one2mp_icon", "span", 0)
        token.content = m.group(0)
        token.meta = {"set": m.group(1), "name": m.group(2)}
    state.pos = m.end()
    return True


def _render_icon(self, tokens, idx, options, env):
    return tokens[idx].meta.get("html", ICON_MISSING)


class IconExtension(RendererExtension):
    name = "icon"

    def setup(self, md: MarkdownIt) -> None:
        md.inline.ruler.before("backticks", "one2mp_icon", _icon_rule)
        md.add_render_rule("one2mp_icon", _render_icon)

    async def prepare(self, session):
        session.counters["icon"] = 0

    async def walk(self, token, session):
        if token.type != "one2mp_icon":
            return
        index = session.next_index("icon")
        node = session.side_channel.query(index, ICON_SELECTOR)
        if node is None:
            logger.warning("icon %s #%d missing from native render", token.meta.get("name"), index)
            return
        token.meta["html"] = str(node)
