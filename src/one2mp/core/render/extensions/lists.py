"""Lists: styling frame, item wrappers, and task-list glyphs"""

import re

from markdown_it import MarkdownIt
from markdown_it.rules_core import StateCore

from one2mp.core.render.extension import RendererExtension


TASK_RE = re.compile(r'^\[([ xX])\]\s+')
TASK_GLYPHS = {False: "🔲", True: "✅"}


def _mark_tasks(state: StateCore) -> None:
    tokens = state.tokens
    for i, token in enumerate(tokens[:-2]):
        if token.type == "list_item_open" and tokens[i + 1].type == "paragraph_open" and tokens[i + 2].type == "inline":
            m = TASK_RE.match(tokens[i + 2].content)
            if m:
                tokens[i + 2].meta["task"] = m.group(1) != " "


def _list_open(self, tokens, idx, options, env):
    token = tokens[idx]
    start = token.attrGet("start")
    start_attr = f' start="{start}"' if start is not None else ""
    return f'<section class="one2mp-list-frame" frame-type="list"><{token.tag}{start_attr} class="list-paddingleft-1">\n'


def _list_close(self, tokens, idx, options, env):
    return f"</{tokens[idx].tag}></section>\n"


def _item_open(self, tokens, idx, options, env):
    return "<li><section>"


def _item_close(self, tokens, idx, options, env):
    return "</section></li>\n"


class ListExtension(RendererExtension):
    name = "lists"

    def setup(self, md: MarkdownIt) -> None:
        md.core.ruler.push("one2mp_tasks", _mark_tasks)
        for rule in ("bullet_list_open", "ordered_list_open"):
            md.add_render_rule(rule, _list_open)
        for rule in ("bullet_list_close", "ordered_list_close"):
            md.add_render_rule(rule, _list_close)
        md.add_render_rule("list_item_open", _item_open)
        md.add_render_rule("list_item_close", _item_close)

    async def walk(self, token, session):
        if token.type != "inline" or "task" not in token.meta or not token.children:
            return
        first = token.children[0]
        if first.type == "text":
            first.content = TASK_RE.sub(f"{TASK_GLYPHS[token.meta['task']]} ", first.content, count=1)
