"""Footnotes rendered without in-page anchors"""

from markdown_it import MarkdownIt
from mdit_py_plugins.footnote import footnote_plugin

from one2mp.core.render.extension import RendererExtension


def _caption(token) -> str:
    n = token.meta["id"] + 1
    if token.meta.get("subId", 0) > 0:
        return f"{n}:{token.meta['subId']}"
    return str(n)


def _footnote_ref(self, tokens, idx, options, env):
    return f'<sup class="footnote-ref">[{_caption(tokens[idx])}]</sup>'


def _block_open(self, tokens, idx, options, env):
    return '<section class="footnotes"><hr class="footnotes-sep"><ol class="footnotes-list">\n'


def _block_close(self, tokens, idx, options, env):
    return "</ol></section>\n"


def _item_open(self, tokens, idx, options, env):
    return '<li class="footnote-item">'


def _item_close(self, tokens, idx, options, env):
    return "</li>\n"


class FootnoteExtension(RendererExtension):
    name = "footnote"

    def setup(self, md: MarkdownIt) -> None:
        md.use(footnote_plugin)
        md.add_render_rule("footnote_ref", _footnote_ref)
        md.add_render_rule("footnote_block_open", _block_open)
        md.add_render_rule("footnote_block_close", _block_close)
        md.add_render_rule("footnote_open", _item_open)
        md.add_render_rule("footnote_close", _item_close)
        md.add_render_rule("footnote_anchor", lambda self, tokens, idx, options, env: "")
