"""Inline code spans and the image-caption sentinel"""

import re

from markdown_it import MarkdownIt

from one2mp.core.render.extension import RendererExtension, escape_html


CAPTION_RE = re.compile(r'^wwcap:\s*(.*)$', re.IGNORECASE | re.DOTALL)


def _render_code_inline(self, tokens, idx, options, env):
    code = tokens[idx].content
    m = CAPTION_RE.match(code)
    if m:
        return f'<div class="one2mp-image-caption">{escape_html(m.group(1))}</div>'
    return f'<span class="one2mp-codespan">{escape_html(code)}</span>'


class CodespanExtension(RendererExtension):
    name = "codespan"

    def setup(self, md: MarkdownIt) -> None:
        md.add_render_rule("code_inline", _render_code_inline)
