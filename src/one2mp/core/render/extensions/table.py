"""Tables: scroll container and inline cell alignment"""

import re

from markdown_it import MarkdownIt

from one2mp.core.render.extension import RendererExtension


ALIGN_RE = re.compile(r'text-align:\s*(\w+)')


def _cell_open(self, tokens, idx, options, env):
    token = tokens[idx]
    m = ALIGN_RE.search(str(token.attrGet("style") or ""))
    style = f' style="text-align:{m.group(1)};"' if m else ""
    return f"<{token.tag}{style}>"


class TableExtension(RendererExtension):
    name = "table"

    def setup(self, md: MarkdownIt) -> None:
        md.add_render_rule("table_open", lambda self, tokens, idx, options, env: '<section class="table-container"><table>\n')
        md.add_render_rule("table_close", lambda self, tokens, idx, options, env: "</table></section>\n")
        md.add_render_rule("th_open", _cell_open)
        md.add_render_rule("td_open", _cell_open)
