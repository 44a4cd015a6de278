"""TeX math through the host's TeX-to-SVG engine, escaped source when there is none"""

from markdown_it import MarkdownIt
from mdit_py_plugins.dollarmath import dollarmath_plugin

from one2mp.core.render.extension import RendererExtension, escape_html, session_of


def _tex(env, tex: str, display: bool) -> str | None:
    host = session_of(env).host
    return host.tex_to_svg(tex, display) if host is not None else None


def _render_inline(self, tokens, idx, options, env):
    tex = tokens[idx].content
    svg = _tex(env, tex, False)
    return f'<span class="inline-math">{svg or escape_html(f"${tex}$")}</span>'


def _render_block(self, tokens, idx, options, env):
    tex = tokens[idx].content.strip()
    svg = _tex(env, tex, True)
    return f'<section class="block-math">{svg or escape_html(f"$${tex}$$")}</section>\n'


class MathExtension(RendererExtension):
    name = "math"

    def setup(self, md: MarkdownIt) -> None:
        md.use(dollarmath_plugin, allow_space=True, allow_digits=False, double_inline=True)
        for rule in ("math_inline", "math_inline_double"):
            md.add_render_rule(rule, _render_inline)
        for rule in ("math_block", "math_block_label"):
            md.add_render_rule(rule, _render_block)
