"""markdown-it parser construction shared by renderers and exporters"""

from markdown_it import MarkdownIt


def make_parser(preset: str = "gfm-like", breaks: bool = True) -> MarkdownIt:
    """GitHub-flavoured tables/strikethrough, raw HTML allowed, soft breaks rendered as <br>."""
    return MarkdownIt(preset, options_update={"linkify": False, "breaks": breaks, "html": True})


def render_html(markdown: str) -> str:
    """Plain HTML rendering with no platform extensions."""
    return make_parser().render(markdown)
