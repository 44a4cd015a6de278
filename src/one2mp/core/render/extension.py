"""Renderer extension contract"""

from markdown_it import MarkdownIt
from markdown_it.token import Token

from one2mp.core.render.session import RenderSession


class RendererExtension:
    """One pluggable unit of the render chain.

    `setup` registers parser plugins and render rules once per parser instance.
    Per render, the pipeline calls `prepare`, then `walk` for every token in document
    order (inline children included), then threads the HTML through `postprocess`.
    """

    name = "extension"

    def setup(self, md: MarkdownIt) -> None:
        pass

    async def prepare(self, session: RenderSession) -> None:
        pass

    async def walk(self, token: Token, session: RenderSession) -> None:
        pass

    async def postprocess(self, html: str, session: RenderSession) -> str:
        return html


def session_of(env: dict) -> RenderSession:
    return env["session"]


def escape_html(text: str) -> str:
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
        .replace("'", "&#39;")
    )
