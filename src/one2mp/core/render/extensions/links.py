"""External links: inline "label(url)" text plus a numbered footer list"""

import re

from markdown_it.token import Token

from one2mp.core.render.extension import RendererExtension, escape_html


HTTP_RE = re.compile(r'^https?://', re.IGNORECASE)
DEFAULT_LABEL = "外链"


def record_link(links: list[tuple[str, str]], label: str, href: str) -> None:
    """Add (label, href) once per href, keeping the better display label."""
    for i, (current, known) in enumerate(links):
        if known != href:
            continue
        if label and label != href and (current == href or len(label) > len(current)):
            links[i] = (label, href)
        return
    links.append((label, href))


def _link_text(tokens: list[Token]) -> str:
    return "".join(t.content for t in tokens if t.type in ("text", "code_inline")).strip()


def _html(content: str) -> Token:
    return Token("html_inline", "", 0, content=content)


def footer_html(links: list[tuple[str, str]]) -> str:
    items = "".join(
        f'<li>{escape_html(label if label and label != href else DEFAULT_LABEL)}：'
        f'<a data-linktype="2" data-link="{escape_html(href)}" href="{escape_html(href)}">{escape_html(href)}</a>'
        f'&nbsp;↩</li>'
        for label, href in links
    )
    return f'<section class="foot-links"><hr class="foot-links-separator"><ol>{items}</ol></section>'


class LinksExtension(RendererExtension):
    name = "links"

    async def prepare(self, session):
        session.links.clear()

    async def walk(self, token, session):
        if token.type != "inline" or not token.children:
            return
        children = token.children
        if not any(c.type == "link_open" and HTTP_RE.match(str(c.attrGet("href") or "")) for c in children):
            return
        out: list[Token] = []
        i = 0
        while i < len(children):
            child = children[i]
            href = str(child.attrGet("href") or "") if child.type == "link_open" else ""
            if not HTTP_RE.match(href):
                out.append(child)
                i += 1
                continue
            depth, j = 1, i + 1
            while j < len(children) and depth:
                if children[j].type == "link_open":
                    depth += 1
                elif children[j].type == "link_close":
                    depth -= 1
                j += 1
            inner = children[i + 1:j - 1]
            label = _link_text(inner)
            record_link(session.links, label, href)
            if label and label != href:
                out.extend(inner)
            out.append(_html(f"<strong>({escape_html(href)})</strong>"))
            i = j
        token.children = out

    async def postprocess(self, html, session):
        if not session.links:
            return html
        return html + footer_html(session.links)
