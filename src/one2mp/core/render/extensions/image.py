"""Images: vault path resolution, wiki embeds, and figure/caption wrapping"""

import logging
import re
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup
from markdown_it import MarkdownIt
from markdown_it.rules_inline import StateInline

from one2mp.core.host import NoteHost, join_path, parent_dir
from one2mp.core.render.extension import RendererExtension, escape_html


logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "bmp", "webp", "svg"}
REMOTE_RE = re.compile(r'^(https?:|data:)', re.IGNORECASE)
EMBED_RE = re.compile(r'!\[\[([^\]]+)\]\]')
APP_PREFIX = "app://obsidian.md/"
UNWRAPPED_CLASSES = {"one2mp-avatar-image", "one2mp-mpcard-headimg"}


def is_image_file(path: str) -> bool:
    return PurePosixPath(path).suffix.lower().lstrip(".") in IMAGE_EXTENSIONS


def clean_reference(raw: str) -> str:
    """Strip host URL prefix, alias/size, query and fragment from an image reference."""
    path = unquote(raw.strip())
    if path.startswith(APP_PREFIX):
        path = path[len(APP_PREFIX):]
    for sep in ("|", "?", "#"):
        path = path.split(sep)[0]
    return path.strip().lstrip("/")


def attachment_candidates(path: str, note_path: str, folder: str) -> list[str]:
    note_dir = parent_dir(note_path)
    basename = PurePosixPath(path).name
    if folder in ("", "."):
        return [join_path(note_dir, path), join_path(note_dir, basename)]
    if folder.startswith("./"):
        rel = folder[2:]
        return [join_path(note_dir, rel, basename), join_path(note_dir, rel, path)]
    return [
        join_path(folder, basename),
        join_path(folder, path),
        join_path(note_dir, folder, basename),
        join_path(note_dir, folder, path),
    ]


def find_image_path(host: NoteHost, raw: str, note_path: str) -> Optional[str]:
    """Vault path for an image reference: direct, link resolution, attachment folder, then basename scan."""
    path = clean_reference(raw)
    if not path:
        return None
    if host.exists(path):
        return path

    lookups = [path]
    if "/" in path:
        lookups.append(PurePosixPath(path).name)
    for link in lookups:
        linked = host.resolve_link_path(link, note_path)
        if linked and host.exists(linked):
            return linked

    for candidate in attachment_candidates(path, note_path, host.attachment_folder):
        if host.exists(candidate):
            return candidate

    basename = PurePosixPath(path).name.lower()
    matches = sorted(
        (f for f in host.list_files() if PurePosixPath(f).name.lower() == basename and is_image_file(f)),
        key=len,
    )
    if matches:
        if len(matches) > 1:
            logger.debug("%d files named %s; using %s", len(matches), basename, matches[0])
        return matches[0]
    return None


def resolve_image_src(host: Optional[NoteHost], raw: str, note_path: str) -> Optional[str]:
    """Displayable URL for a reference; remote and data URLs pass through."""
    if REMOTE_RE.match(raw.strip()):
        return raw.strip()
    if host is None:
        return None
    path = find_image_path(host, raw, note_path)
    return host.resource_url(path) if path else None


def _embed_rule(state: StateInline, silent: bool) -> bool:
    if not state.src.startswith("![[", state.pos):
        return False
    m = EMBED_RE.match(state.src, state.pos)
    if not m:
        return False
    if not silent:
        target, _, size = m.group(1).partition("|")
        token = state.push("one2mp_embed", "img", 0)
        token.content = m.group(1)
        token.meta = {"target": target.strip(), "size": size.strip()}
    state.pos = m.end()
    return True


def _render_image(self, tokens, idx, options, env):
    token = tokens[idx]
    src = escape_html(str(token.attrGet("src") or ""))
    alt = escape_html(self.renderInlineAsText(token.children or [], options, env))
    title = token.attrGet("title")
    title_attr = f' title="{escape_html(str(title))}"' if title else ""
    return f'<img src="{src}" alt="{alt}"{title_attr} />'


def _render_embed(self, tokens, idx, options, env):
    meta = tokens[idx].meta
    if "src" not in meta:
        return f'<span class="one2mp-embed">{escape_html(meta["target"])}</span>'
    size = meta.get("size", "")
    style = f' style="width:{size}px;"' if size.isdigit() else ""
    return f'<img src="{escape_html(meta["src"])}" alt=""{style} />'


class ImageExtension(RendererExtension):
    name = "image"

    def setup(self, md: MarkdownIt) -> None:
        md.inline.ruler.before("image", "one2mp_embed", _embed_rule)
        md.add_render_rule("image", _render_image)
        md.add_render_rule("one2mp_embed", _render_embed)

    async def walk(self, token, session):
        if token.type == "image":
            raw = str(token.attrGet("src") or "")
            src = resolve_image_src(session.host, raw, session.note_path)
            if src:
                token.attrSet("src", src)
            else:
                logger.warning("image %r not found for %s", raw, session.note_path)
        elif token.type == "one2mp_embed":
            target = token.meta["target"]
            if not is_image_file(clean_reference(target)) and not REMOTE_RE.match(target):
                return
            src = resolve_image_src(session.host, target, session.note_path)
            if src:
                token.meta["src"] = src
            else:
                logger.warning("embedded image %r not found for %s", target, session.note_path)
                token.meta["src"] = target

    async def postprocess(self, html, session):
        soup = BeautifulSoup(html, "html.parser")
        images = [
            img for img in soup.find_all("img")
            if not UNWRAPPED_CLASSES.intersection(img.get("class") or [])
            and not (img.parent and img.parent.name == "figure")
        ]
        if not images:
            return html
        for img in images:
            figure = img.wrap(soup.new_tag("figure", attrs={"class": "image-with-caption"}))
            title = img.get("title")
            if title:
                row = soup.new_tag("div", attrs={"class": "image-caption-row"})
                row.append(soup.new_tag("div", attrs={"class": "triangle"}))
                caption = soup.new_tag("figcaption", attrs={"class": "image-caption"})
                caption.string = title
                row.append(caption)
                figure.append(row)
        return str(soup)
