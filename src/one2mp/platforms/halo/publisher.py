"""Publish a note to a Halo site and bind the remote post back into its frontmatter"""

import asyncio
import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Callable, Optional

from one2mp.config import HaloSite, Settings
from one2mp.core.frontmatter import get_cover, get_string, split_frontmatter
from one2mp.core.host import NoteHost
from one2mp.core.markdown import render_html
from one2mp.core.messages import Notifier
from one2mp.core.render.extensions.image import find_image_path
from one2mp.platforms.halo.client import CONTENT_JSON, HaloAttachmentError, HaloClient, default_content, default_post
from one2mp.platforms.wechat.publisher import PublishConfigError, cover_reference


logger = logging.getLogger(__name__)

CODE_FENCE_RE = re.compile(r'```[\s\S]*?```')
EMBED_RE = re.compile(r'!\[\[([^\]]+)\]\]')
MD_IMAGE_RE = re.compile(r'!\[([^\]]*)\]\(([^)]+)\)')
WIKI_LINK_RE = re.compile(r'\[\[([^\]]+)\]\]')
SLUG_RE = re.compile(r'[^\w一-龥]+')
REMOTE_RE = re.compile(r'^(https?:|data:)', re.IGNORECASE)
EXT_RE = re.compile(r'\.[a-zA-Z0-9]+$')

ATTACHMENT_NOTICES = {
    "permission": "Halo rejected the attachment upload: the token lacks attachment permission",
    "not-configured": "Halo attachment storage is not configured on the server",
}


class SiteMismatchError(RuntimeError):
    """The note is already bound to a post on a different site."""


@dataclass
class HaloResult:
    name:      str
    site:      str
    publish:   bool
    permalink: Optional[str] = None


def build_slug(title: str) -> str:
    slug = SLUG_RE.sub("-", title.strip().lower()).strip("-")
    return slug or f"post-{int(time.time() * 1000)}"


def build_post_name() -> str:
    return str(uuid.uuid4())


def build_excerpt(fm: Optional[dict]) -> dict[str, Any]:
    raw = get_string(fm, ("excerpt", "摘要"))
    return {"autoGenerate": False, "raw": raw} if raw else {"autoGenerate": True, "raw": ""}


def halo_binding(fm: Optional[dict]) -> dict[str, Any]:
    value = (fm or {}).get("halo")
    return value if isinstance(value, dict) else {}


def image_alt(path: str) -> str:
    return EXT_RE.sub("", path.split("/")[-1] or path)


def replace_outside_code(raw: str, replacer: Callable[[str], str]) -> str:
    """Apply replacer to every stretch of text between ``` fences; fences are kept verbatim."""
    out, last = [], 0
    for m in CODE_FENCE_RE.finditer(raw):
        out.append(replacer(raw[last:m.start()]))
        out.append(m.group(0))
        last = m.end()
    out.append(replacer(raw[last:]))
    return "".join(out)


class HaloPublisher:
    """One publish action per call; upload and link caches live for a single publish."""

    def __init__(
        self,
        settings: Settings,
        host: NoteHost,
        notifier: Notifier = None,
        client_factory: Callable[[HaloSite], HaloClient] = HaloClient,
        ):
        self.settings = settings
        self.host = host
        self.notifier = notifier or Notifier()
        self.client_factory = client_factory
        self._images: dict[str, str] = {}
        self._links: dict[str, str] = {}

    def _upload_image(self, client: HaloClient, ref: str, note_path: str) -> Optional[str]:
        cleaned = ref.split("|")[0].split("?")[0].split("#")[0].strip()
        path = find_image_path(self.host, cleaned, note_path) if cleaned else None
        if not path:
            logger.warning("halo: image %s not found", ref)
            return None
        if path not in self._images:
            self._images[path] = client.upload_attachment(self.host.read_binary(path), PurePosixPath(path).name)
        return self._images[path]

    def _replace_images(self, client: HaloClient, segment: str, note_path: str) -> str:
        def embed(m: re.Match) -> str:
            target = m.group(1).split("|")[0].strip()
            if not target:
                return m.group(0)
            if REMOTE_RE.match(target):
                return f"![]({target})"
            url = self._upload_image(client, target, note_path)
            return f"![{image_alt(target)}]({url})" if url else m.group(0)

        def image(m: re.Match) -> str:
            src = m.group(2).strip().split()[0].strip("<>")
            if REMOTE_RE.match(src):
                return m.group(0)
            url = self._upload_image(client, src, note_path)
            return f"![{m.group(1)}]({url})" if url else m.group(0)

        return MD_IMAGE_RE.sub(image, EMBED_RE.sub(embed, segment))

    def _permalink_for(self, client: HaloClient, target: str, note_path: str) -> Optional[str]:
        """Permalink of an already-published linked note on this site, or None."""
        clean = target.split("#")[0].strip()
        if not clean:
            return None
        if clean in self._links:
            return self._links[clean]
        linked = self.host.resolve_link_path(clean, note_path)
        if not linked:
            return None
        binding = halo_binding(self.host.get_frontmatter(linked))
        if binding.get("site") and binding["site"] != client.site.url:
            return None
        permalink = None
        if binding.get("permalink"):
            permalink = client.normalize_permalink(binding["permalink"])
        elif binding.get("name"):
            found = client.get_post(binding["name"])
            if found:
                permalink = client.normalize_permalink((found[0].get("status") or {}).get("permalink"))
        if permalink:
            self._links[clean] = permalink
        return permalink

    def _replace_links(self, client: HaloClient, segment: str, note_path: str) -> str:
        def link(m: re.Match) -> str:
            target, _, alias = m.group(1).partition("|")
            label = (alias or target).strip()
            permalink = self._permalink_for(client, target.strip(), note_path)
            return f"[{label}]({permalink})" if permalink else label

        return WIKI_LINK_RE.sub(link, segment)

    def process_markdown(self, client: HaloClient, raw: str, note_path: str) -> str:
        """Upload local images, then resolve wiki links, outside code fences only."""
        raw = replace_outside_code(raw, lambda s: self._replace_images(client, s, note_path))
        return replace_outside_code(raw, lambda s: self._replace_links(client, s, note_path))

    def _cover_url(self, client: HaloClient, fm: Optional[dict], note_path: str) -> Optional[str]:
        ref = cover_reference(get_cover(fm) or "")
        if not ref:
            return None
        if REMOTE_RE.match(ref):
            return ref
        if ref.startswith("vault:"):
            ref = ref[len("vault:"):]
        return self._upload_image(client, ref, note_path)

    def _notify_attachment(self, e: HaloAttachmentError) -> None:
        if e.kind in ATTACHMENT_NOTICES:
            self.notifier.notify_once(f"halo-{e.kind}", ATTACHMENT_NOTICES[e.kind])
        else:
            self.notifier.notify(f"Halo attachment upload failed: {e}")

    def _publish(self, client: HaloClient, note_path: str, fm: dict, body: str) -> HaloResult:
        try:
            processed = self.process_markdown(client, body, note_path)
            cover = self._cover_url(client, fm, note_path)
        except HaloAttachmentError as e:
            self._notify_attachment(e)
            raise

        binding = halo_binding(fm)
        post, content = default_post(), default_content(processed)
        if binding.get("name"):
            found = client.get_post(binding["name"])
            if found:
                post, content = found
        content["raw"] = processed
        content["content"] = render_html(processed)

        spec = post["spec"]
        spec["title"] = get_string(fm, ("title",)) or PurePosixPath(note_path).stem
        spec["slug"] = get_string(fm, ("slug",)) or build_slug(spec["title"])
        spec["excerpt"] = build_excerpt(fm)
        if cover:
            spec["cover"] = cover
        if isinstance(fm.get("categories"), list):
            spec["categories"] = client.category_names([str(c) for c in fm["categories"]], build_slug)
        if isinstance(fm.get("tags"), list):
            spec["tags"] = client.tag_names([str(t) for t in fm["tags"]], build_slug)

        if post["metadata"].get("name"):
            client.update_post(post, content)
        else:
            post["metadata"]["name"] = build_post_name()
            annotations = post["metadata"].get("annotations") or {}
            post["metadata"]["annotations"] = {**annotations, CONTENT_JSON: json.dumps(content, ensure_ascii=False)}
            post = client.create_post(post)

        name = post["metadata"]["name"]
        publish = binding["publish"] if isinstance(binding.get("publish"), bool) else self.settings.halo_publish_by_default
        client.change_publish(name, publish)
        latest = client.get_post(name)
        permalink = client.normalize_permalink((latest[0].get("status") or {}).get("permalink")) if latest else None
        return HaloResult(name=name, site=client.site.url, publish=publish, permalink=permalink)

    async def publish(self, note_path: str, site_name: Optional[str] = None) -> HaloResult:
        site = self.settings.halo_site(site_name)
        if site is None or not site.url.strip() or not site.token.strip():
            raise PublishConfigError("No Halo site configured with a URL and token")
        # the binding is written back into this header, so it must parse
        fm, body = split_frontmatter(self.host.read_note_text(note_path), strict=True)
        binding = halo_binding(fm)
        if binding.get("site") and binding["site"] != site.url:
            self.notifier.notify(f"{note_path} is already published to {binding['site']}")
            raise SiteMismatchError(f"{note_path} is bound to {binding['site']}, not {site.url}")

        self._images.clear()
        self._links.clear()
        client = self.client_factory(site)
        result = await asyncio.to_thread(self._publish, client, note_path, fm, body)

        def bind(data: dict) -> None:
            data["halo"] = {"site": result.site, "name": result.name, "publish": result.publish}
            if result.permalink:
                data["halo"]["permalink"] = result.permalink

        await self.host.write_frontmatter(note_path, bind)
        logger.info("published %s to %s as %s", note_path, site.url, result.name)
        return result
