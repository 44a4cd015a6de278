"""Send a note to the WeChat draft box: render, theme, upload, create draft, remember it"""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional

from one2mp.config import Settings, WechatAccount
from one2mp.core.frontmatter import (
    AUTHOR_KEYS, COMMENT_KEYS, DIGEST_KEYS, FANS_ONLY_KEYS, SOURCE_KEYS, TITLE_KEYS,
    get_bool, get_cover, get_string,
)
from one2mp.core.host import NoteHost
from one2mp.core.messages import DRAFT_ITEM_UPDATED, MessageService
from one2mp.core.render.pipeline import WechatRender
from one2mp.core.theme.theme_manager import ThemeManager, wrap_article
from one2mp.crud.drafts import DraftManager
from one2mp.crud.models import LocalDraftItem
from one2mp.crud.repo import DraftStore
from one2mp.platforms.assets import read_asset
from one2mp.platforms.wechat.client import WechatClient
from one2mp.platforms.wechat.uploader import AssetUploader, material_filename


logger = logging.getLogger(__name__)

WIKI_EMBED_RE = re.compile(r'^!?\[\[([^\]|]+)(?:\|[^\]]*)?\]\]$')


class PublishConfigError(RuntimeError):
    """Publishing cannot start: account, site, token or cover is missing."""


@dataclass
class DraftResult:
    media_id: str
    url:      Optional[str]
    uploads:  dict[str, int]


def cover_reference(raw: str) -> str:
    """Plain path or URL from a cover value that may be a wiki embed."""
    raw = raw.strip()
    m = WIKI_EMBED_RE.match(raw)
    return m.group(1).strip() if m else raw


def apply_frontmatter(draft: LocalDraftItem, fm: dict) -> LocalDraftItem:
    """Frontmatter metadata (canonical key or alias) wins over stored draft values."""
    draft.title = get_string(fm, TITLE_KEYS) or draft.title
    draft.author = get_string(fm, AUTHOR_KEYS) or draft.author
    draft.digest = get_string(fm, DIGEST_KEYS) or draft.digest
    draft.content_source_url = get_string(fm, SOURCE_KEYS) or draft.content_source_url
    draft.cover_image_url = get_cover(fm) or draft.cover_image_url
    open_comment = get_bool(fm, COMMENT_KEYS)
    if open_comment is not None:
        draft.need_open_comment = open_comment
    fans_only = get_bool(fm, FANS_ONLY_KEYS)
    if fans_only is not None:
        draft.only_fans_can_comment = fans_only
    return draft


def article_payload(draft: LocalDraftItem, content: str) -> dict:
    article = {
        "title": draft.title,
        "author": draft.author or "",
        "digest": draft.digest or "",
        "content": content,
        "content_source_url": draft.content_source_url or "",
        "thumb_media_id": draft.thumb_media_id,
        "need_open_comment": draft.need_open_comment or 0,
        "only_fans_can_comment": draft.only_fans_can_comment or 0,
    }
    for key in ("pic_crop_235_1", "pic_crop_1_1"):
        if getattr(draft, key):
            article[key] = getattr(draft, key)
    return article


class WechatPublisher:
    def __init__(
        self,
        settings: Settings,
        host: NoteHost,
        store: DraftStore,
        bus: MessageService = None,
        themes: ThemeManager = None,
        client_factory: Callable[[WechatAccount], WechatClient] = WechatClient,
        ):
        self.settings = settings
        self.host = host
        self.drafts = DraftManager(store)
        self.bus = bus or MessageService()
        self.themes = themes or ThemeManager(settings, host)
        self.client_factory = client_factory

    async def _upload_cover(self, client: WechatClient, cover: str, note_path: str) -> str:
        data, mime = await asyncio.to_thread(read_asset, cover, self.host, note_path)
        res = await asyncio.to_thread(client.add_material, data, material_filename(mime, cover), "image")
        return res["media_id"]

    async def send_to_draft_box(self, note_path: str, account_name: Optional[str] = None) -> DraftResult:
        account = self.settings.account(account_name)
        if account is None:
            raise PublishConfigError("No WeChat account selected; set selected_account or pass --account")
        draft = self.drafts.draft_for_note(account.name, note_path)
        apply_frontmatter(draft, self.host.get_frontmatter(note_path) or {})
        cover = cover_reference(draft.cover_image_url or "")
        if not cover and not draft.thumb_media_id:
            raise PublishConfigError(f"{note_path}: a cover image is required before publishing")

        client = self.client_factory(account)
        html = await WechatRender(self.settings, self.host).render_note(note_path, for_upload=True)
        soup = wrap_article(html)
        root = soup.section
        self.themes.apply_theme(root, draft.theme)
        uploads = await AssetUploader(client, self.host, self.settings.svg_upload_threshold).upload_all(root, note_path)
        logger.info("uploaded assets for %s: %s", note_path, uploads)
        if cover:
            draft.thumb_media_id = await self._upload_cover(client, cover, note_path)

        media_id = await asyncio.to_thread(client.add_draft, [article_payload(draft, str(soup))])
        items = await asyncio.to_thread(client.get_draft, media_id)
        url = items[0].get("url") if items else None
        draft.last_draft_id = media_id
        draft.last_draft_url = url
        self.drafts.set(draft)
        self.bus.send(DRAFT_ITEM_UPDATED, draft)
        return DraftResult(media_id=media_id, url=url, uploads=uploads)
