"""Uploads article assets to the WeChat material library and swaps in CDN URLs"""

import asyncio
import logging
import time
from typing import Optional

from bs4 import BeautifulSoup, Tag

from one2mp.core.host import NoteHost
from one2mp.core.render.side_channel import svg_size
from one2mp.platforms.assets import decode_data_url, extension_for, read_asset
from one2mp.platforms.wechat.client import WechatClient


logger = logging.getLogger(__name__)

CDN_MARKER = "://mmbiz.qpic.cn/"


def material_filename(mime: str, src: str = "", fallback: str = "png") -> str:
    return f"image-{int(time.time() * 1000)}.{extension_for(mime, src, fallback)}"


def _log_failures(label: str, results: list) -> int:
    failed = 0
    for result in results:
        if isinstance(result, BaseException):
            failed += 1
            logger.warning("%s upload failed: %s", label, result)
    return failed


class AssetUploader:
    """Replaces large svgs, canvases, images and videos under a root with uploaded copies.

    Each asset class uploads concurrently; one failed asset keeps its original source
    and never cancels its siblings.
    """

    def __init__(self, client: WechatClient, host: Optional[NoteHost] = None, svg_threshold: int = 10000):
        self.client = client
        self.host = host
        self.svg_threshold = svg_threshold
        self._soup = BeautifulSoup("", "html.parser")

    async def _upload(self, data: bytes, filename: str, kind: str = "image") -> dict:
        return await asyncio.to_thread(self.client.add_material, data, filename, kind)

    def _img(self, src: str) -> Tag:
        return self._soup.new_tag("img", attrs={"src": src})

    async def _upload_svg(self, svg: Tag) -> None:
        markup = str(svg)
        width, height = svg_size(svg)
        png = self.host.rasterize_svg(markup, width, height) if self.host is not None else None
        if png:
            data, mime = decode_data_url(png)
        else:
            data, mime = markup.encode("utf-8"), "image/svg+xml"
        res = await self._upload(data, material_filename(mime, fallback="png"))
        svg.replace_with(self._img(res["url"]))

    async def upload_svgs(self, root: Tag) -> int:
        svgs = [s for s in root.find_all("svg") if len(str(s)) >= self.svg_threshold]
        results = await asyncio.gather(*(self._upload_svg(s) for s in svgs), return_exceptions=True)
        return len(svgs) - _log_failures("svg", results)

    async def _upload_canvas(self, canvas: Tag) -> None:
        src = canvas.get("data-url") or ""
        if not src.startswith("data:"):
            raise ValueError("canvas has no data-url snapshot")
        data, mime = decode_data_url(src)
        res = await self._upload(data, material_filename(mime))
        canvas.replace_with(self._img(res["url"]))

    async def upload_canvases(self, root: Tag) -> int:
        canvases = root.find_all("canvas")
        results = await asyncio.gather(*(self._upload_canvas(c) for c in canvases), return_exceptions=True)
        return len(canvases) - _log_failures("canvas", results)

    async def _upload_image(self, img: Tag, note_path: str) -> None:
        src = img["src"]
        data, mime = await asyncio.to_thread(read_asset, src, self.host, note_path)
        res = await self._upload(data, material_filename(mime, src))
        img["src"] = res["url"]

    async def upload_images(self, root: Tag, note_path: str = "") -> int:
        images = [i for i in root.find_all("img") if i.get("src") and CDN_MARKER not in i["src"]]
        results = await asyncio.gather(*(self._upload_image(i, note_path) for i in images), return_exceptions=True)
        return len(images) - _log_failures("image", results)

    async def _upload_video(self, video: Tag, note_path: str) -> None:
        src = video["src"]
        data, mime = await asyncio.to_thread(read_asset, src, self.host, note_path)
        res = await self._upload(data, material_filename(mime, src, "mp4"), "video")
        info = await asyncio.to_thread(self.client.get_material, res["media_id"])
        video["src"] = info.get("down_url") or info.get("url") or res.get("url", src)

    async def upload_videos(self, root: Tag, note_path: str = "") -> int:
        videos = [v for v in root.find_all("video") if v.get("src") and CDN_MARKER not in v["src"]]
        results = await asyncio.gather(*(self._upload_video(v, note_path) for v in videos), return_exceptions=True)
        return len(videos) - _log_failures("video", results)

    async def upload_all(self, root: Tag, note_path: str = "") -> dict[str, int]:
        """Upload every asset class in turn; returns the success count per class."""
        return {
            "svg": await self.upload_svgs(root),
            "canvas": await self.upload_canvases(root),
            "image": await self.upload_images(root, note_path),
            "video": await self.upload_videos(root, note_path),
        }
