"""Export a note as a RedBook folder: caption text, numbered images, and a manifest"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import PurePosixPath
from typing import Callable, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

from one2mp.config import Settings
from one2mp.core.frontmatter import get_cover, get_string
from one2mp.core.host import FileVault, NoteHost, join_path, parent_dir
from one2mp.core.render.extensions.image import find_image_path
from one2mp.platforms.redbook.parser import RedBookParser
from one2mp.platforms.wechat.publisher import cover_reference


logger = logging.getLogger(__name__)

REDBOOK_COVER_KEYS = ("小红书封面图", "小红书封面", "redbook_cover", "xhs_cover")
UNSAFE_NAME_RE = re.compile(r'[\\/:*?"<>|]')
TEXT_FILE = "文案.txt"
IMAGE_DIR = "图片"
SEQUENCE_FILE = "上传顺序.txt"
UNTITLED = "未命名"


@dataclass
class ExportResult:
    folder:        str
    image_count:   int
    success_count: int
    manifest:      list[str] = field(default_factory=list)


def safe_name(name: str) -> str:
    return UNSAFE_NAME_RE.sub("-", name).strip() or UNTITLED


def normalize_cover_ref(raw: str, host: NoteHost) -> str:
    """Vault reference for a cover value: wiki embeds, vault: and file:// prefixes are unwrapped."""
    ref = cover_reference(raw)
    if ref.startswith("vault:"):
        ref = ref[len("vault:"):].lstrip("/")
    elif ref.startswith("file://") and isinstance(host, FileVault):
        ref = host.vault_path(url2pathname(urlparse(ref).path)) or ref
    return unquote(ref).strip()


def redbook_cover(fm: Optional[dict], host: NoteHost) -> Optional[str]:
    """RedBook-specific cover keys first, then the general cover aliases."""
    raw = get_string(fm, REDBOOK_COVER_KEYS) or get_cover(fm)
    if not raw:
        return None
    return normalize_cover_ref(raw, host) or None


def order_images(images: list[str], cover: Optional[str]) -> list[str]:
    """Cover first, then the body images without it, each reference once."""
    if not cover:
        return list(images)
    return [cover, *(img for img in images if img != cover)]


def export_folder(note_path: str, label: str, stamp: str) -> str:
    """Folder beside the note's parent directory: <notes-parent>/<label>/<name>-<stamp>."""
    root = parent_dir(parent_dir(note_path))
    return join_path(root, label, f"{safe_name(PurePosixPath(note_path).stem)}-{stamp}")


class RedBookExporter:
    def __init__(
        self,
        settings: Settings,
        host: NoteHost,
        parser: RedBookParser = None,
        clock: Callable[[], datetime] = datetime.now,
        ):
        self.settings = settings
        self.host = host
        self.parser = parser or RedBookParser()
        self.clock = clock

    def _copy_image(self, index: int, raw: str, note_path: str, image_dir: str) -> Optional[str]:
        path = find_image_path(self.host, raw, note_path)
        if not path:
            logger.warning("redbook export: image %s not found", raw)
            return None
        source = PurePosixPath(path)
        ext = source.suffix.lstrip(".") or "png"
        filename = f"{index:02d}-{safe_name(source.stem)}.{ext}"
        self.host.write_binary(join_path(image_dir, filename), self.host.read_binary(path))
        return filename

    def export(self, note_path: str) -> ExportResult:
        """Write caption, images and manifest for one note; missing images are listed, not fatal."""
        result = self.parser.parse(self.host.read_note_text(note_path))
        cover = redbook_cover(self.host.get_frontmatter(note_path), self.host)
        images = order_images(result.images, cover)

        folder = export_folder(note_path, self.settings.redbook_export_label, self.clock().strftime("%Y%m%d-%H%M%S"))
        image_dir = join_path(folder, IMAGE_DIR)
        self.host.write_text(join_path(folder, TEXT_FILE), result.text.strip() + "\n")

        manifest, success = [], 0
        for index, raw in enumerate(images, start=1):
            filename = self._copy_image(index, raw, note_path, image_dir)
            if filename:
                success += 1
                manifest.append(f"图{index}: {filename}（原始：{raw}）")
            else:
                manifest.append(f"图{index}: 未找到（{raw}）")
        self.host.write_text(join_path(folder, SEQUENCE_FILE), "\n".join(manifest).strip() + "\n")

        logger.info("exported %s to %s: %d/%d images", note_path, folder, success, len(images))
        return ExportResult(folder=folder, image_count=len(images), success_count=success, manifest=manifest)
