"""Host collaborator contract and a local-directory implementation"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Callable, Optional

from one2mp.core.frontmatter import join_frontmatter, split_frontmatter

if TYPE_CHECKING:
    from one2mp.core.render.side_channel import SideChannel


logger = logging.getLogger(__name__)

FrontmatterMutator = Callable[[dict[str, Any]], None]


class NoteHost(ABC):
    """Everything the core needs from the note environment. Paths are vault-relative POSIX strings."""

    attachment_folder: str = ""

    @abstractmethod
    def read_note_text(self, path: str) -> str:
        raise NotImplementedError

    @abstractmethod
    def get_frontmatter(self, path: str) -> dict[str, Any] | None:
        raise NotImplementedError

    @abstractmethod
    def resolve_link_path(self, raw: str, context_path: str) -> str | None:
        raise NotImplementedError

    @abstractmethod
    async def render_native(self, path: str, side_channel: SideChannel) -> None:
        raise NotImplementedError

    @abstractmethod
    async def write_frontmatter(self, path: str, mutator: FrontmatterMutator) -> None:
        raise NotImplementedError

    @abstractmethod
    def exists(self, path: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def read_binary(self, path: str) -> bytes:
        raise NotImplementedError

    @abstractmethod
    def write_text(self, path: str, text: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def write_binary(self, path: str, data: bytes) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_files(self) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    def resource_url(self, path: str) -> str:
        raise NotImplementedError

    def tex_to_svg(self, tex: str, display: bool) -> Optional[str]:
        """TeX engine hook; None when the host has none."""
        return None

    def rasterize_svg(self, svg: str, width: int, height: int) -> Optional[str]:
        """SVG to PNG data URL hook; None when the host cannot rasterize."""
        return None


def parent_dir(path: str) -> str:
    parent = str(PurePosixPath(path).parent)
    return "" if parent == "." else parent


def join_path(*parts: str) -> str:
    joined = "/".join(p.strip("/") for p in parts if p and p.strip("/"))
    return str(PurePosixPath(joined)) if joined else ""


class FileVault(NoteHost):
    """Vault backed by a directory on disk."""

    def __init__(self, root: str | Path, attachment_folder: str = "", snapshot_suffix: str = ".native.html"):
        self.root = Path(root).resolve()
        self.attachment_folder = attachment_folder
        self.snapshot_suffix = snapshot_suffix

    def _abs(self, path: str) -> Path:
        return self.root / path.lstrip("/")

    def read_note_text(self, path: str) -> str:
        return self._abs(path).read_text(encoding="utf-8")

    def get_frontmatter(self, path: str) -> dict[str, Any] | None:
        if not self.exists(path):
            return None
        fm, _ = split_frontmatter(self.read_note_text(path))
        return fm or None

    def resolve_link_path(self, raw: str, context_path: str) -> str | None:
        link = raw.strip().lstrip("/")
        if not link:
            return None
        candidates = [join_path(parent_dir(context_path), link), link]
        if not PurePosixPath(link).suffix:
            candidates += [f"{c}.md" for c in candidates]
        for candidate in candidates:
            if self.exists(candidate):
                return candidate
        if not PurePosixPath(link).suffix:
            name = PurePosixPath(link).name + ".md"
            notes = sorted((p for p in self.list_files() if PurePosixPath(p).name == name), key=len)
            if notes:
                return notes[0]
        return None

    async def render_native(self, path: str, side_channel: SideChannel) -> None:
        snapshot = self._abs(path + self.snapshot_suffix)
        if not snapshot.exists():
            logger.debug("no native snapshot for %s", path)
            return
        side_channel.load(snapshot.read_text(encoding="utf-8"))

    async def write_frontmatter(self, path: str, mutator: FrontmatterMutator) -> None:
        target = self._abs(path)
        fm, body = split_frontmatter(target.read_text(encoding="utf-8"), strict=True)
        mutator(fm)
        fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".one2mp-", suffix=".md")
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(join_frontmatter(fm, body))
        os.replace(tmp, target)

    def exists(self, path: str) -> bool:
        return bool(path) and self._abs(path).is_file()

    def read_binary(self, path: str) -> bytes:
        return self._abs(path).read_bytes()

    def write_text(self, path: str, text: str) -> None:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(text, encoding="utf-8")

    def write_binary(self, path: str, data: bytes) -> None:
        target = self._abs(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def list_files(self) -> list[str]:
        return sorted(
            p.relative_to(self.root).as_posix()
            for p in self.root.rglob("*")
            if p.is_file() and not any(part.startswith(".") for part in p.relative_to(self.root).parts)
        )

    def resource_url(self, path: str) -> str:
        return self._abs(path).as_uri()

    def vault_path(self, absolute: str) -> str | None:
        """Vault-relative path for an absolute filesystem path inside the vault."""
        try:
            return Path(absolute).resolve().relative_to(self.root).as_posix()
        except ValueError:
            return None


class JsonDataStore:
    """Generic key-value persistence: one JSON object in one file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid data file {self.path}: {e}") from e
        return data if isinstance(data, dict) else {}

    def save(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
