"""Asset bytes for upload: data URLs, vault files, and remote URLs"""

import base64
import binascii
import mimetypes
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests

from one2mp.core.host import FileVault, NoteHost
from one2mp.core.render.extensions.image import APP_PREFIX, find_image_path


DEFAULT_MIME = "application/octet-stream"


def decode_data_url(url: str) -> tuple[bytes, str]:
    """Return (bytes, mime) for a data: URL."""
    header, _, data = url.partition(",")
    mime = header[5:].split(";")[0] or DEFAULT_MIME
    try:
        if ";base64" in header:
            return base64.b64decode(data), mime
    except binascii.Error as e:
        raise ValueError(f"bad base64 data URL: {e}") from e
    return unquote(data).encode("utf-8"), mime


def extension_for(mime: str, src: str = "", fallback: str = "png") -> str:
    """File extension from the mime subtype, else the source path, else fallback."""
    if mime and "/" in mime and mime != DEFAULT_MIME:
        sub = mime.split("/", 1)[1].split("+")[0]
        if sub:
            return "jpg" if sub == "jpeg" else sub
    suffix = PurePosixPath(urlparse(src).path).suffix.lstrip(".").lower()
    return suffix or fallback


def vault_path_for(src: str, host: NoteHost, note_path: str) -> Optional[str]:
    """Vault path behind a file:// or app:// URL, or a plain vault reference."""
    if src.startswith("file://") and isinstance(host, FileVault):
        return host.vault_path(url2pathname(urlparse(src).path))
    if src.startswith(APP_PREFIX) or not urlparse(src).scheme:
        return find_image_path(host, src, note_path)
    return None


def read_asset(src: str, host: Optional[NoteHost], note_path: str = "") -> tuple[bytes, str]:
    """Bytes and mime type for an element source; raises when it cannot be read."""
    if src.startswith("data:"):
        return decode_data_url(src)
    if src.startswith(("http://", "https://")):
        response = requests.get(src, timeout=30)
        response.raise_for_status()
        mime = response.headers.get("Content-Type", "").split(";")[0].strip()
        return response.content, mime or mimetypes.guess_type(src)[0] or DEFAULT_MIME
    path = vault_path_for(src, host, note_path) if host is not None else None
    if not path:
        raise FileNotFoundError(f"asset not found: {src}")
    return host.read_binary(path), mimetypes.guess_type(path)[0] or DEFAULT_MIME
