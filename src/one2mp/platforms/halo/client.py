"""Halo CMS REST client: posts, snapshots, attachments and taxonomy"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import requests

from one2mp.config import HaloSite


logger = logging.getLogger(__name__)

UC_POSTS = "apis/uc.api.content.halo.run/v1alpha1/posts"
CONTENT_API = "apis/content.halo.run/v1alpha1"
UPLOAD_ENDPOINTS = (
    "apis/console.api.storage.halo.run/v1alpha1/attachments/-/upload",
    "apis/uc.api.storage.halo.run/v1alpha1/attachments/-/upload",
)
CONTENT_JSON = "content.halo.run/content-json"
NOT_CONFIGURED_DETAIL = "Attachment system setting is not configured"
MAX_FILENAME = 180


class HaloAttachmentError(RuntimeError):
    """Attachment upload failed; kind is permission, not-configured or upload-failed."""

    def __init__(self, kind: str, message: str = ""):
        super().__init__(message or f"attachment upload failed ({kind})")
        self.kind = kind


@dataclass
class ConnectionResult:
    ok:     bool
    code:   Optional[str] = None
    status: Optional[int] = None


def default_post() -> dict[str, Any]:
    return {
        "apiVersion": "content.halo.run/v1alpha1",
        "kind": "Post",
        "metadata": {"name": "", "annotations": {}},
        "spec": {
            "allowComment": True,
            "baseSnapshot": "",
            "categories": [],
            "cover": "",
            "deleted": False,
            "excerpt": {"autoGenerate": True, "raw": ""},
            "headSnapshot": "",
            "htmlMetas": [],
            "owner": "",
            "pinned": False,
            "priority": 0,
            "publish": False,
            "publishTime": "",
            "releaseSnapshot": "",
            "slug": "",
            "tags": [],
            "template": "",
            "title": "",
            "visible": "PUBLIC",
        },
    }


def default_content(raw: str = "") -> dict[str, str]:
    return {"rawType": "markdown", "raw": raw, "content": ""}


def upload_filename(filename: str) -> str:
    name = filename.replace("\r", "_").replace("\n", "_").replace('"', "_")
    if len(name) > MAX_FILENAME:
        dot = name.rfind(".")
        ext = name[dot:] if dot > -1 else ""
        name = name[:MAX_FILENAME - len(ext)] + ext
    return name


def _detail(response: requests.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return ""
    detail = payload.get("detail") if isinstance(payload, dict) else None
    return detail if isinstance(detail, str) else ""


class HaloClient:
    def __init__(self, site: HaloSite, session: requests.Session = None):
        self.site = site
        self.session = session or requests.Session()
        self.base_url = site.url.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def _headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json", "Authorization": f"Bearer {self.site.token}"}

    def _get(self, path: str, **kwargs) -> Any:
        response = self.session.get(self._url(path), headers=self._headers(), timeout=30, **kwargs)
        response.raise_for_status()
        return response.json()

    def _send(self, method: str, path: str, body: Any = None) -> requests.Response:
        data = json.dumps(body, ensure_ascii=False).encode("utf-8") if body is not None else None
        response = self.session.request(method, self._url(path), headers=self._headers(), data=data, timeout=30)
        response.raise_for_status()
        return response

    def normalize_permalink(self, permalink: Optional[str]) -> Optional[str]:
        """Absolute URL for a server permalink; relative ones are joined to the site URL."""
        if not permalink:
            return None
        if permalink.lower().startswith(("http://", "https://")):
            return permalink
        return f"{self.base_url}{'' if permalink.startswith('/') else '/'}{permalink}"

    def test_connection(self) -> ConnectionResult:
        try:
            response = self.session.get(
                self._url(UC_POSTS), params={"page": 0, "size": 1}, headers=self._headers(), timeout=15,
            )
        except requests.RequestException as e:
            logger.warning("halo connection test failed: %s", e)
            return ConnectionResult(ok=False, code="network")
        status = response.status_code
        if 200 <= status < 300:
            return ConnectionResult(ok=True, status=status)
        if status in (401, 403):
            return ConnectionResult(ok=False, code="auth", status=status)
        if status == 404:
            return ConnectionResult(ok=False, code="not-found", status=status)
        return ConnectionResult(ok=False, code="unknown", status=status)

    def get_post(self, name: str) -> Optional[tuple[dict[str, Any], dict[str, str]]]:
        """(post, content blob) for a post name, or None when it cannot be fetched."""
        try:
            post = self._get(f"{UC_POSTS}/{name}")
            snapshot = self._get(f"{UC_POSTS}/{name}/draft", params={"patched": "true"})
        except (requests.RequestException, ValueError) as e:
            logger.warning("halo post %s unavailable: %s", name, e)
            return None
        content = default_content()
        content["rawType"] = (snapshot.get("spec") or {}).get("rawType") or "markdown"
        blob = ((snapshot.get("metadata") or {}).get("annotations") or {}).get(CONTENT_JSON)
        if isinstance(blob, str):
            try:
                content = json.loads(blob)
            except json.JSONDecodeError as e:
                logger.warning("halo post %s has unreadable content-json: %s", name, e)
        return post, content

    def create_post(self, post: dict[str, Any]) -> dict[str, Any]:
        return self._send("POST", UC_POSTS, post).json()

    def update_post(self, post: dict[str, Any], content: dict[str, str]) -> None:
        """Write post metadata, then patch the draft snapshot's content blob."""
        name = post["metadata"]["name"]
        self._send("PUT", f"{UC_POSTS}/{name}", post)
        snapshot = self._get(f"{UC_POSTS}/{name}/draft", params={"patched": "true"})
        metadata = snapshot.setdefault("metadata", {})
        metadata["annotations"] = {**(metadata.get("annotations") or {}), CONTENT_JSON: json.dumps(content, ensure_ascii=False)}
        self._send("PUT", f"{UC_POSTS}/{name}/draft", snapshot)

    def change_publish(self, name: str, publish: bool) -> None:
        self._send("PUT", f"{UC_POSTS}/{name}/{'publish' if publish else 'unpublish'}")

    def upload_attachment(self, data: bytes, filename: str) -> str:
        """Upload to the first endpoint that accepts it; returns the absolute permalink."""
        name = upload_filename(filename)
        seen_auth = seen_config = False
        for endpoint in UPLOAD_ENDPOINTS:
            response = self.session.post(
                self._url(endpoint),
                headers={"Authorization": f"Bearer {self.site.token}"},
                files={"file": (name, data, "application/octet-stream")},
                data={"filename": name},
                timeout=60,
            )
            status = response.status_code
            if status == 404:
                continue
            if status in (401, 403):
                seen_auth = True
                continue
            if status == 400 and NOT_CONFIGURED_DETAIL in _detail(response):
                seen_config = True
                continue
            if status >= 400:
                raise HaloAttachmentError("upload-failed", f"upload failed: {status} {response.text}")
            permalink = (response.json().get("status") or {}).get("permalink")
            if permalink:
                return self.normalize_permalink(permalink)
        if seen_auth:
            raise HaloAttachmentError("permission")
        if seen_config:
            raise HaloAttachmentError("not-configured")
        raise HaloAttachmentError("upload-failed")

    def _taxonomy(self, kind: str) -> list[dict[str, Any]]:
        return self._get(f"{CONTENT_API}/{kind}").get("items", [])

    def _names_for(self, kind: str, display_names: list[str], spec_for) -> list[str]:
        """Server names for display names, creating only the ones not already present."""
        existing = {item["spec"]["displayName"]: item["metadata"]["name"] for item in self._taxonomy(kind)}
        names = [existing[d] for d in display_names if d in existing]
        missing = [d for d in display_names if d not in existing]
        prefix = kind[:-3] + "y" if kind.endswith("ies") else kind[:-1]
        for index, display in enumerate(missing):
            body = {
                "spec": spec_for(display, len(existing) + index),
                "apiVersion": "content.halo.run/v1alpha1",
                "kind": prefix.capitalize(),
                "metadata": {"name": "", "generateName": f"{prefix}-"},
            }
            created = self._send("POST", f"{CONTENT_API}/{kind}", body).json()
            names.append(created["metadata"]["name"])
            logger.info("created halo %s %r", prefix, display)
        return names

    def category_names(self, display_names: list[str], slug_for) -> list[str]:
        return self._names_for("categories", display_names, lambda d, i: {
            "displayName": d, "slug": slug_for(d), "description": "", "cover": "",
            "template": "", "priority": i, "children": [],
        })

    def tag_names(self, display_names: list[str], slug_for) -> list[str]:
        return self._names_for("tags", display_names, lambda d, i: {
            "displayName": d, "slug": slug_for(d), "color": "#ffffff", "cover": "",
        })
