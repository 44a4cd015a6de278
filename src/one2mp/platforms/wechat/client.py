"""WeChat official-account REST client: access token, permanent material, draft box"""

import json
import logging
import time
from typing import Any, Optional

import requests

from one2mp.config import WechatAccount


logger = logging.getLogger(__name__)

API_BASE = "https://api.weixin.qq.com/cgi-bin"
TOKEN_ERRORS = {40001, 40014, 42001, 42007}
TOKEN_MARGIN = 120


class WechatApiError(RuntimeError):
    """The API answered with a non-zero errcode or an unusable payload."""

    def __init__(self, message: str, errcode: Optional[int] = None):
        super().__init__(message)
        self.errcode = errcode


class WechatClient:
    def __init__(self, account: WechatAccount, session: requests.Session = None, base_url: str = API_BASE):
        self.account = account
        self.session = session or requests.Session()
        self.base_url = base_url.rstrip("/")
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def access_token(self, force_refresh: bool = False) -> str:
        now = time.time()
        if not force_refresh and self._token and self._expires_at - TOKEN_MARGIN > now:
            return self._token
        response = self.session.get(
            f"{self.base_url}/token",
            params={"grant_type": "client_credential", "appid": self.account.app_id, "secret": self.account.app_secret},
            timeout=30,
        )
        response.raise_for_status()
        payload = response.json()
        if payload.get("errcode"):
            raise WechatApiError(f"get access token failed: {payload.get('errmsg')}", payload.get("errcode"))
        token = payload.get("access_token")
        if not token:
            raise WechatApiError(f"invalid token response: {payload}")
        self._token = token
        self._expires_at = now + int(payload.get("expires_in", 7200))
        return token

    def _call(self, method: str, path: str, what: str, **kwargs) -> dict[str, Any]:
        """Send with the current token; a token error refreshes it and retries once."""
        params = dict(kwargs.pop("params", {}))
        for attempt in (0, 1):
            params["access_token"] = self.access_token(force_refresh=attempt == 1)
            response = self.session.request(method, f"{self.base_url}/{path}", params=params, timeout=60, **kwargs)
            response.raise_for_status()
            payload = response.json()
            errcode = payload.get("errcode")
            if not errcode:
                return payload
            if errcode not in TOKEN_ERRORS or attempt == 1:
                raise WechatApiError(f"{what} failed: {payload.get('errmsg')}", errcode)
            logger.debug("%s: token rejected (%s), refreshing", what, errcode)
        raise AssertionError("unreachable")

    def _post_json(self, path: str, what: str, body: dict[str, Any]) -> dict[str, Any]:
        return self._call(
            "POST", path, what,
            data=json.dumps(body, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json; charset=utf-8"},
        )

    def add_material(self, data: bytes, filename: str, kind: str = "image") -> dict[str, Any]:
        """Upload a permanent material; returns {media_id, url}."""
        payload = self._call(
            "POST", "material/add_material", f"upload {filename}",
            params={"type": kind}, files={"media": (filename, data)},
        )
        if not payload.get("media_id"):
            raise WechatApiError(f"upload {filename} returned no media_id: {payload}")
        return payload

    def get_material(self, media_id: str) -> dict[str, Any]:
        return self._post_json("material/get_material", "get material", {"media_id": media_id})

    def add_draft(self, articles: list[dict[str, Any]]) -> str:
        payload = self._post_json("draft/add", "create draft", {"articles": articles})
        media_id = payload.get("media_id")
        if not media_id:
            raise WechatApiError(f"create draft returned no media_id: {payload}")
        return media_id

    def get_draft(self, media_id: str) -> list[dict[str, Any]]:
        return self._post_json("draft/get", "get draft", {"media_id": media_id}).get("news_item") or []
