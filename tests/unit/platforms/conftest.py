"""Fake HTTP session shared by the platform client tests"""

import pytest
import requests


class FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = ""):
        self.status_code = status_code
        self.payload = payload
        self.text = text

    def json(self):
        if self.payload is None:
            raise ValueError("no json body")
        return self.payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Replays queued responses per HTTP verb and records each call."""

    def __init__(self):
        self.queued: dict[str, list] = {"GET": [], "POST": [], "PUT": []}
        self.calls: list[tuple[str, str, dict]] = []

    def queue(self, method: str, *responses) -> None:
        self.queued[method].extend(responses)

    def _next(self, method: str, url: str, kwargs: dict) -> FakeResponse:
        params = kwargs.get("params")
        self.calls.append((method, url, {**kwargs, "params": dict(params) if params else None}))
        response = self.queued[method].pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._next("GET", url, kwargs)

    def post(self, url, **kwargs):
        return self._next("POST", url, kwargs)

    def request(self, method, url, **kwargs):
        return self._next(method.upper(), url, kwargs)


@pytest.fixture(name="http")
def http_fixture():
    """A FakeSession with empty queues."""
    return FakeSession()


@pytest.fixture(name="reply")
def reply_fixture():
    """Build a FakeResponse: reply(status, payload, text)."""
    return FakeResponse
