"""Unit tests for platforms/halo/publisher.py"""

import asyncio
import json
from copy import deepcopy

import pytest

from one2mp.core.messages import Notifier
from one2mp.platforms.halo.client import CONTENT_JSON, HaloAttachmentError, HaloClient
from one2mp.platforms.halo.publisher import (
    HaloPublisher,
    SiteMismatchError,
    build_excerpt,
    build_slug,
    replace_outside_code,
)
from one2mp.platforms.wechat.publisher import PublishConfigError


class FakeHaloClient(HaloClient):
    """In-memory Halo server: posts keyed by name, uploads recorded."""

    def __init__(self, site, upload_error: str = None):
        super().__init__(site)
        self.posts: dict[str, tuple[dict, dict]] = {}
        self.uploads: list[str] = []
        self.updated: list[str] = []
        self.published: dict[str, bool] = {}
        self.upload_error = upload_error

    def get_post(self, name):
        if name not in self.posts:
            return None
        post, content = self.posts[name]
        return deepcopy(post), dict(content)

    def create_post(self, post):
        post = deepcopy(post)
        post["status"] = {"permalink": f"/archives/{post['spec']['slug']}"}
        content = json.loads(post["metadata"]["annotations"][CONTENT_JSON])
        self.posts[post["metadata"]["name"]] = (post, content)
        return post

    def update_post(self, post, content):
        name = post["metadata"]["name"]
        self.posts[name] = (deepcopy(post), dict(content))
        self.updated.append(name)

    def change_publish(self, name, publish):
        self.published[name] = publish

    def upload_attachment(self, data, filename):
        if self.upload_error:
            raise HaloAttachmentError(self.upload_error)
        self.uploads.append(filename)
        return f"{self.base_url}/upload/{filename}"

    def category_names(self, display_names, slug_for):
        return [f"category-{slug_for(d)}" for d in display_names]

    def tag_names(self, display_names, slug_for):
        return [f"tag-{slug_for(d)}" for d in display_names]


NOTE = """---
title: Hello World
tags: [Python]
---
Body ![](pic.png) and ![[pic.png|200]] see [[Other|the other post]].

```
![](pic.png) [[Other]]
```
"""


@pytest.fixture(name="fake")
def fake_fixture(settings):
    return FakeHaloClient(settings.halo_site())


@pytest.fixture(name="sink")
def sink_fixture():
    return []


@pytest.fixture(name="publisher")
def publisher_fixture(settings, vault, fake, sink):
    return HaloPublisher(settings, vault, Notifier(sink=sink.append), client_factory=lambda site: fake)


@pytest.fixture(name="note")
def note_fixture(write, png):
    write("blog/pic.png", png)
    write("blog/Other.md", "---\nhalo:\n  site: https://halo.example\n  permalink: /archives/other\n---\nx\n")
    return write("blog/post.md", NOTE)


# --- helpers ---

def test_build_slug():
    """Slugs keep word and CJK characters; an empty result gets a timestamped name."""
    assert build_slug("Hello, World!") == "hello-world"
    assert build_slug("你好 世界") == "你好-世界"
    assert build_slug("!!!").startswith("post-")


def test_build_excerpt():
    """A frontmatter excerpt disables auto generation."""
    assert build_excerpt({"excerpt": "short"}) == {"autoGenerate": False, "raw": "short"}
    assert build_excerpt(None) == {"autoGenerate": True, "raw": ""}


def test_replace_outside_code_skips_fences():
    """Fenced code is kept verbatim while the text around it is replaced."""
    out = replace_outside_code("a\n```\na\n```\na", lambda s: s.replace("a", "b"))
    assert out == "b\n```\na\n```\nb"


# --- publish ---

def test_first_publish_creates_post_and_binds_note(publisher, fake, vault, note):
    """Publishing an unbound note creates the post and writes the halo binding."""
    result = asyncio.run(publisher.publish(note))

    assert result.name and result.site == "https://halo.example"
    halo = vault.get_frontmatter(note)["halo"]
    assert halo == {
        "site": "https://halo.example",
        "name": result.name,
        "publish": False,
        "permalink": "https://halo.example/archives/hello-world",
    }
    assert fake.published == {result.name: False}

    post, content = fake.posts[result.name]
    assert post["spec"]["title"] == "Hello World"
    assert post["spec"]["tags"] == ["tag-python"]
    assert fake.uploads == ["pic.png"]
    raw = content["raw"]
    assert "Body ![](https://halo.example/upload/pic.png) and ![pic](https://halo.example/upload/pic.png)" in raw
    assert "[the other post](https://halo.example/archives/other)" in raw
    assert "```\n![](pic.png) [[Other]]\n```" in raw
    assert "<p>" in content["content"]


def test_second_publish_updates_existing_post(publisher, fake, vault, note):
    """A bound note updates its post instead of creating another."""
    first = asyncio.run(publisher.publish(note))
    second = asyncio.run(publisher.publish(note))
    assert second.name == first.name
    assert fake.updated == [first.name]
    assert len(fake.posts) == 1
    assert fake.uploads == ["pic.png", "pic.png"]


def test_publish_flag_from_frontmatter(publisher, fake, write):
    """An explicit halo.publish in frontmatter decides the publish state."""
    note = write("p.md", "---\ntitle: P\nhalo:\n  publish: true\n---\ntext\n")
    result = asyncio.run(publisher.publish(note))
    assert result.publish is True
    assert fake.published[result.name] is True


def test_unlinked_wiki_link_becomes_plain_text(publisher, fake, write):
    """Links to notes without a permalink on this site degrade to their label."""
    write("q.md", "---\nhalo:\n  site: https://elsewhere.example\n  permalink: /x\n---\n")
    note = write("p.md", "See [[q]] and [[missing|alias]].\n")
    result = asyncio.run(publisher.publish(note))
    assert fake.posts[result.name][1]["raw"].strip() == "See q and alias."


def test_site_mismatch_stops_before_upload(publisher, fake, sink, write):
    """A note bound to another site is refused with a notice and nothing is uploaded."""
    note = write("p.md", "---\nhalo:\n  site: https://other.example\n  name: x\n---\n![](pic.png)\n")
    with pytest.raises(SiteMismatchError):
        asyncio.run(publisher.publish(note))
    assert fake.uploads == []
    assert sink == ["p.md is already published to https://other.example"]


def test_unreadable_header_refused_before_any_request(publisher, fake, vault, write):
    """A header that does not parse stops the publish before posting and stays untouched."""
    text = "---\ntitle: [unclosed\n---\n![](pic.png)\n"
    note = write("p.md", text)
    with pytest.raises(ValueError, match="Invalid YAML frontmatter"):
        asyncio.run(publisher.publish(note))
    assert fake.posts == {} and fake.uploads == []
    assert vault.read_note_text(note) == text


def test_permission_error_notified_once(settings, vault, sink, note):
    """Attachment permission failures abort the publish and notify only once."""
    fake = FakeHaloClient(settings.halo_site(), upload_error="permission")
    publisher = HaloPublisher(settings, vault, Notifier(sink=sink.append), client_factory=lambda site: fake)
    for _ in range(2):
        with pytest.raises(HaloAttachmentError):
            asyncio.run(publisher.publish(note))
    assert len(sink) == 1
    assert "permission" in sink[0]
    assert "halo" not in vault.get_frontmatter(note)


def test_missing_site_configuration(settings, vault, note):
    """Publishing without a configured site fails before any work."""
    bare = settings.model_copy(update={"halo_sites": []})
    with pytest.raises(PublishConfigError):
        asyncio.run(HaloPublisher(bare, vault).publish(note))
