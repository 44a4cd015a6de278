"""Integration test for a full note render against a native snapshot, then theming"""

import asyncio

from bs4 import BeautifulSoup

from one2mp.core.render.pipeline import WechatRender
from one2mp.core.theme.theme_manager import ThemeManager


NOTE = """---
title: Walkthrough
---
%%hh%%
header block
%%/hh%%
# Walkthrough

Intro with [a link](https://example.com) and `code`[^1].

> [!tip] Remember
> This is captured.

```mermaid
graph TD; A-->B
```

- [ ] first
- [x] second

| k | v |
|---|---|
| a | 1 |

![[pic.png]]
---

[^1]: The note.
"""

SNAPSHOT = (
    '<div class="callout" data-callout="tip"><div class="callout-title">Remember</div>'
    '<div class="callout-content"><p>This is captured.</p></div></div>'
    '<div class="mermaid"><svg viewBox="0 0 320 160"><g/></svg></div>'
)


def test_full_render_and_theme(settings, vault, write, png):
    """Every block type renders, widgets come from the snapshot, and the theme inlines styles."""
    write("docs/walk.md", NOTE)
    write("docs/walk.md.native.html", SNAPSHOT)
    write("docs/pic.png", png)

    html = asyncio.run(WechatRender(settings, vault).render_note("docs/walk.md"))

    assert "%%" not in html and "header block" in html
    assert "title: Walkthrough" not in html
    assert '<span class="one2mp-heading-leaf">Walkthrough</span>' in html
    assert "a link<strong>(https://example.com)</strong>" in html
    assert '<section class="foot-links">' in html
    assert '<sup class="footnote-ref">[1]</sup>' in html
    assert '<section class="callout" data-callout="tip">' in html
    assert "<blockquote" not in html
    assert 'id="one2mp-mermaid-0"' in html
    assert "🔲 first" in html and "✅ second" in html
    assert '<section class="table-container">' in html
    assert "<hr" in html and "<h2" not in html

    soup = BeautifulSoup(ThemeManager(settings, vault).style_html(html), "html.parser")
    assert "color: #3f3f3f" in soup.section["style"]
    figure = next(f for f in soup.find_all("figure") if f.img["src"].endswith("pic.png"))
    assert figure.img["src"].startswith("file://")
    assert figure.img.has_attr("style")
