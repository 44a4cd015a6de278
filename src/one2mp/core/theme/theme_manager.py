"""Theme notes: discovery, css fence extraction, and cached application to rendered HTML"""

import hashlib
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Optional

from bs4 import BeautifulSoup, Tag

from one2mp.config import Settings
from one2mp.core.frontmatter import split_frontmatter
from one2mp.core.host import NoteHost
from one2mp.core.markdown import make_parser
from one2mp.core.messages import Notifier
from one2mp.core.theme.css_merger import CSSMerger


logger = logging.getLogger(__name__)

STYLES_DIR = Path(__file__).parent / "styles"
THEME_KEY_ATTR = "data-one2mp-theme-key"
ARTICLE_CLASS = "one2mp-article"


@dataclass
class Theme:
    name: str
    path: str


@lru_cache(maxsize=1)
def base_sheets() -> tuple[str, ...]:
    """Packaged default stylesheets, in file-name order."""
    return tuple(p.read_text(encoding="utf-8") for p in sorted(STYLES_DIR.glob("*.css")))


def theme_key(css: str) -> str:
    return hashlib.sha256(css.encode("utf-8")).hexdigest()


def extract_css_blocks(text: str) -> str:
    """Concatenate the bodies of ```css fences; everything else in the note is ignored."""
    _, body = split_frontmatter(text)
    blocks = [
        t.content.strip()
        for t in make_parser().parse(body)
        if t.type == "fence" and t.info.strip().lower().startswith("css")
    ]
    return "\n".join(b for b in blocks if b)


def wrap_article(html: str) -> BeautifulSoup:
    """Parse rendered HTML under a single article root section."""
    return BeautifulSoup(f'<section class="{ARTICLE_CLASS}">{html}</section>', "html.parser")


class ThemeManager:
    def __init__(self, settings: Settings, host: Optional[NoteHost] = None, notifier: Notifier = None):
        self.settings = settings
        self.host = host
        self.notifier = notifier or Notifier()
        self._mergers: dict[str, CSSMerger] = {}

    def load_themes(self) -> list[Theme]:
        """Theme notes under themes_folder: markdown files with a non-empty theme_name."""
        if self.host is None:
            return []
        folder = self.settings.themes_folder.strip("/")
        themes = []
        for path in self.host.list_files():
            if PurePosixPath(path).suffix.lower() != ".md":
                continue
            if folder and not path.startswith(folder + "/"):
                continue
            fm = self.host.get_frontmatter(path) or {}
            name = fm.get("theme_name")
            if isinstance(name, str) and name.strip():
                themes.append(Theme(name=name.strip(), path=path))
        return sorted(themes, key=lambda t: t.name)

    def custom_css(self, theme_path: Optional[str] = None) -> str:
        path = theme_path or self.settings.custom_theme
        if not path or self.host is None:
            return ""
        if not self.host.exists(path):
            logger.warning("theme note %s not found", path)
            return ""
        return extract_css_blocks(self.host.read_note_text(path))

    def merger_for(self, css: str) -> CSSMerger:
        """Rule table for base sheets plus css, cached by the exact css text."""
        merger = self._mergers.get(css)
        if merger is None:
            merger = CSSMerger.from_sheets(base_sheets(), css, self.notifier)
            self._mergers[css] = merger
        return merger

    def apply_theme(self, root: Tag, theme_path: Optional[str] = None) -> Tag:
        """Inline theme styles onto root; a root already stamped with this theme is left alone."""
        css = self.custom_css(theme_path)
        key = theme_key(css)
        if root.get(THEME_KEY_ATTR) == key:
            return root
        merger = self.merger_for(css)
        merger.apply(root)
        root[THEME_KEY_ATTR] = key
        return root

    def style_html(self, html: str, theme_path: Optional[str] = None, strip_classes: bool = False) -> str:
        """Wrap rendered HTML in the article root, apply the theme, and serialize."""
        soup = wrap_article(html)
        root = soup.section
        self.apply_theme(root, theme_path)
        if strip_classes:
            self.merger_for(self.custom_css(theme_path)).remove_class_names(root)
        return str(soup)
