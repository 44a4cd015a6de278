"""Frontmatter splitting, template-marker stripping, and metadata alias lookup"""

import logging
import re
from typing import Any, Iterable, Optional

import yaml


logger = logging.getLogger(__name__)


FRONTMATTER_RE = re.compile(r'^---\s*\n(.*?)\n---[ \t]*(?:\n|$)', re.DOTALL)
HR_RE = re.compile(r'^[\t ]*([-*_])\1\1+[\t ]*$')
IMAGE_LINE_RE = re.compile(r'^\s*(?:!\[\[[^\]]+\]\]|!\[[^\]]*\]\([^)]+\))\s*$')

TEMPLATE_MARKERS = {
    "%%hh%%", "%%hh%", "%%/hh%%", "%%/hh%",
    "%%tt%%", "%%tt%", "%%/tt%%", "%%/tt%",
}

TITLE_KEYS     = ("标题", "title")
AUTHOR_KEYS    = ("作者", "author")
DIGEST_KEYS    = ("摘要", "digest", "description", "summary")
SOURCE_KEYS    = ("原文链接", "content_source_url", "source_url")
COVER_KEYS     = ("封面图", "cover", "thumbnail", "one2mp_cover")
COMMENT_KEYS   = ("开启评论", "need_open_comment", "open_comment")
FANS_ONLY_KEYS = ("仅粉丝可评论", "only_fans_can_comment")

_TRUE_WORDS = {"1", "true", "yes", "y", "on", "是", "开启", "开"}
_FALSE_WORDS = {"0", "false", "no", "n", "off", "否", "关闭", "关"}


def split_frontmatter(text: str, strict: bool = False) -> tuple[dict[str, Any], str]:
    """Return (frontmatter_dict, body) with the YAML header removed.

    An unreadable header is dropped with a warning and yields empty frontmatter.
    With strict=True it raises ValueError instead.
    """
    m = FRONTMATTER_RE.match(text)
    if not m:
        return {}, text
    body = text[m.end():]
    try:
        fm = yaml.safe_load(m.group(1)) or {}
    except yaml.YAMLError as e:
        error = f"Invalid YAML frontmatter: {e}"
    else:
        if isinstance(fm, dict):
            return fm, body
        error = f"Invalid YAML frontmatter: expected a mapping, got {type(fm).__name__}"
    if strict:
        raise ValueError(error)
    logger.warning("%s", error)
    return {}, body


def join_frontmatter(fm: dict[str, Any], body: str) -> str:
    if not fm:
        return body
    header = yaml.safe_dump(fm, allow_unicode=True, sort_keys=False).rstrip("\n")
    return f"---\n{header}\n---\n{body}"


def strip_template_markers(text: str) -> str:
    """Drop header/footer template marker lines (compared trimmed, case-insensitive)."""
    lines = text.split("\n")
    return "\n".join(line for line in lines if line.strip().lower() not in TEMPLATE_MARKERS)


def normalize_hr_after_image(text: str) -> str:
    """Insert a blank line between a standalone image line and a horizontal rule directly below it."""
    result: list[str] = []
    last_image = False
    for line in text.split("\n"):
        if HR_RE.match(line) and last_image and result and result[-1].strip():
            result.append("")
        result.append(line)
        if line.strip():
            last_image = bool(IMAGE_LINE_RE.match(line))
    return "\n".join(result)


def get_string(fm: Optional[dict[str, Any]], keys: Iterable[str]) -> Optional[str]:
    """First non-blank string value among keys."""
    if not fm:
        return None
    for key in keys:
        value = fm.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def get_bool(fm: Optional[dict[str, Any]], keys: Iterable[str]) -> Optional[int]:
    """First recognisable boolean among keys, as 1/0; None when absent."""
    if not fm:
        return None
    for key in keys:
        value = fm.get(key)
        if isinstance(value, bool):
            return 1 if value else 0
        if isinstance(value, (int, float)):
            return 1 if value > 0 else 0
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return 1
            if word in _FALSE_WORDS:
                return 0
    return None


def get_cover(fm: Optional[dict[str, Any]]) -> Optional[str]:
    return get_string(fm, COVER_KEYS)
