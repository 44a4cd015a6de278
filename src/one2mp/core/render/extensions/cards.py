"""Profile and official-account card blocks"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import Optional

from one2mp.core.render.extension import escape_html


logger = logging.getLogger(__name__)

KEY_VALUE_RE = re.compile(r'^(\w+):\s*"?(.*?)"?$')
FENCE_RE = re.compile(r'```mpcard\s*(.*?)```', re.DOTALL | re.IGNORECASE)
PROFILE_TAG_RE = re.compile(r'<mp-common-profile', re.IGNORECASE)

MISSING_ID = "<span>公众号名片数据错误，缺少id</span>"
EMPTY_DATA = "<span>公众号名片数据为空</span>"
DEFAULT_NICKNAME = "公众号"
DEFAULT_SIGNATURE = ""


@dataclass
class CardInfo:
    id:        str = ""
    headimg:   str = ""
    nickname:  str = ""
    signature: str = ""
    alias:     str = ""
    raw_html:  str = ""


def _decode_html(value: str) -> str:
    return (
        value.replace("&quot;", '"')
        .replace("&#39;", "'")
        .replace("&lt;", "<")
        .replace("&gt;", ">")
        .replace("&amp;", "&")
    )


def _escape_attr(value: str) -> str:
    return value.replace("&", "&amp;").replace('"', "&quot;").replace("<", "&lt;").replace(">", "&gt;")


def parse_key_values(text: str) -> dict[str, str]:
    """Lower-cased `key: value` pairs, one per non-blank line; surrounding quotes dropped."""
    result = {}
    for line in text.splitlines():
        m = KEY_VALUE_RE.match(line.strip())
        if m:
            result[m.group(1).lower()] = m.group(2).strip()
    return result


def _pick_attr(raw: str, name: str) -> str:
    m = re.search(rf'\b{re.escape(name)}=("([^"]*)"|\'([^\']*)\')', raw, re.IGNORECASE)
    if not m:
        return ""
    return _decode_html((m.group(2) if m.group(2) is not None else m.group(3) or "").strip())


def parse_card_input(text: str) -> Optional[CardInfo]:
    m = FENCE_RE.search(text)
    raw = (m.group(1) if m else text).strip()
    if not raw:
        return None
    if PROFILE_TAG_RE.search(raw) or re.search(r'\bdata-id=', raw):
        return CardInfo(
            id=_pick_attr(raw, "data-id"),
            headimg=_pick_attr(raw, "data-headimg"),
            nickname=_pick_attr(raw, "data-nickname"),
            signature=_pick_attr(raw, "data-signature"),
            alias=_pick_attr(raw, "data-alias"),
            raw_html=raw,
        )
    kv = parse_key_values(raw)
    return CardInfo(
        id=kv.get("id", ""),
        headimg=kv.get("headimg") or kv.get("avatar", ""),
        nickname=kv.get("nickname") or kv.get("name", ""),
        signature=kv.get("signature") or kv.get("desc") or kv.get("description", ""),
        alias=kv.get("alias", ""),
    )


def normalize_card_input(text: str) -> Optional[tuple[CardInfo, str]]:
    """(info, authoritative markup) when the block carries an id and profile markup, else None."""
    info = parse_card_input(text)
    if not info or not info.id or not info.raw_html:
        return None
    html = info.raw_html.strip()
    if not PROFILE_TAG_RE.search(html):
        return None
    if not re.match(r'^\s*<section', html, re.IGNORECASE):
        html = f'<section class="mp_profile_iframe_wrp" nodeleaf="">{html}</section>'
    return info, html


def render_card_preview(info: CardInfo) -> str:
    id_attr = f' data-id="{_escape_attr(info.id)}"' if info.id else ""
    return (
        f'<section{id_attr} class="one2mp-mpcard-wrapper">'
        f'<div class="one2mp-mpcard-content">'
        f'<img class="one2mp-mpcard-headimg" width="54" height="54" src="{_escape_attr(info.headimg)}">'
        f'<div class="one2mp-mpcard-info">'
        f'<div class="one2mp-mpcard-nickname">{_escape_attr(info.nickname)}</div>'
        f'<div class="one2mp-mpcard-signature">{_escape_attr(info.signature)}</div>'
        f'</div></div>'
        f'<div class="one2mp-mpcard-foot">公众号</div></section>'
    )


def render_card(text: str, cards: dict[str, str]) -> str:
    """Preview markup for an mpcard block; caches the authoritative markup in cards."""
    normalized = normalize_card_input(text)
    if not normalized:
        return MISSING_ID
    info, html = normalized
    if not (info.headimg or info.nickname or info.signature):
        return EMPTY_DATA
    cards[info.id] = html
    info.nickname = info.nickname or DEFAULT_NICKNAME
    info.signature = info.signature or DEFAULT_SIGNATURE
    return render_card_preview(info)


def restore_cards(html: str, cards: dict[str, str]) -> str:
    """Swap every preview section back to the cached markup for its id."""
    for card_id, raw in cards.items():
        pattern = re.compile(
            rf'<section[^>]*\sdata-id="{re.escape(_escape_attr(card_id))}"[^>]*>(.*?)</section>', re.DOTALL)
        html, count = pattern.subn(lambda _m: raw, html)
        if not count:
            logger.warning("card %s not found in rendered html", card_id)
    return html


def render_profile(text: str) -> str:
    f = defaultdict(str, {k: escape_html(v) for k, v in parse_key_values(text).items()})
    return (
        f'<div class="one2mp-profile-card">'
        f'<a class="one2mp-profile-card-link" href="{f["url"]}">'
        f'<div class="card-main">'
        f'<div class="avatar"><img src="{f["avatar"]}" alt="{f["nickname"]}" class="one2mp-avatar-image"></div>'
        f'<div class="content">'
        f'<div class="title">{f["nickname"]}</div>'
        f'<div class="description">{f["description"]}</div>'
        f'<div class="meta">{f["tips"]}</div>'
        f'</div>'
        f'<div class="arrow"><i class="weui-icon-arrow"></i></div>'
        f'</div>'
        f'<div class="card-footer">{f["footer"]}</div>'
        f'</a></div>'
    )
