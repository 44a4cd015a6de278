"""Markdown to RedBook caption text plus an ordered, de-duplicated image list"""

import re
from dataclasses import dataclass, field
from typing import Callable
from urllib.parse import unquote

from markdown_it.tree import SyntaxTreeNode

from one2mp.core.frontmatter import split_frontmatter
from one2mp.core.markdown import make_parser


HEADING_EMOJI = ("✨", "🔹", "🔸")
LIST_BULLET = "▫️"
ORDERED_EMOJI = ("1️⃣", "2️⃣", "3️⃣", "4️⃣", "5️⃣", "6️⃣", "7️⃣", "8️⃣", "9️⃣", "🔟")
TASK_EMOJI = ("🔲", "✅")
HR_LINE = "---------------------"

IMAGE_SCAN_RE = re.compile(r'!\[\[[^\]]+\]\]|!\[[^\]]*\]\([^)]+\)')
EMBED_RE = re.compile(r'!\[\[([^\]|#]+)(?:#[^\]|]+)?(?:\|[^\]]+)?\]\]')
TASK_RE = re.compile(r'^\[([ xX])\]\s+')
TAG_RE = re.compile(r'<[^>]*>')
BLANK_LINES_RE = re.compile(r'\n{3,}')

PushImage = Callable[[str], int]


@dataclass
class RedBookResult:
    text:   str
    images: list[str] = field(default_factory=list)


def ordered_marker(index: int) -> str:
    return ORDERED_EMOJI[index - 1] if 1 <= index <= len(ORDERED_EMOJI) else f"{index}."


def scan_images(content: str) -> list[str]:
    """Image references in document order, as written in the source."""
    found = []
    for m in IMAGE_SCAN_RE.finditer(content):
        token = m.group(0)
        if token.startswith("![["):
            value = token[3:-2].split("|")[0].split("#")[0].strip()
        else:
            value = token[token.index("](") + 2:-1].strip()
            if value.startswith("<") and value.endswith(">"):
                value = value[1:-1].strip()
            elif " " in value:
                value = value.split(" ")[0]
        if value:
            found.append(value)
    return found


def _embed_to_image(m: re.Match) -> str:
    path = m.group(1).strip()
    return f"![](<{path}>)" if path else ""


class RedBookParser:
    def __init__(self):
        self.md = make_parser()

    def parse(self, content: str) -> RedBookResult:
        _, body = split_frontmatter(content)
        images: list[str] = []
        keys: list[str] = []

        def push(raw: str) -> int:
            value = (raw or "").strip()
            if not value:
                return len(images) + 1
            # percent-encoded and decoded spellings are one image; keep the first as written
            key = unquote(value)
            if key not in keys:
                keys.append(key)
                images.append(value)
            return keys.index(key) + 1

        for raw in scan_images(body):
            push(raw)
        tree = SyntaxTreeNode(self.md.parse(EMBED_RE.sub(_embed_to_image, body)))
        text = self._blocks(tree.children, push)
        text = BLANK_LINES_RE.sub("\n\n", TAG_RE.sub("", text)).strip()
        return RedBookResult(text=text, images=images)

    def _inline(self, nodes: list[SyntaxTreeNode], push: PushImage) -> str:
        out = []
        for node in nodes:
            if node.type in ("text", "code_inline", "html_inline"):
                out.append(node.content)
            elif node.type in ("softbreak", "hardbreak"):
                out.append("\n")
            elif node.type == "image":
                out.append(f"【图{push(unquote(str(node.attrs.get('src', ''))))}】")
            elif node.type == "link":
                label = self._inline(node.children, push)
                href = str(node.attrs.get("href", ""))
                out.append(f"{label}（链接：{href}）" if href else label)
            else:
                out.append(self._inline(node.children, push))
        return "".join(out)

    def _list(self, node: SyntaxTreeNode, push: PushImage) -> str:
        ordered = node.type == "ordered_list"
        index = int(node.attrs.get("start", 1)) if ordered else 1
        lines = []
        for item in node.children:
            text = self._blocks(item.children, push).strip()
            if ordered:
                lines.append(f"{ordered_marker(index)} {text}")
                index += 1
                continue
            m = TASK_RE.match(text)
            if m:
                lines.append(f"{TASK_EMOJI[m.group(1) != ' ']} {text[m.end():]}")
            else:
                lines.append(f"{LIST_BULLET} {text}")
        return "\n" + "\n".join(lines) + "\n\n"

    def _blocks(self, nodes: list[SyntaxTreeNode], push: PushImage) -> str:
        out = []
        for node in nodes:
            if node.type == "heading":
                level = int(node.tag[1])
                emoji = HEADING_EMOJI[level - 1] if level <= len(HEADING_EMOJI) else ""
                out.append(f"{emoji} {self._inline(node.children[0].children, push)}\n\n")
            elif node.type == "paragraph":
                out.append(self._inline(node.children[0].children, push) + "\n\n")
            elif node.type in ("bullet_list", "ordered_list"):
                out.append(self._list(node, push))
            elif node.type == "blockquote":
                lines = [line for line in self._blocks(node.children, push).split("\n") if line.strip()]
                out.append("\n".join(f"    {line}" for line in lines) + "\n\n")
            elif node.type in ("fence", "code_block"):
                lang = node.info.strip().split(" ")[0] if node.info else ""
                label = f"（{lang}）" if lang else ""
                out.append(f"【代码块{label}】\n{node.content.rstrip()}\n\n")
            elif node.type == "hr":
                out.append(f"\n{HR_LINE}\n")
            elif node.type == "html_block":
                out.append(node.content)
            elif node.type == "table":
                out.append(self._table(node, push))
            else:
                out.append(self._blocks(node.children, push))
        return "".join(out)

    def _table(self, node: SyntaxTreeNode, push: PushImage) -> str:
        rows = []
        for section in node.children:
            for row in section.children:
                cells = [self._inline(cell.children[0].children, push) if cell.children else "" for cell in row.children]
                rows.append(" | ".join(c.strip() for c in cells))
        return "\n".join(rows) + "\n\n"
