"""Stylesheet rule table: parse, merge with !important guard, resolve var(), and inline onto a DOM"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

import soupsieve as sv
import tinycss2
from bs4 import BeautifulSoup, Tag

from one2mp.core.messages import Notifier


logger = logging.getLogger(__name__)

MAX_VAR_DEPTH = 10
PSEUDO_RE = re.compile(r'::(before|after)')
COMMENT_RE = re.compile(r'/\*.*?\*/', re.DOTALL)
FALLBACK_RULE_RE = re.compile(r'([^{@}]+)\{([^}]*)\}')
VAR_NAME_RE = re.compile(r'^\s*(--[\w-]+)\s*$')
CONTENT_QUOTES_RE = re.compile(r'^["\']|["\']$')
NESTED_AT_RULES = {"media", "supports", "layer", "container", "document"}
RESERVED_CLASS_PREFIXES = ("appmsg_", "wx_", "wx-", "common-webchat", "weui-")


@dataclass
class Decl:
    value:     str
    important: bool = False


Rule = dict[str, Decl]


class CSSParseError(ValueError):
    """A stylesheet could not be parsed."""


def split_top_level(text: str, sep: str) -> list[str]:
    """Split on sep outside parentheses, brackets and quotes; empty parts are dropped."""
    parts, buf = [], []
    depth, quote = 0, ""
    for ch in text:
        if quote:
            if ch == quote:
                quote = ""
        elif ch in "\"'":
            quote = ch
        elif ch in "([":
            depth += 1
        elif ch in ")]":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append("".join(buf).strip())
            buf = []
            continue
        buf.append(ch)
    parts.append("".join(buf).strip())
    return [p for p in parts if p]


def parse_declarations(body: str) -> Rule:
    result: Rule = {}
    for part in split_top_level(body, ";"):
        prop, colon, value = part.partition(":")
        prop, value = prop.strip(), value.strip()
        if not colon or not prop:
            continue
        important = False
        if value.lower().endswith("!important"):
            important = True
            value = value[:-len("!important")].strip()
        if value:
            result[prop if prop.startswith("--") else prop.lower()] = Decl(value, important)
    return result


def _collect(selector_text: str, decls: Rule, vars: dict[str, str], rules: dict[str, Rule]) -> None:
    for selector in split_top_level(selector_text, ","):
        if selector == ":root":
            vars.update({k: d.value for k, d in decls.items() if k.startswith("--")})
            continue
        rule = rules.setdefault(selector, {})
        rule.update({k: d for k, d in decls.items() if not k.startswith("--")})


def _collect_nodes(nodes, vars: dict[str, str], rules: dict[str, Rule]) -> None:
    for node in nodes:
        if node.type == "error":
            raise CSSParseError(f"{node.message} at line {node.source_line}")
        if node.type == "qualified-rule":
            decls: Rule = {}
            for d in tinycss2.parse_declaration_list(node.content, skip_comments=True, skip_whitespace=True):
                if d.type == "error":
                    logger.debug("skipping bad declaration: %s", d.message)
                    continue
                if d.type != "declaration":
                    continue
                value = tinycss2.serialize(d.value).strip()
                if value:
                    name = d.name if d.name.startswith("--") else d.lower_name
                    decls[name] = Decl(value, d.important)
            _collect(tinycss2.serialize(node.prelude).strip(), decls, vars, rules)
        elif node.type == "at-rule" and node.lower_at_keyword in NESTED_AT_RULES and node.content:
            inner = tinycss2.parse_rule_list(node.content, skip_comments=True, skip_whitespace=True)
            _collect_nodes(inner, vars, rules)


def parse_with_tinycss(css: str) -> tuple[dict[str, str], dict[str, Rule]]:
    vars: dict[str, str] = {}
    rules: dict[str, Rule] = {}
    _collect_nodes(tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True), vars, rules)
    return vars, rules


def parse_with_fallback(css: str) -> tuple[dict[str, str], dict[str, Rule]]:
    """Brace/semicolon splitter for sheets the tokenizer rejects; at-rules are skipped."""
    vars: dict[str, str] = {}
    rules: dict[str, Rule] = {}
    for m in FALLBACK_RULE_RE.finditer(COMMENT_RE.sub("", css)):
        selector_text = m.group(1).strip()
        if selector_text and not selector_text.startswith("@"):
            _collect(selector_text, parse_declarations(m.group(2)), vars, rules)
    return vars, rules


def parse_css_text(css: str) -> tuple[dict[str, str], dict[str, Rule]]:
    try:
        return parse_with_tinycss(css)
    except CSSParseError as e:
        logger.debug("tokenizer rejected stylesheet (%s); using fallback splitter", e)
        return parse_with_fallback(css)


def _var_call_end(value: str, start: int) -> int:
    """Index just past the ')' closing the call opened at start, or -1."""
    depth = 0
    for i in range(start, len(value)):
        if value[i] == "(":
            depth += 1
        elif value[i] == ")":
            depth -= 1
            if depth == 0:
                return i + 1
    return -1


def _substitute_once(value: str, vars: dict[str, str]) -> tuple[str, bool]:
    out, pos, replaced = [], 0, False
    while True:
        start = value.find("var(", pos)
        if start == -1:
            out.append(value[pos:])
            break
        end = _var_call_end(value, start + 3)
        if end == -1:
            out.append(value[pos:])
            break
        out.append(value[pos:start])
        name, comma, fallback = value[start + 4:end - 1].partition(",")
        m = VAR_NAME_RE.match(name)
        if not m:
            out.append(value[start:end])
        elif m.group(1) in vars:
            out.append(vars[m.group(1)])
            replaced = True
        elif comma:
            out.append(fallback.strip())
            replaced = True
        else:
            logger.debug("variable %s not found and no fallback provided", m.group(1))
        pos = end
    return "".join(out), replaced


def resolve_css_vars(value: str, vars: dict[str, str], max_depth: int = MAX_VAR_DEPTH) -> str:
    """Substitute var(--x[, fallback]) until a pass changes nothing or max_depth passes ran."""
    result = value
    for _ in range(max_depth):
        result, replaced = _substitute_once(result, vars)
        if not replaced:
            break
    return result


def normalize_selector(selector: str) -> tuple[str, Optional[str]]:
    m = PSEUDO_RE.search(selector)
    if not m:
        return selector, None
    return PSEUDO_RE.sub("", selector).strip() or "*", m.group(1)


def parse_style(style: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for part in split_top_level(style or "", ";"):
        prop, colon, value = part.partition(":")
        if colon and prop.strip():
            out[prop.strip()] = value.strip()
    return out


def set_style(node: Tag, prop: str, value: str) -> None:
    style = parse_style(node.get("style", ""))
    style[prop] = value
    node["style"] = "; ".join(f"{k}: {v}" for k, v in style.items()) + ";"


def is_class_reserved(name: str) -> bool:
    return name.startswith(RESERVED_CLASS_PREFIXES)


class CSSMerger:
    """Variables plus selector -> property -> Decl, merged sheet by sheet."""

    def __init__(self):
        self.vars: dict[str, str] = {}
        self.rules: dict[str, Rule] = {}

    @classmethod
    def from_sheets(cls, base: Iterable[str], custom: str = "", notifier: Notifier = None) -> "CSSMerger":
        """Merge the base sheets, then the custom sheet; a broken custom sheet leaves the base intact."""
        merger = cls()
        for css in base:
            merger.merge_css_text(css)
        try:
            merger.merge_css_text(custom)
        except Exception as e:
            logger.warning("failed to parse custom css: %s", e)
            if notifier:
                notifier.notify(f"Failed to parse custom CSS: {e}")
        return merger

    def merge_css_text(self, css: str) -> None:
        if not css or not css.strip():
            return
        vars, rules = parse_css_text(css)
        self.vars.update(vars)
        self.merge_rules(rules)

    def merge_rules(self, rules: dict[str, Rule]) -> None:
        for selector, incoming in rules.items():
            stored = self.rules.setdefault(selector, {})
            for prop, decl in incoming.items():
                current = stored.get(prop)
                if current is None or not current.important or decl.important:
                    stored[prop] = decl

    def resolve_var(self, value: str) -> str:
        return resolve_css_vars(value, self.vars)

    def _compiled(self) -> list[tuple[str, object, Optional[str], Rule]]:
        out = []
        for selector, rule in self.rules.items():
            base, pseudo = normalize_selector(selector)
            try:
                out.append((selector, sv.compile(base), pseudo, rule))
            except (sv.SelectorSyntaxError, NotImplementedError, ValueError) as e:
                logger.debug("unsupported selector %r: %s", selector, e)
        return out

    def _ensure_pseudo(self, node: Tag, pseudo: str, content: Optional[str]) -> Tag:
        attr = f"data-one2mp-pseudo-{pseudo}"
        span = node.find(attrs={attr: True}, recursive=False)
        if span is None:
            span = BeautifulSoup("", "html.parser").new_tag("span", attrs={attr: "true"})
            if pseudo == "before":
                node.insert(0, span)
            else:
                node.append(span)
        if content:
            span.string = CONTENT_QUOTES_RE.sub("", content)
        return span

    def _apply_node(self, node: Tag, compiled) -> None:
        for selector, matcher, pseudo, rule in compiled:
            try:
                if not matcher.match(node):
                    continue
            except Exception as e:
                logger.debug("selector %r failed on <%s>: %s", selector, node.name, e)
                continue
            target = node
            if pseudo:
                content = rule.get("content")
                target = self._ensure_pseudo(node, pseudo, content.value if content else None)
            for prop, decl in rule.items():
                if prop == "content":
                    continue
                value = self.resolve_var(decl.value)
                set_style(target, prop, f"{value} !important" if decl.important else value)
        for child in list(node.children):
            if isinstance(child, Tag):
                self._apply_node(child, compiled)

    def apply(self, root: Tag) -> Tag:
        """Inline every matching rule onto root and its descendants, depth first."""
        self._apply_node(root, self._compiled())
        return root

    def remove_class_names(self, root: Tag) -> None:
        """Strip class attributes, keeping only platform-reserved class names."""
        for node in [root, *root.find_all(True)]:
            classes = node.get("class")
            if not classes:
                continue
            kept = [c for c in classes if is_class_reserved(c)]
            if kept:
                node["class"] = kept
            else:
                del node["class"]
