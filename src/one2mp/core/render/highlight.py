"""Minimal line-oriented code highlighter for a few language families"""

import re
from dataclasses import dataclass, field
from typing import Optional

from one2mp.core.render.extension import escape_html


C_KEYWORDS = frozenset("""
    auto break case catch class const continue default delete do else enum export extends false final
    finally for fn func function go if impl implements import in instanceof interface let match mut new
    nil null package private protected public return self static struct super switch this throw throws
    true try type typeof use var void while yield async await
""".split())

PY_KEYWORDS = frozenset("""
    False None True and as assert async await break class continue def del elif else except finally for
    from global if import in is lambda nonlocal not or pass raise return try while with yield self
""".split())

SHELL_KEYWORDS = frozenset("""
    if then else elif fi case esac for while until do done in function select return exit export local
    echo cd set unset source alias
""".split())

JSON_KEYWORDS = frozenset({"true", "false", "null"})

TOKEN_RE = re.compile(r'[A-Za-z_$][\w$]*|0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?')
NUMBER_RE = re.compile(r'0[xX][0-9a-fA-F]+|\d+(?:\.\d+)?(?:[eE][+-]?\d+)?')


@dataclass(frozen=True)
class LangSpec:
    keywords:      frozenset
    quotes:        tuple[str, ...]
    line_comment:  Optional[str] = None
    block_comment: Optional[tuple[str, str]] = None
    multiline:     frozenset = field(default_factory=frozenset)   # quotes allowed to span lines
    comment_after_space: bool = False


C_LIKE = LangSpec(C_KEYWORDS, ('"', "'", "`"), "//", ("/*", "*/"), frozenset({"`"}))
PYTHON = LangSpec(PY_KEYWORDS, ('"""', "'''", '"', "'"), "#", None, frozenset({'"""', "'''"}))
JSON = LangSpec(JSON_KEYWORDS, ('"',))
SHELL = LangSpec(SHELL_KEYWORDS, ('"', "'"), "#", None, frozenset({'"', "'"}), comment_after_space=True)

LANGUAGES = {
    **dict.fromkeys(
        ["c", "h", "cpp", "c++", "cc", "java", "js", "javascript", "jsx", "ts", "typescript", "tsx",
         "go", "rust", "rs", "swift", "kotlin", "kt", "cs", "csharp", "php", "dart", "scala"],
        C_LIKE),
    **dict.fromkeys(["py", "python", "python3"], PYTHON),
    **dict.fromkeys(["json", "jsonc"], JSON),
    **dict.fromkeys(["sh", "bash", "zsh", "shell", "console"], SHELL),
}


@dataclass
class LexState:
    """Lexer state carried from one line to the next."""
    in_block_comment: bool = False
    open_quote: Optional[str] = None


def whitespace_html(text: str) -> str:
    """Escape text and make tabs/spaces explicit so platform viewers keep indentation."""
    return escape_html(text).replace("\t", "&nbsp;" * 4).replace(" ", "&nbsp;")


def _string_end(line: str, start: int, quote: str) -> int:
    """Index just past the closing quote, honouring backslash escapes; -1 if unterminated."""
    k = start
    while k < len(line):
        if line[k] == "\\":
            k += 2
            continue
        if line.startswith(quote, k):
            return k + len(quote)
        k += 1
    return -1


def _ends_with_escape(line: str) -> bool:
    return (len(line) - len(line.rstrip("\\"))) % 2 == 1


def lex_line(line: str, spec: LangSpec, state: LexState) -> list[tuple[Optional[str], str]]:
    """Split one line into (css_class | None, text) pieces, updating state."""
    parts: list[tuple[Optional[str], str]] = []
    i, n = 0, len(line)

    if state.in_block_comment:
        close = spec.block_comment[1]
        end = line.find(close)
        if end == -1:
            return [("comment", line)]
        parts.append(("comment", line[:end + len(close)]))
        i = end + len(close)
        state.in_block_comment = False
    elif state.open_quote:
        quote = state.open_quote
        end = _string_end(line, 0, quote)
        if end == -1:
            if quote not in spec.multiline and not _ends_with_escape(line):
                state.open_quote = None
            return [("string", line)]
        parts.append(("string", line[:end]))
        i = end
        state.open_quote = None

    plain_start = i

    def flush(upto: int) -> None:
        if upto > plain_start:
            parts.append((None, line[plain_start:upto]))

    while i < n:
        if spec.line_comment and line.startswith(spec.line_comment, i) and (
            not spec.comment_after_space or i == 0 or line[i - 1].isspace()
        ):
            flush(i)
            parts.append(("comment", line[i:]))
            return parts
        if spec.block_comment and line.startswith(spec.block_comment[0], i):
            flush(i)
            close = spec.block_comment[1]
            end = line.find(close, i + len(spec.block_comment[0]))
            if end == -1:
                parts.append(("comment", line[i:]))
                state.in_block_comment = True
                return parts
            parts.append(("comment", line[i:end + len(close)]))
            i = plain_start = end + len(close)
            continue
        quote = next((q for q in spec.quotes if line.startswith(q, i)), None)
        if quote:
            flush(i)
            end = _string_end(line, i + len(quote), quote)
            if end == -1:
                parts.append(("string", line[i:]))
                if quote in spec.multiline or _ends_with_escape(line):
                    state.open_quote = quote
                return parts
            parts.append(("string", line[i:end]))
            i = plain_start = end
            continue
        m = TOKEN_RE.match(line, i)
        if m:
            word = m.group(0)
            cls = "number" if NUMBER_RE.fullmatch(word) else "keyword" if word in spec.keywords else None
            if cls:
                flush(i)
                parts.append((cls, word))
                plain_start = m.end()
            i = m.end()
            continue
        i += 1
    flush(n)
    return parts


def language_spec(lang: str | None) -> LangSpec | None:
    return LANGUAGES.get((lang or "").strip().lower())


def highlight(code: str, lang: str | None) -> list[str]:
    """HTML for each line of code; unknown languages are escaped without markup."""
    spec = language_spec(lang)
    lines = code.split("\n")
    if spec is None:
        return [whitespace_html(line) for line in lines]
    state = LexState()
    out = []
    for line in lines:
        pieces = lex_line(line, spec, state)
        out.append("".join(
            f'<span class="hljs-{cls}">{whitespace_html(text)}</span>' if cls else whitespace_html(text)
            for cls, text in pieces
        ))
    return out
