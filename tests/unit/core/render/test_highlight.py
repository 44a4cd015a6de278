"""Unit tests for core/render/highlight.py"""

from one2mp.core.render.highlight import highlight, whitespace_html


def test_unknown_language_is_escaped_only():
    """Unknown languages get no spans, just escaped text with explicit spaces."""
    assert highlight("a < b", "brainfuck") == ["a&nbsp;&lt;&nbsp;b"]


def test_whitespace_html_expands_tabs():
    """Tabs become four non-breaking spaces."""
    assert whitespace_html("\tx") == "&nbsp;&nbsp;&nbsp;&nbsp;x"


def test_python_keywords_strings_and_comments():
    """Python lines get keyword, string, number and comment spans."""
    line = highlight('def f(): return "hi" + 1  # done', "python")[0]
    assert '<span class="hljs-keyword">def</span>' in line
    assert '<span class="hljs-string">&quot;hi&quot;</span>' in line
    assert '<span class="hljs-number">1</span>' in line
    assert '<span class="hljs-comment">#&nbsp;done</span>' in line


def test_block_comment_spans_lines():
    """A C-style block comment carries over to the next line."""
    lines = highlight("/* start\nend */ let x", "js")
    assert lines[0] == '<span class="hljs-comment">/*&nbsp;start</span>'
    assert lines[1].startswith('<span class="hljs-comment">end&nbsp;*/</span>')
    assert '<span class="hljs-keyword">let</span>' in lines[1]


def test_triple_quoted_string_spans_lines():
    """Python triple-quoted strings stay strings across lines."""
    lines = highlight('x = """a\nb"""', "py")
    assert lines[1] == '<span class="hljs-string">b&quot;&quot;&quot;</span>'


def test_shell_hash_needs_preceding_space():
    """In shell, # starts a comment only at line start or after whitespace."""
    assert "hljs-comment" not in highlight("echo a#b", "bash")[0]
    assert "hljs-comment" in highlight("echo a #b", "bash")[0]
