"""Unit tests for core/theme/css_merger.py"""

from bs4 import BeautifulSoup

from one2mp.core.theme.css_merger import (
    CSSMerger,
    Decl,
    parse_css_text,
    parse_with_fallback,
    resolve_css_vars,
    split_top_level,
)


def _root(html: str):
    return BeautifulSoup(html, "html.parser").find(True)


def test_important_survives_later_plain_declaration():
    """Once a property is !important, only another !important can replace it."""
    merger = CSSMerger()
    merger.merge_css_text("p { color: red; }")
    merger.merge_css_text("p { color: blue !important; }")
    merger.merge_css_text("p { color: green; }")
    assert merger.rules["p"]["color"] == Decl("blue", True)

    merger.merge_css_text("p { color: black !important; }")
    assert merger.rules["p"]["color"] == Decl("black", True)


def test_var_chain_stops_after_ten_passes():
    """Ten passes resolve a nine-hop chain; a longer chain keeps its last var()."""
    chain = {f"--v{i}": f"var(--v{i + 1})" for i in range(11)}
    chain["--v11"] = "red"
    assert resolve_css_vars("var(--v0)", chain) == "var(--v10)"

    short = {f"--v{i}": f"var(--v{i + 1})" for i in range(9)}
    short["--v9"] = "red"
    assert resolve_css_vars("var(--v0)", short) == "red"


def test_var_fallback_and_missing():
    """Unknown variables use their fallback; with none they resolve to nothing."""
    assert resolve_css_vars("var(--nope, 4px) solid", {}) == "4px solid"
    assert resolve_css_vars("1px var(--nope)", {}) == "1px "
    assert resolve_css_vars("var(--a, var(--b))", {"--b": "blue"}) == "blue"


def test_split_top_level_respects_parens_and_quotes():
    """Separators inside calls and strings do not split."""
    assert split_top_level('a, b:is(c, d), [x="1,2"]', ",") == ["a", "b:is(c, d)", '[x="1,2"]']


def test_root_vars_and_grouped_selectors():
    """:root feeds variables; grouped selectors each get the declarations."""
    merger = CSSMerger()
    merger.merge_css_text(":root { --accent: #123; } h1, h2 { color: var(--accent); }")
    assert merger.vars == {"--accent": "#123"}
    assert set(merger.rules) == {"h1", "h2"}
    root = _root("<section><h1>a</h1><h2>b</h2></section>")
    merger.apply(root)
    assert root.h1["style"] == "color: #123;"
    assert root.h2["style"] == "color: #123;"


def test_media_block_rules_are_merged():
    """Rules nested in @media are flattened into the table."""
    _, rules = parse_css_text("@media (max-width: 600px) { p { margin: 0; } }")
    assert rules["p"]["margin"].value == "0"


def test_apply_marks_important_and_matches_descendants():
    """Inlined !important values keep the marker; descendant selectors match."""
    merger = CSSMerger()
    merger.merge_css_text("section p { color: red !important; } p strong { font-weight: bold; }")
    root = _root("<section><p>x <strong>y</strong></p></section>")
    merger.apply(root)
    assert root.p["style"] == "color: red !important;"
    assert root.strong["style"] == "font-weight: bold;"


def test_pseudo_element_becomes_span():
    """::before rules create a marked child span carrying content and styles."""
    merger = CSSMerger()
    merger.merge_css_text('p::before { content: "» "; color: red; }')
    root = _root("<div><p>x</p></div>")
    merger.apply(root)
    span = root.p.contents[0]
    assert span.name == "span"
    assert span["data-one2mp-pseudo-before"] == "true"
    assert span.get_text() == "» "
    assert span["style"] == "color: red;"

    merger.apply(root)
    assert len(root.p.find_all("span", recursive=False)) == 1


def test_unsupported_selector_is_skipped():
    """Selectors the matcher cannot compile do not stop the other rules."""
    merger = CSSMerger()
    merger.merge_css_text("p:hover:::bad { color: red; } p { color: blue; }")
    root = _root("<div><p>x</p></div>")
    merger.apply(root)
    assert root.p["style"] == "color: blue;"


def test_remove_class_names_keeps_reserved_prefixes():
    """Only platform-reserved class names survive."""
    root = _root('<section class="one2mp-article wx_keep"><p class="x appmsg_y">t</p><span class="z">s</span></section>')
    CSSMerger().remove_class_names(root)
    assert root["class"] == ["wx_keep"]
    assert root.p["class"] == ["appmsg_y"]
    assert not root.span.has_attr("class")


def test_parse_with_fallback_splits_rules():
    """The fallback splitter drops comments and keeps :root vars apart from rules."""
    vars, rules = parse_with_fallback("/* c */ a { color: red; --skip: 1 } :root { --v: 2px }")
    assert vars == {"--v": "2px"}
    assert rules == {"a": {"color": Decl("red")}}


def test_parse_css_text_tolerates_stray_brace():
    """A sheet the tokenizer rejects still yields its rules."""
    _, rules = parse_css_text("a { color: red } }")
    assert rules["a"]["color"].value == "red"
