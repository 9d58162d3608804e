import pytest

from minori.config import MarkdownOptions
from minori.render import (
    DEFAULT_RULES,
    MarkdownRenderer,
    RuleContext,
    build_rules,
    escape_html,
    footnote_anchor,
    footnote_ref,
    heading_anchor_id,
    heading_open,
    make_environment,
    markdown_extensions,
    render_template,
)


@pytest.fixture
def renderer():
    return MarkdownRenderer(MarkdownOptions(), build_rules(autospacing=False))


def test_heading_gets_anchor(renderer):
    html = renderer.render("## Getting Started\n")
    assert html.startswith("<h2><a href=\"#Getting_Started\" name=\"Getting_Started\" target=\"_self\" class=\"anchor\">")
    assert '<span class="header-link">#</span></a>&nbsp;Getting Started</h2>' in html


def test_identical_headings_share_the_same_anchor(renderer):
    html = renderer.render("# Same Title\n\ntext\n\n## Same Title\n")
    assert html.count('name="Same_Title"') == 2


def test_heading_anchor_uses_text_of_inline_html(renderer):
    html = renderer.render("# Hi <span>there</span>\n")
    assert 'href="#Hi_there" name="Hi_there"' in html
    assert "&nbsp;Hi <span>there</span></h1>" in html


def test_heading_anchor_escapes_restored_entities(renderer):
    html = renderer.render("## Fish &amp; Chips <math><mi>x</mi></math>\n")
    assert 'name="Fish_&amp;_Chips_x"' in html
    assert "<math><mi>x</mi></math>" in html


def test_heading_anchor_id_replaces_each_whitespace_char():
    assert heading_anchor_id("a  b\tc") == "a__b_c"


def test_footnote_ids(renderer):
    html = renderer.render("Text[^a] more[^b].\n\n[^a]: First.\n[^b]: Second.\n")
    assert '<a href="#fn1" id="fnref1" target="_self">[1]</a>' in html
    assert '<a href="#fn2" id="fnref2" target="_self">[2]</a>' in html
    assert '<li id="fn1">' in html
    assert '<li id="fn2">' in html
    assert '<a href="#fnref1" class="footnote-backref" target="_self">↩</a>' in html
    assert "fn:" not in html


def test_repeated_footnote_reference_gets_sub_id(renderer):
    html = renderer.render("One[^a] two[^a].\n\n[^a]: Note.\n")
    assert 'id="fnref1"' in html
    assert 'id="fnref1:1"' in html


def test_footnote_rule_output():
    assert footnote_ref(RuleContext("footnote_ref", number=3, sub_id=2)) == (
        '<sup class="footnote-ref"><a href="#fn3" id="fnref3:2" target="_self">[3]</a></sup>'
    )
    assert footnote_anchor(RuleContext("footnote_anchor", number=3)) == (
        ' <a href="#fnref3" class="footnote-backref" target="_self">↩</a>'
    )


def test_table_gets_style_class(renderer):
    html = renderer.render("| a | b |\n| --- | --- |\n| 1 | 2 |\n")
    assert '<table class="ui celled table">' in html


def test_inline_extensions(renderer):
    html = renderer.render("==marked== H~2~O x^2^ ^^added^^\n")
    assert "<mark>marked</mark>" in html
    assert "<sub>2</sub>" in html
    assert "<sup>2</sup>" in html
    assert "<ins>added</ins>" in html


def test_abbreviations(renderer):
    html = renderer.render("The HTML spec.\n\n*[HTML]: Hyper Text Markup Language\n")
    assert '<abbr title="Hyper Text Markup Language">HTML</abbr>' in html


def test_disabled_extensions_leave_syntax_alone():
    options = MarkdownOptions(abbr=False, sup_sub=False, footnote=False, mark=False, ins=False)
    html = MarkdownRenderer(options, build_rules(False)).render("==x== ^^y^^ a[^1]\n\n[^1]: note\n")
    assert "<mark>" not in html
    assert "<ins>" not in html
    assert "footnote" not in html


def test_markdown_extensions_follow_toggles():
    extensions, configs = markdown_extensions(MarkdownOptions(sup_sub=False, ins=True, mark=False))
    assert "pymdownx.mark" not in extensions
    assert configs["pymdownx.caret"] == {"superscript": False, "insert": True}
    assert configs["pymdownx.tilde"]["subscript"] is False


def test_autospacing_spaces_and_escapes_text():
    renderer = MarkdownRenderer(MarkdownOptions(), build_rules(autospacing=True))
    html = renderer.render('Hello世界test & "quoted" 1 < 2\n')
    assert html == "<p>Hello 世界 test &amp; &quot;quoted&quot; 1 &lt; 2</p>"


def test_autospacing_skips_code():
    renderer = MarkdownRenderer(MarkdownOptions(), build_rules(autospacing=True))
    html = renderer.render("Use `a世界b` here\n")
    assert "a世界b" in html


def test_without_autospacing_text_is_left_alone(renderer):
    assert renderer.render("Hello世界test\n") == "<p>Hello世界test</p>"


def test_escape_html():
    assert escape_html('<a href="x">&</a>') == "&lt;a href=&quot;x&quot;&gt;&amp;&lt;/a&gt;"
    assert escape_html("plain") == "plain"


def test_build_rules_selects_text_rule_from_toggle():
    assert "text" not in build_rules(False)
    assert set(build_rules(True)) == set(DEFAULT_RULES) | {"text"}


def test_custom_rule_strategy():
    rules = dict(DEFAULT_RULES, heading_open=lambda ctx: f"[h{ctx.level}:{ctx.content}]")
    html = MarkdownRenderer(MarkdownOptions(), rules).render("### Deep\n")
    assert html == "<h3>[h3:Deep]Deep</h3>"


def test_unknown_rule_is_rejected():
    with pytest.raises(ValueError):
        MarkdownRenderer(MarkdownOptions(), {"paragraph_open": heading_open})


def test_render_template_writes_index_html(tmp_path):
    theme = tmp_path / "theme"
    theme.mkdir()
    (theme / "_name.html").write_text("{{ name }}", encoding="utf-8")
    (theme / "hello.html").write_text(
        "{% if loud %}\n<b>{% include '_name.html' %}</b>\n{% endif %}\n", encoding="utf-8"
    )
    path = render_template(make_environment(theme), "hello.html", tmp_path / "out" / "x", {"loud": True, "name": "<me>"})
    assert path == tmp_path / "out" / "x" / "index.html"
    assert path.read_text(encoding="utf-8") == "<b>&lt;me&gt;</b>\n"
