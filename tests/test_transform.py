from __future__ import annotations

import pytest
from bs4.builder import ParserRejectedMarkup

import bionic.transform as transform
from bionic.transform import (
    SUPPORTED_PARSERS,
    DocumentTransformer,
    ExclusionRules,
    ParseError,
    transform_markup,
)

XHTML_CHAPTER = """<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Chapter One</title><link href="style.css" rel="stylesheet" type="text/css"/></head>
<body>
<h1>Chapter One</h1>
<p>Some text<br/>here</p>
<img alt="cover" src="cover.png"/>
</body>
</html>
"""


def test_words_are_split_into_bold_prefix_and_plain_suffix() -> None:
    result = transform_markup("<p>Bionic reading test</p>")
    assert result == "<p><b>Bio</b>nic <b>rea</b>ding <b>te</b>st</p>"


def test_single_word_example() -> None:
    assert transform_markup("<p>reading</p>") == "<p><b>rea</b>ding</p>"


def test_short_words_are_emphasized_whole() -> None:
    assert transform_markup("<p>I am ok</p>") == "<p><b>I</b> <b>am</b> <b>ok</b></p>"


def test_punctuation_only_text_is_unchanged() -> None:
    markup = "<p> -- ... ! </p>"
    assert transform_markup(markup) == markup


def test_links_are_not_emphasized() -> None:
    markup = '<a href="x">Hello world</a>'
    assert transform_markup(markup) == markup


def test_excluded_class_skips_element() -> None:
    markup = '<p class="caption">Hello</p>'
    assert transform_markup(markup) == markup
    multi = '<p class="note caption">Hello</p>'
    assert transform_markup(multi) == multi


def test_other_class_is_emphasized() -> None:
    assert transform_markup('<p class="other">Hello</p>') == '<p class="other"><b>Hel</b>lo</p>'


def test_exclusion_covers_whole_subtree() -> None:
    markup = '<div class="listing"><p>Code <span>here</span></p></div><p>Text</p>'
    result = transform_markup(markup)
    assert result == '<div class="listing"><p>Code <span>here</span></p></div><p><b>Te</b>xt</p>'


def test_nested_inline_elements_are_visited() -> None:
    result = transform_markup("<p>Plain <em>italic words</em></p>")
    assert result == "<p><b>Pla</b>in <em><b>ita</b>lic <b>wor</b>ds</em></p>"


def test_entities_are_decoded_and_reencoded() -> None:
    assert transform_markup("<p>Fish &amp; chips</p>") == "<p><b>Fi</b>sh &amp; <b>chi</b>ps</p>"
    assert transform_markup("<p>a&nbsp;b</p>") == "<p><b>a</b>\xa0<b>b</b></p>"
    assert transform_markup("<p>&#8212;</p>") == "<p>—</p>"


def test_non_latin_words() -> None:
    assert transform_markup("<p>Привет мир</p>") == "<p><b>При</b>вет <b>мир</b></p>"


def test_comments_pass_through() -> None:
    result = transform_markup("<p>Hi<!-- keep these words --></p>")
    assert result == "<p><b>Hi</b><!-- keep these words --></p>"


def test_scripts_are_left_alone() -> None:
    result = transform_markup("<script>var answer = 42;</script><p>Hello</p>")
    assert result.startswith("<script>var answer = 42;</script>")
    assert result.endswith("<p><b>Hel</b>lo</p>")


def test_xhtml_document_keeps_prolog_and_strict_tags() -> None:
    result = transform_markup(XHTML_CHAPTER)
    assert result.startswith('<?xml version="1.0" encoding="utf-8"?>')
    assert "<!DOCTYPE html>\n<html" in result
    assert "<title>Chapter One</title>" in result
    assert "<h1>Chapter One</h1>" in result
    assert '<link href="style.css" rel="stylesheet" type="text/css"/>' in result
    assert "<p><b>So</b>me <b>te</b>xt<br/><b>he</b>re</p>" in result
    assert '<img alt="cover" src="cover.png"/>' in result


def test_empty_elements_are_closed_explicitly() -> None:
    assert transform_markup("<p><span></span></p>") == "<p><span></span></p>"
    assert transform_markup("<div/>") == "<div></div>"


def test_malformed_markup_is_tolerated() -> None:
    result = transform_markup("<p>Unclosed <i>italic</p>")
    assert "<b>Unc</b>losed" in result
    assert "<b>ita</b>lic" in result


def test_custom_exclusions_and_emphasis_tag() -> None:
    rules = ExclusionRules.from_iterables(["em"], {"span": ["keep"]})
    transformer = DocumentTransformer(rules, emphasis_tag="strong")
    result = transformer.transform('<p>Hello <em>there</em> <span class="keep">friend</span> <a href="#">link</a></p>')
    assert result == (
        '<p><strong>Hel</strong>lo <em>there</em> <span class="keep">friend</span> '
        '<a href="#"><strong>li</strong>nk</a></p>'
    )


def test_max_full_length_option() -> None:
    transformer = DocumentTransformer(max_full_length=5)
    assert transformer.transform("<p>Hello</p>") == "<p><b>Hello</b></p>"


def test_word_count_is_reported() -> None:
    result = DocumentTransformer().transform_with_stats("<p>one two <a>three</a></p>")
    assert result.words == 2


def test_parser_rejection_becomes_parse_error(monkeypatch) -> None:
    def _reject(markup, features):
        raise ParserRejectedMarkup("bad markup")

    monkeypatch.setattr(transform, "BeautifulSoup", _reject)
    with pytest.raises(ParseError):
        DocumentTransformer().transform("<p>text</p>")


def test_empty_emphasis_tag_is_rejected() -> None:
    with pytest.raises(ValueError):
        DocumentTransformer(emphasis_tag="")


def test_xml_parser_handles_namespaced_xhtml() -> None:
    pytest.importorskip("lxml")
    markup = (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<html xmlns="http://www.w3.org/1999/xhtml"><body><p>Hello</p></body></html>'
    )
    result = DocumentTransformer(parser="xml").transform(markup)
    assert "<p><b>Hel</b>lo</p>" in result


SVG_COVER = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml" xmlns:xlink="http://www.w3.org/1999/xlink">
<head><title>Cover</title></head>
<body>
<div><svg xmlns="http://www.w3.org/2000/svg" version="1.1" viewBox="0 0 600 800" preserveAspectRatio="xMidYMid meet"><image width="600" height="800" xlink:href="cover.jpg"/></svg></div>
<p>Cover page</p>
</body>
</html>
"""

PROLOG_CHAPTER = """<?xml version="1.0" encoding="UTF-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml"><body><p>café <![CDATA[ raw ]]></p></body></html>
"""


def test_svg_cover_keeps_camel_case_attributes() -> None:
    pytest.importorskip("lxml")
    result = DocumentTransformer().transform(SVG_COVER, path="OEBPS/cover.xhtml")
    assert result.startswith('<?xml version="1.0" encoding="UTF-8"?>\n<!DOCTYPE html>')
    assert 'viewBox="0 0 600 800"' in result
    assert 'preserveAspectRatio="xMidYMid meet"' in result
    assert 'xlink:href="cover.jpg"' in result
    assert "viewbox" not in result
    assert "<p><b>Cov</b>er <b>pa</b>ge</p>" in result


def test_auto_parser_follows_suffix_and_declaration() -> None:
    transformer = DocumentTransformer()
    assert transformer.parser_for("<p>x</p>", "OEBPS/ch1.xhtml") == "xml"
    assert transformer.parser_for("<p>x</p>", "OEBPS/ch1.html") == "html.parser"
    assert transformer.parser_for('\ufeff<?xml version="1.0"?><p>x</p>') == "xml"
    assert transformer.parser_for("<p>x</p>") == "html.parser"
    assert DocumentTransformer(parser="html.parser").parser_for("<p>x</p>", "ch1.xhtml") == "html.parser"


def test_xml_builder_does_not_add_a_declaration() -> None:
    pytest.importorskip("lxml")
    result = DocumentTransformer().transform("<p>Bionic reading test</p>", path="ch1.xhtml")
    assert result == "<p><b>Bio</b>nic <b>rea</b>ding <b>te</b>st</p>"


@pytest.mark.parametrize("parser", SUPPORTED_PARSERS)
def test_every_parser_keeps_the_xml_prolog(parser: str) -> None:
    if parser != "html.parser":
        pytest.importorskip("lxml")
    result = DocumentTransformer(parser=parser).transform(PROLOG_CHAPTER, path="OEBPS/ch1.xhtml")
    assert result.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "<!--?xml" not in result
    assert "<!DOCTYPE html>" in result
    assert "<b>ca</b>fé" in result


@pytest.mark.parametrize("parser", ["auto", "xml", "lxml-xml"])
def test_xml_builders_keep_cdata_content(parser: str) -> None:
    pytest.importorskip("lxml")
    result = DocumentTransformer(parser=parser).transform(PROLOG_CHAPTER, path="OEBPS/ch1.xhtml")
    assert "<!--" not in result
    assert "<b>ra</b>w" in result


def test_lxml_html_builder_is_rejected() -> None:
    assert "lxml" not in SUPPORTED_PARSERS
    with pytest.raises(ValueError):
        DocumentTransformer(parser="lxml")


@pytest.mark.parametrize("parser", ["html.parser", "xml"])
def test_scripts_and_styles_skip_emphasis_without_exclusion(parser: str) -> None:
    if parser == "xml":
        pytest.importorskip("lxml")
    rules = ExclusionRules.from_iterables(["a"])
    markup = (
        "<html><head><style>body { margin: auto; }</style></head>"
        "<body><script>var answer = 42;</script><p>Hello</p></body></html>"
    )
    result = DocumentTransformer(rules, parser=parser).transform(markup)
    assert "<style>body { margin: auto; }</style>" in result
    assert "<script>var answer = 42;</script>" in result
    assert "<p><b>Hel</b>lo</p>" in result


def test_doctype_is_not_followed_by_a_blank_line() -> None:
    markup = "<!DOCTYPE html>\n<html><body><p>Hi</p></body></html>"
    assert transform_markup(markup) == "<!DOCTYPE html>\n<html><body><p><b>Hi</b></p></body></html>"
