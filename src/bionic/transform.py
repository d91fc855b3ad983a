from __future__ import annotations

import re
import warnings
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from bs4 import BeautifulSoup, MarkupResemblesLocatorWarning, NavigableString, Tag
from bs4 import XMLParsedAsHTMLWarning
from bs4.builder import ParserRejectedMarkup
from bs4.element import Doctype, PreformattedString

from .emphasis import DEFAULT_MAX_FULL_LENGTH, split_point
from .segments import iter_segments, split_segments

DEFAULT_EMPHASIS_TAG = "b"
AUTO_PARSER = "auto"
DEFAULT_PARSER = AUTO_PARSER
HTML_PARSER = "html.parser"
XML_PARSER = "xml"
# The lxml HTML builder turns XML declarations and CDATA sections into comments.
SUPPORTED_PARSERS = (AUTO_PARSER, HTML_PARSER, XML_PARSER, "lxml-xml")
XML_DOCUMENT_SUFFIXES = (".xhtml", ".xht")
# Raw text, never emphasized whatever the exclusion table says.
RAW_TEXT_TAGS = frozenset({"script", "style"})
_XML_DECLARATION_RE = re.compile(r"\A\ufeff?\s*(<\?xml\b[^>]*\?>)")

# Headings, links and document metadata keep their original typography.
DEFAULT_EXCLUDED_TAGS = frozenset(
    {
        "a",
        "meta",
        "title",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "link",
        "script",
        "style",
    }
)
DEFAULT_EXCLUDED_CLASSES: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "p": frozenset({"caption", "parttext"}),
        "span": frozenset({"bold"}),
        "div": frozenset({"listing"}),
    }
)


class ParseError(RuntimeError):
    """Raised when a document cannot be parsed, even tolerantly."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


def _freeze_class_table(table: Mapping[str, Iterable[str]]) -> Mapping[str, frozenset[str]]:
    return MappingProxyType({tag: frozenset(classes) for tag, classes in table.items()})


@dataclass(frozen=True, slots=True)
class ExclusionRules:
    tags: frozenset[str] = DEFAULT_EXCLUDED_TAGS
    tag_classes: Mapping[str, frozenset[str]] = field(default_factory=lambda: DEFAULT_EXCLUDED_CLASSES)

    @classmethod
    def from_iterables(
        cls,
        tags: Iterable[str],
        tag_classes: Mapping[str, Iterable[str]] | None = None,
    ) -> "ExclusionRules":
        return cls(
            tags=frozenset(tags),
            tag_classes=_freeze_class_table(tag_classes or {}),
        )

    def excludes(self, tag: Tag) -> bool:
        name = tag.name
        if name in self.tags:
            return True
        forbidden = self.tag_classes.get(name)
        if not forbidden:
            return False
        return not forbidden.isdisjoint(_class_list(tag))


DEFAULT_EXCLUSIONS = ExclusionRules()


def _class_list(tag: Tag) -> list[str]:
    # html.parser splits multi-valued attributes already; the XML builders don't.
    value = tag.get("class")
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(item) for item in value]


@dataclass
class TransformResult:
    markup: str
    words: int


class DocumentTransformer:
    """
    Rewrite a markup document so every word starts with an emphasized prefix.

    The tree is walked depth-first; text nodes containing words are replaced
    in place by ``<b>prefix</b>suffix`` runs while excluded elements keep
    their whole subtree untouched.
    """

    def __init__(
        self,
        exclusions: ExclusionRules = DEFAULT_EXCLUSIONS,
        *,
        emphasis_tag: str = DEFAULT_EMPHASIS_TAG,
        parser: str = DEFAULT_PARSER,
        max_full_length: int = DEFAULT_MAX_FULL_LENGTH,
    ) -> None:
        if not emphasis_tag:
            raise ValueError("Emphasis tag name must not be empty.")
        if parser not in SUPPORTED_PARSERS:
            raise ValueError(f"Unsupported parser {parser!r}; expected one of {', '.join(SUPPORTED_PARSERS)}.")
        self._exclusions = exclusions
        self._emphasis_tag = emphasis_tag
        self._parser = parser
        self._max_full_length = max_full_length

    @property
    def parser(self) -> str:
        return self._parser

    def transform(self, markup: str, *, path: str | None = None) -> str:
        return self.transform_with_stats(markup, path=path).markup

    def transform_with_stats(self, markup: str, *, path: str | None = None) -> TransformResult:
        soup = self._parse(markup, self.parser_for(markup, path))
        words = self._emphasize_tree(soup)
        _drop_doctype_newline(soup)
        output = soup.decode_contents(formatter="minimal")
        if soup.is_xml:
            # The XML builder consumes the declaration; re-emit the source's own.
            declaration = _XML_DECLARATION_RE.match(markup)
            if declaration:
                output = f"{declaration.group(1)}\n{output}"
        return TransformResult(markup=output, words=words)

    def parser_for(self, markup: str, path: str | None = None) -> str:
        """
        Tree builder used for one document.

        In ``auto`` mode XHTML members (by suffix, or by a leading XML
        declaration) go through the XML builder so case-sensitive SVG and
        MathML attributes such as ``viewBox`` survive; everything else is
        read with ``html.parser``.
        """
        if self._parser != AUTO_PARSER:
            return self._parser
        if path is not None and path.lower().endswith(XML_DOCUMENT_SUFFIXES):
            return XML_PARSER
        if markup.lstrip("\ufeff \t\r\n").startswith("<?xml"):
            return XML_PARSER
        return HTML_PARSER

    def _parse(self, markup: str, parser: str) -> BeautifulSoup:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", XMLParsedAsHTMLWarning)
            warnings.simplefilter("ignore", MarkupResemblesLocatorWarning)
            try:
                return BeautifulSoup(markup, parser)
            except ParserRejectedMarkup as exc:
                raise ParseError(str(exc) or "Parser rejected markup") from exc

    def _emphasize_tree(self, soup: BeautifulSoup) -> int:
        words = 0
        stack: list[Tag] = [soup]
        while stack:
            parent = stack.pop()
            # Snapshot: rewriting a text node splices new siblings into parent.contents.
            children = list(parent.children)
            for child in children:
                if isinstance(child, Tag):
                    if child.name not in RAW_TEXT_TAGS and not self._exclusions.excludes(child):
                        stack.append(child)
                elif isinstance(child, PreformattedString):
                    continue
                elif isinstance(child, NavigableString):
                    words += self._emphasize_text(soup, child)
        return words

    def _emphasize_text(self, soup: BeautifulSoup, node: NavigableString) -> int:
        text = str(node)
        if not split_segments(text).has_words():
            return 0
        replacement: list[Tag | NavigableString] = []
        plain: list[str] = []
        words = 0
        for segment in iter_segments(text):
            if not segment.is_word:
                plain.append(segment.text)
                continue
            if plain:
                replacement.append(NavigableString("".join(plain)))
                plain = []
            point = split_point(len(segment.text), max_full_length=self._max_full_length)
            emphasis = soup.new_tag(self._emphasis_tag)
            emphasis.append(NavigableString(segment.text[:point]))
            replacement.append(emphasis)
            suffix = segment.text[point:]
            if suffix:
                plain.append(suffix)
            words += 1
        if plain:
            replacement.append(NavigableString("".join(plain)))
        node.replace_with(*replacement)
        return words


def _drop_doctype_newline(soup: BeautifulSoup) -> None:
    # Doctype serializes with its own trailing newline; the source one would double it.
    for child in soup.contents:
        if not isinstance(child, Doctype):
            continue
        following = child.next_sibling
        if isinstance(following, NavigableString) and not isinstance(following, PreformattedString):
            text = str(following)
            if text.startswith("\n"):
                if text == "\n":
                    following.extract()
                else:
                    following.replace_with(NavigableString(text[1:]))
        return


def transform_markup(markup: str, **kwargs) -> str:
    return DocumentTransformer(**kwargs).transform(markup)


__all__ = [
    "DEFAULT_EMPHASIS_TAG",
    "DEFAULT_EXCLUDED_CLASSES",
    "DEFAULT_EXCLUDED_TAGS",
    "DEFAULT_EXCLUSIONS",
    "AUTO_PARSER",
    "DEFAULT_PARSER",
    "DocumentTransformer",
    "ExclusionRules",
    "ParseError",
    "RAW_TEXT_TAGS",
    "SUPPORTED_PARSERS",
    "TransformResult",
    "transform_markup",
]
