from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterator


class SegmentKind(str, Enum):
    WORD = "word"
    WHITESPACE = "whitespace"
    PUNCTUATION = "punctuation"
    CHARACTER_REFERENCE = "character-reference"


# [^\W_] is a Unicode letter or number, the same set as [\p{L}\p{N}].
_CHARREF = r"&#(?:[0-9]+|[xX][0-9a-fA-F]+);"
_SEGMENT_RE = re.compile(
    r"(?P<word>[^\W_]+)"
    rf"|(?P<charref>(?:{_CHARREF})+)"
    r"|(?P<space>\s+)"
    rf"|(?P<punct>(?:(?!{_CHARREF})(?:[^\w\s]|_))+)"
)
_KIND_BY_GROUP = {
    "word": SegmentKind.WORD,
    "charref": SegmentKind.CHARACTER_REFERENCE,
    "space": SegmentKind.WHITESPACE,
    "punct": SegmentKind.PUNCTUATION,
}


@dataclass(frozen=True, slots=True)
class Segment:
    kind: SegmentKind
    text: str
    start: int
    end: int

    @property
    def is_word(self) -> bool:
        return self.kind is SegmentKind.WORD


def iter_segments(text: str) -> Iterator[Segment]:
    """
    Yield the segments of ``text`` from left to right.

    Every character belongs to exactly one segment, so joining the
    ``text`` of all yielded segments gives back the input.
    """
    for match in _SEGMENT_RE.finditer(text):
        group = match.lastgroup
        yield Segment(
            kind=_KIND_BY_GROUP[group],
            text=match.group(group),
            start=match.start(),
            end=match.end(),
        )


class SegmentStream:
    """Restartable view over the segments of a string."""

    __slots__ = ("text",)

    def __init__(self, text: str) -> None:
        self.text = text

    def __iter__(self) -> Iterator[Segment]:
        return iter_segments(self.text)

    def has_words(self) -> bool:
        return any(segment.is_word for segment in self)


def split_segments(text: str) -> SegmentStream:
    return SegmentStream(text)


__all__ = ["Segment", "SegmentKind", "SegmentStream", "iter_segments", "split_segments"]
