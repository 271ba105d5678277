"""
Gemtext (text/gemini) line classification.

A gemtext document is a flat list of lines. The type of each line is decided
by its first few characters, except between two preformatting toggle lines
where every line is preformatted text. The parser below turns raw text lines
into a stream of typed line objects that a renderer can consume without ever
looking at the original markup again.
"""
from __future__ import annotations

import codecs
import dataclasses
import typing

PREFORMAT_MARKER = "```"
LINK_MARKER = "=>"
LIST_MARKER = "* "
QUOTE_MARKER = ">"
HEADING_MARKER = "#"


@dataclasses.dataclass(frozen=True)
class Heading:
    level: int
    text: str


@dataclasses.dataclass(frozen=True)
class Link:
    target: str
    name: typing.Optional[str] = None


@dataclasses.dataclass(frozen=True)
class Quote:
    text: str


@dataclasses.dataclass(frozen=True)
class ListItem:
    text: str


@dataclasses.dataclass(frozen=True)
class PreformattingToggle:
    label: str = ""


@dataclasses.dataclass(frozen=True)
class PreformattedText:
    text: str


@dataclasses.dataclass(frozen=True)
class PlainText:
    text: str


Line = typing.Union[
    Heading,
    Link,
    Quote,
    ListItem,
    PreformattingToggle,
    PreformattedText,
    PlainText,
]


def classify_line(text: str, preformatted: bool = False) -> Line:
    """
    Tag a single line of gemtext with its line type.

    The ``preformatted`` flag tells whether the line sits inside a
    preformatted block, where only another toggle line has any meaning.
    """
    if text.startswith(PREFORMAT_MARKER):
        return PreformattingToggle(text[len(PREFORMAT_MARKER) :].strip())

    if preformatted:
        return PreformattedText(text)

    if text.startswith(LINK_MARKER):
        parts = text[len(LINK_MARKER) :].strip().split(maxsplit=1)
        if not parts:
            # A link without a URL, show it as it is
            return PlainText(text)
        if len(parts) == 1:
            return Link(parts[0])
        return Link(parts[0], parts[1])

    if text.startswith(HEADING_MARKER):
        level = len(text) - len(text.lstrip(HEADING_MARKER))
        if level <= 3:
            return Heading(level, text[level:].strip())
        return PlainText(text)

    if text.startswith(LIST_MARKER):
        return ListItem(text[len(LIST_MARKER) :].strip())

    if text.startswith(QUOTE_MARKER):
        return Quote(text[len(QUOTE_MARKER) :].strip())

    return PlainText(text)


def parse_gemtext(lines: typing.Iterable[str]) -> typing.Iterator[Line]:
    """
    Lazily classify a sequence of text lines.
    """
    preformatted = False
    for text in lines:
        line = classify_line(text, preformatted)
        if isinstance(line, PreformattingToggle):
            preformatted = not preformatted
        yield line


class LineDecoder:
    """
    Incrementally split a stream of UTF-8 bytes into lines of text.

    Chunks can end anywhere, including in the middle of a multi-byte
    character or between a CR and an LF. Undecodable bytes are replaced
    rather than failing the whole document.
    """

    def __init__(self) -> None:
        self.decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self.buffer = ""

    def feed(self, data: bytes) -> typing.List[str]:
        """
        Add a chunk of bytes and return every line that is now complete.
        """
        self.buffer += self.decoder.decode(data)
        *lines, self.buffer = self.buffer.split("\n")
        return [line.rstrip("\r") for line in lines]

    def close(self) -> typing.List[str]:
        """
        Flush whatever is left once the stream has ended.
        """
        self.buffer += self.decoder.decode(b"", final=True)
        remaining, self.buffer = self.buffer, ""
        if remaining:
            return [remaining.rstrip("\r")]
        return []


def decode_gemtext(data: bytes) -> typing.Iterator[Line]:
    """
    Classify a complete gemtext document.
    """
    decoder = LineDecoder()
    return parse_gemtext(decoder.feed(data) + decoder.close())
