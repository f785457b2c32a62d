"""
Source buffers and spans for devcmd files.

A SourceFile owns the raw bytes of one devcmd file. Spans are half-open
byte ranges into those bytes, annotated with 1-indexed line and column
numbers so that diagnostics can be reported without re-scanning the file.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import BinaryIO, TextIO, Union

_ENCODING = "utf-8"
_ERRORS = "surrogateescape"


@dataclass(frozen=True, slots=True)
class Span:
    """
    A half-open byte range of a source file.

    Attributes:
        start_offset: 0-indexed byte offset of the first byte
        end_offset: 0-indexed byte offset one past the last byte
        start_line: 1-indexed line of the first byte
        start_col: 1-indexed column of the first character
        end_line: 1-indexed line of end_offset
        end_col: 1-indexed column of end_offset (exclusive)
    """

    start_offset: int
    end_offset: int
    start_line: int
    start_col: int
    end_line: int
    end_col: int

    @classmethod
    def point(cls, offset: int, line: int, col: int) -> "Span":
        """Create a zero-width span at a position."""
        return cls(offset, offset, line, col, line, col)

    @classmethod
    def covering(cls, first: "Span", last: "Span") -> "Span":
        """Create a span from the start of `first` to the end of `last`."""
        return cls(
            first.start_offset,
            last.end_offset,
            first.start_line,
            first.start_col,
            last.end_line,
            last.end_col,
        )

    @classmethod
    def gap(cls, before: "Span", after: "Span") -> "Span":
        """Create the span between the end of `before` and the start of `after`."""
        return cls(
            before.end_offset,
            after.start_offset,
            before.end_line,
            before.end_col,
            after.start_line,
            after.start_col,
        )

    @property
    def start(self) -> "Span":
        """The zero-width span at the start of this span."""
        return Span.point(self.start_offset, self.start_line, self.start_col)

    @property
    def end(self) -> "Span":
        """The zero-width span at the end of this span."""
        return Span.point(self.end_offset, self.end_line, self.end_col)

    @property
    def length(self) -> int:
        """Length in bytes."""
        return self.end_offset - self.start_offset

    @property
    def is_empty(self) -> bool:
        return self.start_offset == self.end_offset

    @property
    def is_multiline(self) -> bool:
        return self.start_line != self.end_line

    def to_dict(self) -> dict[str, int]:
        """Convert to a JSON-serializable dictionary."""
        return {
            "start_offset": self.start_offset,
            "end_offset": self.end_offset,
            "start_line": self.start_line,
            "start_col": self.start_col,
            "end_line": self.end_line,
            "end_col": self.end_col,
        }

    def contains(self, offset: int) -> bool:
        """Check if a byte offset falls inside this span (end inclusive)."""
        return self.start_offset <= offset <= self.end_offset

    def __str__(self) -> str:
        return f"{self.start_line}:{self.start_col}"


@dataclass(frozen=True)
class SourceFile:
    """
    An immutable devcmd source file.

    The text is kept as bytes. `content` is the same text decoded as UTF-8
    with the surrogateescape handler, so every undecodable byte maps to one
    character and the decoded form can always be encoded back exactly.

    Usage:
        source = SourceFile("commands.cli", b"build: make;\\n")
        source = SourceFile.from_reader("commands.cli", open(path, "rb"))
    """

    name: str
    text: bytes
    content: str = field(init=False, repr=False, compare=False)
    _char_offsets: list[int] | None = field(init=False, repr=False, compare=False)
    _line_starts: list[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.text, str):
            object.__setattr__(self, "text", self.text.encode(_ENCODING, _ERRORS))
        content = self.text.decode(_ENCODING, _ERRORS)
        object.__setattr__(self, "content", content)

        # Byte offset of every character boundary, only needed for non-ASCII input
        offsets: list[int] | None = None
        if not self.text.isascii():
            offsets = [0] * (len(content) + 1)
            total = 0
            for index, char in enumerate(content):
                offsets[index] = total
                total += len(char.encode(_ENCODING, _ERRORS))
            offsets[len(content)] = total
        object.__setattr__(self, "_char_offsets", offsets)

        line_starts = [0]
        for index, byte in enumerate(self.text):
            if byte == 0x0A:
                line_starts.append(index + 1)
            elif byte == 0x0D and self.text[index + 1 : index + 2] != b"\n":
                line_starts.append(index + 1)
        object.__setattr__(self, "_line_starts", line_starts)

    @classmethod
    def from_reader(cls, name: str, reader: Union[BinaryIO, TextIO]) -> "SourceFile":
        """Create a source file from the full contents of a readable stream."""
        data = reader.read()
        if isinstance(data, str):
            data = data.encode(_ENCODING, _ERRORS)
        return cls(name, data)

    @property
    def size(self) -> int:
        """Size of the source in bytes."""
        return len(self.text)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def byte_offset(self, char_index: int) -> int:
        """Map an index into `content` to a byte offset into `text`."""
        if self._char_offsets is None:
            return char_index
        return self._char_offsets[char_index]

    def text_at(self, span: Span) -> str:
        """Return the decoded text covered by a span."""
        return self.text[span.start_offset : span.end_offset].decode(_ENCODING, _ERRORS)

    def line_text(self, line: int) -> str:
        """Get a source line by number (1-indexed), without its line ending."""
        if not 1 <= line <= len(self._line_starts):
            return ""
        start = self._line_starts[line - 1]
        end = self._line_starts[line] if line < len(self._line_starts) else len(self.text)
        return self.text[start:end].decode(_ENCODING, _ERRORS).rstrip("\r\n")

    def position(self, offset: int) -> tuple[int, int]:
        """Map a byte offset to a 1-indexed (line, column) pair."""
        offset = max(0, min(offset, len(self.text)))
        line_index = bisect_right(self._line_starts, offset) - 1
        line_start = self._line_starts[line_index]
        prefix = self.text[line_start:offset].decode(_ENCODING, _ERRORS)
        return line_index + 1, len(prefix) + 1

    def offset_at(self, line: int, col: int) -> int:
        """Map a 1-indexed (line, column) pair to a byte offset, clamped to the line."""
        line = max(1, min(line, len(self._line_starts)))
        line_text = self.line_text(line)
        prefix = line_text[: max(0, col - 1)]
        return self._line_starts[line - 1] + len(prefix.encode(_ENCODING, _ERRORS))

    def span_of(self, start_offset: int, end_offset: int) -> Span:
        """Build a span from two byte offsets."""
        start_line, start_col = self.position(start_offset)
        end_line, end_col = self.position(end_offset)
        return Span(start_offset, end_offset, start_line, start_col, end_line, end_col)
