"""
TXT2 string table and the inline tag codec.

Each entry is a sequence of elements:

    Text(value)               literal run of decoded characters
    Tag(group, kind, params)  0x0E group kind param_size params
    TagEnd(group, kind)       0x0F group kind

Marker, group, kind and param_size are code-unit sized for the marker (one
byte for UTF-8, two for UTF-16) and u16 for the rest, all in the file's byte
order. Literal runs are decoded with error handlers that keep undecodable
input intact, so ``encode_entry(parse_entry(raw)) == raw`` for every entry
the lexer accepts.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator, Union

from msbt._format.spec import SECTION_HEADER_SIZE, TAG_CLOSE, TAG_OPEN, TAG_TXT2
from msbt._format.stream import pack_u16, unpack_u16
from msbt.errors import InvalidTextError
from msbt.header import ByteOrder, Encoding
from msbt.sections import Section, SectionTag


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Tag:
    group: int
    kind: int
    params: bytes = b""


@dataclass(frozen=True)
class TagEnd:
    group: int
    kind: int


Element = Union[Text, Tag, TagEnd]

_MARKER_CHARS = (chr(TAG_OPEN), chr(TAG_CLOSE))


def to_elements(value: Iterable[Element] | str) -> list[Element]:
    """Element list for ``value``; a plain string becomes one literal run.

    Literal runs may not contain the tag marker characters, which the lexer
    would read back as tags.
    """
    if isinstance(value, str):
        elements: list[Element] = [Text(value)] if value else []
    else:
        elements = list(value)
    for element in elements:
        if isinstance(element, Text):
            _check_text(element)
    return elements


def _check_text(text: Text) -> None:
    if any(c in text.value for c in _MARKER_CHARS):
        raise InvalidTextError(
            f"Text {text.value!r} contains a tag marker (U+000E or U+000F)"
        )


def _marker(code: int, encoding: Encoding, byte_order: ByteOrder) -> bytes:
    if encoding is Encoding.UTF8:
        return bytes([code])
    return pack_u16(code, byte_order)


def encode_element(element: Element, encoding: Encoding, byte_order: ByteOrder) -> bytes:
    if isinstance(element, Text):
        _check_text(element)
        return element.value.encode(encoding.codec(byte_order), encoding.errors)
    if isinstance(element, Tag):
        return (
            _marker(TAG_OPEN, encoding, byte_order)
            + pack_u16(element.group, byte_order)
            + pack_u16(element.kind, byte_order)
            + pack_u16(len(element.params), byte_order)
            + element.params
        )
    if isinstance(element, TagEnd):
        return (
            _marker(TAG_CLOSE, encoding, byte_order)
            + pack_u16(element.group, byte_order)
            + pack_u16(element.kind, byte_order)
        )
    raise TypeError(f"Not a text element: {element!r}")


def encode_entry(elements: Iterable[Element], encoding: Encoding, byte_order: ByteOrder) -> bytes:
    return b"".join(encode_element(e, encoding, byte_order) for e in elements)


def _decode_run(data: bytes, encoding: Encoding, byte_order: ByteOrder) -> Text:
    try:
        return Text(data.decode(encoding.codec(byte_order), encoding.errors))
    except UnicodeDecodeError as e:
        raise InvalidTextError(f"Undecodable text run: {e}") from e


def parse_entry(data: bytes, encoding: Encoding, byte_order: ByteOrder) -> list[Element]:
    """Split raw entry bytes into Text/Tag/TagEnd elements."""
    unit = encoding.unit_size
    elements: list[Element] = []
    end = len(data)
    pos = 0
    run_start = 0

    while pos < end:
        if pos + unit > end:
            raise InvalidTextError(f"Trailing partial code unit at byte {pos}")
        code = data[pos] if unit == 1 else unpack_u16(data, pos, byte_order)
        if code != TAG_OPEN and code != TAG_CLOSE:
            pos += unit
            continue

        if pos > run_start:
            elements.append(_decode_run(data[run_start:pos], encoding, byte_order))
        tag_start = pos
        pos += unit

        fixed = 6 if code == TAG_OPEN else 4
        if pos + fixed > end:
            raise InvalidTextError(f"Truncated tag at byte {tag_start}")
        group = unpack_u16(data, pos, byte_order)
        kind = unpack_u16(data, pos + 2, byte_order)
        if code == TAG_OPEN:
            size = unpack_u16(data, pos + 4, byte_order)
            pos += 6
            if pos + size > end:
                raise InvalidTextError(
                    f"Tag at byte {tag_start} declares {size} parameter bytes, "
                    f"{end - pos} left"
                )
            elements.append(Tag(group, kind, data[pos:pos + size]))
            pos += size
        else:
            pos += 4
            elements.append(TagEnd(group, kind))
        run_start = pos

    if end > run_start:
        elements.append(_decode_run(data[run_start:end], encoding, byte_order))
    return elements


def plain_text(elements: Iterable[Element]) -> str:
    """Concatenate literal runs, dropping tags."""
    return "".join(e.value for e in elements if isinstance(e, Text))


class Txt2:
    """Ordered string entries, positionally indexed like LBL1 labels."""

    TAG = SectionTag.TXT2

    def __init__(
        self,
        entries: list[list[Element]] | None = None,
        encoding: Encoding = Encoding.UTF16,
        byte_order: ByteOrder = ByteOrder.LITTLE,
        section: Section | None = None,
    ) -> None:
        self.section = section or Section(TAG_TXT2)
        self.entries: list[list[Element]] = entries if entries is not None else []
        self.encoding = encoding
        self.byte_order = byte_order

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[list[Element]]:
        return iter(self.entries)

    def encode(self, index: int) -> bytes:
        return encode_entry(self.entries[index], self.encoding, self.byte_order)

    def encoded_entries(self) -> list[bytes]:
        return [self.encode(i) for i in range(len(self.entries))]

    def baseline(self) -> int:
        return 4 + 4 * len(self.entries)

    def offsets(self) -> list[int]:
        """Offset of each entry, relative to the start of the payload."""
        offsets = []
        running = self.baseline()
        for raw in self.encoded_entries():
            offsets.append(running)
            running += len(raw)
        return offsets

    def text(self, index: int) -> str:
        return plain_text(self.entries[index])

    def strings(self) -> list[str]:
        return [plain_text(entry) for entry in self.entries]

    def set_text(self, index: int, value: str) -> None:
        """Replace an entry with a single literal run.

        A NUL terminator on the old entry is carried over to the new one.
        """
        old = self.entries[index]
        if old and isinstance(old[-1], Text) and old[-1].value.endswith("\x00"):
            if not value.endswith("\x00"):
                value += "\x00"
        self.entries[index] = to_elements(value)

    def append(self, elements: Iterable[Element] | str) -> int:
        self.entries.append(to_elements(elements))
        return len(self.entries) - 1

    def remove(self, index: int) -> list[Element]:
        return self.entries.pop(index)

    def calc_payload_size(self) -> int:
        return self.baseline() + sum(len(raw) for raw in self.encoded_entries())

    def calc_size(self) -> int:
        return SECTION_HEADER_SIZE + self.calc_payload_size()

    def update(self) -> None:
        self.section.size = self.calc_payload_size()
