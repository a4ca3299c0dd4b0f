"""
Reader: parses a MsgStdBn stream into an Msbt container.

Flow:
  1. Header: magic, BOM (fixes the byte order for the rest of the file),
     encoding selector, reserved fields.
  2. Dispatch loop: peek the next 4-byte tag, seek back, hand off to the
     matching section parser, then skip the alignment gap.
  3. End of stream between sections ends the loop.

Any structural problem aborts the whole parse; no partial container is
returned.
"""

from __future__ import annotations

import logging
from typing import BinaryIO, Callable

from msbt._format.spec import (
    HEADER_MAGIC, HEADER_PADDING_SIZE, SECTION_HEADER_SIZE, SECTION_RESERVED_SIZE,
    SECTION_TAG_SIZE,
    TAG_ATO1, TAG_ATR1, TAG_LBL1, TAG_NLI1, TAG_TSY1, TAG_TXT2,
)
from msbt._format.stream import BinaryReader, padding_for, unpack_u32
from msbt.container import AnySection, Msbt
from msbt.errors import (
    InvalidLabelError, InvalidMagicError, InvalidTextError, TruncatedDataError,
    UnknownSectionError,
)
from msbt.header import ByteOrder, Encoding, Header
from msbt.sections import Ato1, Atr1, Group, Label, Lbl1, Nli1, OpaqueSection, Section, Tsy1
from msbt.txt2 import Txt2, parse_entry

log = logging.getLogger(__name__)


class MsbtReader:
    """Single-use parser over a seekable binary stream.

    Usage:
        msbt = MsbtReader(stream).read()
    """

    def __init__(self, stream: BinaryIO) -> None:
        self._reader = BinaryReader(stream)
        self._pad_byte: int | None = None
        self._header: Header | None = None
        self._parsers: dict[bytes, Callable[[], AnySection]] = {
            TAG_LBL1: self.read_lbl1,
            TAG_NLI1: self.read_nli1,
            TAG_ATO1: lambda: self._read_opaque(Ato1),
            TAG_ATR1: lambda: self._read_opaque(Atr1),
            TAG_TSY1: lambda: self._read_opaque(Tsy1),
            TAG_TXT2: self.read_txt2,
        }

    def read(self) -> Msbt:
        header = self.read_header()
        msbt = Msbt(header)
        self.read_sections(msbt)
        if self._pad_byte is not None:
            msbt.pad_byte = self._pad_byte
        if header.section_count != len(msbt.section_order):
            log.debug(
                "Header declares %d sections, found %d",
                header.section_count, len(msbt.section_order),
            )
        return msbt

    # ----- header -----

    def read_header(self) -> Header:
        r = self._reader
        magic = r.read_exact(len(HEADER_MAGIC))
        if magic != HEADER_MAGIC:
            raise InvalidMagicError(HEADER_MAGIC, magic)

        r.byte_order = ByteOrder.from_bom(r.read_exact(2))
        unknown_1 = r.read_u16()
        encoding = Encoding.from_byte(r.read_u8())
        unknown_2 = r.read_u8()
        section_count = r.read_u16()
        unknown_3 = r.read_u16()
        file_size = r.read_u32()
        padding = r.read_exact(HEADER_PADDING_SIZE)

        self._header = Header(
            byte_order=r.byte_order,
            encoding=encoding,
            unknown_1=unknown_1,
            unknown_2=unknown_2,
            section_count=section_count,
            unknown_3=unknown_3,
            file_size=file_size,
            padding=padding,
        )
        log.debug(
            "Header: %s endian, %s, %d sections, %d bytes declared",
            r.byte_order.name.lower(), encoding.name, section_count, file_size,
        )
        return self._header

    # ----- dispatch -----

    def read_sections(self, msbt: Msbt) -> None:
        r = self._reader
        while True:
            peek = r.read(SECTION_TAG_SIZE)
            if not peek:
                return
            if len(peek) < SECTION_TAG_SIZE:
                raise TruncatedDataError(
                    f"Stream ends inside a section tag at offset {r.tell() - len(peek)}: {peek!r}"
                )
            r.seek(-SECTION_TAG_SIZE, 1)

            parser = self._parsers.get(peek)
            if parser is None:
                raise UnknownSectionError(peek)
            start = r.tell()
            section = parser()
            end = start + SECTION_HEADER_SIZE + section.section.size
            if r.tell() != end:
                log.debug("%s parser stopped at %d, payload ends at %d", peek, r.tell(), end)
                r.seek(end)
            msbt._attach(section)
            self.skip_padding()

    def skip_padding(self) -> None:
        """Advance to the next 16-byte boundary, capturing the pad byte."""
        r = self._reader
        gap = padding_for(r.tell())
        if not gap:
            return
        pad = r.read(gap)
        if not pad:
            return
        if self._pad_byte is None:
            self._pad_byte = pad[0]
        elif pad[0] != self._pad_byte:
            log.warning(
                "Pad byte 0x%02x at offset %d differs from file pad byte 0x%02x; "
                "writing will use 0x%02x",
                pad[0], r.tell() - len(pad), self._pad_byte, self._pad_byte,
            )

    def read_section(self, expected: bytes) -> Section:
        r = self._reader
        tag = r.read_exact(SECTION_TAG_SIZE)
        if tag != expected:
            raise InvalidMagicError(expected, tag)
        size = r.read_u32()
        reserved = r.read_exact(SECTION_RESERVED_SIZE)
        log.debug("Section %s: %d payload bytes at offset %d", tag.decode("ascii"), size, r.tell())
        return Section(tag, size, reserved)

    # ----- LBL1 -----

    def read_lbl1(self) -> Lbl1:
        r = self._reader
        section = self.read_section(TAG_LBL1)

        group_count = r.read_u32()
        groups = [Group(r.read_u32(), r.read_u32()) for _ in range(group_count)]

        label_count = sum(g.label_count for g in groups)
        labels: list[Label | None] = [None] * label_count
        for group in groups:
            for _ in range(group.label_count):
                raw = r.read_exact(r.read_u8())
                try:
                    name = raw.decode("utf-8")
                except UnicodeDecodeError as e:
                    raise InvalidLabelError(f"Label {raw!r} is not valid UTF-8") from e
                index = r.read_u32()
                if index >= label_count:
                    raise InvalidLabelError(
                        f"Label {name!r} has index {index}, table holds {label_count}"
                    )
                if labels[index] is not None:
                    raise InvalidLabelError(
                        f"Labels {labels[index].name!r} and {name!r} share index {index}"
                    )
                labels[index] = Label(name)

        # label_count distinct in-range indexes: no slot is left empty
        return Lbl1(labels=labels, groups=groups, section=section)

    # ----- NLI1 -----

    def read_nli1(self) -> Nli1:
        r = self._reader
        section = self.read_section(TAG_NLI1)

        global_ids: dict[int, int] = {}
        if section.size > 0:
            id_count = r.read_u32()
            for _ in range(id_count):
                index = r.read_u32()
                global_id = r.read_u32()
                if global_id in global_ids:
                    log.warning(
                        "Duplicate global id %d (index %d replaces %d)",
                        global_id, index, global_ids[global_id],
                    )
                global_ids[global_id] = index

        return Nli1(global_ids, section=section, has_count=section.size > 0)

    # ----- ATO1 / ATR1 / TSY1 -----

    def _read_opaque(self, cls: type[OpaqueSection]) -> OpaqueSection:
        section = self.read_section(cls.TAG.value)
        data = self._reader.read_exact(section.size)
        return cls(data, section=section)

    # ----- TXT2 -----

    def read_txt2(self) -> Txt2:
        section = self.read_section(TAG_TXT2)
        header = self._header
        payload = self._reader.read_exact(section.size)
        bo = header.byte_order

        if len(payload) < 4:
            raise TruncatedDataError(f"TXT2 payload of {len(payload)} bytes has no string count")
        count = unpack_u32(payload, 0, bo)
        if 4 + 4 * count > len(payload):
            raise TruncatedDataError(
                f"TXT2 declares {count} strings, payload is {len(payload)} bytes"
            )
        offsets = [unpack_u32(payload, 4 + 4 * i, bo) for i in range(count)]

        entries = []
        for i, start in enumerate(offsets):
            end = offsets[i + 1] if i + 1 < count else section.size
            if not (start <= end <= len(payload)):
                raise InvalidTextError(
                    f"TXT2 entry {i} spans {start}..{end}, payload is {len(payload)} bytes"
                )
            try:
                entries.append(parse_entry(payload[start:end], header.encoding, bo))
            except InvalidTextError as e:
                raise InvalidTextError(f"TXT2 entry {i}: {e}") from e

        return Txt2(entries, encoding=header.encoding, byte_order=bo, section=section)
