"""
Writer: serializes an Msbt container.

Two-pass strategy:
  1. Encode every section payload in section order (sizes come from here)
  2. Write the header with the recomputed file size and section count,
     then each section's envelope, payload and alignment padding

Stored sizes and counts are never trusted; everything derived is
recomputed from the current content.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, BinaryIO

from msbt._format.spec import HEADER_SIZE, SECTION_HEADER_SIZE
from msbt._format.stream import BinaryWriter, CountingWriter, padding_for
from msbt.sections import Lbl1, Nli1, OpaqueSection, Section, SectionTag, check_label_name
from msbt.txt2 import Txt2

if TYPE_CHECKING:
    from msbt.container import Msbt

log = logging.getLogger(__name__)


class MsbtWriter:

    def __init__(self, msbt: Msbt, stream: BinaryIO) -> None:
        self.msbt = msbt
        self.byte_order = msbt.header.byte_order
        self._sink = CountingWriter(stream)
        self._out = BinaryWriter(self._sink, self.byte_order)

    def write(self) -> int:
        """Write the whole container. Returns bytes written."""
        payloads: list[tuple[Section, bytes]] = []
        for tag in self.msbt.section_order:
            section = self.msbt.section(tag)
            payloads.append((section.section, self.encode_payload(tag, section)))

        file_size = HEADER_SIZE
        for _, payload in payloads:
            size = SECTION_HEADER_SIZE + len(payload)
            file_size += size + padding_for(size)

        self.write_header(file_size, len(payloads))
        for section, payload in payloads:
            self.write_section(section, payload)

        log.debug("Wrote %d sections, %d bytes", len(payloads), self._sink.written)
        return self._sink.written

    def write_header(self, file_size: int, section_count: int) -> None:
        header = self.msbt.header
        out = self._out
        out.write_bytes(header.magic)
        out.write_bytes(self.byte_order.bom)
        out.write_u16(header.unknown_1)
        out.write_u8(int(header.encoding))
        out.write_u8(header.unknown_2)
        out.write_u16(section_count)
        out.write_u16(header.unknown_3)
        out.write_u32(file_size)
        out.write_bytes(header.padding)

    def write_section(self, section: Section, payload: bytes) -> None:
        out = self._out
        out.write_bytes(section.tag)
        out.write_u32(len(payload))
        out.write_bytes(section.reserved)
        out.write_bytes(payload)
        self.write_padding()

    def write_padding(self) -> None:
        gap = padding_for(self._sink.written)
        if gap:
            self._out.write_bytes(bytes([self.msbt.pad_byte]) * gap)

    # ----- payload encoders -----

    def encode_payload(self, tag: SectionTag, section) -> bytes:
        if tag is SectionTag.LBL1:
            return self.encode_lbl1(section)
        if tag is SectionTag.NLI1:
            return self.encode_nli1(section)
        if tag is SectionTag.TXT2:
            return self.encode_txt2(section)
        return self.encode_opaque(section)

    def _buffer(self) -> tuple[io.BytesIO, BinaryWriter]:
        buf = io.BytesIO()
        return buf, BinaryWriter(buf, self.byte_order)

    def encode_lbl1(self, lbl1: Lbl1) -> bytes:
        buf, out = self._buffer()
        out.write_u32(len(lbl1.groups))
        for group in lbl1.groups:
            out.write_u32(group.label_count)
            out.write_u32(group.offset)
        for index, label in lbl1.sorted_labels():
            check_label_name(label.name)
            name = label.encoded
            out.write_u8(len(name))
            out.write_bytes(name)
            out.write_u32(index)
        return buf.getvalue()

    def encode_nli1(self, nli1: Nli1) -> bytes:
        if not len(nli1) and not nli1.has_count:
            return b""
        buf, out = self._buffer()
        out.write_u32(len(nli1))
        for global_id, index in nli1.items():
            out.write_u32(index)
            out.write_u32(global_id)
        return buf.getvalue()

    def encode_txt2(self, txt2: Txt2) -> bytes:
        buf, out = self._buffer()
        encoded = txt2.encoded_entries()
        out.write_u32(len(encoded))
        offset = txt2.baseline()
        for raw in encoded:
            out.write_u32(offset)
            offset += len(raw)
        for raw in encoded:
            out.write_bytes(raw)
        return buf.getvalue()

    def encode_opaque(self, section: OpaqueSection) -> bytes:
        return section.data
