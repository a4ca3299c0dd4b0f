"""
Tests for the header codec, section framing, dispatch and padding.
"""

from __future__ import annotations

import io
import logging
import struct

import pytest

from conftest import (
    ATR1_DATA, PAD, build_file, header_bytes, sample_file, section_bytes,
    walk_sections,
)
from msbt import (
    ByteOrder, Encoding, Header, InvalidBomError, InvalidEncodingError,
    InvalidMagicError, Msbt, SectionTag, TruncatedDataError, UnknownSectionError,
)
from msbt._format.reader import MsbtReader
from msbt._format.stream import BinaryReader, BinaryWriter, CountingWriter, padding_for


# ---------------------------------------------------------------------------
# TestByteOrderCodec
# ---------------------------------------------------------------------------

class TestByteOrderCodec:

    def test_little_endian_u32(self):
        buf = io.BytesIO()
        BinaryWriter(buf, ByteOrder.LITTLE).write_u32(0x01020304)
        assert buf.getvalue() == b"\x04\x03\x02\x01"

    def test_big_endian_u16(self):
        buf = io.BytesIO()
        BinaryWriter(buf, ByteOrder.BIG).write_u16(0x0102)
        assert buf.getvalue() == b"\x01\x02"

    def test_reader_follows_byte_order(self):
        r = BinaryReader(io.BytesIO(b"\x00\x00\x01\x00"), ByteOrder.BIG)
        assert r.read_u32() == 0x100

    def test_read_exact_short(self):
        r = BinaryReader(io.BytesIO(b"\x01\x02"))
        with pytest.raises(TruncatedDataError):
            r.read_u32()

    def test_counting_writer(self):
        buf = io.BytesIO()
        w = CountingWriter(buf)
        w.write(b"abc")
        w.write(b"de")
        assert w.written == 5
        assert buf.getvalue() == b"abcde"

    def test_padding_for(self):
        assert padding_for(0) == 0
        assert padding_for(1) == 15
        assert padding_for(16) == 0
        assert padding_for(0x52) == 14


# ---------------------------------------------------------------------------
# TestHeader
# ---------------------------------------------------------------------------

class TestHeader:

    def test_bom_selects_byte_order(self):
        assert ByteOrder.from_bom(b"\xfe\xff") is ByteOrder.BIG
        assert ByteOrder.from_bom(b"\xff\xfe") is ByteOrder.LITTLE

    def test_big_endian_utf16_no_sections(self):
        data = header_bytes(">", encoding=1, section_count=0, file_size=0x20)
        msbt = Msbt.from_bytes(data)
        assert msbt.header.byte_order is ByteOrder.BIG
        assert msbt.header.encoding is Encoding.UTF16
        assert msbt.section_order == ()
        assert msbt.header.section_count == 0
        assert msbt.to_bytes() == data

    def test_built_header_only(self):
        msbt = Msbt(Header(byte_order=ByteOrder.BIG, encoding=Encoding.UTF16))
        data = msbt.to_bytes()
        assert len(data) == 0x20
        assert data[:8] == b"MsgStdBn"
        assert data[8:10] == b"\xfe\xff"
        assert data[12] == 0x01
        assert struct.unpack(">H", data[14:16])[0] == 0
        assert struct.unpack(">I", data[18:22])[0] == 0x20

    def test_reserved_fields_preserved(self):
        data = header_bytes(
            "<", unknown_1=0x0103, unknown_2=0x7F, unknown_3=0xBEEF,
            padding=bytes(range(10)),
        )
        msbt = Msbt.from_bytes(data)
        assert msbt.header.unknown_1 == 0x0103
        assert msbt.header.unknown_2 == 0x7F
        assert msbt.header.unknown_3 == 0xBEEF
        assert msbt.header.padding == bytes(range(10))
        assert msbt.to_bytes() == data

    def test_invalid_magic(self):
        data = b"MsgPrjBn" + header_bytes()[8:]
        with pytest.raises(InvalidMagicError) as exc:
            Msbt.from_bytes(data)
        assert exc.value.found == b"MsgPrjBn"
        assert exc.value.expected == b"MsgStdBn"

    def test_invalid_bom(self):
        data = b"MsgStdBn\x00\x00" + header_bytes()[10:]
        with pytest.raises(InvalidBomError) as exc:
            Msbt.from_bytes(data)
        assert exc.value.bom == b"\x00\x00"

    def test_invalid_encoding(self):
        data = header_bytes(encoding=2)
        with pytest.raises(InvalidEncodingError) as exc:
            Msbt.from_bytes(data)
        assert exc.value.value == 2
        assert "0x02" in str(exc.value)

    def test_truncated_header(self):
        with pytest.raises(TruncatedDataError):
            Msbt.from_bytes(header_bytes()[:20])

    def test_file_size_not_trusted(self):
        data = sample_file()
        stale = data[:18] + struct.pack("<I", 0) + data[22:]
        msbt = Msbt.from_bytes(stale)
        assert msbt.header.file_size == 0
        assert msbt.to_bytes() == data

    def test_section_count_recomputed(self):
        data = sample_file()
        stale = data[:14] + struct.pack("<H", 9) + data[16:]
        assert Msbt.from_bytes(stale).to_bytes() == data


# ---------------------------------------------------------------------------
# TestDispatch
# ---------------------------------------------------------------------------

class TestDispatch:

    def test_section_order_preserved(self, sample):
        assert sample.section_order == (
            SectionTag.LBL1, SectionTag.NLI1, SectionTag.ATR1,
            SectionTag.TSY1, SectionTag.TXT2,
        )

    def test_unusual_order_round_trips(self):
        data = build_file([
            section_bytes(b"TSY1", b"\x01\x02"),
            section_bytes(b"ATO1", b"\x09" * 20),
            section_bytes(b"ATR1", ATR1_DATA),
        ])
        msbt = Msbt.from_bytes(data)
        assert msbt.section_order == (SectionTag.TSY1, SectionTag.ATO1, SectionTag.ATR1)
        assert msbt.to_bytes() == data

    def test_unknown_tag_is_fatal(self):
        data = build_file([
            section_bytes(b"ATR1", ATR1_DATA),
            section_bytes(b"XYZ1", b"\x00" * 4),
        ])
        with pytest.raises(UnknownSectionError) as exc:
            Msbt.from_bytes(data)
        assert exc.value.tag == b"XYZ1"
        assert list(exc.value.tag) == [ord("X"), ord("Y"), ord("Z"), ord("1")]

    def test_partial_tag_is_truncation(self):
        data = build_file([section_bytes(b"ATR1", ATR1_DATA)]) + b"TX"
        with pytest.raises(TruncatedDataError):
            Msbt.from_bytes(data)

    def test_truncated_payload(self):
        data = build_file([section_bytes(b"ATR1", ATR1_DATA)])
        cut = data[:0x20 + 16 + 3]
        with pytest.raises(TruncatedDataError):
            Msbt.from_bytes(cut)

    def test_parser_rejects_foreign_tag(self):
        data = header_bytes() + section_bytes(b"ATR1", ATR1_DATA)
        reader = MsbtReader(io.BytesIO(data))
        reader.read_header()
        with pytest.raises(InvalidMagicError) as exc:
            reader.read_lbl1()
        assert exc.value.expected == b"LBL1"
        assert exc.value.found == b"ATR1"

    def test_reserved_envelope_bytes_preserved(self):
        body = b"ATR1" + struct.pack("<I", len(ATR1_DATA)) + b"\x01" * 8 + ATR1_DATA
        section = body + bytes([PAD]) * ((16 - len(body) % 16) % 16)
        data = build_file([section])
        msbt = Msbt.from_bytes(data)
        assert msbt.atr1.section.reserved == b"\x01" * 8
        assert msbt.to_bytes() == data


# ---------------------------------------------------------------------------
# TestPadding
# ---------------------------------------------------------------------------

class TestPadding:

    def test_pad_byte_captured(self, sample):
        assert sample.pad_byte == PAD

    def test_no_gap_keeps_default(self):
        data = build_file([section_bytes(b"ATO1", b"\x00" * 16)])
        assert Msbt.from_bytes(data).pad_byte == 0

    def test_sections_aligned_and_filled(self, sample):
        with sample.txt2_mut() as txt2:
            txt2.append("odd length\x00")
        data = sample.to_bytes()
        assert len(data) % 16 == 0
        assert len(data) == sample.header.file_size
        sections = walk_sections(data)
        for offset, tag, size in sections:
            assert offset % 16 == 0
            end = offset + 16 + size
            gap = (16 - end % 16) % 16
            assert data[end:end + gap] == bytes([PAD]) * gap

    def test_mixed_pad_bytes_warn(self, caplog):
        data = build_file([
            section_bytes(b"ATR1", ATR1_DATA, pad=0xAB),
            section_bytes(b"TSY1", b"\x01\x02", pad=0x00),
        ])
        with caplog.at_level(logging.WARNING, logger="msbt._format.reader"):
            msbt = Msbt.from_bytes(data)
        assert msbt.pad_byte == 0xAB
        assert any("Pad byte" in r.message for r in caplog.records)
        out = msbt.to_bytes()
        assert out[-14:] == b"\xab" * 14

    def test_custom_pad_byte_on_write(self, sample):
        sample.pad_byte = 0x00
        data = sample.to_bytes()
        assert Msbt.from_bytes(data).pad_byte == 0x00


# ---------------------------------------------------------------------------
# TestRoundTrip
# ---------------------------------------------------------------------------

class TestRoundTrip:

    @pytest.mark.parametrize("bo,utf8", [("<", False), (">", False), ("<", True), (">", True)])
    def test_identity(self, bo, utf8):
        data = sample_file(bo, utf8)
        assert Msbt.from_bytes(data).to_bytes() == data

    def test_write_to_returns_size(self, sample, sample_bytes):
        buf = io.BytesIO()
        assert sample.write_to(buf) == len(sample_bytes)

    def test_read_and_write_file(self, tmp_path, sample_path, sample_bytes):
        msbt = Msbt.read(sample_path)
        out = tmp_path / "out.msbt"
        assert msbt.write(out) == len(sample_bytes)
        assert out.read_bytes() == sample_bytes
        assert not list(tmp_path.glob("*.tmp"))

    def test_calc_size_matches_output(self, sample):
        assert sample.calc_size() == len(sample.to_bytes())
