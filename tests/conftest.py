"""
Shared fixtures: MsgStdBn files assembled byte by byte with struct, so the
tests do not depend on the writer to produce their inputs.
"""

from __future__ import annotations

import struct

import pytest

PAD = 0xAB


def _hash(name: str) -> int:
    h = 0
    for b in name.encode("utf-8"):
        h = (h * 0x492 + b) & 0xFFFFFFFF
    return h


def header_bytes(
    bo: str = "<",
    encoding: int = 1,
    section_count: int = 0,
    file_size: int = 0x20,
    unknown_1: int = 0x0103,
    unknown_2: int = 0,
    unknown_3: int = 0,
    padding: bytes = bytes(10),
) -> bytes:
    bom = b"\xff\xfe" if bo == "<" else b"\xfe\xff"
    return (
        b"MsgStdBn"
        + bom
        + struct.pack(bo + "H", unknown_1)
        + bytes([encoding, unknown_2])
        + struct.pack(bo + "HHI", section_count, unknown_3, file_size)
        + padding
    )


def section_bytes(tag: bytes, payload: bytes, bo: str = "<", pad: int = PAD) -> bytes:
    """Envelope + payload + padding (sections always start 16-aligned)."""
    body = tag + struct.pack(bo + "I", len(payload)) + bytes(8) + payload
    gap = (16 - len(body) % 16) % 16
    return body + bytes([pad]) * gap


def build_file(sections: list[bytes], bo: str = "<", encoding: int = 1, **header) -> bytes:
    size = 0x20 + sum(len(s) for s in sections)
    return header_bytes(bo, encoding, len(sections), size, **header) + b"".join(sections)


def lbl1_payload(names: list[str], group_count: int, bo: str = "<") -> bytes:
    """Label table laid out the way the writer emits it."""
    buckets = [_hash(n) % group_count for n in names]
    order = sorted(range(len(names)), key=lambda i: buckets[i])
    counts = [buckets.count(g) for g in range(group_count)]

    records = {i: bytes([len(names[i].encode())]) + names[i].encode() + struct.pack(bo + "I", i)
               for i in range(len(names))}
    out = struct.pack(bo + "I", group_count)
    offset = 4 + 8 * group_count
    for g in range(group_count):
        out += struct.pack(bo + "II", counts[g], offset)
        offset += sum(len(records[i]) for i in range(len(names)) if buckets[i] == g)
    for i in order:
        out += records[i]
    return out


def nli1_payload(pairs: list[tuple[int, int]], bo: str = "<") -> bytes:
    """pairs are (id, index) in on-disk order."""
    out = struct.pack(bo + "I", len(pairs))
    for global_id, index in pairs:
        out += struct.pack(bo + "II", index, global_id)
    return out


def txt2_payload(entries: list[bytes], bo: str = "<") -> bytes:
    out = struct.pack(bo + "I", len(entries))
    offset = 4 + 4 * len(entries)
    for raw in entries:
        out += struct.pack(bo + "I", offset)
        offset += len(raw)
    return out + b"".join(entries)


def utf16(text: str, bo: str = "<") -> bytes:
    return text.encode("utf-16-le" if bo == "<" else "utf-16-be")


def tag_open(group: int, kind: int, params: bytes, bo: str = "<", utf8: bool = False) -> bytes:
    marker = b"\x0e" if utf8 else struct.pack(bo + "H", 0x0E)
    return marker + struct.pack(bo + "HHH", group, kind, len(params)) + params


def tag_close(group: int, kind: int, bo: str = "<", utf8: bool = False) -> bytes:
    marker = b"\x0f" if utf8 else struct.pack(bo + "H", 0x0F)
    return marker + struct.pack(bo + "HH", group, kind)


LABELS = ["Title", "Body", "Footer"]
ATR1_DATA = b"\x03\x00\x00\x00\x00\x00\x00\x00"
TSY1_DATA = b"\x01\x00\x00\x00\x02\x00\x00\x00\x03\x00\x00\x00"


def sample_entries(bo: str = "<", utf8: bool = False) -> list[bytes]:
    enc = (lambda s: s.encode("utf-8")) if utf8 else (lambda s: utf16(s, bo))
    return [
        enc("Hello\x00"),
        enc("Press ")
        + tag_open(0, 3, b"\x01\x00\x02\x00", bo, utf8)
        + enc("A")
        + tag_close(0, 3, bo, utf8)
        + enc("!\x00"),
        b"",
    ]


def sample_file(bo: str = "<", utf8: bool = False) -> bytes:
    return build_file(
        [
            section_bytes(b"LBL1", lbl1_payload(LABELS, 4, bo), bo),
            section_bytes(b"NLI1", nli1_payload([(100, 0), (200, 2)], bo), bo),
            section_bytes(b"ATR1", ATR1_DATA, bo),
            section_bytes(b"TSY1", TSY1_DATA, bo),
            section_bytes(b"TXT2", txt2_payload(sample_entries(bo, utf8), bo), bo),
        ],
        bo,
        0 if utf8 else 1,
    )


def walk_sections(data: bytes, bo: str = "<") -> list[tuple[int, bytes, int]]:
    """(offset, tag, payload_size) for each section in a serialized file."""
    out = []
    pos = 0x20
    while pos < len(data):
        tag = data[pos:pos + 4]
        size = struct.unpack_from(bo + "I", data, pos + 4)[0]
        out.append((pos, tag, size))
        pos += 16 + size
        pos += (16 - pos % 16) % 16
    return out


@pytest.fixture
def sample_bytes():
    return sample_file()


@pytest.fixture
def sample(sample_bytes):
    from msbt import Msbt

    return Msbt.from_bytes(sample_bytes)


@pytest.fixture
def sample_path(tmp_path, sample_bytes):
    path = tmp_path / "sample.msbt"
    path.write_bytes(sample_bytes)
    return path
