"""
File header: magic, byte order, text encoding and reserved fields.

The reserved fields are kept byte-for-byte so an unmodified file writes back
identically. ``file_size`` and ``section_count`` are refreshed from the
container before every write and are never trusted from the read path.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from msbt._format.spec import (
    BOM_BIG, BOM_LITTLE, ENCODING_UTF8, ENCODING_UTF16, HEADER_MAGIC,
    HEADER_PADDING_SIZE, HEADER_SIZE,
)
from msbt.errors import InvalidBomError, InvalidEncodingError


class ByteOrder(enum.Enum):
    """Integer byte order; the value is the ``struct`` prefix."""

    BIG = ">"
    LITTLE = "<"

    @classmethod
    def from_bom(cls, bom: bytes) -> ByteOrder:
        if bom == BOM_BIG:
            return cls.BIG
        if bom == BOM_LITTLE:
            return cls.LITTLE
        raise InvalidBomError(bom)

    @property
    def bom(self) -> bytes:
        return BOM_BIG if self is ByteOrder.BIG else BOM_LITTLE


class Encoding(enum.IntEnum):
    """Text encoding selector for TXT2 string data."""

    UTF8 = ENCODING_UTF8
    UTF16 = ENCODING_UTF16

    @classmethod
    def from_byte(cls, value: int) -> Encoding:
        try:
            return cls(value)
        except ValueError:
            raise InvalidEncodingError(value) from None

    def codec(self, byte_order: ByteOrder) -> str:
        """Python codec name for this encoding in the given byte order."""
        if self is Encoding.UTF8:
            return "utf-8"
        return "utf-16-be" if byte_order is ByteOrder.BIG else "utf-16-le"

    @property
    def unit_size(self) -> int:
        return 1 if self is Encoding.UTF8 else 2

    @property
    def errors(self) -> str:
        """Codec error handler that keeps undecodable input round-trippable."""
        return "surrogateescape" if self is Encoding.UTF8 else "surrogatepass"


@dataclass
class Header:
    """Parsed file header."""

    byte_order: ByteOrder = ByteOrder.LITTLE
    encoding: Encoding = Encoding.UTF16
    unknown_1: int = 0
    unknown_2: int = 0
    section_count: int = 0
    unknown_3: int = 0
    file_size: int = HEADER_SIZE
    padding: bytes = field(default=bytes(HEADER_PADDING_SIZE))
    magic: bytes = field(default=HEADER_MAGIC, init=False)

    @staticmethod
    def calc_size() -> int:
        return HEADER_SIZE
