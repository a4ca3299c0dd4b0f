"""
Byte-order aware readers and writers.

The byte order is chosen once, when the header's BOM is read, and every
later integer in the file goes through the same BinaryReader/BinaryWriter.
CountingWriter tracks how many bytes have been written so far; section
padding is computed from that count, not from the sink's position.
"""

from __future__ import annotations

import struct
from typing import BinaryIO

from msbt._format.spec import PADDING_LENGTH
from msbt.errors import TruncatedDataError
from msbt.header import ByteOrder


class BinaryReader:
    """Fixed-width integer reads over a seekable stream."""

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE) -> None:
        self.stream = stream
        self.byte_order = byte_order

    def tell(self) -> int:
        return self.stream.tell()

    def seek(self, offset: int, whence: int = 0) -> int:
        return self.stream.seek(offset, whence)

    def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes (short at end of stream)."""
        return self.stream.read(size)

    def read_exact(self, size: int) -> bytes:
        data = self.stream.read(size)
        if len(data) != size:
            raise TruncatedDataError(
                f"Unexpected end of data at offset {self.stream.tell()}: "
                f"wanted {size} bytes, got {len(data)}"
            )
        return data

    def _unpack(self, fmt: str, size: int) -> int:
        return struct.unpack(self.byte_order.value + fmt, self.read_exact(size))[0]

    def read_u8(self) -> int:
        return self.read_exact(1)[0]

    def read_u16(self) -> int:
        return self._unpack("H", 2)

    def read_u32(self) -> int:
        return self._unpack("I", 4)


class BinaryWriter:
    """Fixed-width integer writes with an explicit byte order."""

    def __init__(self, stream: BinaryIO, byte_order: ByteOrder = ByteOrder.LITTLE) -> None:
        self.stream = stream
        self.byte_order = byte_order

    def write_u8(self, v: int) -> None:
        self.stream.write(struct.pack("B", v))

    def write_u16(self, v: int) -> None:
        self.stream.write(struct.pack(self.byte_order.value + "H", v))

    def write_u32(self, v: int) -> None:
        self.stream.write(struct.pack(self.byte_order.value + "I", v))

    def write_bytes(self, data: bytes) -> None:
        self.stream.write(data)


class CountingWriter:
    """Write-through wrapper that reports the bytes written so far."""

    def __init__(self, stream: BinaryIO) -> None:
        self._stream = stream
        self.written = 0

    def write(self, data: bytes) -> int:
        self._stream.write(data)
        self.written += len(data)
        return len(data)

    def flush(self) -> None:
        self._stream.flush()


def pack_u16(v: int, byte_order: ByteOrder) -> bytes:
    return struct.pack(byte_order.value + "H", v)


def pack_u32(v: int, byte_order: ByteOrder) -> bytes:
    return struct.pack(byte_order.value + "I", v)


def unpack_u16(data: bytes, offset: int, byte_order: ByteOrder) -> int:
    return struct.unpack_from(byte_order.value + "H", data, offset)[0]


def unpack_u32(data: bytes, offset: int, byte_order: ByteOrder) -> int:
    return struct.unpack_from(byte_order.value + "I", data, offset)[0]


def padding_for(offset: int) -> int:
    """Bytes needed to bring ``offset`` to the next 16-byte boundary."""
    return (PADDING_LENGTH - offset % PADDING_LENGTH) % PADDING_LENGTH
