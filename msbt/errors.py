"""
Error taxonomy for the container codec.

Every error is fatal to the current read or write: a malformed file yields
no container at all. OS-level I/O failures are not wrapped and surface as
``OSError`` from the underlying stream.
"""

from __future__ import annotations


class MsbtError(Exception):
    """Base class for container format errors."""


class TruncatedDataError(MsbtError):
    """The stream ended inside a structure."""


class InvalidMagicError(MsbtError):
    """File magic or section tag did not match what the parser expected."""

    def __init__(self, expected: bytes, found: bytes) -> None:
        self.expected = expected
        self.found = found
        super().__init__(f"Bad magic: expected {expected!r}, got {found!r}")


class InvalidBomError(MsbtError):
    """Byte-order mark is neither FE FF nor FF FE."""

    def __init__(self, bom: bytes) -> None:
        self.bom = bom
        super().__init__(f"Invalid byte-order mark: {bom.hex(' ')}")


class InvalidEncodingError(MsbtError):
    """Encoding selector byte is not one of the two legal values."""

    def __init__(self, value: int) -> None:
        self.value = value
        super().__init__(f"Invalid encoding byte: 0x{value:02x}")


class InvalidLabelError(MsbtError):
    """LBL1 contents are malformed (undecodable name, bad index)."""


class InvalidTextError(MsbtError):
    """A TXT2 entry cannot be split into text and tag elements."""


class UnknownSectionError(MsbtError):
    """Section tag is not one of the six known kinds."""

    def __init__(self, tag: bytes) -> None:
        self.tag = tag
        super().__init__(f"Unknown section tag: {tag!r}")
