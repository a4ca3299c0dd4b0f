"""
MsgStdBn container format: on-disk layout constants.

Layout:
    header (0x20 bytes)
        magic "MsgStdBn" (8) | BOM (2) | unknown_1 (2) | encoding (1) |
        unknown_2 (1) | section_count (2) | unknown_3 (2) | file_size (4) |
        padding (10)
    sections, each:
        tag (4) | payload_size (4) | reserved (8) | payload |
        pad bytes up to the next 16-byte file offset

All multi-byte integers use the byte order selected by the BOM.

TXT2 entries embed tags as reserved code units inside the text stream:
    0x0E group (u16) kind (u16) param_size (u16) params (param_size bytes)
    0x0F group (u16) kind (u16)
"""

HEADER_MAGIC = b"MsgStdBn"
HEADER_SIZE = 0x20
HEADER_PADDING_SIZE = 10

BOM_BIG = b"\xfe\xff"
BOM_LITTLE = b"\xff\xfe"

ENCODING_UTF8 = 0x00
ENCODING_UTF16 = 0x01

# Section envelope: tag + payload size + reserved
SECTION_HEADER_SIZE = 16
SECTION_RESERVED_SIZE = 8
SECTION_TAG_SIZE = 4

# Sections (and the header) start on 16-byte file offsets
PADDING_LENGTH = 16

TAG_LBL1 = b"LBL1"
TAG_NLI1 = b"NLI1"
TAG_ATO1 = b"ATO1"
TAG_ATR1 = b"ATR1"
TAG_TSY1 = b"TSY1"
TAG_TXT2 = b"TXT2"

SECTION_TAGS = frozenset({TAG_LBL1, TAG_NLI1, TAG_ATO1, TAG_ATR1, TAG_TSY1, TAG_TXT2})

# LBL1 hash table
LABEL_HASH_MULTIPLIER = 0x492
LABEL_MAX_LENGTH = 255
LABEL_RECORD_OVERHEAD = 5  # length byte + u32 index
GROUP_RECORD_SIZE = 8  # label_count + offset
DEFAULT_GROUP_COUNT = 101

# TXT2 tag markers
TAG_OPEN = 0x0E
TAG_CLOSE = 0x0F

# Fill value for containers built from scratch
DEFAULT_PAD_BYTE = 0xAB
