"""
Internal container format engine for MsgStdBn files.

Format: "MsgStdBn" magic, 0x20-byte header, then 16-byte aligned sections
(LBL1, NLI1, ATO1, ATR1, TSY1, TXT2) in any order.

Reader and writer live in ``msbt._format.reader`` / ``msbt._format.writer``
and are reached through ``msbt.Msbt``; this package only exposes the layout
constants so it can be imported from anywhere in ``msbt``.
"""

from msbt._format.spec import HEADER_MAGIC, HEADER_SIZE, PADDING_LENGTH, SECTION_TAGS
