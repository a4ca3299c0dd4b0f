"""
msbt: read, edit and write MsgStdBn message containers.

Architecture:
    Header:   magic "MsgStdBn", byte-order mark, encoding selector
    Sections: LBL1 (label hash table), NLI1 (global ids), ATO1/ATR1/TSY1
              (opaque), TXT2 (strings with inline tags)
    Edits:    scoped Updater handles recompute sizes, counts and buckets
"""

__version__ = "0.1.0"

# CLI / config defaults
CONFIG_ENV_VAR = "MSBT_CONFIG"
CONFIG_DEFAULT_PATH = "~/.msbt/config.toml"
DEFAULT_LOG_LEVEL = "WARNING"

from msbt.builder import MsbtBuilder  # noqa: E402
from msbt.container import Msbt  # noqa: E402
from msbt.errors import (  # noqa: E402
    InvalidBomError, InvalidEncodingError, InvalidLabelError, InvalidMagicError,
    InvalidTextError, MsbtError, TruncatedDataError, UnknownSectionError,
)
from msbt.header import ByteOrder, Encoding, Header  # noqa: E402
from msbt.sections import (  # noqa: E402
    Ato1, Atr1, Group, Label, Lbl1, Nli1, Section, SectionTag, Tsy1, label_hash,
)
from msbt.txt2 import Tag, TagEnd, Text, Txt2  # noqa: E402
from msbt.updater import Updater  # noqa: E402
