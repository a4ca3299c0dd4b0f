"""
Section models: envelope, LBL1 label hash table, NLI1 global ids, and the
opaque ATO1/ATR1/TSY1 blobs.

The label table keeps two structures: ``labels``, a dense list where a
label's position is its index (the authoritative content), and ``groups``,
the on-disk bucket list, which is derived metadata. ``Lbl1.update()``
regenerates the buckets from the labels; nothing else touches them.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Iterator

from msbt._format.spec import (
    DEFAULT_GROUP_COUNT, GROUP_RECORD_SIZE, LABEL_HASH_MULTIPLIER,
    LABEL_MAX_LENGTH, LABEL_RECORD_OVERHEAD, SECTION_HEADER_SIZE,
    SECTION_RESERVED_SIZE, TAG_ATO1, TAG_ATR1, TAG_LBL1, TAG_NLI1,
    TAG_TSY1, TAG_TXT2,
)
from msbt.errors import InvalidLabelError

log = logging.getLogger(__name__)


class SectionTag(enum.Enum):
    LBL1 = TAG_LBL1
    NLI1 = TAG_NLI1
    ATO1 = TAG_ATO1
    ATR1 = TAG_ATR1
    TSY1 = TAG_TSY1
    TXT2 = TAG_TXT2


@dataclass
class Section:
    """Generic section envelope. ``size`` is refreshed on update."""

    tag: bytes
    size: int = 0
    reserved: bytes = field(default=bytes(SECTION_RESERVED_SIZE))

    @staticmethod
    def calc_size() -> int:
        return SECTION_HEADER_SIZE


# ---------------------------------------------------------------------------
# LBL1
# ---------------------------------------------------------------------------

def check_label_name(name: str) -> None:
    """Raise InvalidLabelError unless ``name`` fits a label record."""
    size = len(name.encode("utf-8"))
    if size > LABEL_MAX_LENGTH:
        raise InvalidLabelError(
            f"Label {name!r} is {size} bytes (max {LABEL_MAX_LENGTH})"
        )


def label_hash(name: str | bytes) -> int:
    """32-bit name hash used to place labels in buckets."""
    if isinstance(name, str):
        name = name.encode("utf-8")
    h = 0
    for b in name:
        h = (h * LABEL_HASH_MULTIPLIER + b) & 0xFFFFFFFF
    return h


@dataclass
class Group:
    """One hash bucket: how many labels it holds and where they start.

    ``offset`` is measured from the start of the LBL1 payload.
    """

    label_count: int = 0
    offset: int = 0


@dataclass
class Label:
    name: str

    @property
    def encoded(self) -> bytes:
        return self.name.encode("utf-8")

    def calc_size(self) -> int:
        return LABEL_RECORD_OVERHEAD + len(self.encoded)


class Lbl1:
    """Label hash table."""

    TAG = SectionTag.LBL1

    def __init__(
        self,
        labels: list[Label] | None = None,
        groups: list[Group] | None = None,
        section: Section | None = None,
    ) -> None:
        self.section = section or Section(TAG_LBL1)
        self.groups: list[Group] = groups if groups is not None else []
        self.labels: list[Label] = labels if labels is not None else []

    def __len__(self) -> int:
        return len(self.labels)

    def __iter__(self) -> Iterator[Label]:
        return iter(self.labels)

    def checksum(self, label: Label | str) -> int:
        """Bucket number of ``label`` for the current group count."""
        if not self.groups:
            return 0
        name = label.name if isinstance(label, Label) else label
        return label_hash(name) % len(self.groups)

    def sorted_labels(self) -> list[tuple[int, Label]]:
        """(index, label) pairs in on-disk order: stable sort by checksum."""
        return sorted(enumerate(self.labels), key=lambda pair: self.checksum(pair[1]))

    def names(self) -> list[str]:
        return [label.name for label in self.labels]

    def index_of(self, name: str) -> int | None:
        for i, label in enumerate(self.labels):
            if label.name == name:
                return i
        return None

    def get(self, index: int) -> Label | None:
        if 0 <= index < len(self.labels):
            return self.labels[index]
        return None

    def append(self, name: str) -> int:
        """Add a label at the next free index. Returns the index."""
        check_label_name(name)
        self.labels.append(Label(name))
        return len(self.labels) - 1

    def rename(self, index: int, name: str) -> None:
        check_label_name(name)
        self.labels[index].name = name

    def remove(self, index: int) -> Label:
        """Remove the label at ``index``; later labels move down by one."""
        return self.labels.pop(index)

    def calc_payload_size(self) -> int:
        return (
            4
            + GROUP_RECORD_SIZE * len(self.groups)
            + sum(label.calc_size() for label in self.labels)
        )

    def calc_size(self) -> int:
        return Section.calc_size() + self.calc_payload_size()

    def update(self) -> None:
        """Rebuild bucket counts and offsets from the current labels."""
        for label in self.labels:
            check_label_name(label.name)
        if not self.groups and self.labels:
            self.groups = [Group() for _ in range(DEFAULT_GROUP_COUNT)]

        counts = [0] * len(self.groups)
        sizes = [0] * len(self.groups)
        for label in self.labels:
            bucket = self.checksum(label)
            counts[bucket] += 1
            sizes[bucket] += label.calc_size()

        offset = 4 + GROUP_RECORD_SIZE * len(self.groups)
        for group, count, size in zip(self.groups, counts, sizes):
            group.label_count = count
            group.offset = offset
            offset += size

        self.section.size = self.calc_payload_size()


# ---------------------------------------------------------------------------
# NLI1
# ---------------------------------------------------------------------------

class Nli1:
    """Global numeric id -> message index table.

    Always iterated in ascending id order, so a write reorders entries that
    were not id-ascending on disk.
    """

    TAG = SectionTag.NLI1

    def __init__(
        self,
        global_ids: dict[int, int] | None = None,
        section: Section | None = None,
        has_count: bool | None = None,
    ) -> None:
        self.section = section or Section(TAG_NLI1)
        self._ids: dict[int, int] = dict(global_ids or {})
        if has_count is None:
            has_count = bool(self._ids) or self.section.size > 0
        self.has_count = has_count

    def __len__(self) -> int:
        return len(self._ids)

    def __contains__(self, global_id: int) -> bool:
        return global_id in self._ids

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._ids))

    def items(self) -> list[tuple[int, int]]:
        """(id, index) pairs in ascending id order."""
        return sorted(self._ids.items())

    def get(self, global_id: int) -> int | None:
        return self._ids.get(global_id)

    def set(self, global_id: int, index: int) -> None:
        self._ids[global_id] = index

    def remove(self, global_id: int) -> int:
        return self._ids.pop(global_id)

    def calc_payload_size(self) -> int:
        if not self._ids and not self.has_count:
            return 0
        return 4 + 8 * len(self._ids)

    def calc_size(self) -> int:
        return Section.calc_size() + self.calc_payload_size()

    def update(self) -> None:
        if self._ids:
            self.has_count = True
        self.section.size = self.calc_payload_size()


# ---------------------------------------------------------------------------
# Opaque sections
# ---------------------------------------------------------------------------

class OpaqueSection:
    """Payload kept verbatim; nothing inside is interpreted."""

    TAG: SectionTag

    def __init__(self, data: bytes = b"", section: Section | None = None) -> None:
        self.section = section or Section(self.TAG.value, len(data))
        self.data = bytes(data)

    def calc_payload_size(self) -> int:
        return len(self.data)

    def calc_size(self) -> int:
        return Section.calc_size() + self.calc_payload_size()

    def update(self) -> None:
        self.section.size = len(self.data)


class Ato1(OpaqueSection):
    TAG = SectionTag.ATO1


class Atr1(OpaqueSection):
    TAG = SectionTag.ATR1


class Tsy1(OpaqueSection):
    TAG = SectionTag.TSY1
