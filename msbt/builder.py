"""
MsbtBuilder: assemble a container without a source file.

Usage:
    msbt = (
        MsbtBuilder(encoding=Encoding.UTF16)
        .message("Title", "Hello")
        .message("Body", [Text("Press "), Tag(0, 3, b"\\x01\\x00"), Text("A\\x00")])
        .build()
    )
"""

from __future__ import annotations

from typing import Iterable

from msbt._format.spec import DEFAULT_GROUP_COUNT, DEFAULT_PAD_BYTE
from msbt.container import AnySection, Msbt
from msbt.header import ByteOrder, Encoding, Header
from msbt.sections import (
    Ato1, Atr1, Group, Label, Lbl1, Nli1, SectionTag, Tsy1, check_label_name,
)
from msbt.txt2 import Element, Txt2, to_elements

DEFAULT_ORDER = (
    SectionTag.LBL1, SectionTag.NLI1, SectionTag.ATO1,
    SectionTag.ATR1, SectionTag.TSY1, SectionTag.TXT2,
)

_OPAQUE = {SectionTag.ATO1: Ato1, SectionTag.ATR1: Atr1, SectionTag.TSY1: Tsy1}


class MsbtBuilder:

    def __init__(
        self,
        encoding: Encoding = Encoding.UTF16,
        byte_order: ByteOrder = ByteOrder.LITTLE,
        pad_byte: int = DEFAULT_PAD_BYTE,
        group_count: int = DEFAULT_GROUP_COUNT,
        terminate: bool = True,
    ) -> None:
        self.encoding = encoding
        self.byte_order = byte_order
        self.pad_byte = pad_byte
        self.group_count = group_count
        self.terminate = terminate
        self._labels: list[str | None] = []
        self._entries: list[list[Element]] = []
        self._global_ids: dict[int, int] = {}
        self._opaque: dict[SectionTag, bytes] = {}
        self._order: list[SectionTag] | None = None

    def message(
        self,
        label: str | None,
        text: str | Iterable[Element],
        global_id: int | None = None,
    ) -> MsbtBuilder:
        """Add a string. Plain text gets a NUL terminator when ``terminate`` is set."""
        if isinstance(text, str) and self.terminate and not text.endswith("\x00"):
            text += "\x00"
        elements = to_elements(text)
        if label is not None:
            check_label_name(label)
        if global_id is not None:
            if global_id in self._global_ids:
                raise ValueError(f"Duplicate global id {global_id}")
            self._global_ids[global_id] = len(self._entries)
        self._labels.append(label)
        self._entries.append(elements)
        return self

    def opaque(self, tag: SectionTag, data: bytes) -> MsbtBuilder:
        """Attach an ATO1, ATR1 or TSY1 payload."""
        if tag not in _OPAQUE:
            raise ValueError(f"{tag.name} is not an opaque section")
        self._opaque[tag] = bytes(data)
        return self

    def order(self, *tags: SectionTag) -> MsbtBuilder:
        self._order = list(tags)
        return self

    def _sections(self) -> dict[SectionTag, AnySection]:
        named = [label is not None for label in self._labels]
        if any(named) and not all(named):
            raise ValueError("Either every message has a label or none does")

        sections: dict[SectionTag, AnySection] = {}
        if any(named):
            sections[SectionTag.LBL1] = Lbl1(
                labels=[Label(name) for name in self._labels],
                groups=[Group() for _ in range(self.group_count)],
            )
        if self._global_ids:
            sections[SectionTag.NLI1] = Nli1(self._global_ids)
        for tag, data in self._opaque.items():
            sections[tag] = _OPAQUE[tag](data)
        sections[SectionTag.TXT2] = Txt2(
            [list(entry) for entry in self._entries],
            encoding=self.encoding,
            byte_order=self.byte_order,
        )
        return sections

    def build(self) -> Msbt:
        sections = self._sections()
        if self._order is None:
            order = [tag for tag in DEFAULT_ORDER if tag in sections]
        else:
            order = self._order
            missing = set(sections) - set(order)
            if missing:
                raise ValueError(
                    f"Section order omits {sorted(t.name for t in missing)}"
                )
            for tag in order:
                if tag not in sections:
                    sections[tag] = self._empty(tag)

        msbt = Msbt(Header(byte_order=self.byte_order, encoding=self.encoding), self.pad_byte)
        for tag in order:
            msbt.set_section(sections[tag])
        return msbt

    def _empty(self, tag: SectionTag) -> AnySection:
        if tag is SectionTag.LBL1:
            return Lbl1(groups=[Group() for _ in range(self.group_count)])
        if tag is SectionTag.NLI1:
            return Nli1()
        return _OPAQUE[tag]()
