"""
Msbt: the container aggregate.

Owns the header, the on-disk section order, at most one of each section
kind, and the pad byte used to fill alignment gaps.

Usage:
    msbt = Msbt.read("Common.msbt")
    with msbt.txt2_mut() as txt2:
        txt2.set_text(msbt.lbl1.index_of("Title"), "Hello")
    msbt.write("Common.msbt")
"""

from __future__ import annotations

import io
import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, Iterable, Union

from msbt._format.stream import padding_for
from msbt.header import Header
from msbt.sections import Ato1, Atr1, Lbl1, Nli1, SectionTag, Tsy1, check_label_name
from msbt.txt2 import Element, Txt2, to_elements
from msbt.updater import Updater

log = logging.getLogger(__name__)

AnySection = Union[Lbl1, Nli1, Ato1, Atr1, Tsy1, Txt2]


class Msbt:
    """Parsed (or built) message container."""

    def __init__(self, header: Header | None = None, pad_byte: int = 0) -> None:
        self.header = header or Header()
        self.pad_byte = pad_byte
        self._section_order: list[SectionTag] = []
        self._sections: dict[SectionTag, AnySection] = {}

    # ----- read / write -----

    @classmethod
    def from_reader(cls, stream: BinaryIO) -> Msbt:
        """Parse a container from a seekable binary stream."""
        from msbt._format.reader import MsbtReader

        return MsbtReader(stream).read()

    @classmethod
    def from_bytes(cls, data: bytes) -> Msbt:
        return cls.from_reader(io.BytesIO(data))

    @classmethod
    def read(cls, path: str | Path) -> Msbt:
        with open(path, "rb") as f:
            return cls.from_reader(f)

    def write_to(self, stream: BinaryIO) -> int:
        """Serialize to ``stream``. Returns bytes written."""
        from msbt._format.writer import MsbtWriter

        return MsbtWriter(self, stream).write()

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write_to(buf)
        return buf.getvalue()

    def write(self, path: str | Path) -> int:
        """Write to a file atomically. Returns bytes written."""
        data = self.to_bytes()
        path = str(path)
        dir_name = os.path.dirname(os.path.abspath(path)) or "."
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix=".msbt.tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        return len(data)

    # ----- section access -----

    @property
    def section_order(self) -> tuple[SectionTag, ...]:
        return tuple(self._section_order)

    def section(self, tag: SectionTag) -> AnySection | None:
        return self._sections.get(tag)

    @property
    def lbl1(self) -> Lbl1 | None:
        return self._sections.get(SectionTag.LBL1)

    @property
    def nli1(self) -> Nli1 | None:
        return self._sections.get(SectionTag.NLI1)

    @property
    def ato1(self) -> Ato1 | None:
        return self._sections.get(SectionTag.ATO1)

    @property
    def atr1(self) -> Atr1 | None:
        return self._sections.get(SectionTag.ATR1)

    @property
    def tsy1(self) -> Tsy1 | None:
        return self._sections.get(SectionTag.TSY1)

    @property
    def txt2(self) -> Txt2 | None:
        return self._sections.get(SectionTag.TXT2)

    def _mut(self, tag: SectionTag) -> Updater | None:
        section = self._sections.get(tag)
        if section is None:
            return None
        return Updater(section, on_release=self.update)

    def lbl1_mut(self) -> Updater[Lbl1] | None:
        return self._mut(SectionTag.LBL1)

    def nli1_mut(self) -> Updater[Nli1] | None:
        return self._mut(SectionTag.NLI1)

    def ato1_mut(self) -> Updater[Ato1] | None:
        return self._mut(SectionTag.ATO1)

    def atr1_mut(self) -> Updater[Atr1] | None:
        return self._mut(SectionTag.ATR1)

    def tsy1_mut(self) -> Updater[Tsy1] | None:
        return self._mut(SectionTag.TSY1)

    def txt2_mut(self) -> Updater[Txt2] | None:
        return self._mut(SectionTag.TXT2)

    # ----- structural edits -----

    def _attach(self, section: AnySection) -> None:
        """Record a freshly parsed section in file order (reader only)."""
        self._sections[section.TAG] = section
        self._section_order.append(section.TAG)

    def set_section(self, section: AnySection) -> None:
        """Add or replace a section. New kinds go to the end of the order."""
        tag = section.TAG
        if isinstance(section, Txt2):
            section.encoding = self.header.encoding
            section.byte_order = self.header.byte_order
        if tag not in self._sections:
            self._section_order.append(tag)
        self._sections[tag] = section
        section.update()
        self.update()

    def remove_section(self, tag: SectionTag) -> AnySection:
        section = self._sections.pop(tag)
        self._section_order.remove(tag)
        self.update()
        return section

    def reorder(self, order: Iterable[SectionTag]) -> None:
        """Change the on-disk section order. Must name every present section once."""
        order = list(order)
        if sorted(order, key=lambda t: t.value) != sorted(self._sections, key=lambda t: t.value):
            raise ValueError(
                f"Section order {[t.name for t in order]} does not match present "
                f"sections {[t.name for t in self._section_order]}"
            )
        self._section_order = order
        self.update()

    # ----- message-level edits (keep indexes aligned across sections) -----

    def add_message(
        self,
        label: str | None,
        elements: Iterable[Element] | str,
        global_id: int | None = None,
    ) -> int:
        """Append a string, its label and optional global id. Returns the index.

        Everything is checked before any section changes.
        """
        if self.txt2 is None:
            raise ValueError("Container has no TXT2 section")
        index = len(self.txt2)
        elements = to_elements(elements)
        if self.lbl1 is not None:
            if label is None:
                raise ValueError("Container has a label table; a label is required")
            if len(self.lbl1) != index:
                raise ValueError(
                    f"Label count {len(self.lbl1)} does not match string count {index}"
                )
            check_label_name(label)
        elif label is not None:
            raise ValueError(f"Container has no label table for label {label!r}")
        if global_id is not None and self.nli1 is not None and global_id in self.nli1:
            raise ValueError(f"Duplicate global id {global_id}")

        if self.lbl1 is not None:
            with self.lbl1_mut() as lbl1:
                lbl1.append(label)
        with self.txt2_mut() as txt2:
            txt2.append(elements)
        if global_id is not None:
            if self.nli1 is None:
                self.set_section(Nli1())
            with self.nli1_mut() as nli1:
                nli1.set(global_id, index)
        return index

    def remove_message(self, index: int) -> None:
        """Remove a string everywhere; later indexes shift down by one."""
        if self.txt2 is not None:
            with self.txt2_mut() as txt2:
                txt2.remove(index)
        if self.lbl1 is not None:
            with self.lbl1_mut() as lbl1:
                lbl1.remove(index)
        if self.nli1 is not None:
            with self.nli1_mut() as nli1:
                for global_id, target in nli1.items():
                    if target == index:
                        nli1.remove(global_id)
                    elif target > index:
                        nli1.set(global_id, target - 1)

    def messages(self) -> list[tuple[str | None, list[Element]]]:
        """(label, elements) for every string, in index order."""
        if self.txt2 is None:
            return []
        names = self.lbl1.names() if self.lbl1 is not None else []
        return [
            (names[i] if i < len(names) else None, entry)
            for i, entry in enumerate(self.txt2.entries)
        ]

    # ----- derived state -----

    def calc_size(self) -> int:
        total = self.header.calc_size()
        for tag in self._section_order:
            size = self._sections[tag].calc_size()
            total += size + padding_for(size)
        return total

    def update(self) -> None:
        """Refresh header fields derived from the rest of the container."""
        self.header.section_count = len(self._section_order)
        self.header.file_size = self.calc_size()
