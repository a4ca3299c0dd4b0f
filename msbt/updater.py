"""
Scoped mutation handle.

Sections with derived fields (bucket layout, payload sizes) are edited
through an Updater. Leaving the ``with`` block, or calling ``release()``,
runs the section's ``update()`` and then the container's, so the next read
or write sees consistent counts, sizes and buckets:

    with msbt.lbl1_mut() as lbl1:
        lbl1.rename(0, "Title")

Edits made on a section object outside a handle are not recomputed until
some later handle is released on it.
"""

from __future__ import annotations

from typing import Callable, Generic, Protocol, TypeVar


class Updates(Protocol):
    def update(self) -> None: ...


T = TypeVar("T", bound=Updates)


class Updater(Generic[T]):
    """Exclusive, single-use write access to one section."""

    def __init__(self, section: T, on_release: Callable[[], None] | None = None) -> None:
        self._section = section
        self._on_release = on_release
        self._released = False

    @property
    def section(self) -> T:
        if self._released:
            raise RuntimeError("Updater already released")
        return self._section

    def release(self) -> None:
        """Recompute derived fields. Safe to call more than once.

        If ``update()`` raises, the handle stays open so the caller can fix
        the section and release again.
        """
        if self._released:
            return
        self._section.update()
        if self._on_release is not None:
            self._on_release()
        self._released = True

    @property
    def released(self) -> bool:
        return self._released

    def __enter__(self) -> T:
        return self.section

    def __exit__(self, *args) -> None:
        self.release()
