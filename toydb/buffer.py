"""Buffer pool of page frames with LRU or MRU replacement."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, ClassVar

from .errors import ErrorCode, PFError
from .hashtable import PageTable

PAGE_SIZE = 4096
PAGE_LIST_END = -1
PAGE_USED = -2
DEFAULT_CAPACITY = 20

_NEXTFREE = struct.Struct("<i")


class Strategy(IntEnum):
    """Page replacement strategy."""

    LRU = 0
    MRU = 1


@dataclass
class Stats:
    """Page access counters."""

    logical_reads: int = 0
    physical_reads: int = 0
    physical_writes: int = 0

    def reset(self) -> None:
        """Set every counter back to zero."""
        self.logical_reads = 0
        self.physical_reads = 0
        self.physical_writes = 0

    def as_csv(self) -> str:
        """Return the counters as 'logical,physical_reads,physical_writes'."""
        return f"{self.logical_reads},{self.physical_reads},{self.physical_writes}"


@dataclass
class FilePage:
    """A page as stored on disk: the free-list link followed by the data."""

    SIZE: ClassVar[int] = _NEXTFREE.size + PAGE_SIZE

    nextfree: int = PAGE_LIST_END
    pagebuf: bytearray = field(default_factory=lambda: bytearray(PAGE_SIZE))

    def to_bytes(self) -> bytes:
        """Serialise the page to its on-disk form."""
        return _NEXTFREE.pack(self.nextfree) + bytes(self.pagebuf)

    @classmethod
    def from_bytes(cls, data: bytes) -> FilePage:
        """Build a page from its on-disk form."""
        if len(data) != cls.SIZE:
            raise ValueError(f"page data must be {cls.SIZE} bytes, got {len(data)}")
        (nextfree,) = _NEXTFREE.unpack_from(data)
        return cls(nextfree, bytearray(data[_NEXTFREE.size:]))

    def load(self, data: bytes) -> None:
        """Overwrite this page in place with on-disk data."""
        other = FilePage.from_bytes(data)
        self.nextfree = other.nextfree
        self.pagebuf[:] = other.pagebuf


@dataclass(eq=False)
class Frame:
    """A buffer slot holding one page of one file."""

    fd: int = -1
    page: int = -1
    fixed: bool = False
    dirty: bool = False
    fpage: FilePage = field(default_factory=FilePage)


PageIO = Callable[[int, int, FilePage], None]


class BufferManager:
    """Fixed-capacity pool of frames; the front of the list is most recently used."""

    def __init__(
        self,
        page_table: PageTable | None = None,
        stats: Stats | None = None,
        capacity: int = DEFAULT_CAPACITY,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.page_table = page_table if page_table is not None else PageTable()
        self.stats = stats if stats is not None else Stats()
        self.capacity = capacity
        self.strategy = Strategy.LRU
        self._frames: list[Frame] = []

    def set_strategy(self, strategy: int) -> None:
        """Choose the replacement strategy used when the pool is full."""
        self.strategy = Strategy(strategy)

    def _move_to_head(self, frame: Frame) -> None:
        if self._frames and self._frames[0] is frame:
            return
        self._frames.remove(frame)
        self._frames.insert(0, frame)

    def _find_victim(self) -> Frame | None:
        ordered = reversed(self._frames) if self.strategy is Strategy.LRU else iter(self._frames)
        return next((frame for frame in ordered if not frame.fixed), None)

    def _take_frame(self, write: PageIO) -> Frame:
        """Return a blank frame at the head, evicting one if the pool is full."""
        if len(self._frames) < self.capacity:
            frame = Frame()
            self._frames.insert(0, frame)
            return frame

        victim = self._find_victim()
        if victim is None:
            raise PFError(ErrorCode.NOBUF)
        if victim.dirty:
            write(victim.fd, victim.page, victim.fpage)
            victim.dirty = False
        self.page_table.delete(victim.fd, victim.page)
        self._frames.remove(victim)
        frame = Frame()
        self._frames.insert(0, frame)
        return frame

    def _discard(self, frame: Frame) -> None:
        self._frames.remove(frame)

    def get(self, fd: int, pagenum: int, read: PageIO, write: PageIO) -> FilePage:
        """Fix a page in the pool, reading it with `read` if it is not buffered."""
        self.stats.logical_reads += 1
        frame = self.page_table.find(fd, pagenum)
        if frame is not None:
            self._move_to_head(frame)
            if frame.fixed:
                raise PFError(ErrorCode.PAGEFIXED)
            frame.fixed = True
            return frame.fpage

        frame = self._take_frame(write)
        frame.fd, frame.page, frame.fixed, frame.dirty = fd, pagenum, True, False
        try:
            read(fd, pagenum, frame.fpage)
            self.page_table.insert(fd, pagenum, frame)
        except Exception:
            self._discard(frame)
            raise
        return frame.fpage

    def alloc(self, fd: int, pagenum: int, write: PageIO) -> FilePage:
        """Fix a fresh frame for a page that is not yet on disk."""
        if self.page_table.find(fd, pagenum) is not None:
            raise PFError(ErrorCode.HASHPAGEEXIST)
        frame = self._take_frame(write)
        frame.fd, frame.page, frame.fixed, frame.dirty = fd, pagenum, True, False
        frame.fpage.nextfree = PAGE_USED
        try:
            self.page_table.insert(fd, pagenum, frame)
        except Exception:
            self._discard(frame)
            raise
        return frame.fpage

    def unfix(self, fd: int, pagenum: int, dirty: bool) -> None:
        """Release a fixed page, marking it dirty if it was modified."""
        frame = self.page_table.find(fd, pagenum)
        if frame is None:
            raise PFError(ErrorCode.HASHNOTFOUND)
        if not frame.fixed:
            raise PFError(ErrorCode.PAGEUNFIXED)
        frame.fixed = False
        if dirty:
            frame.dirty = True

    def mark_used(self, fd: int, pagenum: int) -> None:
        """Mark a buffered page as in use."""
        frame = self.page_table.find(fd, pagenum)
        if frame is None:
            raise PFError(ErrorCode.HASHNOTFOUND)
        frame.fpage.nextfree = PAGE_USED

    def release_file(self, fd: int, write: PageIO) -> None:
        """Write back and drop every frame of a file; no page may be fixed."""
        for frame in list(self._frames):
            if frame.fd != fd:
                continue
            if frame.fixed:
                raise PFError(ErrorCode.PAGEFIXED)
            if frame.dirty:
                write(fd, frame.page, frame.fpage)
                frame.dirty = False
            self.page_table.delete(frame.fd, frame.page)
            self._discard(frame)

    def shutdown(self) -> None:
        """Drop every frame without writing anything back."""
        for frame in self._frames:
            if frame.fd >= 0 and frame.page >= 0:
                try:
                    self.page_table.delete(frame.fd, frame.page)
                except PFError:
                    pass
        self._frames.clear()

    def frames(self) -> list[Frame]:
        """Return the frames from most to least recently used."""
        return list(self._frames)

    def dump(self) -> str:
        """Return a listing of the buffered frames."""
        lines = ["buffer content:", "fd\tpage\tfixed\tdirty\tfpage"]
        for frame in self._frames:
            lines.append(
                f"{frame.fd}\t{frame.page}\t{int(frame.fixed)}\t"
                f"{int(frame.dirty)}\t{id(frame.fpage):#x}"
            )
        return "\n".join(lines) + "\n"

    def __len__(self) -> int:
        return len(self._frames)