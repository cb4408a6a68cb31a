"""Paged files: fixed-size pages behind a shared buffer pool."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator

from .buffer import (
    DEFAULT_CAPACITY,
    PAGE_LIST_END,
    PAGE_USED,
    BufferManager,
    FilePage,
    Stats,
    Strategy,
)
from .errors import ErrorCode, PFError
from .hashtable import DEFAULT_TABLE_SIZE, PageTable

FILE_TABLE_SIZE = 20

_HEADER = struct.Struct("<ii")
HEADER_SIZE = _HEADER.size


@dataclass
class _OpenFile:
    """An entry of the open-file table."""

    name: str
    handle: BinaryIO
    firstfree: int
    numpages: int
    hdr_changed: bool = False


class PagedFileManager:
    """Creates, opens and serves pages of paged files through one buffer pool."""

    def __init__(
        self,
        buffer_count: int = DEFAULT_CAPACITY,
        table_size: int = DEFAULT_TABLE_SIZE,
    ) -> None:
        self.stats = Stats()
        self.page_table = PageTable(table_size)
        self.buffer = BufferManager(self.page_table, self.stats, buffer_count)
        self._files: list[_OpenFile | None] = [None] * FILE_TABLE_SIZE

    # ------------------------------------------------------------------ helpers

    def _entry(self, fd: int) -> _OpenFile:
        if not isinstance(fd, int) or not 0 <= fd < FILE_TABLE_SIZE:
            raise PFError(ErrorCode.FD)
        entry = self._files[fd]
        if entry is None:
            raise PFError(ErrorCode.FD)
        return entry

    @staticmethod
    def _check_pagenum(entry: _OpenFile, pagenum: int) -> None:
        if pagenum < 0 or pagenum >= entry.numpages:
            raise PFError(ErrorCode.INVALIDPAGE)

    def _is_open(self, name: str) -> bool:
        return any(entry is not None and entry.name == name for entry in self._files)

    def _read_page(self, fd: int, pagenum: int, fpage: FilePage) -> None:
        handle = self._files[fd].handle
        try:
            handle.seek(pagenum * FilePage.SIZE + HEADER_SIZE)
            data = handle.read(FilePage.SIZE)
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc
        if len(data) != FilePage.SIZE:
            raise PFError(ErrorCode.INCOMPLETEREAD)
        fpage.load(data)
        self.stats.physical_reads += 1

    def _write_page(self, fd: int, pagenum: int, fpage: FilePage) -> None:
        handle = self._files[fd].handle
        try:
            handle.seek(pagenum * FilePage.SIZE + HEADER_SIZE)
            written = handle.write(fpage.to_bytes())
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc
        if written != FilePage.SIZE:
            raise PFError(ErrorCode.INCOMPLETEWRITE)
        self.stats.physical_writes += 1

    def _get(self, fd: int, pagenum: int) -> FilePage:
        return self.buffer.get(fd, pagenum, self._read_page, self._write_page)

    # ------------------------------------------------------------- file level

    def create_file(self, fname: str | os.PathLike) -> None:
        """Create a new, empty paged file; it must not already exist."""
        try:
            with open(fname, "xb") as handle:
                handle.write(_HEADER.pack(PAGE_LIST_END, 0))
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc

    def destroy_file(self, fname: str | os.PathLike) -> None:
        """Remove a paged file that is not open."""
        if self._is_open(os.fspath(fname)):
            raise PFError(ErrorCode.FILEOPEN)
        try:
            os.unlink(fname)
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc

    def open_file(self, fname: str | os.PathLike) -> int:
        """Open a paged file and return its descriptor; a file may be opened twice."""
        name = os.fspath(fname)
        try:
            fd = self._files.index(None)
        except ValueError:
            raise PFError(ErrorCode.FTABFULL) from None
        try:
            handle = open(name, "r+b")
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc
        try:
            header = handle.read(HEADER_SIZE)
        except OSError as exc:
            handle.close()
            raise PFError(ErrorCode.UNIX) from exc
        if len(header) != HEADER_SIZE:
            handle.close()
            raise PFError(ErrorCode.HDRREAD)
        firstfree, numpages = _HEADER.unpack(header)
        self._files[fd] = _OpenFile(name, handle, firstfree, numpages)
        return fd

    def close_file(self, fd: int) -> None:
        """Flush the file's pages and header and close it; no page may be fixed."""
        entry = self._entry(fd)
        self.buffer.release_file(fd, self._write_page)
        if entry.hdr_changed:
            try:
                entry.handle.seek(0)
                written = entry.handle.write(_HEADER.pack(entry.firstfree, entry.numpages))
            except OSError as exc:
                raise PFError(ErrorCode.UNIX) from exc
            if written != HEADER_SIZE:
                raise PFError(ErrorCode.HDRWRITE)
            entry.hdr_changed = False
        try:
            entry.handle.close()
        except OSError as exc:
            raise PFError(ErrorCode.UNIX) from exc
        self._files[fd] = None

    # ------------------------------------------------------------- page level

    def get_first_page(self, fd: int) -> tuple[int, bytearray]:
        """Fix the first used page and return its number and data."""
        return self.get_next_page(fd, -1)

    def get_next_page(self, fd: int, pagenum: int) -> tuple[int, bytearray]:
        """Fix the first used page after `pagenum`; raise EOF when none is left."""
        entry = self._entry(fd)
        if pagenum < -1 or pagenum >= entry.numpages:
            raise PFError(ErrorCode.INVALIDPAGE)
        for candidate in range(pagenum + 1, entry.numpages):
            fpage = self._get(fd, candidate)
            if fpage.nextfree == PAGE_USED:
                return candidate, fpage.pagebuf
            self.buffer.unfix(fd, candidate, False)
        raise PFError(ErrorCode.EOF)

    def get_this_page(self, fd: int, pagenum: int) -> bytearray:
        """Fix a used page and return its data."""
        entry = self._entry(fd)
        self._check_pagenum(entry, pagenum)
        fpage = self._get(fd, pagenum)
        if fpage.nextfree == PAGE_USED:
            return fpage.pagebuf
        self.buffer.unfix(fd, pagenum, False)
        raise PFError(ErrorCode.INVALIDPAGE)

    def alloc_page(self, fd: int) -> tuple[int, bytearray]:
        """Fix a new page, reusing a disposed one if there is any."""
        entry = self._entry(fd)
        if entry.firstfree != PAGE_LIST_END:
            pagenum = entry.firstfree
            fpage = self._get(fd, pagenum)
            entry.firstfree = fpage.nextfree
            entry.hdr_changed = True
        else:
            pagenum = entry.numpages
            fpage = self.buffer.alloc(fd, pagenum, self._write_page)
            entry.numpages += 1
            entry.hdr_changed = True
            self.buffer.mark_used(fd, pagenum)
        fpage.nextfree = PAGE_USED
        return pagenum, fpage.pagebuf

    def dispose_page(self, fd: int, pagenum: int) -> None:
        """Put an unfixed, used page on the file's free list."""
        entry = self._entry(fd)
        self._check_pagenum(entry, pagenum)
        fpage = self._get(fd, pagenum)
        if fpage.nextfree != PAGE_USED:
            self.buffer.unfix(fd, pagenum, False)
            raise PFError(ErrorCode.PAGEFREE)
        fpage.nextfree = entry.firstfree
        entry.firstfree = pagenum
        entry.hdr_changed = True
        self.buffer.unfix(fd, pagenum, True)

    def unfix_page(self, fd: int, pagenum: int, dirty: bool = False) -> None:
        """Release a fixed page; `dirty` marks it as modified."""
        entry = self._entry(fd)
        self._check_pagenum(entry, pagenum)
        if self.page_table.find(fd, pagenum) is None:
            return
        self.buffer.unfix(fd, pagenum, dirty)

    def iter_pages(self, fd: int) -> Iterator[tuple[int, bytearray]]:
        """Yield every used page in order, unfixing each before the next one."""
        pagenum = -1
        while True:
            try:
                pagenum, pagebuf = self.get_next_page(fd, pagenum)
            except PFError as exc:
                if exc.code == ErrorCode.EOF:
                    return
                raise
            try:
                yield pagenum, pagebuf
            finally:
                self.unfix_page(fd, pagenum, False)

    # ---------------------------------------------------------------- control

    def set_strategy(self, strategy: int) -> None:
        """Choose LRU or MRU replacement."""
        self.buffer.set_strategy(Strategy(strategy))

    def reset_stats(self) -> None:
        """Zero the access counters."""
        self.stats.reset()

    def get_stats(self) -> tuple[int, int, int]:
        """Return (logical reads, physical reads, physical writes)."""
        return (
            self.stats.logical_reads,
            self.stats.physical_reads,
            self.stats.physical_writes,
        )

    def format_stats(self) -> str:
        """Return the counters as a CSV line."""
        return self.stats.as_csv()

    def shutdown(self) -> None:
        """Drop every buffered frame and close every file without writing back."""
        self.buffer.shutdown()
        for fd, entry in enumerate(self._files):
            if entry is not None:
                entry.handle.close()
                self._files[fd] = None