"""Record files: variable-length records in slotted pages on top of paged files."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import Iterator

from .buffer import PAGE_SIZE
from .errors import ErrorCode, InvalidRIDError, PFError, RecordDeletedError
from .pagedfile import PagedFileManager

_HEADER = struct.Struct("<ii")  # number of slots, start of free space
_SLOT = struct.Struct("<ii")  # record offset (-1 when deleted), record length

DELETED = -1
MAX_RECORD_LEN = PAGE_SIZE - _HEADER.size - _SLOT.size


@dataclass(frozen=True)
class RID:
    """Record id: the page holding a record and its slot on that page."""

    page_num: int
    slot_num: int


@dataclass(frozen=True)
class SpaceUtilization:
    """How the pages of a record file are used."""

    total_pages: int
    total_record_bytes: int
    total_wasted_bytes: int


def _read_header(pagebuf: bytearray) -> tuple[int, int]:
    return _HEADER.unpack_from(pagebuf, 0)


def _slot_position(slot_num: int) -> int:
    return _HEADER.size + slot_num * _SLOT.size


def _read_slot(pagebuf: bytearray, slot_num: int) -> tuple[int, int]:
    return _SLOT.unpack_from(pagebuf, _slot_position(slot_num))


def _free_space(pagebuf: bytearray) -> int:
    num_slots, free_offset = _read_header(pagebuf)
    return free_offset - _slot_position(num_slots)


def init_page(pagebuf: bytearray) -> None:
    """Lay out an empty slotted page: no slots, free space running to the end."""
    _HEADER.pack_into(pagebuf, 0, 0, PAGE_SIZE)


class RecordManager:
    """Creates, destroys and opens record files."""

    def __init__(self, pf: PagedFileManager | None = None) -> None:
        self.pf = pf if pf is not None else PagedFileManager()

    def create_file(self, fname: str | os.PathLike) -> None:
        """Create a new, empty record file."""
        self.pf.create_file(fname)

    def destroy_file(self, fname: str | os.PathLike) -> None:
        """Remove a record file that is not open."""
        self.pf.destroy_file(fname)

    def open_file(self, fname: str | os.PathLike) -> RecordFile:
        """Open a record file."""
        return RecordFile(self.pf, self.pf.open_file(fname))


class RecordFile:
    """An open record file."""

    def __init__(self, pf: PagedFileManager, fd: int) -> None:
        self.pf = pf
        self.fd = fd

    def close(self) -> None:
        """Flush and close the file."""
        self.pf.close_file(self.fd)
        self.fd = -1

    def __enter__(self) -> RecordFile:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def find_free_page(self, record_len: int) -> int:
        """Return a page with room for a record of `record_len` bytes, allocating one if needed."""
        required = record_len + _SLOT.size
        pagenum = -1
        while True:
            try:
                pagenum, pagebuf = self.pf.get_next_page(self.fd, pagenum)
            except PFError as exc:
                if exc.code != ErrorCode.EOF:
                    raise
                break
            free = _free_space(pagebuf)
            self.pf.unfix_page(self.fd, pagenum, False)
            if free >= required:
                return pagenum

        pagenum, pagebuf = self.pf.alloc_page(self.fd)
        init_page(pagebuf)
        self.pf.unfix_page(self.fd, pagenum, True)
        return pagenum

    def insert(self, data: bytes) -> RID:
        """Store a record and return its id."""
        record = bytes(data)
        if len(record) > MAX_RECORD_LEN:
            raise ValueError(
                f"record of {len(record)} bytes exceeds the maximum of {MAX_RECORD_LEN}"
            )
        pagenum = self.find_free_page(len(record))
        pagebuf = self.pf.get_this_page(self.fd, pagenum)
        num_slots, free_offset = _read_header(pagebuf)
        new_offset = free_offset - len(record)
        pagebuf[new_offset:free_offset] = record
        _SLOT.pack_into(pagebuf, _slot_position(num_slots), new_offset, len(record))
        _HEADER.pack_into(pagebuf, 0, num_slots + 1, new_offset)
        self.pf.unfix_page(self.fd, pagenum, True)
        return RID(pagenum, num_slots)

    def _locate(self, rid: RID) -> tuple[bytearray, int, int]:
        """Fix the record's page and return it with the slot's offset and length."""
        pagebuf = self.pf.get_this_page(self.fd, rid.page_num)
        num_slots, _ = _read_header(pagebuf)
        if not 0 <= rid.slot_num < num_slots:
            self.pf.unfix_page(self.fd, rid.page_num, False)
            raise InvalidRIDError(f"page {rid.page_num} slot {rid.slot_num}")
        offset, length = _read_slot(pagebuf, rid.slot_num)
        if offset == DELETED:
            self.pf.unfix_page(self.fd, rid.page_num, False)
            raise RecordDeletedError(f"page {rid.page_num} slot {rid.slot_num}")
        return pagebuf, offset, length

    def get(self, rid: RID) -> bytes:
        """Return the data of a record."""
        pagebuf, offset, length = self._locate(rid)
        data = bytes(pagebuf[offset:offset + length])
        self.pf.unfix_page(self.fd, rid.page_num, False)
        return data

    def delete(self, rid: RID) -> None:
        """Delete a record, leaving its slot as a tombstone."""
        pagebuf, _, length = self._locate(rid)
        _SLOT.pack_into(pagebuf, _slot_position(rid.slot_num), DELETED, length)
        self.pf.unfix_page(self.fd, rid.page_num, True)

    def scan(self) -> RecordScan:
        """Return an iterator over (rid, data) of every live record."""
        return RecordScan(self)

    def space_utilization(self) -> SpaceUtilization:
        """Count pages, bytes held by live records and all other bytes."""
        total_pages = 0
        record_bytes = 0
        wasted_bytes = 0
        for _, pagebuf in self.pf.iter_pages(self.fd):
            total_pages += 1
            num_slots, _ = _read_header(pagebuf)
            used = sum(
                length
                for offset, length in (_read_slot(pagebuf, i) for i in range(num_slots))
                if offset != DELETED
            )
            record_bytes += used
            wasted_bytes += PAGE_SIZE - used
        return SpaceUtilization(total_pages, record_bytes, wasted_bytes)


class RecordScan:
    """Iterates over the live records of a file in page and slot order."""

    def __init__(self, record_file: RecordFile) -> None:
        self._file: RecordFile | None = record_file
        self._page = -1
        self._slot = -1

    def __iter__(self) -> Iterator[tuple[RID, bytes]]:
        return self

    def __next__(self) -> tuple[RID, bytes]:
        if self._file is None:
            raise StopIteration
        pf, fd = self._file.pf, self._file.fd
        while True:
            if self._page == -1:
                try:
                    self._page, pagebuf = pf.get_next_page(fd, -1)
                except PFError as exc:
                    if exc.code != ErrorCode.EOF:
                        raise
                    self.close()
                    raise StopIteration from None
                self._slot = 0
            else:
                try:
                    pagebuf = pf.get_this_page(fd, self._page)
                except PFError:
                    self.close()
                    raise StopIteration from None

            num_slots, _ = _read_header(pagebuf)
            while self._slot < num_slots:
                slot_num = self._slot
                self._slot += 1
                offset, length = _read_slot(pagebuf, slot_num)
                if offset != DELETED:
                    data = bytes(pagebuf[offset:offset + length])
                    pf.unfix_page(fd, self._page, False)
                    return RID(self._page, slot_num), data

            pf.unfix_page(fd, self._page, False)
            self._page += 1
            self._slot = 0

    def close(self) -> None:
        """End the scan; further iteration yields nothing."""
        self._file = None
        self._page = -1
        self._slot = -1