"""Workloads that exercise the paged-file and record layers and report statistics."""

from __future__ import annotations

import argparse
import os
import random
import struct
import sys
from typing import Callable, Sequence, TextIO

from .buffer import Stats, Strategy
from .errors import PFError, error_message
from .pagedfile import PagedFileManager
from .records import RecordManager, SpaceUtilization

MAX_BUFS = 20
HEAVY_PAGES = 100
HEAVY_OPERATIONS = HEAVY_PAGES * 100
CYCLIC_PAGES = 25
CYCLIC_ROUNDS = 100
NUM_RECORDS = 50

FILE1 = "file1"
FILE2 = "file2"
READ_HEAVY_FILE = "read_heavy_file"
WRITE_HEAVY_FILE = "write_heavy_file"
CYCLIC_FILE = "cyclic_file"
RECORD_FILE = "testfile.db"

_INT = struct.Struct("<i")
_BYTE = struct.Struct("<b")


def _say(out: TextIO | None, *lines: str) -> None:
    if out is not None:
        for line in lines:
            out.write(line + "\n")


def _path(directory: str | os.PathLike, name: str) -> str:
    return os.path.join(os.fspath(directory), name)


def _manager(strategy: int, out: TextIO | None) -> PagedFileManager:
    chosen = Strategy(strategy)
    pf = PagedFileManager()
    pf.set_strategy(chosen)
    _say(out, f"*** STRATEGY SET TO {chosen.name} ***")
    return pf


def _expect_failure(out: TextIO | None, label: str, action: Callable[[], object]) -> None:
    """Run an action that must fail and report the error it raised."""
    try:
        action()
    except PFError as exc:
        _say(out, f"{label}:{error_message(exc.code)}")
    else:
        raise RuntimeError(f"{label}: the operation succeeded")


def _first_int(buf: bytearray) -> int:
    return _INT.unpack_from(buf)[0]


def _first_byte(buf: bytearray) -> int:
    return _BYTE.unpack_from(buf)[0]


def _print_file(pf: PagedFileManager, fd: int, out: TextIO | None) -> None:
    _say(out, "reading file")
    for pagenum, buf in pf.iter_pages(fd):
        _say(out, f"got page {pagenum}, {_first_int(buf)}")
    _say(out, "eof reached")


def _read_file(pf: PagedFileManager, path: str, out: TextIO | None) -> None:
    _say(out, f"opening {path}")
    fd = pf.open_file(path)
    _print_file(pf, fd, out)
    pf.close_file(fd)


def _write_file(pf: PagedFileManager, path: str, out: TextIO | None) -> None:
    """Fill every buffer with a new page of the file, check the pool is then full."""
    fd = pf.open_file(path)
    _say(out, f"opened {path}")
    for i in range(MAX_BUFS):
        pagenum, buf = pf.alloc_page(fd)
        _INT.pack_into(buf, 0, i)
        _say(out, f"allocated page {pagenum}")
    try:
        pf.alloc_page(fd)
    except PFError:
        pass
    else:
        raise RuntimeError("too many buffers, and it's still OK")
    for i in range(MAX_BUFS):
        pf.unfix_page(fd, i, True)
    pf.close_file(fd)


def _setup_file(
    pf: PagedFileManager,
    path: str,
    count: int,
    value_of: Callable[[int], int],
    out: TextIO | None,
) -> None:
    pf.create_file(path)
    fd = pf.open_file(path)
    _say(out, f"Writing {count} setup pages...")
    for i in range(count):
        pagenum, buf = pf.alloc_page(fd)
        _INT.pack_into(buf, 0, value_of(i))
        pf.unfix_page(fd, pagenum, True)
    pf.close_file(fd)


def run_balanced(
    directory: str | os.PathLike = ".",
    strategy: int = Strategy.LRU,
    out: TextIO | None = None,
) -> Stats:
    """Mixed allocation, disposal and reading over two files; the files are left behind."""
    pf = _manager(strategy, out)
    file1 = _path(directory, FILE1)
    file2 = _path(directory, FILE2)

    pf.create_file(file1)
    _say(out, "file1 created")
    pf.create_file(file2)
    _say(out, "file2 created")

    _write_file(pf, file1, out)
    _read_file(pf, file1, out)
    _write_file(pf, file2, out)
    _read_file(pf, file2, out)

    fd1 = pf.open_file(file1)
    _say(out, "opened file1")
    fd2 = pf.open_file(file2)
    _say(out, "opened file2")

    for i in range(MAX_BUFS):
        if i & 1:
            pf.dispose_page(fd1, i)
            _say(out, f"disposed {i} of file1")
        else:
            pf.dispose_page(fd2, i)
            _say(out, f"disposed {i} of file2")

    pf.close_file(fd1)
    _say(out, "closed file1")
    pf.close_file(fd2)
    _say(out, "closed file2")

    _read_file(pf, file1, out)
    _read_file(pf, file2, out)

    pf.destroy_file(file1)
    pf.destroy_file(file2)

    pf.create_file(file1)
    _say(out, "file1 created")
    pf.create_file(file2)
    _say(out, "file2 created")

    _write_file(pf, file1, out)
    _write_file(pf, file2, out)

    fd1 = pf.open_file(file1)
    _say(out, "opened file1")
    fd2 = pf.open_file(file2)
    _say(out, "opened file2")

    for i in range(MAX_BUFS, MAX_BUFS * 2):
        pagenum, buf = pf.alloc_page(fd2)
        _INT.pack_into(buf, 0, i)
        pf.unfix_page(fd2, pagenum, True)
        _say(out, f"alloc {i} file2 page {pagenum}")

        pagenum, buf = pf.alloc_page(fd1)
        _INT.pack_into(buf, 0, i)
        pf.unfix_page(fd1, pagenum, True)
        _say(out, f"alloc {i} file1 page {pagenum}")

    for i in range(MAX_BUFS, MAX_BUFS * 2):
        if i & 1:
            pf.dispose_page(fd1, i)
            _say(out, f"dispose fd1 page {i}")
        else:
            pf.dispose_page(fd2, i)
            _say(out, f"dispose fd2 page {i}")

    _say(out, "getting file2")
    for i in range(MAX_BUFS + 1, MAX_BUFS * 2, 2):
        buf = pf.get_this_page(fd2, i)
        _say(out, f"{i} {_first_byte(buf)}")
        pf.unfix_page(fd2, i, False)

    _say(out, "getting file1")
    for i in range(MAX_BUFS, MAX_BUFS * 2, 2):
        buf = pf.get_this_page(fd1, i)
        _say(out, f"{i} {_first_byte(buf)}")
        pf.unfix_page(fd1, i, False)

    _print_file(pf, fd2, out)
    _print_file(pf, fd1, out)

    _say(out, "putting stuff into holes in fd1")
    for _ in range(MAX_BUFS // 2 - 1):
        pagenum, buf = pf.alloc_page(fd1)
        buf[0] = pagenum & 0xFF
        pf.unfix_page(fd1, pagenum, True)

    _say(out, "printing fd1")
    _print_file(pf, fd1, out)

    pf.close_file(fd1)
    _say(out, "closed file1")
    pf.close_file(fd2)
    _say(out, "closed file2")

    fd1 = pf.open_file(file1)
    _say(out, "opened file1")

    _expect_failure(out, "destroy file1, should not succeed", lambda: pf.destroy_file(file1))
    _expect_failure(out, "dispose page 100, should fail", lambda: pf.dispose_page(fd1, 100))

    buf = pf.get_this_page(fd1, 1)
    _say(out, f"got page{_first_byte(buf)}")
    _expect_failure(out, "dispose page1, should fail", lambda: pf.dispose_page(fd1, 1))

    pf.unfix_page(fd1, 1, False)
    _expect_failure(out, "unfix fd1 again, should fail", lambda: pf.unfix_page(fd1, 1, False))

    fd2 = pf.open_file(file1)
    _say(out, "opened file1 again")

    _print_file(pf, fd1, out)
    _print_file(pf, fd2, out)

    pf.close_file(fd1)
    pf.close_file(fd2)

    _say(out, "buffer:")
    if out is not None:
        out.write(pf.buffer.dump())
    _say(out, "hash table:")
    if out is not None:
        out.write(pf.page_table.dump())
    return pf.stats


def run_read_heavy(
    directory: str | os.PathLike = ".",
    strategy: int = Strategy.LRU,
    seed: int | None = None,
    out: TextIO | None = None,
) -> Stats:
    """Random reads over a file larger than the buffer pool."""
    rng = random.Random(seed)
    pf = _manager(strategy, out)
    path = _path(directory, READ_HEAVY_FILE)
    _setup_file(pf, path, HEAVY_PAGES, lambda i: i, out)

    fd = pf.open_file(path)
    _say(out, f"Performing {HEAVY_OPERATIONS} random reads...")
    for _ in range(HEAVY_OPERATIONS):
        page = rng.randrange(HEAVY_PAGES)
        buf = pf.get_this_page(fd, page)
        value = _first_int(buf)
        if value != page:
            _say(out, f"Data error on page {page}! Expected {page}, got {value}")
        pf.unfix_page(fd, page, False)
    pf.close_file(fd)

    pf.destroy_file(path)
    return pf.stats


def run_write_heavy(
    directory: str | os.PathLike = ".",
    strategy: int = Strategy.LRU,
    seed: int | None = None,
    out: TextIO | None = None,
) -> Stats:
    """Random read-modify-write updates over a file larger than the buffer pool."""
    rng = random.Random(seed)
    pf = _manager(strategy, out)
    path = _path(directory, WRITE_HEAVY_FILE)
    _setup_file(pf, path, HEAVY_PAGES, lambda i: 0, out)

    fd = pf.open_file(path)
    _say(out, f"Performing {HEAVY_OPERATIONS} random writes (read-modify-write)...")
    for _ in range(HEAVY_OPERATIONS):
        page = rng.randrange(HEAVY_PAGES)
        buf = pf.get_this_page(fd, page)
        _INT.pack_into(buf, 0, _first_int(buf) + 1)
        pf.unfix_page(fd, page, True)

    _say(out, "Closing file, flushing all dirty pages...")
    pf.close_file(fd)

    pf.destroy_file(path)
    return pf.stats


def run_cyclic(
    directory: str | os.PathLike = ".",
    strategy: int = Strategy.LRU,
    out: TextIO | None = None,
) -> Stats:
    """Repeated sequential passes over slightly more pages than the pool holds."""
    pf = _manager(strategy, out)
    path = _path(directory, CYCLIC_FILE)
    _setup_file(pf, path, CYCLIC_PAGES, lambda i: i, out)

    fd = pf.open_file(path)
    _say(out, f"Performing cyclic access (0->{CYCLIC_PAGES - 1}, repeat {CYCLIC_ROUNDS} times)...")
    for _ in range(CYCLIC_ROUNDS):
        for page in range(CYCLIC_PAGES):
            pf.get_this_page(fd, page)
            pf.unfix_page(fd, page, False)
    pf.close_file(fd)

    pf.destroy_file(path)
    return pf.stats


def run_record_demo(
    directory: str | os.PathLike = ".",
    seed: int | None = None,
    out: TextIO | None = None,
) -> tuple[int, SpaceUtilization]:
    """Insert, delete and scan variable-length records; return the live count and usage."""
    rng = random.Random(seed)
    rm = RecordManager()
    path = _path(directory, RECORD_FILE)

    _say(out, f"Creating file '{path}'...")
    rm.create_file(path)
    _say(out, "Opening file...")
    with rm.open_file(path) as record_file:
        _say(out, f"--- Inserting {NUM_RECORDS} variable-length records ---")
        rids = []
        for i in range(NUM_RECORDS):
            length = rng.randint(10, 59)
            data = f"Record {i}".encode().ljust(length, b"x")
            rid = record_file.insert(data)
            rids.append(rid)
            _say(out, f"Inserted Record {i}. RID: (Page {rid.page_num}, Slot {rid.slot_num})")

        _say(out, "--- Deleting every 3rd record ---")
        deleted = set()
        for i in range(0, NUM_RECORDS, 3):
            rid = rids[i]
            _say(out, f"Deleting Record {i}. RID: (Page {rid.page_num}, Slot {rid.slot_num})")
            record_file.delete(rid)
            deleted.add(rid)

        _say(out, "--- Scanning all records... ---")
        scan = record_file.scan()
        found = 0
        for rid, _ in scan:
            if rid in deleted:
                _say(
                    out,
                    f"Found RID: (Page {rid.page_num}, Slot {rid.slot_num})",
                    f"*** ERROR: Found record {rid.slot_num}, which should be deleted! ***",
                )
            else:
                _say(out, f"Found RID: (Page {rid.page_num}, Slot {rid.slot_num}) - OK")
            found += 1
        _say(out, f"Scan complete. Found {found} records.")

        expected = NUM_RECORDS - len(deleted)
        if found == expected:
            _say(out, f"Record count is correct! ({expected})")
        else:
            _say(out, f"*** ERROR: Expected {expected} records, but found {found}! ***")

        _say(out, "--- Checking Space Utilization ---")
        usage = record_file.space_utilization()
        total_bytes = usage.total_pages * 4096
        percent = usage.total_record_bytes / total_bytes * 100.0 if total_bytes else 0.0
        _say(
            out,
            f"Total Pages: {usage.total_pages}",
            f"Total Bytes: {total_bytes}",
            f"Bytes Used by Records: {usage.total_record_bytes}",
            f"Bytes Wasted (header, slots, free, holes): {usage.total_wasted_bytes}",
            f"Space Utilization (Record Data / Total Bytes): {percent:.2f}%",
        )
        scan.close()
        _say(out, "Closing file...")

    _say(out, "Destroying file...")
    rm.destroy_file(path)
    return found, usage


_PAGE_WORKLOADS = {
    "balanced": "Balanced",
    "read-heavy": "ReadHeavy",
    "write-heavy": "WriteHeavy",
    "cyclic": "Cyclic",
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run one workload and print its statistics."""
    parser = argparse.ArgumentParser(
        prog="toydb", description="Run a buffer-pool or record-layer workload."
    )
    parser.add_argument("workload", choices=[*_PAGE_WORKLOADS, "records"])
    parser.add_argument("-q", "--quiet", action="store_true", help="print only a CSV line")
    parser.add_argument("-s", "--strategy", choices=["lru", "mru"], default="lru")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("-d", "--directory", default=".")
    args = parser.parse_args(argv)

    strategy = Strategy[args.strategy.upper()]
    out = None if args.quiet else sys.stdout

    try:
        if args.workload == "records":
            found, usage = run_record_demo(args.directory, args.seed, out)
            if args.quiet:
                print(
                    f"Records,{found},{usage.total_pages},"
                    f"{usage.total_record_bytes},{usage.total_wasted_bytes}"
                )
            return 0
        if args.workload == "balanced":
            stats = run_balanced(args.directory, strategy, out)
        elif args.workload == "read-heavy":
            stats = run_read_heavy(args.directory, strategy, args.seed, out)
        elif args.workload == "write-heavy":
            stats = run_write_heavy(args.directory, strategy, args.seed, out)
        else:
            stats = run_cyclic(args.directory, strategy, out)
    except (PFError, RuntimeError) as exc:
        print(f"{args.workload}: {exc}", file=sys.stderr)
        return 1

    if args.quiet:
        print(f"{_PAGE_WORKLOADS[args.workload]},{strategy.name},{stats.as_csv()}")
    else:
        print("\n--- Final Statistics ---")
        print(stats.as_csv())
    return 0


if __name__ == "__main__":
    sys.exit(main())