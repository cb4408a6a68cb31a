# toydb

A small storage engine in two layers:

- **Paged files** (`toydb.pagedfile.PagedFileManager`): fixed-size 4096-byte
  pages stored after a small header, with a free-page list and a buffer pool
  (20 frames by default) that uses LRU or MRU replacement. Logical reads,
  physical reads and physical writes are counted.
- **Records** (`toydb.records.RecordManager`, `toydb.records.RecordFile`):
  variable-length records in slotted pages, addressed by a `RID`
  (`page_num`, `slot_num`), with insert, get, delete, a sequential scan and
  space-utilization reporting.

Failures are raised as `toydb.errors.PFError`, whose `code` is an
`toydb.errors.ErrorCode`. The record layer raises `InvalidRIDError` for a slot
that does not exist and `RecordDeletedError` for a deleted record; both are
subclasses of `RMError`, itself a `PFError`. `error_message(code)` gives the
text for a code.

## Installation

```
pip install .
```

## Using the paged-file layer

```python
from toydb.pagedfile import PagedFileManager
from toydb.buffer import Strategy

pf = PagedFileManager()
pf.set_strategy(Strategy.MRU)
pf.create_file("data.pf")
fd = pf.open_file("data.pf")

pagenum, buf = pf.alloc_page(fd)
buf[0:4] = (42).to_bytes(4, "little")
pf.unfix_page(fd, pagenum, True)

pf.close_file(fd)
print(pf.format_stats())   # logical_reads,physical_reads,physical_writes
pf.destroy_file("data.pf")
```

Pages returned by `get_this_page`, `get_next_page`, `get_first_page` and
`alloc_page` stay fixed in the buffer until `unfix_page` is called; pass
`dirty=True` when the page was changed so that it is written back on eviction
or on `close_file`. Asking for a page that is already fixed raises a
`PFError` with `ErrorCode.PAGEFIXED`, and when every frame is fixed a new page
cannot be brought in (`ErrorCode.NOBUF`). `iter_pages(fd)` yields every used
page in order, unfixing each one before moving on. `dispose_page` puts a page
on the file's free list, and the next `alloc_page` reuses it.

`get_stats()` returns the three counters as a tuple and `reset_stats()` zeroes
them. Each `PagedFileManager` has its own buffer pool, page table and table of
up to 20 open files.

## Using the record layer

```python
from toydb.pagedfile import PagedFileManager
from toydb.records import RecordManager

rm = RecordManager(PagedFileManager())
rm.create_file("records.db")
with rm.open_file("records.db") as rf:
    rid = rf.insert(b"hello world")
    assert rf.get(rid) == b"hello world"
    rf.delete(rid)
    for rid, data in rf.scan():
        print(rid, data)
    print(rf.space_utilization())
rm.destroy_file("records.db")
```

A record must fit on one page together with the page header and its slot;
larger records raise `ValueError`. Deleting a record leaves a tombstone slot,
and its bytes are not reclaimed.

## Workloads from the command line

The `toydb` command runs a built-in workload and prints its statistics, which
makes it easy to compare the replacement strategies:

```
toydb --help
toydb cyclic --strategy mru
toydb read-heavy -q --seed 1 -s lru
toydb records --directory /tmp
```

Workloads: `balanced` (allocation, disposal and reads over two files, which
are left in the directory), `read-heavy`, `write-heavy`, `cyclic` and
`records`. Options: `-s/--strategy lru|mru`, `--seed` for the random
workloads, `-d/--directory` for where the files go, and `-q/--quiet` to print
only one CSV line, such as `Cyclic,MRU,<logical>,<physical reads>,<writes>`,
or for `records`, `Records,<found>,<pages>,<record bytes>,<wasted bytes>`.

The same workloads are available as `run_balanced`, `run_read_heavy`,
`run_write_heavy`, `run_cyclic` and `run_record_demo` in `toydb.workloads`.

## What it does not do

toydb is a storage layer only. It has no query language, no indexes, no
transactions, no locking and no server. Sharing an open file between
processes, or between two `PagedFileManager` instances, is not coordinated.