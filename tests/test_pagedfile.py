import random
import struct
from collections import Counter
from contextlib import contextmanager

import pytest

from toydb.buffer import FilePage, Strategy
from toydb.errors import ErrorCode, PFError
from toydb.pagedfile import FILE_TABLE_SIZE, HEADER_SIZE, PagedFileManager


def put_int(buf, value):
    struct.pack_into("<i", buf, 0, value)


def get_int(buf):
    return struct.unpack_from("<i", buf, 0)[0]


def expect(code, func, *args):
    with pytest.raises(PFError) as info:
        func(*args)
    assert info.value.code == code


@contextmanager
def opened(pf, path):
    fd = pf.open_file(path)
    yield fd
    pf.close_file(fd)


def page_numbers(pf, fd):
    return [pagenum for pagenum, _ in pf.iter_pages(fd)]


@pytest.fixture
def pf():
    manager = PagedFileManager()
    yield manager
    manager.shutdown()


def fill_file(pf, path, count, value=None):
    pf.create_file(path)
    with opened(pf, path) as fd:
        for i in range(count):
            pagenum, buf = pf.alloc_page(fd)
            put_int(buf, i if value is None else value)
            pf.unfix_page(fd, pagenum, True)


def test_create_writes_empty_header(pf, tmp_path):
    path = tmp_path / "f"
    pf.create_file(path)
    assert path.read_bytes() == struct.pack("<ii", -1, 0)


def _create_twice(pf, path):
    pf.create_file(path)
    pf.create_file(path)


def _open_short_header(pf, path):
    path.write_bytes(b"\x00\x00")
    pf.open_file(path)


def _open_missing(pf, path):
    pf.open_file(path)


def _destroy_missing(pf, path):
    pf.destroy_file(path)


@pytest.mark.parametrize(
    "action, code",
    [
        (_create_twice, ErrorCode.UNIX),
        (_open_missing, ErrorCode.UNIX),
        (_open_short_header, ErrorCode.HDRREAD),
        (_destroy_missing, ErrorCode.UNIX),
    ],
)
def test_file_level_failures(pf, tmp_path, action, code):
    expect(code, action, pf, tmp_path / "f")


def test_destroy_open_file_fails(pf, tmp_path):
    path = tmp_path / "f"
    pf.create_file(path)
    with opened(pf, path):
        expect(ErrorCode.FILEOPEN, pf.destroy_file, path)
    pf.destroy_file(path)
    assert not path.exists()


def test_invalid_fd(pf):
    expect(ErrorCode.FD, pf.close_file, 3)
    expect(ErrorCode.FD, pf.alloc_page, -1)


def test_file_table_full(pf, tmp_path):
    path = tmp_path / "f"
    pf.create_file(path)
    fds = [pf.open_file(path) for _ in range(FILE_TABLE_SIZE)]
    assert fds == list(range(FILE_TABLE_SIZE))
    expect(ErrorCode.FTABFULL, pf.open_file, path)


def test_alloc_more_than_buffers_fails(pf, tmp_path):
    path = tmp_path / "f"
    pf.create_file(path)
    with opened(pf, path) as fd:
        pages = [pf.alloc_page(fd)[0] for _ in range(20)]
        assert pages == list(range(20))
        expect(ErrorCode.NOBUF, pf.alloc_page, fd)
        for page in pages:
            pf.unfix_page(fd, page, True)
    assert path.stat().st_size == HEADER_SIZE + 20 * FilePage.SIZE


def test_pages_persist_and_iterate(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 20)
    with opened(pf, path) as fd:
        seen = [(pagenum, get_int(buf)) for pagenum, buf in pf.iter_pages(fd)]
    assert seen == [(i, i) for i in range(20)]


def test_dispose_skips_pages_and_reuses_them(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 20)
    with opened(pf, path) as fd:
        for i in range(1, 20, 2):
            pf.dispose_page(fd, i)

    with opened(pf, path) as fd:
        assert page_numbers(pf, fd) == list(range(0, 20, 2))
        reused = []
        for _ in range(2):
            pagenum, _ = pf.alloc_page(fd)
            reused.append(pagenum)
            pf.unfix_page(fd, pagenum, True)
        assert reused == [19, 17]


def test_get_this_page_on_free_page(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 3)
    with opened(pf, path) as fd:
        pf.dispose_page(fd, 1)
        expect(ErrorCode.INVALIDPAGE, pf.get_this_page, fd, 1)
        expect(ErrorCode.PAGEFREE, pf.dispose_page, fd, 1)


def test_error_cases_from_balanced_run(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 5)
    fd = pf.open_file(path)

    expect(ErrorCode.INVALIDPAGE, pf.dispose_page, fd, 100)

    buf = pf.get_this_page(fd, 1)
    assert get_int(buf) == 1
    expect(ErrorCode.PAGEFIXED, pf.dispose_page, fd, 1)
    expect(ErrorCode.PAGEFIXED, pf.get_this_page, fd, 1)

    pf.unfix_page(fd, 1, False)
    expect(ErrorCode.PAGEUNFIXED, pf.unfix_page, fd, 1, False)

    fd2 = pf.open_file(path)
    assert fd2 != fd
    assert page_numbers(pf, fd2) == [0, 1, 2, 3, 4]
    pf.close_file(fd)
    pf.close_file(fd2)


def test_close_with_fixed_page_fails(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 2)
    fd = pf.open_file(path)
    pf.get_this_page(fd, 0)
    expect(ErrorCode.PAGEFIXED, pf.close_file, fd)
    pf.unfix_page(fd, 0, False)
    pf.close_file(fd)
    expect(ErrorCode.FD, pf.close_file, fd)


def test_get_next_page_bounds_and_eof(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 2)
    with opened(pf, path) as fd:
        expect(ErrorCode.INVALIDPAGE, pf.get_next_page, fd, 2)
        expect(ErrorCode.EOF, pf.get_next_page, fd, 1)
        pagenum, buf = pf.get_first_page(fd)
        assert (pagenum, get_int(buf)) == (0, 0)
        pf.unfix_page(fd, 0, False)


def test_empty_file_has_no_first_page(pf, tmp_path):
    path = tmp_path / "f"
    pf.create_file(path)
    with opened(pf, path) as fd:
        expect(ErrorCode.EOF, pf.get_first_page, fd)
        assert page_numbers(pf, fd) == []


def test_unfix_unbuffered_page_is_ignored(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 2)
    with opened(pf, path) as fd:
        pf.unfix_page(fd, 1, False)
        assert len(pf.buffer) == 0
        expect(ErrorCode.INVALIDPAGE, pf.unfix_page, fd, 5, False)


def test_stats_reset_and_format(pf, tmp_path):
    path = tmp_path / "f"
    fill_file(pf, path, 3)
    assert pf.get_stats() == (0, 0, 3)
    pf.reset_stats()
    assert pf.format_stats() == "0,0,0"
    with opened(pf, path) as fd:
        for _ in range(2):
            pf.get_this_page(fd, 0)
            pf.unfix_page(fd, 0, False)
        assert pf.get_stats() == (2, 1, 0)
        assert pf.format_stats() == "2,1,0"


def cyclic(pf, path, strategy):
    pf.set_strategy(strategy)
    fill_file(pf, path, 25)
    with opened(pf, path) as fd:
        for _ in range(100):
            for i in range(25):
                buf = pf.get_this_page(fd, i)
                assert get_int(buf) == i
                pf.unfix_page(fd, i, False)
    pf.destroy_file(path)
    return pf.get_stats()


def test_cyclic_lru_misses_every_access(pf, tmp_path):
    logical, physical, writes = cyclic(pf, tmp_path / "cyclic_file", Strategy.LRU)
    assert logical == 2500
    assert physical == logical
    assert writes == 25


def test_cyclic_mru_beats_lru(tmp_path):
    lru_stats = cyclic(PagedFileManager(), tmp_path / "lru", Strategy.LRU)
    mru_stats = cyclic(PagedFileManager(), tmp_path / "mru", Strategy.MRU)
    assert mru_stats[0] == lru_stats[0] == 2500
    assert mru_stats[1] < lru_stats[1]
    assert mru_stats[2] == 25


@pytest.mark.parametrize("strategy", [Strategy.LRU, Strategy.MRU])
def test_read_heavy(pf, tmp_path, strategy):
    path = tmp_path / "read_heavy_file"
    pf.set_strategy(strategy)
    fill_file(pf, path, 100)
    rng = random.Random(7)
    with opened(pf, path) as fd:
        for _ in range(100 * 100):
            page = rng.randrange(100)
            buf = pf.get_this_page(fd, page)
            assert get_int(buf) == page
            pf.unfix_page(fd, page, False)
    pf.destroy_file(path)
    logical, physical, writes = pf.get_stats()
    assert logical == 10000
    assert 100 <= physical <= logical
    assert writes == 100


@pytest.mark.parametrize("strategy", [Strategy.LRU, Strategy.MRU])
def test_write_heavy(pf, tmp_path, strategy):
    path = tmp_path / "write_heavy_file"
    pf.set_strategy(strategy)
    fill_file(pf, path, 100, value=0)
    rng = random.Random(11)
    expected = Counter()
    with opened(pf, path) as fd:
        for _ in range(100 * 100):
            page = rng.randrange(100)
            expected[page] += 1
            buf = pf.get_this_page(fd, page)
            put_int(buf, get_int(buf) + 1)
            pf.unfix_page(fd, page, True)

    with opened(pf, path) as fd:
        counts = {pagenum: get_int(buf) for pagenum, buf in pf.iter_pages(fd)}
    pf.destroy_file(path)
    assert counts == {page: expected[page] for page in range(100)}
    assert sum(counts.values()) == 10000