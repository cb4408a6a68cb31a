import pytest

from toydb.errors import ErrorCode, PFError
from toydb.hashtable import PageTable


def test_default_size_is_twenty():
    assert PageTable().size == 20


def test_bucket_is_sum_modulo_size():
    table = PageTable(20)
    assert table.bucket(3, 4) == 7
    assert table.bucket(5, 15) == 0
    for fd in range(5):
        for page in range(50):
            assert 0 <= table.bucket(fd, page) < 20


def test_insert_then_find():
    table = PageTable()
    frame = object()
    table.insert(1, 7, frame)
    assert table.find(1, 7) is frame
    assert table.find(7, 1) is None
    assert (1, 7) in table
    assert len(table) == 1


def test_colliding_keys_are_kept_apart():
    table = PageTable(4)
    a, b, c = object(), object(), object()
    table.insert(0, 4, a)
    table.insert(1, 3, b)
    table.insert(2, 2, c)
    assert table.bucket(0, 4) == table.bucket(1, 3) == table.bucket(2, 2)
    assert table.find(0, 4) is a
    assert table.find(1, 3) is b
    assert table.find(2, 2) is c
    table.delete(1, 3)
    assert table.find(1, 3) is None
    assert table.find(0, 4) is a
    assert table.find(2, 2) is c


def test_duplicate_insert_raises():
    table = PageTable()
    table.insert(0, 0, "frame")
    with pytest.raises(PFError) as info:
        table.insert(0, 0, "other")
    assert info.value.code is ErrorCode.HASHPAGEEXIST
    assert table.find(0, 0) == "frame"


def test_delete_missing_raises():
    table = PageTable()
    with pytest.raises(PFError) as info:
        table.delete(2, 3)
    assert info.value.code is ErrorCode.HASHNOTFOUND


def test_delete_then_reinsert():
    table = PageTable()
    table.insert(3, 9, "first")
    table.delete(3, 9)
    assert len(table) == 0
    table.insert(3, 9, "second")
    assert table.find(3, 9) == "second"


def test_clear_empties_table():
    table = PageTable()
    for page in range(30):
        table.insert(0, page, page)
    assert len(table) == 30
    table.clear()
    assert len(table) == 0
    assert table.find(0, 5) is None


def test_dump_lists_buckets_and_entries():
    table = PageTable(3)
    table.insert(1, 1, "frame")
    lines = table.dump().splitlines()
    assert lines[0] == "bucket 0"
    assert lines[1] == "\tempty"
    assert "\tfd: 1, page: 1, bpage: 'frame'" in lines
    assert sum(line.startswith("bucket ") for line in lines) == 3


def test_invalid_size_rejected():
    with pytest.raises(ValueError):
        PageTable(0)