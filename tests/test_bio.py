import pytest

from xvfs.bio import BufferCache
from xvfs.disk import MemoryDisk
from xvfs.layout import BSIZE, Panic


def make_disk(nblocks=16):
    disk = MemoryDisk(bytes(nblocks * BSIZE))
    for blockno in range(nblocks):
        disk.write_block(blockno, bytes([blockno]) * BSIZE)
    return disk


def test_bread_returns_disk_contents():
    cache = BufferCache(make_disk())
    b = cache.bread(1, 5)
    assert bytes(b.data) == bytes([5]) * BSIZE
    assert b.valid and b.locked and b.refcnt == 1
    cache.brelse(b)
    assert not b.locked and b.refcnt == 0


def test_bwrite_reaches_disk():
    disk = make_disk()
    cache = BufferCache(disk)
    b = cache.bread(1, 2)
    b.data[:4] = b"data"
    cache.bwrite(b)
    cache.brelse(b)
    assert disk.read_block(2)[:4] == b"data"
    assert not b.dirty


def test_cache_hit_returns_same_buffer():
    cache = BufferCache(make_disk(), nbuf=4)
    first = cache.bread(1, 3)
    cache.brelse(first)
    again = cache.bread(1, 3)
    assert again is first
    cache.brelse(again)


def test_least_recently_released_is_recycled():
    cache = BufferCache(make_disk(), nbuf=2)
    b1 = cache.bread(1, 1)
    cache.brelse(b1)
    b2 = cache.bread(1, 2)
    cache.brelse(b2)
    b3 = cache.bread(1, 3)
    assert b3 is b1
    assert bytes(b3.data) == bytes([3]) * BSIZE
    cache.brelse(b3)
    assert cache.bread(1, 2) is b2


def test_no_free_buffers_panics():
    cache = BufferCache(make_disk(), nbuf=2)
    cache.bread(1, 1)
    cache.bread(1, 2)
    with pytest.raises(Panic):
        cache.bread(1, 3)


def test_dirty_buffers_are_not_recycled():
    cache = BufferCache(make_disk(), nbuf=1)
    b = cache.bread(1, 1)
    b.dirty = True
    cache.brelse(b)
    with pytest.raises(Panic):
        cache.bread(1, 2)


def test_reading_held_block_panics():
    cache = BufferCache(make_disk())
    cache.bread(1, 4)
    with pytest.raises(Panic):
        cache.bread(1, 4)


def test_release_and_write_require_holding():
    cache = BufferCache(make_disk())
    b = cache.bread(1, 4)
    cache.brelse(b)
    with pytest.raises(Panic):
        cache.brelse(b)
    with pytest.raises(Panic):
        cache.bwrite(b)


def test_wrong_device_panics_and_frees_buffer():
    cache = BufferCache(make_disk(), nbuf=1)
    with pytest.raises(Panic):
        cache.bread(2, 1)
    b = cache.bread(1, 1)
    assert bytes(b.data) == bytes([1]) * BSIZE


def test_block_context_manager_releases():
    cache = BufferCache(make_disk())
    with cache.block(1, 6) as b:
        assert b.locked
        assert bytes(b.data[:1]) == bytes([6])
    assert not b.locked


def test_zero_buffers_rejected():
    with pytest.raises(ValueError):
        BufferCache(make_disk(), nbuf=0)