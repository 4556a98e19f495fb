import pytest

from xvfs.layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    NDIRECT,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    bblock,
    iblock,
)


def _sb():
    return SuperBlock(
        size=1000, nblocks=941, ninodes=200, nlog=30, logstart=2, inodestart=32, bmapstart=58
    )


def test_superblock_round_trip():
    sb = _sb()
    assert SuperBlock.unpack(sb.pack()) == sb


def test_superblock_is_little_endian():
    data = _sb().pack()
    assert data[:4] == (1000).to_bytes(4, "little")
    assert len(data) == SuperBlock.SIZE


def test_superblock_too_short():
    with pytest.raises(ValueError):
        SuperBlock.unpack(b"\0" * 10)


def test_dinode_fills_block_evenly():
    assert BSIZE % DiskInode.SIZE == 0
    assert IPB * DiskInode.SIZE == BSIZE
    assert len(DiskInode().pack()) == DiskInode.SIZE


def test_dinode_round_trip():
    addrs = list(range(100, 100 + NDIRECT + 1))
    ip = DiskInode(type=FileType.DIR, major=0, minor=0, nlink=1, size=1024, addrs=addrs)
    back = DiskInode.unpack(ip.pack())
    assert back == ip
    assert back.type == FileType.DIR


def test_dinode_signed_fields():
    ip = DiskInode(type=FileType.DEV, major=-1, minor=3, nlink=-2)
    back = DiskInode.unpack(ip.pack())
    assert back.major == -1
    assert back.nlink == -2


def test_dinode_bad_addrs():
    with pytest.raises(ValueError):
        DiskInode(addrs=[0, 1])


def test_dinode_out_of_range():
    with pytest.raises(ValueError):
        DiskInode(type=1 << 20).pack()


def test_dirent_bytes():
    assert DirEntry(1, ".").pack() == b"\x01\x00." + b"\x00" * 13
    assert BSIZE % DirEntry.SIZE == 0


def test_dirent_round_trip():
    de = DirEntry(7, "README")
    assert DirEntry.unpack(de.pack()) == de


def test_dirent_truncates_long_name():
    long_name = "abcdefghijklmnopqrstuvwxyz"
    back = DirEntry.unpack(DirEntry(3, long_name).pack())
    assert back.name == long_name[:DIRSIZ]
    assert back.inum == 3


def test_dirent_too_short():
    with pytest.raises(ValueError):
        DirEntry.unpack(b"\x01")


def test_iblock():
    sb = _sb()
    assert iblock(0, sb) == sb.inodestart
    assert iblock(IPB - 1, sb) == sb.inodestart
    assert iblock(IPB, sb) == sb.inodestart + 1


def test_bblock():
    sb = _sb()
    assert bblock(0, sb) == sb.bmapstart
    assert bblock(BPB - 1, sb) == sb.bmapstart
    assert bblock(BPB, sb) == sb.bmapstart + 1