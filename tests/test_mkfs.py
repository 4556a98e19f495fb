import struct

import pytest

from xvfs.layout import (
    BSIZE,
    FSSIZE,
    IPB,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    SuperBlock,
    iblock,
)
from xvfs.mkfs import ImageBuilder, build_image, main


def block(image, n):
    return image[n * BSIZE : (n + 1) * BSIZE]


def superblock(image):
    return SuperBlock.unpack(block(image, 1))


def inode(image, inum):
    sb = superblock(image)
    data = block(image, iblock(inum, sb))
    off = (inum % IPB) * DiskInode.SIZE
    return DiskInode.unpack(data[off : off + DiskInode.SIZE])


def contents(image, inum):
    din = inode(image, inum)
    nblocks = -(-din.size // BSIZE)
    addrs = din.addrs[:NDIRECT]
    if nblocks > NDIRECT:
        addrs += list(struct.unpack(f"<{NINDIRECT}I", block(image, din.addrs[NDIRECT])))
    data = b"".join(block(image, a) for a in addrs[:nblocks])
    return data[: din.size]


def entries(image):
    raw = contents(image, ROOTINO)
    result = []
    for off in range(0, len(raw), DirEntry.SIZE):
        de = DirEntry.unpack(raw[off : off + DirEntry.SIZE])
        if de.inum:
            result.append((de.name, de.inum))
    return result


def test_superblock_layout():
    image = build_image({})
    assert len(image) == FSSIZE * BSIZE
    sb = superblock(image)
    assert sb.size == FSSIZE
    assert sb.logstart == 2
    assert sb.inodestart == sb.logstart + sb.nlog
    assert sb.size == sb.nblocks + sb.bmapstart + 1


def test_root_directory_holds_dot_entries_and_files():
    image = build_image({"README": b"hello", "_cat": b"\x7fELF"})
    assert entries(image) == [(".", 1), ("..", 1), ("README", 2), ("cat", 3)]
    root = inode(image, ROOTINO)
    assert root.type == FileType.DIR
    assert root.size % BSIZE == 0


def test_file_contents_round_trip():
    image = build_image([("README", b"hello")])
    din = inode(image, 2)
    assert din.type == FileType.FILE
    assert din.nlink == 1
    assert din.size == len(b"hello")
    assert contents(image, 2) == b"hello"


def test_large_file_uses_indirect_block():
    data = bytes(i % 251 for i in range((NDIRECT + 3) * BSIZE + 17))
    image = build_image({"big": data})
    assert inode(image, 2).addrs[NDIRECT] != 0
    assert contents(image, 2) == data


def test_appends_continue_in_partial_block():
    builder = ImageBuilder()
    inum = builder.add_file("log", b"abc")
    builder.iappend(inum, b"def")
    image = builder.finish()
    assert contents(image, inum) == b"abcdef"


def test_bitmap_marks_used_blocks_only():
    builder = ImageBuilder()
    builder.add_file("f", b"x" * (3 * BSIZE))
    image = builder.finish()
    sb = superblock(image)
    # Metadata ends with the single bitmap block; then one root directory
    # block and three data blocks for the file.
    expected_used = sb.bmapstart + 1 + 1 + 3
    assert builder.freeblock == expected_used
    bitmap = block(image, sb.bmapstart)
    bits = [bitmap[i // 8] >> (i % 8) & 1 for i in range(BSIZE * 8)]
    assert bits[:expected_used] == [1] * expected_used
    assert sum(bits) == expected_used


def test_finish_is_idempotent():
    builder = ImageBuilder()
    first = builder.finish()
    assert builder.finish() == first
    with pytest.raises(ValueError):
        builder.add_file("late", b"")


def test_name_with_slash_rejected():
    with pytest.raises(ValueError):
        build_image({"a/b": b""})


def test_file_too_large_rejected():
    with pytest.raises(ValueError):
        build_image({"huge": bytes(MAXFILE * BSIZE + 1)})


def test_out_of_inodes():
    builder = ImageBuilder(ninodes=3)
    builder.add_file("one", b"")
    with pytest.raises(ValueError):
        builder.add_file("two", b"")


def test_main_writes_image(tmp_path, capsys):
    src = tmp_path / "_echo"
    src.write_bytes(b"payload")
    target = tmp_path / "fs.img"
    assert main([str(target), str(src)]) == 0
    image = target.read_bytes()
    assert len(image) == FSSIZE * BSIZE
    assert ("echo", 2) in entries(image)
    assert contents(image, 2) == b"payload"
    assert "balloc: first" in capsys.readouterr().out


def test_main_usage_error(capsys):
    assert main([]) == 1
    assert "Usage: mkfs fs.img files..." in capsys.readouterr().err


def test_main_missing_input(tmp_path):
    assert main([str(tmp_path / "fs.img"), str(tmp_path / "absent")]) == 1