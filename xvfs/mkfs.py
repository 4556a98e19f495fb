"""Build a file-system image holding a root directory and some files."""

from __future__ import annotations

import os
import struct
import sys
from collections.abc import Iterable, Mapping, Sequence

from .layout import (
    BSIZE,
    DIRSIZ,
    FSSIZE,
    IPB,
    LOGSIZE,
    MAXFILE,
    NDIRECT,
    NINDIRECT,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    Panic,
    SuperBlock,
    iblock,
)

NINODES = 200

_INDIRECT = struct.Struct(f"<{NINDIRECT}I")


class ImageBuilder:
    """Lays out an image and fills its root directory with files."""

    def __init__(self, size: int = FSSIZE, ninodes: int = NINODES, nlog: int = LOGSIZE) -> None:
        self.size = size
        self.ninodes = ninodes
        self.nlog = nlog
        self.nbitmap = size // (BSIZE * 8) + 1
        self.ninodeblocks = ninodes // IPB + 1
        self.nmeta = 2 + nlog + self.ninodeblocks + self.nbitmap
        if self.nmeta >= size:
            raise ValueError(f"an image of {size} blocks has no room for data")
        self.nblocks = size - self.nmeta
        self.superblock = SuperBlock(
            size=size,
            nblocks=self.nblocks,
            ninodes=ninodes,
            nlog=nlog,
            logstart=2,
            inodestart=2 + nlog,
            bmapstart=2 + nlog + self.ninodeblocks,
        )
        self.freeinode = 1
        self.freeblock = self.nmeta
        self._image = bytearray(size * BSIZE)
        self._finished = False

        sb = self.superblock.pack()
        self._image[BSIZE : BSIZE + len(sb)] = sb

        self.root = self.ialloc(FileType.DIR)
        if self.root != ROOTINO:
            raise Panic("root directory did not get the root inode number")
        self.iappend(self.root, DirEntry(self.root, ".").pack())
        self.iappend(self.root, DirEntry(self.root, "..").pack())

    def _rsect(self, sec: int) -> bytes:
        return bytes(self._image[sec * BSIZE : (sec + 1) * BSIZE])

    def _wsect(self, sec: int, data: bytes) -> None:
        self._image[sec * BSIZE : (sec + 1) * BSIZE] = data

    def _inode_offset(self, inum: int) -> int:
        return iblock(inum, self.superblock) * BSIZE + (inum % IPB) * DiskInode.SIZE

    def _rinode(self, inum: int) -> DiskInode:
        off = self._inode_offset(inum)
        return DiskInode.unpack(bytes(self._image[off : off + DiskInode.SIZE]))

    def _winode(self, inum: int, din: DiskInode) -> None:
        off = self._inode_offset(inum)
        self._image[off : off + DiskInode.SIZE] = din.pack()

    def _alloc_block(self) -> int:
        if self.freeblock >= self.size:
            raise ValueError("image is full")
        blockno = self.freeblock
        self.freeblock += 1
        return blockno

    def _check_open(self) -> None:
        if self._finished:
            raise ValueError("the image has already been finished")

    def ialloc(self, type: int) -> int:
        """Allocate the next inode with the given type and one link."""
        self._check_open()
        if self.freeinode >= self.ninodes:
            raise ValueError("out of inodes")
        inum = self.freeinode
        self.freeinode += 1
        self._winode(inum, DiskInode(type=int(type), nlink=1, size=0))
        return inum

    def iappend(self, inum: int, data: bytes) -> None:
        """Append ``data`` to the contents of inode ``inum``."""
        self._check_open()
        din = self._rinode(inum)
        off = din.size
        if off + len(data) > MAXFILE * BSIZE:
            raise ValueError("file too large")
        view = memoryview(data)
        while view:
            fbn = off // BSIZE
            if fbn < NDIRECT:
                if din.addrs[fbn] == 0:
                    din.addrs[fbn] = self._alloc_block()
                x = din.addrs[fbn]
            else:
                if din.addrs[NDIRECT] == 0:
                    din.addrs[NDIRECT] = self._alloc_block()
                indirect = list(_INDIRECT.unpack(self._rsect(din.addrs[NDIRECT])))
                if indirect[fbn - NDIRECT] == 0:
                    indirect[fbn - NDIRECT] = self._alloc_block()
                    self._wsect(din.addrs[NDIRECT], _INDIRECT.pack(*indirect))
                x = indirect[fbn - NDIRECT]
            n1 = min(len(view), (fbn + 1) * BSIZE - off)
            block = bytearray(self._rsect(x))
            start = off - fbn * BSIZE
            block[start : start + n1] = view[:n1]
            self._wsect(x, bytes(block))
            view = view[n1:]
            off += n1
        din.size = off
        self._winode(inum, din)

    def add_file(self, name: str, data: bytes) -> int:
        """Create a file in the root directory; a leading '_' is dropped."""
        if "/" in name:
            raise ValueError(f"file name may not contain '/': {name!r}")
        if name.startswith("_"):
            name = name[1:]
        inum = self.ialloc(FileType.FILE)
        self.iappend(self.root, DirEntry(inum, name[:DIRSIZ]).pack())
        self.iappend(inum, data)
        return inum

    def finish(self) -> bytes:
        """Round the root directory up to whole blocks, write the bitmap, return the image."""
        if not self._finished:
            din = self._rinode(self.root)
            din.size = (din.size // BSIZE + 1) * BSIZE
            self._winode(self.root, din)
            used = self.freeblock
            if used >= BSIZE * 8:
                raise ValueError("too many blocks for one bitmap block")
            bitmap = bytearray(BSIZE)
            for i in range(used):
                bitmap[i // 8] |= 1 << (i % 8)
            self._wsect(self.superblock.bmapstart, bytes(bitmap))
            self._finished = True
        return bytes(self._image)


def build_image(files: Mapping[str, bytes] | Iterable[tuple[str, bytes]] = ()) -> bytes:
    """Build a default-sized image holding ``files`` in its root directory."""
    builder = ImageBuilder()
    items = files.items() if isinstance(files, Mapping) else files
    for name, data in items:
        builder.add_file(name, data)
    return builder.finish()


def main(argv: Sequence[str] | None = None) -> int:
    """Write an image file holding the given files."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mkfs fs.img files...", file=sys.stderr)
        return 1
    target, paths = args[0], args[1:]

    builder = ImageBuilder()
    print(
        f"nmeta {builder.nmeta} (boot, super, log blocks {builder.nlog} "
        f"inode blocks {builder.ninodeblocks}, bitmap blocks {builder.nbitmap}) "
        f"blocks {builder.nblocks} total {builder.size}"
    )
    try:
        for path in paths:
            with open(path, "rb") as fh:
                data = fh.read()
            builder.add_file(os.path.basename(path), data)
    except OSError as exc:
        print(f"{exc.filename}: {exc.strerror}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"mkfs: {exc}", file=sys.stderr)
        return 1

    print(f"balloc: first {builder.freeblock} blocks have been allocated")
    image = builder.finish()
    print(f"balloc: write bitmap block at sector {builder.superblock.bmapstart}")
    try:
        with open(target, "wb") as out:
            out.write(image)
    except OSError as exc:
        print(f"{exc.filename}: {exc.strerror}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())