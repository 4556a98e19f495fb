"""Inodes, directories and path names on top of the buffer cache and the log."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Protocol

from .bio import Buffer, BufferCache
from .disk import MemoryDisk
from .layout import (
    BPB,
    BSIZE,
    DIRSIZ,
    IPB,
    MAXFILE,
    NDEV,
    NDIRECT,
    NINDIRECT,
    NINODE,
    ROOTDEV,
    ROOTINO,
    DirEntry,
    DiskInode,
    FileType,
    Panic,
    Stat,
    SuperBlock,
    bblock,
    iblock,
)
from .log import Log

_ADDR = struct.Struct("<I")
_INDIRECT = struct.Struct(f"<{NINDIRECT}I")

CONSOLE = 1


class FileSystemError(OSError):
    """A request the file system refuses, such as a read past the end of a file."""


class Device(Protocol):
    """A character device reachable through a device inode."""

    def read(self, n: int) -> bytes: ...

    def write(self, data: bytes) -> int: ...


@dataclass(eq=False)
class Inode:
    """In-memory copy of an inode with its cache bookkeeping."""

    dev: int = 0
    inum: int = 0
    ref: int = 0
    locked: bool = False
    valid: bool = False
    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))


def skipelem(path: str) -> tuple[str, str] | None:
    """Split off the first element of ``path``.

    Returns the element, cut to DIRSIZ characters, and the rest of the path
    without leading slashes; None if the path holds no element.
    """
    path = path.lstrip("/")
    if not path:
        return None
    elem, _, rest = path.partition("/")
    return elem[:DIRSIZ], rest.lstrip("/")


def _name_key(name: str) -> bytes:
    return name.encode("utf-8", "surrogateescape")[:DIRSIZ]


class FileSystem:
    """Allocation, reading and writing of inodes, directories and paths."""

    def __init__(self, cache: BufferCache, log: Log, dev: int = ROOTDEV) -> None:
        self.cache = cache
        self.log = log
        self.dev = dev
        with cache.block(dev, 1) as bp:
            self.superblock = SuperBlock.unpack(bytes(bp.data))
        self._inodes = [Inode() for _ in range(NINODE)]
        self.devsw: dict[int, Device] = {}

    @classmethod
    def mount(cls, image: bytes, dev: int = ROOTDEV) -> FileSystem:
        """Open a file system held in an in-memory image, recovering its log."""
        cache = BufferCache(MemoryDisk(image, dev))
        return cls(cache, Log(cache, dev), dev)

    # Blocks.

    def _bzero(self, bno: int) -> None:
        with self.cache.block(self.dev, bno) as bp:
            bp.data[:] = bytes(BSIZE)
            self.log.log_write(bp)

    def _balloc(self) -> int:
        size = self.superblock.size
        for b in range(0, size, BPB):
            found = None
            with self.cache.block(self.dev, bblock(b, self.superblock)) as bp:
                for bi in range(min(BPB, size - b)):
                    m = 1 << (bi % 8)
                    if not bp.data[bi // 8] & m:
                        bp.data[bi // 8] |= m
                        self.log.log_write(bp)
                        found = b + bi
                        break
            if found is not None:
                self._bzero(found)
                return found
        raise Panic("balloc: out of blocks")

    def _bfree(self, b: int) -> None:
        with self.cache.block(self.dev, bblock(b, self.superblock)) as bp:
            bi = b % BPB
            m = 1 << (bi % 8)
            if not bp.data[bi // 8] & m:
                raise Panic("freeing free block")
            bp.data[bi // 8] &= ~m & 0xFF
            self.log.log_write(bp)

    # Inodes.

    def _dinode_offset(self, inum: int) -> int:
        return (inum % IPB) * DiskInode.SIZE

    def ialloc(self, type: int) -> Inode:
        """Allocate a free inode on disk, give it ``type`` and return it unlocked."""
        for inum in range(1, self.superblock.ninodes):
            with self.cache.block(self.dev, iblock(inum, self.superblock)) as bp:
                off = self._dinode_offset(inum)
                din = DiskInode.unpack(bytes(bp.data[off : off + DiskInode.SIZE]))
                if din.type != 0:
                    continue
                bp.data[off : off + DiskInode.SIZE] = DiskInode(type=int(type)).pack()
                self.log.log_write(bp)
            return self.iget(inum)
        raise Panic("ialloc: no inodes")

    def iupdate(self, ip: Inode) -> None:
        """Write the in-memory copy of an inode back to disk."""
        with self.cache.block(ip.dev, iblock(ip.inum, self.superblock)) as bp:
            off = self._dinode_offset(ip.inum)
            din = DiskInode(ip.type, ip.major, ip.minor, ip.nlink, ip.size, list(ip.addrs))
            bp.data[off : off + DiskInode.SIZE] = din.pack()
            self.log.log_write(bp)

    def iget(self, inum: int) -> Inode:
        """Return the cached inode ``inum``, neither locked nor read from disk."""
        empty = None
        for ip in self._inodes:
            if ip.ref > 0 and ip.dev == self.dev and ip.inum == inum:
                ip.ref += 1
                return ip
            if empty is None and ip.ref == 0:
                empty = ip
        if empty is None:
            raise Panic("iget: no inodes")
        empty.dev = self.dev
        empty.inum = inum
        empty.ref = 1
        empty.valid = False
        empty.locked = False
        return empty

    def idup(self, ip: Inode) -> Inode:
        """Take another reference to ``ip``."""
        ip.ref += 1
        return ip

    def ilock(self, ip: Inode | None) -> None:
        """Lock an inode, reading it from disk if needed."""
        if ip is None or ip.ref < 1:
            raise Panic("ilock")
        if ip.locked:
            raise Panic(f"ilock: inode {ip.inum} is already locked")
        ip.locked = True
        if not ip.valid:
            with self.cache.block(ip.dev, iblock(ip.inum, self.superblock)) as bp:
                off = self._dinode_offset(ip.inum)
                din = DiskInode.unpack(bytes(bp.data[off : off + DiskInode.SIZE]))
            ip.type = din.type
            ip.major = din.major
            ip.minor = din.minor
            ip.nlink = din.nlink
            ip.size = din.size
            ip.addrs = list(din.addrs)
            ip.valid = True
            if ip.type == 0:
                ip.locked = False
                raise Panic("ilock: no type")

    def iunlock(self, ip: Inode | None) -> None:
        """Unlock an inode."""
        if ip is None or not ip.locked or ip.ref < 1:
            raise Panic("iunlock")
        ip.locked = False

    def iput(self, ip: Inode) -> None:
        """Drop a reference; free the inode on disk if nothing refers to it any more."""
        if ip.locked:
            raise Panic(f"iput: inode {ip.inum} is locked")
        ip.locked = True
        try:
            if ip.valid and ip.nlink == 0 and ip.ref == 1:
                self._itrunc(ip)
                ip.type = 0
                self.iupdate(ip)
                ip.valid = False
        finally:
            ip.locked = False
        ip.ref -= 1

    def iunlockput(self, ip: Inode) -> None:
        """Unlock, then drop a reference."""
        self.iunlock(ip)
        self.iput(ip)

    # Inode content.

    def _bmap(self, ip: Inode, bn: int) -> int:
        if bn < NDIRECT:
            addr = ip.addrs[bn]
            if addr == 0:
                addr = ip.addrs[bn] = self._balloc()
            return addr
        bn -= NDIRECT
        if bn < NINDIRECT:
            ind = ip.addrs[NDIRECT]
            if ind == 0:
                ind = ip.addrs[NDIRECT] = self._balloc()
            with self.cache.block(ip.dev, ind) as bp:
                (addr,) = _ADDR.unpack_from(bp.data, bn * _ADDR.size)
                if addr == 0:
                    addr = self._balloc()
                    _ADDR.pack_into(bp.data, bn * _ADDR.size, addr)
                    self.log.log_write(bp)
            return addr
        raise Panic("bmap: out of range")

    def _itrunc(self, ip: Inode) -> None:
        for i in range(NDIRECT):
            if ip.addrs[i]:
                self._bfree(ip.addrs[i])
                ip.addrs[i] = 0
        if ip.addrs[NDIRECT]:
            with self.cache.block(ip.dev, ip.addrs[NDIRECT]) as bp:
                entries = _INDIRECT.unpack_from(bp.data)
            for addr in entries:
                if addr:
                    self._bfree(addr)
            self._bfree(ip.addrs[NDIRECT])
            ip.addrs[NDIRECT] = 0
        ip.size = 0
        self.iupdate(ip)

    def stati(self, ip: Inode) -> Stat:
        """Metadata of an inode."""
        return Stat(type=ip.type, dev=ip.dev, ino=ip.inum, nlink=ip.nlink, size=ip.size)

    def _device(self, ip: Inode) -> Device:
        device = self.devsw.get(ip.major) if 0 <= ip.major < NDEV else None
        if device is None:
            raise FileSystemError(f"no device with major number {ip.major}")
        return device

    def readi(self, ip: Inode, off: int, n: int) -> bytes:
        """Read up to ``n`` bytes at ``off``; stops at the end of the file."""
        if ip.type == FileType.DEV:
            return self._device(ip).read(n)
        if off < 0 or n < 0 or off > ip.size:
            raise FileSystemError(f"cannot read {n} bytes at offset {off}")
        n = min(n, ip.size - off)
        out = bytearray()
        while len(out) < n:
            pos = off + len(out)
            blockno = self._bmap(ip, pos // BSIZE)
            start = pos % BSIZE
            m = min(n - len(out), BSIZE - start)
            with self.cache.block(ip.dev, blockno) as bp:
                out += bp.data[start : start + m]
        return bytes(out)

    def writei(self, ip: Inode, data: bytes, off: int) -> int:
        """Write ``data`` at ``off``, growing the file if needed; return bytes written."""
        if ip.type == FileType.DEV:
            return self._device(ip).write(bytes(data))
        n = len(data)
        if off < 0 or off > ip.size:
            raise FileSystemError(f"cannot write at offset {off}")
        if off + n > MAXFILE * BSIZE:
            raise FileSystemError("file too large")
        view = memoryview(bytes(data))
        tot = 0
        while tot < n:
            pos = off + tot
            blockno = self._bmap(ip, pos // BSIZE)
            start = pos % BSIZE
            m = min(n - tot, BSIZE - start)
            with self.cache.block(ip.dev, blockno) as bp:
                bp.data[start : start + m] = view[tot : tot + m]
                self.log.log_write(bp)
            tot += m
        if n > 0 and off + n > ip.size:
            ip.size = off + n
            self.iupdate(ip)
        return n

    # Directories.

    def dirlookup(self, dp: Inode, name: str) -> tuple[Inode, int] | None:
        """Find ``name`` in directory ``dp``; return its inode and entry offset."""
        if dp.type != FileType.DIR:
            raise Panic("dirlookup not DIR")
        key = _name_key(name)
        for off in range(0, dp.size, DirEntry.SIZE):
            raw = self.readi(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise Panic("dirlookup read")
            de = DirEntry.unpack(raw)
            if de.inum != 0 and _name_key(de.name) == key:
                return self.iget(de.inum), off
        return None

    def dirlink(self, dp: Inode, name: str, inum: int) -> None:
        """Add the entry (``name``, ``inum``) to directory ``dp``."""
        found = self.dirlookup(dp, name)
        if found is not None:
            self.iput(found[0])
            raise FileExistsError(f"{name!r} already exists")
        off = 0
        while off < dp.size:
            raw = self.readi(dp, off, DirEntry.SIZE)
            if len(raw) != DirEntry.SIZE:
                raise Panic("dirlink read")
            if DirEntry.unpack(raw).inum == 0:
                break
            off += DirEntry.SIZE
        if self.writei(dp, DirEntry(inum, name).pack(), off) != DirEntry.SIZE:
            raise Panic("dirlink")

    # Paths.

    def _namex(self, path: str, parent: bool, cwd: Inode | None) -> tuple[Inode, str]:
        if path.startswith("/") or cwd is None:
            ip = self.iget(ROOTINO)
        else:
            ip = self.idup(cwd)
        name = ""
        while (step := skipelem(path)) is not None:
            name, path = step
            self.ilock(ip)
            if ip.type != FileType.DIR:
                self.iunlockput(ip)
                raise NotADirectoryError(f"{name!r} lies below a non-directory")
            if parent and path == "":
                self.iunlock(ip)
                return ip, name
            try:
                found = self.dirlookup(ip, name)
            except BaseException:
                self.iunlockput(ip)
                raise
            self.iunlockput(ip)
            if found is None:
                raise FileNotFoundError(f"no such file: {name!r}")
            ip = found[0]
        if parent:
            self.iput(ip)
            raise FileNotFoundError("path has no final element")
        return ip, name

    def namei(self, path: str, cwd: Inode | None = None) -> Inode:
        """Return the inode for ``path``, relative to ``cwd`` unless absolute."""
        return self._namex(path, False, cwd)[0]

    def nameiparent(self, path: str, cwd: Inode | None = None) -> tuple[Inode, str]:
        """Return the inode of the parent directory of ``path`` and the final name."""
        return self._namex(path, True, cwd)