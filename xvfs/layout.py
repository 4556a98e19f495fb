"""On-disk layout, system limits and record formats of the file system."""

from __future__ import annotations

import enum
import struct
from dataclasses import dataclass, field

# System limits.
NPROC = 64
KSTACKSIZE = 4096
NCPU = 8
NOFILE = 16
NFILE = 100
NINODE = 50
NDEV = 10
ROOTDEV = 1
MAXARG = 32
MAXOPBLOCKS = 10
LOGSIZE = MAXOPBLOCKS * 3
NBUF = MAXOPBLOCKS * 3
FSSIZE = 1000

# Disk format.
ROOTINO = 1
BSIZE = 512
NDIRECT = 12
NINDIRECT = BSIZE // 4
MAXFILE = NDIRECT + NINDIRECT
DIRSIZ = 14
BPB = BSIZE * 8


class Panic(RuntimeError):
    """An unrecoverable inconsistency was detected."""


class FileType(enum.IntEnum):
    """Kind of object an inode describes."""

    DIR = 1
    FILE = 2
    DEV = 3


class OpenFlag(enum.IntFlag):
    """Flags accepted when opening a file."""

    RDONLY = 0x000
    WRONLY = 0x001
    RDWR = 0x002
    CREATE = 0x200


_SUPERBLOCK = struct.Struct("<7I")
_DINODE = struct.Struct(f"<4hI{NDIRECT + 1}I")
_DIRENT = struct.Struct(f"<H{DIRSIZ}s")


def _check_length(data: bytes, record: struct.Struct, what: str) -> None:
    if len(data) < record.size:
        raise ValueError(f"{what} needs {record.size} bytes, got {len(data)}")


@dataclass
class SuperBlock:
    """Description of the disk layout stored in block 1."""

    size: int = 0
    nblocks: int = 0
    ninodes: int = 0
    nlog: int = 0
    logstart: int = 0
    inodestart: int = 0
    bmapstart: int = 0

    SIZE = _SUPERBLOCK.size

    def pack(self) -> bytes:
        return _SUPERBLOCK.pack(
            self.size,
            self.nblocks,
            self.ninodes,
            self.nlog,
            self.logstart,
            self.inodestart,
            self.bmapstart,
        )

    @classmethod
    def unpack(cls, data: bytes) -> SuperBlock:
        _check_length(data, _SUPERBLOCK, "superblock")
        return cls(*_SUPERBLOCK.unpack_from(data))


@dataclass
class DiskInode:
    """An inode as stored on disk."""

    type: int = 0
    major: int = 0
    minor: int = 0
    nlink: int = 0
    size: int = 0
    addrs: list[int] = field(default_factory=lambda: [0] * (NDIRECT + 1))

    SIZE = _DINODE.size

    def __post_init__(self) -> None:
        if len(self.addrs) != NDIRECT + 1:
            raise ValueError(f"an inode holds {NDIRECT + 1} block addresses")

    def pack(self) -> bytes:
        try:
            return _DINODE.pack(
                self.type, self.major, self.minor, self.nlink, self.size, *self.addrs
            )
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> DiskInode:
        _check_length(data, _DINODE, "inode")
        type_, major, minor, nlink, size, *addrs = _DINODE.unpack_from(data)
        return cls(type_, major, minor, nlink, size, list(addrs))


@dataclass
class DirEntry:
    """One directory entry: an inode number and a name of at most DIRSIZ bytes."""

    inum: int = 0
    name: str = ""

    SIZE = _DIRENT.size

    def pack(self) -> bytes:
        raw = self.name.encode("utf-8", "surrogateescape")[:DIRSIZ]
        try:
            return _DIRENT.pack(self.inum, raw)
        except struct.error as exc:
            raise ValueError(str(exc)) from exc

    @classmethod
    def unpack(cls, data: bytes) -> DirEntry:
        _check_length(data, _DIRENT, "directory entry")
        inum, raw = _DIRENT.unpack_from(data)
        name = raw.split(b"\0", 1)[0].decode("utf-8", "surrogateescape")
        return cls(inum, name)


IPB = BSIZE // DiskInode.SIZE


@dataclass
class Stat:
    """Metadata reported for an inode."""

    type: int
    dev: int
    ino: int
    nlink: int
    size: int


def iblock(inum: int, sb: SuperBlock) -> int:
    """Block that holds inode ``inum``."""
    return inum // IPB + sb.inodestart


def bblock(b: int, sb: SuperBlock) -> int:
    """Bitmap block that holds the bit for block ``b``."""
    return b // BPB + sb.bmapstart