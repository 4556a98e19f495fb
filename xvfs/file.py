"""Open-file table and pipes."""

from __future__ import annotations

import enum
import errno
from dataclasses import dataclass

from .fs import FileSystem, FileSystemError, Inode
from .layout import BSIZE, MAXOPBLOCKS, NFILE, Panic, Stat

PIPESIZE = 512

# Largest write done in one log transaction: inode, indirect block,
# allocation blocks and two blocks of slop for unaligned writes.
_MAX_WRITE = ((MAXOPBLOCKS - 1 - 1 - 2) // 2) * BSIZE


class FileKind(enum.Enum):
    """What an open file refers to."""

    NONE = 0
    PIPE = 1
    INODE = 2


class Pipe:
    """A bounded byte channel with a read end and a write end."""

    def __init__(self) -> None:
        self._data = bytearray(PIPESIZE)
        self.nread = 0
        self.nwrite = 0
        self.readopen = True
        self.writeopen = True

    def write(self, data: bytes) -> int:
        """Append ``data``; return the number of bytes written.

        Raises BrokenPipeError when the pipe is full and nobody can read it,
        and BlockingIOError (with ``characters_written`` set) when it is full
        while a reader is still open.
        """
        payload = bytes(data)
        for i, byte in enumerate(payload):
            if self.nwrite == self.nread + PIPESIZE:
                if not self.readopen:
                    raise BrokenPipeError("pipe has no reader")
                raise BlockingIOError(errno.EAGAIN, "pipe is full", i)
            self._data[self.nwrite % PIPESIZE] = byte
            self.nwrite += 1
        return len(payload)

    def read(self, n: int) -> bytes:
        """Take up to ``n`` bytes; empty once the writer has closed and all is read."""
        if self.nread == self.nwrite and self.writeopen:
            raise BlockingIOError(errno.EAGAIN, "pipe is empty")
        count = max(0, min(n, self.nwrite - self.nread))
        out = bytes(self._data[(self.nread + i) % PIPESIZE] for i in range(count))
        self.nread += count
        return out

    def close(self, writable: bool) -> bool:
        """Close one end; return True once both ends are closed."""
        if writable:
            self.writeopen = False
        else:
            self.readopen = False
        return not self.readopen and not self.writeopen


@dataclass(eq=False)
class File:
    """An open file: a pipe end or an inode with a current offset."""

    kind: FileKind = FileKind.NONE
    ref: int = 0
    readable: bool = False
    writable: bool = False
    pipe: Pipe | None = None
    ip: Inode | None = None
    off: int = 0


class FileTable:
    """A fixed-size table of open files shared by the whole system."""

    def __init__(self, fs: FileSystem, nfile: int = NFILE) -> None:
        self.fs = fs
        self._files = [File() for _ in range(nfile)]

    def alloc(self) -> File:
        """Claim a free slot in the table."""
        for f in self._files:
            if f.ref == 0:
                f.ref = 1
                f.kind = FileKind.NONE
                f.readable = f.writable = False
                f.pipe = None
                f.ip = None
                f.off = 0
                return f
        raise OSError(errno.ENFILE, "file table overflow")

    def open_inode(self, ip: Inode, readable: bool = True, writable: bool = False) -> File:
        """Open an inode; the file takes over the caller's reference to ``ip``."""
        f = self.alloc()
        f.kind = FileKind.INODE
        f.ip = ip
        f.readable = readable
        f.writable = writable
        return f

    def open_pipe(self) -> tuple[File, File]:
        """Create a pipe; return its read end and its write end."""
        f0 = self.alloc()
        try:
            f1 = self.alloc()
        except OSError:
            self.close(f0)
            raise
        pipe = Pipe()
        f0.kind = f1.kind = FileKind.PIPE
        f0.pipe = f1.pipe = pipe
        f0.readable, f0.writable = True, False
        f1.readable, f1.writable = False, True
        return f0, f1

    def dup(self, f: File) -> File:
        """Take another reference to ``f``."""
        if f.ref < 1:
            raise Panic("filedup")
        f.ref += 1
        return f

    def close(self, f: File) -> None:
        """Drop a reference; release what the file refers to on the last one."""
        if f.ref < 1:
            raise Panic("fileclose")
        f.ref -= 1
        if f.ref > 0:
            return
        kind, pipe, ip, writable = f.kind, f.pipe, f.ip, f.writable
        f.kind = FileKind.NONE
        f.pipe = None
        f.ip = None
        if kind is FileKind.PIPE and pipe is not None:
            pipe.close(writable)
        elif kind is FileKind.INODE and ip is not None:
            with self.fs.log.transaction():
                self.fs.iput(ip)

    def stat(self, f: File) -> Stat:
        """Metadata of the inode behind ``f``."""
        if f.kind is not FileKind.INODE or f.ip is None:
            raise FileSystemError("only files backed by an inode have metadata")
        self.fs.ilock(f.ip)
        try:
            return self.fs.stati(f.ip)
        finally:
            self.fs.iunlock(f.ip)

    def read(self, f: File, n: int) -> bytes:
        """Read up to ``n`` bytes from ``f``, advancing its offset."""
        if not f.readable:
            raise PermissionError("file is not open for reading")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.read(n)
        if f.kind is FileKind.INODE and f.ip is not None:
            self.fs.ilock(f.ip)
            try:
                data = self.fs.readi(f.ip, f.off, n)
                f.off += len(data)
            finally:
                self.fs.iunlock(f.ip)
            return data
        raise Panic("fileread")

    def write(self, f: File, data: bytes) -> int:
        """Write ``data`` to ``f`` a few blocks per transaction; return its length."""
        if not f.writable:
            raise PermissionError("file is not open for writing")
        if f.kind is FileKind.PIPE and f.pipe is not None:
            return f.pipe.write(data)
        if f.kind is FileKind.INODE and f.ip is not None:
            payload = bytes(data)
            done = 0
            while done < len(payload):
                chunk = payload[done : done + _MAX_WRITE]
                with self.fs.log.transaction():
                    self.fs.ilock(f.ip)
                    try:
                        r = self.fs.writei(f.ip, chunk, f.off)
                        if r > 0:
                            f.off += r
                    finally:
                        self.fs.iunlock(f.ip)
                if r != len(chunk):
                    raise Panic("short filewrite")
                done += r
            return len(payload)
        raise Panic("filewrite")