"""Buffer cache of disk blocks with most-recently-used ordering."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from .disk import MemoryDisk
from .layout import BSIZE, NBUF, Panic


@dataclass(eq=False)
class Buffer:
    """Cached copy of one disk block."""

    dev: int | None = None
    blockno: int = 0
    data: bytearray = field(default_factory=lambda: bytearray(BSIZE))
    valid: bool = False
    dirty: bool = False
    refcnt: int = 0
    locked: bool = False


class BufferCache:
    """A fixed pool of buffers; at most one holder per buffer at a time."""

    def __init__(self, disk: MemoryDisk, nbuf: int = NBUF) -> None:
        if nbuf < 1:
            raise ValueError("the cache needs at least one buffer")
        self.disk = disk
        # Index 0 is the most recently used buffer.
        self._buffers = [Buffer() for _ in range(nbuf)]

    def _get(self, dev: int, blockno: int) -> Buffer:
        for b in self._buffers:
            if b.dev == dev and b.blockno == blockno:
                if b.locked:
                    raise Panic(f"bget: block {blockno} is already held")
                b.refcnt += 1
                b.locked = True
                return b
        # Dirty buffers are pinned by the log even when unreferenced.
        for b in reversed(self._buffers):
            if b.refcnt == 0 and not b.dirty:
                b.dev = dev
                b.blockno = blockno
                b.valid = False
                b.dirty = False
                b.refcnt = 1
                b.locked = True
                return b
        raise Panic("bget: no buffers")

    def _sync(self, buf: Buffer) -> None:
        if not buf.locked:
            raise Panic("iderw: buf not locked")
        if buf.valid and not buf.dirty:
            raise Panic("iderw: nothing to do")
        if buf.dev != self.disk.dev:
            raise Panic(f"iderw: request not for disk {self.disk.dev}")
        if buf.dirty:
            buf.dirty = False
            self.disk.write_block(buf.blockno, buf.data)
        else:
            buf.data[:] = self.disk.read_block(buf.blockno)
        buf.valid = True

    def bread(self, dev: int, blockno: int) -> Buffer:
        """Return a held buffer with the contents of the block."""
        b = self._get(dev, blockno)
        if not b.valid:
            try:
                self._sync(b)
            except Exception:
                self.brelse(b)
                raise
        return b

    def bwrite(self, buf: Buffer) -> None:
        """Write a held buffer to disk."""
        if not buf.locked:
            raise Panic("bwrite")
        buf.dirty = True
        self._sync(buf)

    def brelse(self, buf: Buffer) -> None:
        """Release a held buffer and mark it most recently used."""
        if not buf.locked:
            raise Panic("brelse")
        buf.locked = False
        buf.refcnt -= 1
        if buf.refcnt == 0:
            self._buffers.remove(buf)
            self._buffers.insert(0, buf)

    @contextmanager
    def block(self, dev: int, blockno: int) -> Iterator[Buffer]:
        """Hold a block for the duration of a ``with`` statement."""
        b = self.bread(dev, blockno)
        try:
            yield b
        finally:
            self.brelse(b)