"""Redo log that makes groups of block writes atomic."""

from __future__ import annotations

import struct
from collections.abc import Iterator
from contextlib import contextmanager

from .bio import Buffer, BufferCache
from .layout import BSIZE, LOGSIZE, MAXOPBLOCKS, Panic, SuperBlock

_HEADER = struct.Struct(f"<i{LOGSIZE}i")


class Log:
    """Log of modified blocks, committed when the last operation ends."""

    def __init__(
        self, cache: BufferCache, dev: int, superblock: SuperBlock | None = None
    ) -> None:
        if _HEADER.size >= BSIZE:
            raise Panic("initlog: too big logheader")
        self.cache = cache
        self.dev = dev
        if superblock is None:
            with cache.block(dev, 1) as bp:
                superblock = SuperBlock.unpack(bytes(bp.data))
        self.start = superblock.logstart
        self.size = superblock.nlog
        self.outstanding = 0
        self.committing = False
        self._blocks: list[int] = []
        self.recover()

    @property
    def blocks(self) -> tuple[int, ...]:
        """Block numbers logged in the current transaction."""
        return tuple(self._blocks)

    def _install(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as lbuf:
                with self.cache.block(self.dev, blockno) as dbuf:
                    dbuf.data[:] = lbuf.data
                    self.cache.bwrite(dbuf)

    def _read_head(self) -> None:
        with self.cache.block(self.dev, self.start) as bp:
            n, *blocks = _HEADER.unpack_from(bp.data)
        if not 0 <= n <= LOGSIZE:
            raise Panic(f"log header holds a bad count: {n}")
        self._blocks = blocks[:n]

    def _write_head(self) -> None:
        blocks = self._blocks + [0] * (LOGSIZE - len(self._blocks))
        with self.cache.block(self.dev, self.start) as bp:
            _HEADER.pack_into(bp.data, 0, len(self._blocks), *blocks)
            self.cache.bwrite(bp)

    def _write_log(self) -> None:
        for tail, blockno in enumerate(self._blocks):
            with self.cache.block(self.dev, self.start + tail + 1) as to:
                with self.cache.block(self.dev, blockno) as src:
                    to.data[:] = src.data
                self.cache.bwrite(to)

    def _commit(self) -> None:
        if self._blocks:
            self._write_log()
            self._write_head()
            self._install()
            self._blocks = []
            self._write_head()

    def recover(self) -> None:
        """Install any committed transaction found on disk, then clear the log."""
        self._read_head()
        self._install()
        self._blocks = []
        self._write_head()

    def begin_op(self) -> None:
        """Start a file-system operation."""
        if self.committing:
            raise Panic("begin_op: log is committing")
        if len(self._blocks) + (self.outstanding + 1) * MAXOPBLOCKS > LOGSIZE:
            raise Panic("begin_op: log space exhausted")
        self.outstanding += 1

    def end_op(self) -> None:
        """Finish an operation; commit if it was the last one outstanding."""
        if self.outstanding < 1:
            raise Panic("end_op outside of trans")
        self.outstanding -= 1
        if self.committing:
            raise Panic("log.committing")
        if self.outstanding == 0:
            self.committing = True
            try:
                self._commit()
            finally:
                self.committing = False

    def log_write(self, buf: Buffer) -> None:
        """Record a modified buffer in the current transaction and pin it."""
        if len(self._blocks) >= LOGSIZE or len(self._blocks) >= self.size - 1:
            raise Panic("too big a transaction")
        if self.outstanding < 1:
            raise Panic("log_write outside of trans")
        if buf.blockno not in self._blocks:
            self._blocks.append(buf.blockno)
        buf.dirty = True

    @contextmanager
    def transaction(self) -> Iterator[Log]:
        """Run the body as one operation of the log."""
        self.begin_op()
        try:
            yield self
        finally:
            self.end_op()