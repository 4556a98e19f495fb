"""A disk whose blocks live in memory."""

from __future__ import annotations

from .layout import BSIZE, ROOTDEV, Panic


class MemoryDisk:
    """Block device backed by an in-memory image of whole blocks."""

    def __init__(self, image: bytes | bytearray = b"", dev: int = ROOTDEV) -> None:
        self.dev = dev
        self._data = bytearray(image)
        self.nblocks = len(self._data) // BSIZE

    @property
    def image(self) -> bytes:
        """A snapshot of the whole disk."""
        return bytes(self._data)

    def _offset(self, blockno: int) -> int:
        if not 0 <= blockno < self.nblocks:
            raise Panic("iderw: block out of range")
        return blockno * BSIZE

    def read_block(self, blockno: int) -> bytes:
        """Return the contents of block ``blockno``."""
        off = self._offset(blockno)
        return bytes(self._data[off : off + BSIZE])

    def write_block(self, blockno: int, data: bytes | bytearray) -> None:
        """Replace the contents of block ``blockno``."""
        if len(data) != BSIZE:
            raise ValueError(f"a block holds exactly {BSIZE} bytes, got {len(data)}")
        off = self._offset(blockno)
        self._data[off : off + BSIZE] = data