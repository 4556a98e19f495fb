"""Console: line-edited keyboard input, serial output and a text screen."""

from __future__ import annotations

import errno
from collections.abc import Iterable

from .layout import Panic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25
_ATTR = 0x0700


def _ctrl(ch: str) -> int:
    return ord(ch) - ord("@")


class Console:
    """A terminal device: input from interrupts, output to serial and screen."""

    def __init__(self) -> None:
        self.serial = bytearray()
        self.crt = [0] * (ROWS * COLS)
        self.pos = 0
        self._buf = bytearray(INPUT_BUF)
        self.r = 0
        self.w = 0
        self.e = 0

    def _cgaputc(self, c: int) -> None:
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.crt[pos] = (c & 0xFF) | _ATTR
            pos += 1
        if pos < 0 or pos > ROWS * COLS:
            raise Panic("pos under/overflow")
        if pos // COLS >= 24:
            self.crt[0 : 23 * COLS] = self.crt[COLS : 24 * COLS]
            pos -= COLS
            self.crt[pos : 24 * COLS] = [0] * (24 * COLS - pos)
        self.pos = pos
        self.crt[pos] = ord(" ") | _ATTR

    def putc(self, c: int | str) -> None:
        """Send one character to the serial line and the screen."""
        if isinstance(c, str):
            c = ord(c)
        if c == BACKSPACE:
            self.serial += b"\b \b"
        else:
            self.serial.append(c & 0xFF)
        self._cgaputc(c)

    def interrupt(self, chars: Iterable[int] | str) -> bool:
        """Take typed characters into the input line.

        Returns True if a process listing (Ctrl-P) was requested.
        """
        codes = [ord(ch) for ch in chars] if isinstance(chars, str) else list(chars)
        procdump = False
        for c in codes:
            if c == _ctrl("P"):
                procdump = True
            elif c == _ctrl("U"):
                while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != ord("\n"):
                    self.e -= 1
                    self.putc(BACKSPACE)
            elif c in (_ctrl("H"), 0x7F):
                if self.e != self.w:
                    self.e -= 1
                    self.putc(BACKSPACE)
            elif c != 0 and self.e - self.r < INPUT_BUF:
                if c == ord("\r"):
                    c = ord("\n")
                self._buf[self.e % INPUT_BUF] = c & 0xFF
                self.e += 1
                self.putc(c)
                if c in (ord("\n"), _ctrl("D")) or self.e == self.r + INPUT_BUF:
                    self.w = self.e
        return procdump

    def read(self, n: int) -> bytes:
        """Read at most one completed line of at most ``n`` bytes.

        Ctrl-D ends the input: it is consumed on its own, so a read that
        stops at it after some data leaves it for the next read, which then
        returns nothing. Raises BlockingIOError when no completed input is
        waiting; returns what was read if input runs out part way.
        """
        target = n
        out = bytearray()
        while n > 0:
            if self.r == self.w:
                if not out:
                    raise BlockingIOError(errno.EAGAIN, "no console input")
                break
            c = self._buf[self.r % INPUT_BUF]
            self.r += 1
            if c == _ctrl("D"):
                if n < target:
                    self.r -= 1
                break
            out.append(c)
            n -= 1
            if c == ord("\n"):
                break
        return bytes(out)

    def write(self, data: bytes) -> int:
        """Print ``data``; return its length."""
        payload = bytes(data)
        for b in payload:
            self.putc(b)
        return len(payload)

    def screen_text(self) -> str:
        """The visible screen as text, trailing blanks removed."""
        rows = []
        for row in range(ROWS):
            cells = self.crt[row * COLS : (row + 1) * COLS]
            rows.append("".join(chr(cell & 0xFF) if cell & 0xFF else " " for cell in cells).rstrip())
        return "\n".join(rows).rstrip("\n")