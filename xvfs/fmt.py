"""Minimal printf-style formatting supporting %d, %x, %p, %s and %c."""

from __future__ import annotations

from typing import Any

_UPPER_DIGITS = "0123456789ABCDEF"
_LOWER_DIGITS = "0123456789abcdef"


def _int32(value: int) -> int:
    value = int(value) & 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _number(value: Any, base: int, signed: bool, digits: str) -> str:
    if signed:
        x = _int32(value)
        negative = x < 0
        x = abs(x)
    else:
        x = int(value) & 0xFFFFFFFF
        negative = False
    out = []
    while True:
        x, rem = divmod(x, base)
        out.append(digits[rem])
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _render(fmt: str, args: tuple[Any, ...], digits: str, with_char: bool) -> str:
    values = iter(args)

    def next_value() -> Any:
        try:
            return next(values)
        except StopIteration:
            raise TypeError(f"not enough arguments for format {fmt!r}") from None

    out: list[str] = []
    chars = iter(fmt)
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        spec = next(chars, None)
        if spec is None:
            break
        if spec == "d":
            out.append(_number(next_value(), 10, True, digits))
        elif spec in ("x", "p"):
            out.append(_number(next_value(), 16, False, digits))
        elif spec == "s":
            s = next_value()
            out.append("(null)" if s is None else str(s))
        elif spec == "c" and with_char:
            v = next_value()
            out.append(v[:1] if isinstance(v, str) else chr(int(v) & 0xFF))
        elif spec == "%":
            out.append("%")
        else:
            out.append("%" + spec)
    return "".join(out)


def format_printf(fmt: str, *args: Any) -> str:
    """Format as the user-level printf does: upper-case hex and %c."""
    return _render(fmt, args, _UPPER_DIGITS, with_char=True)


def format_cprintf(fmt: str, *args: Any) -> str:
    """Format as the console printer does: lower-case hex and no %c."""
    return _render(fmt, args, _LOWER_DIGITS, with_char=False)