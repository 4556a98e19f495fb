"""Tiny regular-expression matcher supporting ^ . * and $."""

from __future__ import annotations


def _here(pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if pi == len(pattern):
            return True
        if pi + 1 < len(pattern) and pattern[pi + 1] == "*":
            return _star(pattern[pi], pattern, pi + 2, text, ti)
        if pattern[pi] == "$" and pi + 1 == len(pattern):
            return ti == len(text)
        if ti < len(text) and pattern[pi] in (".", text[ti]):
            pi += 1
            ti += 1
            continue
        return False


def _star(c: str, pattern: str, pi: int, text: str, ti: int) -> bool:
    while True:
        if _here(pattern, pi, text, ti):
            return True
        if ti < len(text) and (text[ti] == c or c == "."):
            ti += 1
        else:
            return False


def match(pattern: str, text: str) -> bool:
    """Search for ``pattern`` anywhere in ``text``."""
    if pattern.startswith("^"):
        return _here(pattern, 1, text, 0)
    return any(_here(pattern, 0, text, ti) for ti in range(len(text) + 1))


def match_here(pattern: str, text: str) -> bool:
    """Match ``pattern`` at the start of ``text``."""
    return _here(pattern, 0, text, 0)


def match_star(c: str, pattern: str, text: str) -> bool:
    """Match ``c*`` followed by ``pattern`` at the start of ``text``."""
    return _star(c, pattern, 0, text, 0)