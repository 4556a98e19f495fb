"""Small user programs over a file-system image: cat, echo, ls and grep."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator, Sequence

from .fs import FileSystem
from .layout import DIRSIZ, DirEntry, FileType, Stat
from .pattern import match

_LS_BUF = 512


def fmtname(path: str) -> str:
    """The last element of ``path``, blank-padded to DIRSIZ characters."""
    name = path.rsplit("/", 1)[-1]
    if len(name) >= DIRSIZ:
        return name
    return name.ljust(DIRSIZ)


def _release(fs: FileSystem, ip) -> None:
    with fs.log.transaction():
        fs.iput(ip)


def _read_file(fs: FileSystem, path: str) -> bytes:
    ip = fs.namei(path)
    try:
        fs.ilock(ip)
        try:
            return fs.readi(ip, 0, ip.size)
        finally:
            fs.iunlock(ip)
    finally:
        _release(fs, ip)


def _stat(fs: FileSystem, path: str) -> Stat:
    ip = fs.namei(path)
    try:
        fs.ilock(ip)
        try:
            return fs.stati(ip)
        finally:
            fs.iunlock(ip)
    finally:
        _release(fs, ip)


def cat(fs: FileSystem, paths: Iterable[str]) -> bytes:
    """Concatenate the contents of the files at ``paths``."""
    out = bytearray()
    for path in paths:
        try:
            out += _read_file(fs, path)
        except OSError as exc:
            raise FileNotFoundError(f"cat: cannot open {path}") from exc
    return bytes(out)


def echo(args: Sequence[str]) -> str:
    """The arguments separated by blanks and ended by a newline."""
    return "".join(f"{arg}{' ' if i + 1 < len(args) else chr(10)}" for i, arg in enumerate(args))


def _ls_line(path: str, st: Stat) -> str:
    return f"{fmtname(path)} {int(st.type)} {st.ino} {st.size}"


def ls(fs: FileSystem, path: str) -> list[str]:
    """Listing lines for a file, or for each entry of a directory."""
    try:
        ip = fs.namei(path)
    except OSError as exc:
        raise FileNotFoundError(f"ls: cannot open {path}") from exc
    try:
        fs.ilock(ip)
        try:
            st = fs.stati(ip)
            raw = fs.readi(ip, 0, ip.size) if st.type == FileType.DIR else b""
        finally:
            fs.iunlock(ip)
    finally:
        _release(fs, ip)

    if st.type != FileType.DIR:
        return [_ls_line(path, st)]
    if len(path) + 1 + DIRSIZ + 1 > _LS_BUF:
        raise ValueError("ls: path too long")
    lines = []
    for off in range(0, len(raw) - DirEntry.SIZE + 1, DirEntry.SIZE):
        de = DirEntry.unpack(raw[off : off + DirEntry.SIZE])
        if de.inum == 0:
            continue
        entry = f"{path}/{de.name}"
        try:
            lines.append(_ls_line(entry, _stat(fs, entry)))
        except OSError:
            lines.append(f"ls: cannot stat {entry}")
    return lines


def grep(pattern: str, lines: Iterable[str]) -> Iterator[str]:
    """Yield the newline-terminated lines that match ``pattern``.

    A final line without a newline is not considered.
    """
    for line in lines:
        if line.endswith("\n") and match(pattern, line[:-1]):
            yield line


def _split_lines(text: str) -> list[str]:
    parts = text.split("\n")
    return [part + "\n" for part in parts[:-1]] + ([parts[-1]] if parts[-1] else [])


def _write_bytes(data: bytes) -> None:
    out = getattr(sys.stdout, "buffer", None)
    if out is None:
        sys.stdout.write(data.decode("utf-8", "replace"))
        return
    sys.stdout.flush()
    out.write(data)
    out.flush()


def _run_cat(fs: FileSystem, args: list[str]) -> int:
    if not args:
        sys.stdout.write(sys.stdin.read())
        return 0
    for path in args:
        try:
            _write_bytes(cat(fs, [path]))
        except FileNotFoundError as exc:
            print(exc)
            return 1
    return 0


def _run_ls(fs: FileSystem, args: list[str]) -> int:
    status = 0
    for path in args or ["."]:
        try:
            lines = ls(fs, path)
        except FileNotFoundError as exc:
            print(exc, file=sys.stderr)
            status = 1
            continue
        except ValueError as exc:
            print(exc)
            continue
        for line in lines:
            print(line)
    return status


def _run_grep(fs: FileSystem, args: list[str]) -> int:
    pattern, paths = args[0], args[1:]
    if not paths:
        for line in grep(pattern, sys.stdin):
            sys.stdout.write(line)
        return 0
    for path in paths:
        try:
            text = cat(fs, [path]).decode("utf-8", "surrogateescape")
        except FileNotFoundError:
            print(f"grep: cannot open {path}")
            return 1
        for line in grep(pattern, _split_lines(text)):
            _write_bytes(line.encode("utf-8", "surrogateescape"))
    return 0


_COMMANDS = {"cat": _run_cat, "ls": _run_ls, "grep": _run_grep}


def main(argv: Sequence[str] | None = None) -> int:
    """Run a command against an image: IMAGE (cat|echo|ls|grep) [ARGS...]."""
    args = list(sys.argv[1:] if argv is None else argv)
    usage = "usage: tools image (cat|echo|ls|grep) [args ...]"
    if len(args) < 2:
        print(usage, file=sys.stderr)
        return 1
    image_path, command, rest = args[0], args[1], args[2:]
    if command == "echo":
        sys.stdout.write(echo(rest))
        return 0
    handler = _COMMANDS.get(command)
    if handler is None:
        print(usage, file=sys.stderr)
        return 1
    if command == "grep" and not rest:
        print("usage: grep pattern [file ...]", file=sys.stderr)
        return 1
    try:
        with open(image_path, "rb") as fh:
            image = fh.read()
    except OSError as exc:
        print(f"{image_path}: {exc.strerror}", file=sys.stderr)
        return 1
    return handler(FileSystem.mount(image), rest)


if __name__ == "__main__":
    sys.exit(main())