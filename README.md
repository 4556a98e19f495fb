# xvfs

A small, self-contained model of a classic teaching file system, written in
plain Python with no runtime dependencies.

It covers the stack from the on-disk format up to a few user tools:

- `xvfs.layout`: limits and the on-disk records (`SuperBlock`, `DiskInode`,
  `DirEntry`, each with `pack` and `unpack`), `Stat`, `FileType`, `OpenFlag`,
  the helpers `iblock` and `bblock`, and the `Panic` error.
- `xvfs.disk`: `MemoryDisk`, a block device kept in memory; its `image`
  property returns a snapshot of the whole disk.
- `xvfs.bio`: `BufferCache` and `Buffer`, a fixed pool of cached blocks kept
  in most-recently-used order, with `bread`, `bwrite`, `brelse` and the
  `block` context manager.
- `xvfs.log`: `Log`, a redo log that recovers committed transactions when it
  is opened and commits when the last operation ends (`begin_op`, `end_op`,
  `log_write`, and the `transaction` context manager).
- `xvfs.fs`: `FileSystem` and `Inode`, covering inode allocation and caching,
  reading and writing file data (`readi`, `writei`), directories
  (`dirlookup`, `dirlink`) and path lookup (`namei`, `nameiparent`,
  `skipelem`). `FileSystem.mount` opens an image held in memory.
- `xvfs.file`: `FileTable`, `File`, `FileKind` and `Pipe`, the open-file layer.
- `xvfs.console`: `Console`, line-edited input, serial output and an
  80x25 text screen (`screen_text`).
- `xvfs.keyboard`: `Keyboard`, which turns PC scan codes into characters.
- `xvfs.mkfs`: `ImageBuilder` and `build_image`, which build disk images.
- `xvfs.tools`: `cat`, `echo`, `ls`, `grep` and `fmtname` over a mounted image.
- `xvfs.rand`: `MersenneTwister`, an MT19937 generator with `random_at_most`.
- `xvfs.fmt`: `format_printf` and `format_cprintf`, minimal `%d %x %p %s`
  formatting (`%c` only in `format_printf`).
- `xvfs.pattern`: `match`, a tiny regular-expression matcher for `^ . * $`.

## Install

    pip install .

## Building an image

    xvfs-mkfs fs.img README.md notes.txt

This writes `fs.img`, 1000 blocks of 512 bytes, with the listed files in the
root directory under their base names. A leading `_` is dropped from each
name, and names are cut to 14 characters.

## Working with an image

    xvfs-tool fs.img ls /
    xvfs-tool fs.img cat /README.md
    xvfs-tool fs.img grep '^#' /README.md
    xvfs-tool fs.img echo hello world

`ls` prints one line per entry: the name padded to 14 characters, the type
(1 directory, 2 file, 3 device), the inode number and the size. With no
path, `cat` copies standard input and `grep` filters it.

From Python:

```python
from xvfs.mkfs import build_image
from xvfs.fs import FileSystem
from xvfs.tools import cat, ls

image = build_image({"hello.txt": b"hello world\n"})
fs = FileSystem.mount(image, 1)
print(cat(fs, ["/hello.txt"]))
for line in ls(fs, "/"):
    print(line)
```

A broken invariant raises `xvfs.layout.Panic`. Ordinary failures are raised
the Python way: `FileNotFoundError` for a missing path, `FileExistsError`
from `dirlink`, `BrokenPipeError` for a pipe without a reader, and
`BlockingIOError` where a real kernel would make the caller wait.

## What it does not do

- `xvfs-tool` only reads images. Changes made through `FileSystem` stay in
  memory; take `fs.cache.disk.image` and write it out yourself to keep them.
- There are no commands or helpers to create, remove or link files in an
  existing image; only the building blocks (`ialloc`, `dirlink`, `writei`)
  are provided.
- There are no processes and no waiting: a full log raises `Panic` instead of
  sleeping, and empty pipes or console input raise `BlockingIOError`.

## Tests

    pip install .[test]
    pytest