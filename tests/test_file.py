import pytest

from xvfs.file import PIPESIZE, FileKind, FileTable, Pipe
from xvfs.fs import FileSystem, FileSystemError
from xvfs.layout import FileType, Panic
from xvfs.mkfs import build_image


@pytest.fixture
def fs():
    return FileSystem.mount(build_image({"README": b"hello"}))


@pytest.fixture
def table(fs):
    return FileTable(fs)


def test_pipe_round_trip():
    p = Pipe()
    assert p.write(b"abc") == 3
    assert p.read(10) == b"abc"


def test_pipe_read_empty_with_writer_open_would_block():
    p = Pipe()
    with pytest.raises(BlockingIOError):
        p.read(1)


def test_pipe_read_after_writer_closed_gives_end_of_file():
    p = Pipe()
    p.write(b"x")
    p.close(writable=True)
    assert p.read(5) == b"x"
    assert p.read(5) == b""


def test_pipe_full_reports_bytes_written():
    p = Pipe()
    with pytest.raises(BlockingIOError) as info:
        p.write(b"z" * (PIPESIZE + 1))
    assert info.value.characters_written == PIPESIZE
    assert p.read(PIPESIZE * 2) == b"z" * PIPESIZE


def test_pipe_without_reader_breaks_when_full():
    p = Pipe()
    p.close(writable=False)
    with pytest.raises(BrokenPipeError):
        p.write(b"q" * (PIPESIZE + 10))


def test_pipe_close_reports_both_ends():
    p = Pipe()
    assert p.close(writable=True) is False
    assert p.close(writable=False) is True


def test_read_inode_file(fs, table):
    f = table.open_inode(fs.namei("/README"))
    assert table.read(f, 100) == b"hello"
    assert table.read(f, 100) == b""
    assert f.off == len(b"hello")


def test_stat_inode_file(fs, table):
    f = table.open_inode(fs.namei("/README"))
    st = table.stat(f)
    assert st.size == len(b"hello")
    assert st.type == FileType.FILE


def test_stat_of_pipe_fails(table):
    r, _ = table.open_pipe()
    with pytest.raises(FileSystemError):
        table.stat(r)


def test_overwrite_then_read_back(fs, table):
    ip = fs.namei("/README")
    w = table.open_inode(ip, readable=True, writable=True)
    assert table.write(w, b"HE") == 2
    r = table.open_inode(fs.idup(ip))
    assert table.read(r, 100) == b"HEllo"
    table.close(w)
    table.close(r)
    assert ip.ref == 0


def test_large_write_persists_to_disk(fs, table):
    payload = bytes(range(256)) * 16
    w = table.open_inode(fs.namei("/README"), readable=False, writable=True)
    assert table.write(w, payload) == len(payload)
    assert table.stat(w).size == len(payload)
    table.close(w)

    again = FileSystem.mount(fs.cache.disk.image)
    ip = again.namei("/README")
    again.ilock(ip)
    assert again.readi(ip, 0, ip.size) == payload
    again.iunlock(ip)


def test_permissions_are_checked(fs, table):
    f = table.open_inode(fs.namei("/README"), readable=False, writable=False)
    with pytest.raises(PermissionError):
        table.read(f, 1)
    with pytest.raises(PermissionError):
        table.write(f, b"x")


def test_pipe_through_table(table):
    r, w = table.open_pipe()
    assert r.kind is FileKind.PIPE and r.pipe is w.pipe
    assert table.write(w, b"data") == 4
    assert table.read(r, 10) == b"data"
    table.close(w)
    assert table.read(r, 10) == b""
    with pytest.raises(PermissionError):
        table.read(w, 1)


def test_dup_and_close_counts(table):
    r, w = table.open_pipe()
    table.dup(r)
    assert r.ref == 2
    table.close(r)
    assert r.pipe.readopen
    table.close(r)
    assert r.ref == 0
    assert r.kind is FileKind.NONE
    with pytest.raises(Panic):
        table.close(r)
    with pytest.raises(Panic):
        table.dup(r)


def test_table_overflow(fs):
    small = FileTable(fs, nfile=2)
    small.alloc()
    small.alloc()
    with pytest.raises(OSError):
        small.alloc()


def test_open_pipe_releases_slot_on_overflow(fs):
    small = FileTable(fs, nfile=1)
    with pytest.raises(OSError):
        small.open_pipe()
    f = small.alloc()
    assert f.ref == 1