"""Direct edits of pages in a database file, used to repair or corrupt files."""

from __future__ import annotations

import struct

from .guts import PathLike, get_root_page, read_page, read_page_and_hwm_size
from .page import Page


def copy_page(path: PathLike, src_page: int, target: int) -> None:
    """Copy the contents of one page over another page of the same file."""
    _, data = read_page(path, src_page)
    buf = bytearray(data)
    struct.pack_into("<Q", buf, 0, target)
    write_page(path, bytes(buf))


def write_page(path: PathLike, page_buf) -> None:
    """Write a single page buffer at the position given by its own page id."""
    raw = bytes(page_buf)
    page = Page.from_bytes(raw)
    page_size, _ = read_page_and_hwm_size(path)
    if page_size != len(raw):
        raise ValueError(f"WritePage: len(buf)={len(raw)} != pageSize={page_size}")
    with open(path, "r+b") as f:
        f.seek(page.id * page_size)
        f.write(raw)


def revert_meta_page(path: PathLike) -> None:
    """Replace the newer meta page with the older one, dropping the last transaction."""
    _, active_meta = get_root_page(path)
    if active_meta == 0:
        copy_page(path, 1, 0)
    else:
        copy_page(path, 0, 1)