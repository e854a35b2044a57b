"""Low level read access to the pages and structures of a database file."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass, field
from typing import BinaryIO, List, Tuple, Union

from .page import PAGE_HEADER_SIZE, Page

MAGIC = 0xED0CDAED
MAX_ALLOC_SIZE = 0xFFFFFFF
BUCKET_HEADER_SIZE = 16

_FREELIST_OVERFLOW_COUNT = 0xFFFF
_HEADER_PROBE_SIZE = 4096

_META = struct.Struct("<IIIIQQQQQQ")
_BUCKET = struct.Struct("<QQ")
_PGID = struct.Struct("<Q")

PathLike = Union[str, "os.PathLike[str]"]


class CorruptError(ValueError):
    """Raised when a data file holds invalid values."""


@dataclass
class BucketHeader:
    """The fixed header that starts every bucket value."""

    root: int = 0
    sequence: int = 0

    def __str__(self) -> str:
        return f"<pgid={self.root},seq={self.sequence}>"

    def inline_page(self, value) -> Page:
        """Return the page stored inline after the header in a bucket value."""
        return Page.from_bytes(bytes(value)[BUCKET_HEADER_SIZE:])


@dataclass
class Meta:
    """The contents of a meta page."""

    magic: int = 0
    version: int = 0
    page_size: int = 0
    flags: int = 0
    root: BucketHeader = field(default_factory=BucketHeader)
    freelist: int = 0
    pgid: int = 0
    txid: int = 0
    checksum: int = 0

    def format(self) -> str:
        """Return the meta fields as a human readable block of text."""
        lines = [
            f"Version:    {self.version}",
            f"Page Size:  {self.page_size} bytes",
            f"Flags:      {self.flags:08x}",
            f"Root:       <pgid={self.root.root}>",
            f"Freelist:   <pgid={self.freelist}>",
            f"HWM:        <pgid={self.pgid}>",
            f"Txn ID:     {self.txid}",
            f"Checksum:   {self.checksum:016x}",
        ]
        return "".join(line + "\n" for line in lines) + "\n"


def load_page_meta(buf) -> Meta:
    """Parse the meta section that follows the page header in buf."""
    raw = bytes(buf)
    if len(raw) < PAGE_HEADER_SIZE + _META.size:
        raise ValueError(f"meta page buffer too short: {len(raw)}")
    (magic, version, page_size, flags, root, sequence,
     freelist, pgid, txid, checksum) = _META.unpack_from(raw, PAGE_HEADER_SIZE)
    return Meta(
        magic=magic,
        version=version,
        page_size=page_size,
        flags=flags,
        root=BucketHeader(root, sequence),
        freelist=freelist,
        pgid=pgid,
        txid=txid,
        checksum=checksum,
    )


def load_bucket(buf) -> BucketHeader:
    """Parse a bucket header from the start of buf."""
    raw = bytes(buf)
    if len(raw) < BUCKET_HEADER_SIZE:
        raise ValueError(f"bucket buffer too short: {len(raw)}")
    root, sequence = _BUCKET.unpack_from(raw, 0)
    return BucketHeader(root, sequence)


def freelist_page_ids(page: Page) -> List[int]:
    """Return the page ids stored on a freelist page."""
    start = PAGE_HEADER_SIZE
    if page.count == _FREELIST_OVERFLOW_COUNT:
        if len(page.data) < start + _PGID.size:
            raise ValueError("freelist page too short for its element count")
        (count,) = _PGID.unpack_from(page.data, start)
        first = 1
    else:
        count = page.count
        first = 0
    if len(page.data) < start + count * _PGID.size:
        raise ValueError("freelist page too short for its element count")
    return [
        _PGID.unpack_from(page.data, start + i * _PGID.size)[0]
        for i in range(first, count)
    ]


def _read_at(f: BinaryIO, size: int, offset: int) -> bytes:
    f.seek(offset)
    data = f.read(size)
    if len(data) != size:
        raise EOFError("unexpected EOF")
    return data


def read_page_and_hwm_size(path: PathLike) -> Tuple[int, int]:
    """Return the page size and the high water mark recorded in meta page 0."""
    with open(path, "rb") as f:
        buf = f.read(_HEADER_PROBE_SIZE)
    if len(buf) < _HEADER_PROBE_SIZE:
        raise EOFError("unexpected EOF")
    meta = load_page_meta(buf)
    if meta.magic != MAGIC:
        raise ValueError("the Meta Page has wrong (unexpected) magic")
    return meta.page_size, meta.pgid


def _check_id(page: Page, page_id: int) -> None:
    if page.id != page_id:
        raise CorruptError(
            f"error: invalid value due to unexpected Page id: {page.id} != {page_id}"
        )


def read_page(path: PathLike, page_id: int) -> Tuple[Page, bytes]:
    """Read a page, with its overflow pages, from a file. Not transactionally safe."""
    try:
        page_size, hwm = read_page_and_hwm_size(path)
    except (OSError, ValueError, EOFError) as exc:
        raise ValueError(f"read Page size: {exc}") from exc

    offset = page_id * page_size
    with open(path, "rb") as f:
        buf = _read_at(f, page_size, offset)
        page = Page.from_bytes(buf)
        _check_id(page, page_id)

        overflow = page.overflow
        # Two meta pages and the page itself are excluded.
        if overflow >= (hwm - 3) & 0xFFFFFFFF:
            raise CorruptError(
                f"error: invalid value, Page claims to have {overflow} overflow pages "
                f"(>=hwm={hwm}). Interrupting to avoid risky OOM"
            )

        buf = _read_at(f, (overflow + 1) * page_size, offset)
        page = Page.from_bytes(buf)
        _check_id(page, page_id)
    return page, buf


def get_root_page(path: PathLike) -> Tuple[int, int]:
    """Return the root page and the active meta page of the most recent transaction."""
    _, buf0 = read_page(path, 0)
    meta0 = load_page_meta(buf0)
    _, buf1 = read_page(path, 1)
    meta1 = load_page_meta(buf1)
    if meta0.txid < meta1.txid:
        return meta1.root.root, 1
    return meta0.root.root, 0