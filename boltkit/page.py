"""On-disk page layout: headers, branch and leaf elements, and page id helpers."""

from __future__ import annotations

import enum
import heapq
import struct
import sys
from dataclasses import dataclass, field
from typing import Iterable, List

PAGE_HEADER_SIZE = 16
BRANCH_ELEMENT_SIZE = 16
LEAF_ELEMENT_SIZE = 16
MIN_KEYS_PER_PAGE = 2
BUCKET_LEAF_FLAG = 0x01

_HEADER = struct.Struct("<QHHI")
_BRANCH = struct.Struct("<IIQ")
_LEAF = struct.Struct("<IIII")


class PageFlag(enum.IntFlag):
    """Page type flags stored in the page header."""

    BRANCH = 0x01
    LEAF = 0x02
    META = 0x04
    FREELIST = 0x10


def page_type_name(flags: int) -> str:
    """Return a human readable page type for the given header flags."""
    if flags & PageFlag.BRANCH:
        return "branch"
    if flags & PageFlag.LEAF:
        return "leaf"
    if flags & PageFlag.META:
        return "meta"
    if flags & PageFlag.FREELIST:
        return "freelist"
    return f"unknown<{int(flags):02x}>"


@dataclass(frozen=True)
class LeafElement:
    """One element of a leaf page, with its key and value resolved."""

    flags: int
    pos: int
    ksize: int
    vsize: int
    key: bytes
    value: bytes

    @property
    def is_bucket(self) -> bool:
        return bool(self.flags & BUCKET_LEAF_FLAG)


@dataclass(frozen=True)
class BranchElement:
    """One element of a branch page, with its key resolved."""

    pos: int
    ksize: int
    pgid: int
    key: bytes


@dataclass
class PageInfo:
    """Human readable information about a page."""

    id: int
    type: str
    count: int
    overflow_count: int


@dataclass
class Page:
    """A page header together with the raw bytes it was read from."""

    id: int = 0
    flags: int = 0
    count: int = 0
    overflow: int = 0
    data: bytes = field(default=b"", repr=False)

    @classmethod
    def from_bytes(cls, buf) -> "Page":
        """Parse a page from a buffer that starts with its header."""
        raw = bytes(buf)
        if len(raw) < PAGE_HEADER_SIZE:
            raise ValueError(
                f"page buffer too short: {len(raw)} < {PAGE_HEADER_SIZE}"
            )
        pid, flags, count, overflow = _HEADER.unpack_from(raw, 0)
        return cls(id=pid, flags=flags, count=count, overflow=overflow, data=raw)

    def _raw(self) -> bytes:
        header = _HEADER.pack(self.id, self.flags, self.count, self.overflow)
        if len(self.data) < PAGE_HEADER_SIZE:
            return header
        return header + self.data[PAGE_HEADER_SIZE:]

    def typ(self) -> str:
        """Return the page type as a string."""
        return page_type_name(self.flags)

    def fast_check(self, id: int) -> None:
        """Raise ValueError unless the page has the given id and exactly one type flag."""
        if self.id != id:
            raise ValueError(
                f"Page expected to be: {id}, but self identifies as {self.id}"
            )
        if self.flags not in (
            PageFlag.BRANCH,
            PageFlag.LEAF,
            PageFlag.META,
            PageFlag.FREELIST,
        ):
            raise ValueError(
                f"page {self.id}: has unexpected type/flags: {self.flags:x}"
            )

    def _element_offset(self, index: int, size: int) -> int:
        if not 0 <= index < self.count:
            raise IndexError(f"element index {index} out of range (count={self.count})")
        offset = PAGE_HEADER_SIZE + index * size
        if offset + size > len(self.data):
            raise ValueError(f"element {index} lies beyond the page buffer")
        return offset

    def leaf_element(self, index: int) -> LeafElement:
        """Return the leaf element at the given index."""
        offset = self._element_offset(index, LEAF_ELEMENT_SIZE)
        flags, pos, ksize, vsize = _LEAF.unpack_from(self.data, offset)
        start = offset + pos
        key = self.data[start:start + ksize]
        value = self.data[start + ksize:start + ksize + vsize]
        return LeafElement(flags, pos, ksize, vsize, key, value)

    def leaf_elements(self) -> List[LeafElement]:
        """Return all leaf elements of the page."""
        return [self.leaf_element(i) for i in range(self.count)]

    def branch_element(self, index: int) -> BranchElement:
        """Return the branch element at the given index."""
        offset = self._element_offset(index, BRANCH_ELEMENT_SIZE)
        pos, ksize, pgid = _BRANCH.unpack_from(self.data, offset)
        start = offset + pos
        return BranchElement(pos, ksize, pgid, self.data[start:start + ksize])

    def branch_elements(self) -> List[BranchElement]:
        """Return all branch elements of the page."""
        return [self.branch_element(i) for i in range(self.count)]

    def hexdump(self, n: int) -> str:
        """Write the first n bytes of the page to stderr as hex and return the text."""
        raw = self._raw()
        if n > len(raw):
            raw = raw + bytes(n - len(raw))
        text = raw[:n].hex()
        print(text, file=sys.stderr)
        return text


def merge_pgids(a: Iterable[int], b: Iterable[int]) -> List[int]:
    """Return the sorted union of two sorted page id sequences, keeping duplicates."""
    return list(heapq.merge(a, b))