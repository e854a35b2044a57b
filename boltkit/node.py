"""In-memory, deserialized B+tree nodes and their page serialization."""

from __future__ import annotations

import bisect
import struct
from dataclasses import dataclass, field
from typing import List, Optional

from .page import (
    BRANCH_ELEMENT_SIZE,
    LEAF_ELEMENT_SIZE,
    PAGE_HEADER_SIZE,
    Page,
    PageFlag,
)
from .stats import TxStats

DEFAULT_FILL_PERCENT = 0.5
_MAX_INODES = 0xFFFF

_HEADER = struct.Struct("<QHHI")
_BRANCH = struct.Struct("<IIQ")
_LEAF = struct.Struct("<IIII")


def compare_keys(left: Optional[bytes], right: Optional[bytes]) -> int:
    """Compare two keys bytewise, returning -1, 0 or 1; None counts as empty."""
    a = left or b""
    b = right or b""
    return (a > b) - (a < b)


@dataclass
class BucketContext:
    """What a node needs from its bucket and transaction."""

    high_water_mark: int = 1
    fill_percent: float = DEFAULT_FILL_PERCENT
    stats: TxStats = field(default_factory=TxStats)


@dataclass
class Inode:
    """An element inside a node: a key with either a value or a child page id."""

    flags: int = 0
    pgid: int = 0
    key: bytes = b""
    value: bytes = b""


@dataclass(eq=False)
class Node:
    """An in-memory, deserialized page."""

    bucket: BucketContext = field(default_factory=BucketContext)
    is_leaf: bool = False
    unbalanced: bool = False
    spilled: bool = False
    key: Optional[bytes] = None
    pgid: int = 0
    parent: Optional["Node"] = field(default=None, repr=False)
    children: List["Node"] = field(default_factory=list, repr=False)
    inodes: List[Inode] = field(default_factory=list)

    def root(self) -> "Node":
        """Return the top-level node this node is attached to."""
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def min_keys(self) -> int:
        """Return the minimum number of inodes this node should have."""
        return 1 if self.is_leaf else 2

    def page_element_size(self) -> int:
        """Return the size of each page element for this kind of node."""
        return LEAF_ELEMENT_SIZE if self.is_leaf else BRANCH_ELEMENT_SIZE

    def size(self) -> int:
        """Return the size of the node after serialization."""
        elsz = self.page_element_size()
        return PAGE_HEADER_SIZE + sum(
            elsz + len(item.key) + len(item.value) for item in self.inodes
        )

    def size_less_than(self, v: int) -> bool:
        """Return True if the serialized node is smaller than v bytes."""
        sz = PAGE_HEADER_SIZE
        elsz = self.page_element_size()
        for item in self.inodes:
            sz += elsz + len(item.key) + len(item.value)
            if sz >= v:
                return False
        return True

    def _search(self, key: Optional[bytes]) -> int:
        return bisect.bisect_left(self.inodes, key or b"", key=lambda item: item.key)

    def child_index(self, child: "Node") -> int:
        """Return the index of the given child node among this node's inodes."""
        return self._search(child.key)

    def num_children(self) -> int:
        """Return the number of children."""
        return len(self.inodes)

    def put(self, old_key, new_key, value, pgid: int, flags: int) -> None:
        """Insert a key/value, replacing the inode stored under old_key if any."""
        if pgid >= self.bucket.high_water_mark:
            raise ValueError(
                f"pgId ({pgid}) above high water mark ({self.bucket.high_water_mark})"
            )
        if not old_key:
            raise ValueError("put: zero-length old key")
        if not new_key:
            raise ValueError("put: zero-length new key")

        old_key = bytes(old_key)
        index = self._search(old_key)
        exact = index < len(self.inodes) and self.inodes[index].key == old_key
        item = Inode(flags=flags, pgid=pgid, key=bytes(new_key), value=bytes(value or b""))
        if exact:
            self.inodes[index] = item
        else:
            self.inodes.insert(index, item)

    def delete(self, key) -> None:
        """Remove a key from the node and mark it for rebalancing."""
        key = bytes(key or b"")
        index = self._search(key)
        if index >= len(self.inodes) or self.inodes[index].key != key:
            return
        del self.inodes[index]
        self.unbalanced = True

    def read(self, page: Page) -> None:
        """Initialize the node from a page."""
        self.pgid = page.id
        self.is_leaf = bool(page.flags & PageFlag.LEAF)
        if self.is_leaf:
            self.inodes = [
                Inode(flags=e.flags, key=e.key, value=e.value)
                for e in page.leaf_elements()
            ]
        else:
            self.inodes = [Inode(pgid=e.pgid, key=e.key) for e in page.branch_elements()]
        if any(not item.key for item in self.inodes):
            raise ValueError("read: zero-length inode key")
        self.key = self.inodes[0].key if self.inodes else None

    def write(self, pgid: int, page_size: int) -> Page:
        """Serialize the node into a page with the given id, padded to whole pages."""
        count = len(self.inodes)
        if count >= _MAX_INODES:
            raise ValueError(f"inode overflow: {count} (pgid={pgid})")

        flags = PageFlag.LEAF if self.is_leaf else PageFlag.BRANCH
        npages = max(1, -(-self.size() // page_size))
        buf = bytearray(npages * page_size)
        _HEADER.pack_into(buf, 0, pgid, int(flags), count, npages - 1)

        elsz = self.page_element_size()
        off = PAGE_HEADER_SIZE + elsz * count
        for i, item in enumerate(self.inodes):
            if not item.key:
                raise ValueError("write: zero-length inode key")
            elem_off = PAGE_HEADER_SIZE + i * elsz
            pos = off - elem_off
            if self.is_leaf:
                _LEAF.pack_into(buf, elem_off, item.flags, pos, len(item.key), len(item.value))
            else:
                if item.pgid == pgid:
                    raise ValueError("write: circular dependency occurred")
                _BRANCH.pack_into(buf, elem_off, pos, len(item.key), item.pgid)
            data = item.key + item.value
            buf[off:off + len(data)] = data
            off += len(data)

        return Page.from_bytes(buf)

    def remove_child(self, target: "Node") -> None:
        """Remove a node from the in-memory children; inodes are not affected."""
        for i, child in enumerate(self.children):
            if child is target:
                del self.children[i]
                return