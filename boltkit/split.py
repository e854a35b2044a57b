"""Splitting of oversized nodes into page-sized pieces."""

from __future__ import annotations

from typing import List, Optional, Tuple

from .node import Node
from .page import MIN_KEYS_PER_PAGE, PAGE_HEADER_SIZE

MIN_FILL_PERCENT = 0.1
MAX_FILL_PERCENT = 1.0


def split(node: Node, page_size: int) -> List[Node]:
    """Break a node into page-sized nodes; the first node is always the given one."""
    nodes: List[Node] = []
    current: Optional[Node] = node
    while current is not None:
        first, current = split_two(current, page_size)
        nodes.append(first)
    return nodes


def split_two(node: Node, page_size: int) -> Tuple[Node, Optional[Node]]:
    """Split a node in two if it is large enough; return the node and the new sibling."""
    if len(node.inodes) <= MIN_KEYS_PER_PAGE * 2 or node.size_less_than(page_size):
        return node, None

    fill_percent = min(max(node.bucket.fill_percent, MIN_FILL_PERCENT), MAX_FILL_PERCENT)
    threshold = int(page_size * fill_percent)

    index, _ = split_index(node, threshold)

    if node.parent is None:
        node.parent = Node(bucket=node.bucket, children=[node])

    sibling = Node(bucket=node.bucket, is_leaf=node.is_leaf, parent=node.parent)
    node.parent.children.append(sibling)

    sibling.inodes = node.inodes[index:]
    node.inodes = node.inodes[:index]

    node.bucket.stats.split += 1
    return node, sibling


def split_index(node: Node, threshold: int) -> Tuple[int, int]:
    """Return where a page fills the threshold, and the size of the first page."""
    index = 0
    size = PAGE_HEADER_SIZE
    elsz = node.page_element_size()
    limit = len(node.inodes) - MIN_KEYS_PER_PAGE
    for i, item in enumerate(node.inodes[:max(limit, 0)]):
        index = i
        element_size = elsz + len(item.key) + len(item.value)
        if index >= MIN_KEYS_PER_PAGE and size + element_size > threshold:
            break
        size += element_size
    return index, size