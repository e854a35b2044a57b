"""Walking the page tree of a bucket and laying pages out for writing."""

from __future__ import annotations

from typing import Callable, Iterator, List, Tuple

from .guts import MAX_ALLOC_SIZE
from .page import Page, PageFlag, PageInfo

PageLoader = Callable[[int], Page]
PageVisit = Tuple[Page, int, Tuple[int, ...]]


def iter_pages(load_page: PageLoader, root: int) -> Iterator[PageVisit]:
    """Yield (page, depth, stack) for every page reachable from root, depth first.

    The stack holds the page ids from root down to the visited page.
    Every page is checked to carry the id it was loaded under.
    """

    def walk(stack: List[int]) -> Iterator[PageVisit]:
        page_id = stack[-1]
        page = load_page(page_id)
        page.fast_check(page_id)
        yield page, len(stack) - 1, tuple(stack)
        if page.flags & PageFlag.BRANCH:
            for element in page.branch_elements():
                yield from walk(stack + [element.pgid])

    yield from walk([root])


def for_each_page(
    load_page: PageLoader,
    root: int,
    fn: Callable[[Page, int, Tuple[int, ...]], None],
) -> None:
    """Call fn(page, depth, stack) for every page reachable from root."""
    for page, depth, stack in iter_pages(load_page, root):
        fn(page, depth, stack)


def page_info(page: Page, is_free: bool) -> PageInfo:
    """Describe a page; a page on the freelist is reported with type "free"."""
    return PageInfo(
        id=page.id,
        type="free" if is_free else page.typ(),
        count=page.count,
        overflow_count=page.overflow,
    )


def page_chunks(
    page_id: int, data, page_size: int, limit: int = MAX_ALLOC_SIZE
) -> Iterator[Tuple[int, bytes]]:
    """Yield (file offset, bytes) pieces for writing a page and its overflow.

    Each piece is at most ``limit - 1`` bytes long; the first starts at the
    page's position in the file.
    """
    raw = bytes(data)
    if page_size <= 0:
        raise ValueError(f"invalid page size: {page_size}")
    if limit < 2:
        raise ValueError(f"invalid allocation limit: {limit}")
    if not raw or len(raw) % page_size:
        raise ValueError(
            f"page data length {len(raw)} is not a whole number of {page_size}-byte pages"
        )

    chunk = limit - 1
    offset = page_id * page_size
    for start in range(0, len(raw), chunk):
        piece = raw[start:start + chunk]
        yield offset + start, piece