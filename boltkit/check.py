"""Consistency checks of the B+tree stored in a database file."""

from __future__ import annotations

from typing import Callable, List, Optional, Protocol, Sequence, Set

from .guts import (
    PathLike,
    freelist_page_ids,
    get_root_page,
    load_bucket,
    load_page_meta,
    read_page,
)
from .node import compare_keys
from .page import Page, PageFlag
from .walk import iter_pages

PGID_NO_FREELIST = 0xFFFFFFFFFFFFFFFF

PageLoader = Callable[[int], Page]
KeyToString = Callable[[bytes], str]


class KVStringer(Protocol):
    """Turns keys and values into human readable text for diagnostics."""

    def key_to_string(self, key: bytes) -> str: ...

    def value_to_string(self, value: bytes) -> str: ...


class HexKVStringer:
    """Renders both keys and values as lower-case hex."""

    def key_to_string(self, key: bytes) -> str:
        return bytes(key or b"").hex()

    def value_to_string(self, value: bytes) -> str:
        return bytes(value or b"").hex()


def _format_stack(stack: Sequence[int]) -> str:
    return "[" + " ".join(str(pgid) for pgid in stack) + "]"


def verify_key_order(
    pgid: int,
    page_type: str,
    index: int,
    key: bytes,
    previous_key: Optional[bytes],
    max_key_open: Optional[bytes],
    key_to_string: KeyToString,
    pages_stack: Sequence[int],
) -> List[str]:
    """Return the violations of the key at index against its previous key and upper bound."""

    def show(value: Optional[bytes]) -> str:
        return key_to_string(value if value is not None else b"")

    stack = _format_stack(pages_stack)
    errors: List[str] = []
    if index == 0 and previous_key is not None and compare_keys(previous_key, key) > 0:
        errors.append(
            f"the first key[{index}]=(hex){show(key)} on {page_type} page({pgid}) "
            f"needs to be >= the key in the ancestor ({show(previous_key)}). Stack: {stack}"
        )
    if index > 0:
        cmp = compare_keys(previous_key, key)
        if cmp > 0:
            errors.append(
                f"key[{index}]=(hex){show(key)} on {page_type} page({pgid}) needs to be "
                f"> (found <) than previous element (hex){show(previous_key)}. Stack: {stack}"
            )
        if cmp == 0:
            errors.append(
                f"key[{index}]=(hex){show(key)} on {page_type} page({pgid}) needs to be "
                f"> (found =) than previous element (hex){show(previous_key)}. Stack: {stack}"
            )
    if max_key_open is not None and compare_keys(key, max_key_open) >= 0:
        errors.append(
            f"key[{index}]=(hex){show(key)} on {page_type} page({pgid}) needs to be < "
            f"than key of the next element in ancestor (hex){show(previous_key)}. "
            f"Pages stack: {stack}"
        )
    return errors


def _check_subtree(
    load_page: PageLoader,
    pgid: int,
    min_key_closed: Optional[bytes],
    max_key_open: Optional[bytes],
    stack: List[int],
    key_to_string: KeyToString,
    errors: List[str],
) -> Optional[bytes]:
    page = load_page(pgid)
    stack = stack + [pgid]
    if page.flags & PageFlag.BRANCH:
        elements = page.branch_elements()
        running_min = min_key_closed
        max_in_subtree: Optional[bytes] = None
        for i, element in enumerate(elements):
            errors.extend(verify_key_order(
                element.pgid, "branch", i, element.key, running_min,
                max_key_open, key_to_string, stack,
            ))
            upper = elements[i + 1].key if i < len(elements) - 1 else max_key_open
            max_in_subtree = _check_subtree(
                load_page, element.pgid, element.key, upper, stack, key_to_string, errors
            )
            running_min = max_in_subtree
        return max_in_subtree
    if page.flags & PageFlag.LEAF:
        elements = page.leaf_elements()
        running_min = min_key_closed
        for i, element in enumerate(elements):
            errors.extend(verify_key_order(
                pgid, "leaf", i, element.key, running_min,
                max_key_open, key_to_string, stack,
            ))
            running_min = element.key
        return elements[-1].key if elements else None
    errors.append(f"unexpected page type for pgId:{pgid}")
    return None


def recursively_check_pages(
    load_page: PageLoader, pgid: int, key_to_string: KeyToString
) -> List[str]:
    """Check that keys are sorted on each page and lie within their parent's key ranges."""
    errors: List[str] = []
    _check_subtree(load_page, pgid, None, None, [], key_to_string, errors)
    return errors


def _check_bucket(
    load_page: PageLoader,
    root: int,
    high_water_mark: int,
    reachable: Set[int],
    freed: Set[int],
    kv_stringer: KVStringer,
    errors: List[str],
) -> None:
    # Inline buckets live inside their parent's page.
    if root == 0:
        return

    child_roots: List[int] = []
    for page, _, stack in iter_pages(load_page, root):
        shown = _format_stack(stack)
        if page.id > high_water_mark:
            errors.append(
                f"page {page.id}: out of bounds: {high_water_mark} (stack: {shown})"
            )
        for pid in range(page.id, page.id + page.overflow + 1):
            if pid in reachable:
                errors.append(f"page {pid}: multiple references (stack: {shown})")
            reachable.add(pid)

        if page.id in freed:
            errors.append(f"page {page.id}: reachable freed")
        elif not page.flags & (PageFlag.BRANCH | PageFlag.LEAF):
            errors.append(f"page {page.id}: invalid type: {page.typ()} (stack: {shown})")

        if page.flags & PageFlag.LEAF:
            child_roots.extend(
                load_bucket(element.value).root
                for element in page.leaf_elements()
                if element.is_bucket
            )

    errors.extend(recursively_check_pages(load_page, root, kv_stringer.key_to_string))

    for child_root in child_roots:
        _check_bucket(
            load_page, child_root, high_water_mark, reachable, freed, kv_stringer, errors
        )


def check_file(path: PathLike, kv_stringer: Optional[KVStringer] = None) -> List[str]:
    """Run the consistency checks on a database file and return every problem found."""
    kv = kv_stringer if kv_stringer is not None else HexKVStringer()

    _, active = get_root_page(path)
    _, meta_buf = read_page(path, active)
    meta = load_page_meta(meta_buf)

    cache = {}

    def load_page(pid: int) -> Page:
        page = cache.get(pid)
        if page is None:
            page, _ = read_page(path, pid)
            cache[pid] = page
        return page

    errors: List[str] = []
    freed: Set[int] = set()
    reachable: Set[int] = {0, 1}

    if meta.freelist != PGID_NO_FREELIST:
        freelist = load_page(meta.freelist)
        for pid in freelist_page_ids(freelist):
            if pid in freed:
                errors.append(f"page {pid}: already freed")
            freed.add(pid)
        reachable.update(range(meta.freelist, meta.freelist + freelist.overflow + 1))

    _check_bucket(load_page, meta.root.root, meta.pgid, reachable, freed, kv, errors)

    errors.extend(
        f"page {pid}: unreachable unfreed"
        for pid in range(meta.pgid)
        if pid not in reachable and pid not in freed
    )
    return errors