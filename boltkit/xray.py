"""Raw traversal of the page tree of a database file, for tools and tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence

from .guts import PathLike, get_root_page, load_bucket, load_page_meta, read_page
from .page import Page

PageCallback = Callable[[Page, List[int]], None]


def _format_stack(stack: Sequence[int]) -> str:
    return "[" + " ".join(str(pgid) for pgid in stack) + "]"


@dataclass(frozen=True)
class XRay:
    """Navigator over the raw pages of a database file."""

    path: PathLike

    def traverse(self, stack: Sequence[int], callback: PageCallback) -> None:
        """Visit the page at the top of stack and everything reachable from it."""
        stack = list(stack)
        try:
            page, data = read_page(self.path, stack[-1])
        except (OSError, ValueError, EOFError) as exc:
            raise RuntimeError(
                f"failed reading page (stack {_format_stack(stack)}): {exc}"
            ) from exc
        try:
            callback(page, stack)
        except Exception as exc:
            raise RuntimeError(
                f"failed callback for page (stack {_format_stack(stack)}): {exc}"
            ) from exc

        kind = page.typ()
        if kind == "meta":
            root = load_page_meta(data).root.root
            self.traverse(stack + [root], callback)
        elif kind == "branch":
            for element in page.branch_elements():
                self.traverse(stack + [element.pgid], callback)
        elif kind == "leaf":
            for element in page.leaf_elements():
                if not element.is_bucket:
                    continue
                header = load_bucket(element.value)
                if header.root > 0:
                    self.traverse(stack + [header.root], callback)
                    continue
                inline = header.inline_page(element.value)
                try:
                    callback(inline, stack)
                except Exception as exc:
                    raise RuntimeError(
                        f"failed callback for inline page (stack {_format_stack(stack)}): {exc}"
                    ) from exc

    def find_paths_to_key(self, key) -> List[List[int]]:
        """Return every page path from the root to a leaf page holding key."""
        key = bytes(key)
        found: List[List[int]] = []

        def visit(page: Page, stack: List[int]) -> None:
            if page.typ() != "leaf":
                return
            for element in page.leaf_elements():
                if element.key == key:
                    found.append(list(stack))

        root_page, _ = get_root_page(self.path)
        self.traverse([root_page], visit)
        return found