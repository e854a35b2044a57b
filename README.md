# boltkit

boltkit reads, checks and repairs B+tree key/value database files at the
page level. Each file is a series of fixed-size pages. Two meta pages come
first. Branch, leaf and freelist pages follow.

boltkit has no dependencies outside the standard library.

## Installation

```
pip install boltkit
```

To install the test suite's requirements and run it:

```
pip install "boltkit[test]"
pytest
```

## Modules

- `boltkit.page` decodes pages and their elements.
  - `Page.from_bytes` parses a page from a buffer.
  - `Page.typ` names the page type.
  - `Page.fast_check` raises `ValueError` when the page id or type flags are wrong.
  - `Page.leaf_elements`, `Page.leaf_element`, `Page.branch_elements` and `Page.branch_element` return elements with their keys and values resolved.
  - `Page.hexdump` writes the first bytes as hex to stderr and also returns that text.
  - `page_type_name` and `PageFlag` cover the page type flags.
  - `merge_pgids` merges two sorted page id lists and keeps duplicates.
- `boltkit.guts` reads pages and meta data from files on disk.
  - `read_page` returns a page, including its overflow pages, together with its raw bytes. It raises `CorruptError` when a page carries the wrong id or claims an implausible overflow.
  - `read_page_and_hwm_size` returns the page size and the high water mark.
  - `get_root_page` returns the root page and the active meta page, which is the one with the higher transaction id.
  - `load_page_meta`, `load_bucket` and `freelist_page_ids` decode raw structures.
  - `Meta.format` renders the meta fields as text.
- `boltkit.xray.XRay` walks the page tree from the active root, nested buckets included.
  - `XRay.traverse` calls a callback for every page.
  - `XRay.find_paths_to_key` lists every page path that leads to a leaf holding a key.
- `boltkit.surgeon` edits files in place.
  - `copy_page` copies one page over another.
  - `write_page` writes a page buffer at the position given by its own id.
  - `revert_meta_page` copies the older meta page over the newer one. This drops the last transaction.
- `boltkit.check` checks a file for consistency.
  - `check_file` returns a list of messages, one for each problem found. It looks for doubly freed pages, pages referenced more than once, reachable freed pages, pages of the wrong type, pages beyond the high water mark, unreachable pages that are not freed, and keys out of order within and across pages.
  - `recursively_check_pages` and `verify_key_order` do the key-order part on their own.
  - `HexKVStringer` renders keys as hex in the messages.
- `boltkit.node` holds the in-memory B+tree nodes.
  - `Node.put` and `Node.delete` insert and remove keys.
  - `Node.read` loads a node from a `Page`.
  - `Node.write` serialises the node into a new `Page`.
- `boltkit.split` splits an oversized node into page-sized nodes: `split`, `split_two` and `split_index`.
- `boltkit.walk` has helpers for pages.
  - `iter_pages` and `for_each_page` walk the pages under a root.
  - `page_info` describes a page as a `PageInfo`.
  - `page_chunks` cuts a page into pieces with file offsets for writing.
- `boltkit.stats.TxStats` holds transaction counters. It supports `add` and `sub`.

## Example

```python
from boltkit.check import HexKVStringer, check_file
from boltkit.guts import get_root_page, read_page
from boltkit.xray import XRay

root, active_meta = get_root_page("data.db")
page, raw = read_page("data.db", root)
print(page.typ(), len(raw))

for path in XRay("data.db").find_paths_to_key(b"0451"):
    print(" -> ".join(map(str, path)))

for problem in check_file("data.db", HexKVStringer()):
    print(problem)
```

To roll back the last transaction of a damaged file:

```python
from boltkit.surgeon import revert_meta_page

revert_meta_page("data.db")
```

## What boltkit does not do

- It is not a database engine. You cannot open a database with it, run transactions, or read and write keys through buckets or cursors.
- It does not allocate pages, keep a freelist or commit changes. `Node` and `split` work only on in-memory nodes.
- It has no command-line tool.
- It reads files directly, with no locking. Do not run it on a file that another process is writing.
- When a file was written without a freelist page, `check_file` has no list of free pages. It then reports those pages as unreachable.