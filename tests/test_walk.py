import pytest

from boltkit.node import BucketContext, Node
from boltkit.page import Page
from boltkit.walk import for_each_page, iter_pages, page_chunks, page_info

PAGE_SIZE = 4096


def _leaf(pgid, items):
    node = Node(bucket=BucketContext(high_water_mark=100), is_leaf=True)
    for key, value in items:
        node.put(key, key, value, 0, 0)
    return node.write(pgid, PAGE_SIZE)


def _branch(pgid, children):
    node = Node(bucket=BucketContext(high_water_mark=100), is_leaf=False)
    for key, child in children:
        node.put(key, key, None, child, 0)
    return node.write(pgid, PAGE_SIZE)


@pytest.fixture
def tree():
    return {
        2: _branch(2, [(b"a", 3), (b"m", 4)]),
        3: _leaf(3, [(b"a", b"1"), (b"b", b"2")]),
        4: _leaf(4, [(b"m", b"3"), (b"z", b"4")]),
    }


def test_iter_pages_visits_depth_first(tree):
    visits = list(iter_pages(tree.__getitem__, 2))
    assert [p.id for p, _, _ in visits] == [2, 3, 4]
    assert [depth for _, depth, _ in visits] == [0, 1, 1]
    assert [stack for _, _, stack in visits] == [(2,), (2, 3), (2, 4)]


def test_iter_pages_single_leaf(tree):
    visits = list(iter_pages(tree.__getitem__, 3))
    assert len(visits) == 1
    page, depth, stack = visits[0]
    assert page.id == 3
    assert depth == 0
    assert stack == (3,)


def test_for_each_page_matches_iter_pages(tree):
    seen = []
    for_each_page(tree.__getitem__, 2, lambda p, d, s: seen.append((p.id, d, s)))
    expected = [(p.id, d, s) for p, d, s in iter_pages(tree.__getitem__, 2)]
    assert seen == expected


def test_iter_pages_rejects_misidentified_page(tree):
    pages = dict(tree)
    pages[4] = tree[3]
    with pytest.raises(ValueError, match="self identifies as 3"):
        list(iter_pages(pages.__getitem__, 2))


def test_page_info_for_used_page(tree):
    info = page_info(tree[3], False)
    assert info.id == 3
    assert info.type == "leaf"
    assert info.count == 2
    assert info.overflow_count == 0


def test_page_info_for_free_page(tree):
    info = page_info(tree[2], True)
    assert info.type == "free"
    assert info.id == 2


def test_page_chunks_single_piece():
    data = bytes(range(256)) * 32
    chunks = list(page_chunks(5, data, 4096))
    assert chunks == [(5 * 4096, data)]


def test_page_chunks_split_by_limit():
    data = bytes(range(256)) * 48
    chunks = list(page_chunks(7, data, 4096, limit=1001))
    assert b"".join(piece for _, piece in chunks) == data
    assert all(len(piece) <= 1000 for _, piece in chunks)
    offset = 7 * 4096
    for start, piece in chunks:
        assert start == offset
        offset += len(piece)


def test_page_chunks_round_trip_with_written_page(tree):
    page = tree[4]
    chunks = list(page_chunks(page.id, page.data, PAGE_SIZE, limit=1025))
    assert b"".join(piece for _, piece in chunks) == page.data
    assert Page.from_bytes(chunks[0][1]).id == 4


def test_page_chunks_rejects_partial_page():
    with pytest.raises(ValueError):
        list(page_chunks(1, b"\x00" * 100, 4096))


def test_page_chunks_rejects_empty_data():
    with pytest.raises(ValueError):
        list(page_chunks(1, b"", 4096))