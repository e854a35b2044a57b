import struct

import pytest
from hypothesis import given
from hypothesis import strategies as st

from boltkit.page import (
    BranchElement,
    LeafElement,
    Page,
    PageFlag,
    merge_pgids,
    page_type_name,
)


@pytest.mark.parametrize(
    "flags, expected",
    [
        (PageFlag.BRANCH, "branch"),
        (PageFlag.LEAF, "leaf"),
        (PageFlag.META, "meta"),
        (PageFlag.FREELIST, "freelist"),
        (20000, "unknown<4e20>"),
    ],
)
def test_page_typ(flags, expected):
    assert Page(flags=flags).typ() == expected
    assert page_type_name(flags) == expected


def test_hexdump(capsys):
    text = Page(id=256).hexdump(16)
    assert text == "0001000000000000" + "00" * 8
    assert capsys.readouterr().err.strip() == text


def test_merge_pgids():
    a = [4, 5, 6, 10, 11, 12, 13, 27]
    b = [1, 3, 8, 9, 25, 30]
    assert merge_pgids(a, b) == [1, 3, 4, 5, 6, 8, 9, 10, 11, 12, 13, 25, 27, 30]

    a = [4, 5, 6, 10, 11, 12, 13, 27, 35, 36]
    b = [8, 9, 25, 30]
    assert merge_pgids(a, b) == [4, 5, 6, 8, 9, 10, 11, 12, 13, 25, 27, 30, 35, 36]


def test_merge_pgids_empty_side():
    assert merge_pgids([], [3, 4]) == [3, 4]
    assert merge_pgids([1, 2], []) == [1, 2]


@given(st.lists(st.integers(0, 2**64 - 1)), st.lists(st.integers(0, 2**64 - 1)))
def test_merge_pgids_quick(a, b):
    a.sort()
    b.sort()
    assert merge_pgids(a, b) == sorted(a + b)


def _leaf_page_buffer():
    buf = bytearray(4096)
    struct.pack_into("<QHHI", buf, 0, 0, PageFlag.LEAF, 2, 0)
    struct.pack_into("<IIII", buf, 16, 0, 32, 3, 4)
    struct.pack_into("<IIII", buf, 32, 0, 23, 10, 3)
    data = b"barfoozhelloworldbye"
    buf[48:48 + len(data)] = data
    return buf


def test_read_leaf_page():
    page = Page.from_bytes(_leaf_page_buffer())
    assert page.flags == PageFlag.LEAF
    assert page.count == 2
    elems = page.leaf_elements()
    assert [(e.key, e.value) for e in elems] == [
        (b"bar", b"fooz"),
        (b"helloworld", b"bye"),
    ]
    assert page.leaf_element(1) == LeafElement(0, 23, 10, 3, b"helloworld", b"bye")


def test_read_branch_page():
    buf = bytearray(256)
    struct.pack_into("<QHHI", buf, 0, 7, PageFlag.BRANCH, 2, 0)
    struct.pack_into("<IIQ", buf, 16, 32, 3, 11)
    struct.pack_into("<IIQ", buf, 32, 19, 2, 12)
    buf[48:53] = b"abcxy"
    page = Page.from_bytes(buf)
    assert page.branch_elements() == [
        BranchElement(32, 3, 11, b"abc"),
        BranchElement(19, 2, 12, b"xy"),
    ]


def test_empty_page_has_no_elements():
    buf = bytearray(64)
    struct.pack_into("<QHHI", buf, 0, 3, PageFlag.LEAF, 0, 0)
    page = Page.from_bytes(buf)
    assert page.leaf_elements() == []
    assert page.branch_elements() == []


def test_element_index_out_of_range():
    page = Page.from_bytes(_leaf_page_buffer())
    with pytest.raises(IndexError):
        page.leaf_element(2)


def test_from_bytes_too_short():
    with pytest.raises(ValueError):
        Page.from_bytes(b"\x00" * 8)


def test_from_bytes_header_fields():
    buf = struct.pack("<QHHI", 42, PageFlag.META, 0, 3)
    page = Page.from_bytes(buf)
    assert (page.id, page.flags, page.count, page.overflow) == (42, 4, 0, 3)


def test_fast_check_accepts_valid_page():
    page = Page(id=5, flags=PageFlag.LEAF)
    page.fast_check(5)
    assert page.typ() == "leaf"


def test_fast_check_wrong_id():
    with pytest.raises(ValueError, match="self identifies as 6"):
        Page(id=6, flags=PageFlag.LEAF).fast_check(5)


def test_fast_check_bad_flags():
    with pytest.raises(ValueError, match="unexpected type/flags: 3"):
        Page(id=5, flags=PageFlag.LEAF | PageFlag.BRANCH).fast_check(5)