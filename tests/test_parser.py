import logging

import pytest

from ptable_lib.cells import get_cell_text
from ptable_lib.config import ClusterConfig
from ptable_lib.geometry import Orientation, create_box
from ptable_lib.models import (
    Character,
    Document,
    DocumentChanges,
    Page,
    PageChanges,
    Patch,
    PreventBinding,
)
from ptable_lib.parser import PreventBindingError, cluster_document, cluster_page

FONT_SIZE = 10.0


def make_char(text, left, top, orientation=Orientation.EAST, size=FONT_SIZE):
    if orientation in (Orientation.EAST, Orientation.WEST):
        box = create_box(left, top, left + size / 2, top + size)
    else:
        box = create_box(left, top, left + size, top + size / 2)
    return Character(
        codepoint=ord(text),
        utf8=text,
        font_size=size,
        orientation=orientation,
        bounding_box=box,
    )


def make_word(text, left, top):
    """Characters 5 units wide, one unit apart."""
    return [make_char(c, left + 6 * i, top) for i, c in enumerate(text)]


def make_page(*words, number=1):
    characters = []
    for word in words:
        characters.extend(make_word(*word))
    return Page(number=number, width=200, height=200, characters=characters)


def test_single_character():
    page = Page(number=1, width=100, height=100, characters=[make_char("I", 0, 0)])
    assert cluster_page(page) == []
    assert [s.text for s in page.segments] == ["I"]
    assert page.segments[0].orientation == Orientation.SOUTH
    assert [b.text for b in page.blocks] == ["I"]
    assert len(page.rows) == 1
    assert page.rows[0].blocks[0].text == "I"


def test_close_characters_are_joined():
    page = Page(
        number=1,
        width=100,
        height=100,
        characters=[make_char("I", 0, 0), make_char("n", 6, 0)],
    )
    cluster_page(page)
    assert [s.text for s in page.segments] == ["In"]
    assert page.segments[0].character_indices == [0, 1]


def test_distant_characters_are_split():
    page = Page(
        number=1,
        width=100,
        height=100,
        characters=[make_char("I", 0, 0), make_char("n", 20, 0)],
    )
    cluster_page(page)
    assert sorted(s.text for s in page.segments) == ["I", "n"]
    assert [[b.text for b in row.blocks] for row in page.rows] == [["I", "n"]]


def test_characters_are_sorted_in_reading_order():
    page = Page(
        number=1,
        width=100,
        height=100,
        characters=[make_char("n", 6, 0), make_char("I", 0, 0)],
    )
    cluster_page(page)
    assert [s.text for s in page.segments] == ["In"]


def test_upward_text():
    page = Page(
        number=1,
        width=100,
        height=100,
        characters=[
            make_char("R", 0, 50, Orientation.NORTH),
            make_char("e", 0, 44, Orientation.NORTH),
        ],
    )
    cluster_page(page)
    assert [s.text for s in page.segments] == ["Re"]
    assert page.segments[0].orientation == Orientation.EAST


def test_grid():
    page = make_page(("0,0", 0, 0), ("0,1", 50, 0), ("1,0", 0, 40), ("1,1", 50, 40))
    cluster_page(page)
    assert [[b.text for b in row.blocks] for row in page.rows] == [
        ["0,0", "0,1"],
        ["1,0", "1,1"],
    ]
    assert get_cell_text(page, -2, -2) == "0,0"
    assert get_cell_text(page, 1, -1) == "1,1"
    for row_index, row in enumerate(page.rows):
        for col_index, block in enumerate(row.blocks):
            assert (block.row, block.col) == (row_index, col_index)


def test_consecutive_lines_form_a_block():
    page = make_page(("ab", 0, 0), ("cd", 0, 12))
    cluster_page(page)
    assert [b.text for b in page.blocks] == ["ab\ncd"]


def test_lines_too_far_apart_are_separate_blocks():
    page = make_page(("ab", 0, 0), ("cd", 0, 30))
    cluster_page(page)
    assert sorted(b.text for b in page.blocks) == ["ab", "cd"]


def test_different_font_sizes_are_separate_blocks():
    page = make_page(("ab", 0, 0))
    page.characters.append(make_char("c", 0, 12, size=9))
    cluster_page(page)
    assert sorted(b.text for b in page.blocks) == ["ab", "c"]


def test_prevent_binding_splits_block():
    page = make_page(("ab", 0, 0), ("cd", 0, 12))
    unconsumed = cluster_page(page, [PreventBinding("ab", "cd")])
    assert unconsumed == []
    assert [b.text for b in page.blocks] == ["ab", "cd"]
    assert len(page.rows) == 2


def test_duplicated_prevent_binding_raises():
    page = make_page(("ab", 0, 0), ("cd", 0, 12))
    with pytest.raises(PreventBindingError):
        cluster_page(page, [PreventBinding("ab", "cd"), PreventBinding("ab", "cd")])


def test_unconsumed_prevent_binding_is_reported(caplog):
    page = make_page(("ab", 0, 0), ("cd", 0, 12))
    with caplog.at_level(logging.ERROR, logger="ptable.cluster"):
        unconsumed = cluster_page(page, [PreventBinding("x", "y")])
    assert unconsumed == [PreventBinding("x", "y")]
    assert "x <-> y" in caplog.text
    assert [b.text for b in page.blocks] == ["ab\ncd"]


def test_unconsumed_prevent_binding_raises_in_strict_mode():
    page = make_page(("ab", 0, 0))
    config = ClusterConfig(strict_prevent_bindings=True)
    with pytest.raises(PreventBindingError, match="x <-> y"):
        cluster_page(page, [PreventBinding("x", "y")], config)


def test_prevent_binding_without_valid_link_is_not_consumed():
    page = make_page(("ab", 0, 0), ("cd", 0, 30))
    assert cluster_page(page, [PreventBinding("ab", "cd")]) == [PreventBinding("ab", "cd")]


def test_stacked_blocks_of_a_row_merge_into_one_cell():
    # "cd" is too far below "ab" to join it, but both share a row with the tall block.
    page = make_page(("ab", 0, 0), ("cd", 0, 24), ("x", 60, 0), ("y", 60, 12), ("z", 60, 24))
    cluster_page(page)
    assert [[b.text for b in row.blocks] for row in page.rows] == [["ab\ncd", "x\ny\nz"]]


def test_clustering_is_idempotent():
    page = make_page(("0,0", 0, 0), ("0,1", 50, 0), ("ab", 0, 40), ("cd", 0, 52))
    cluster_page(page)
    first = (list(page.segments), list(page.blocks), page.text)
    cluster_page(page)
    assert (page.segments, page.blocks, page.text) == first


def test_tighter_character_distance_splits_words():
    page = make_page(("ab", 0, 0))
    cluster_page(page, config=ClusterConfig(max_character_distance=0.5))
    assert sorted(s.text for s in page.segments) == ["a", "b"]


def test_cluster_document_applies_patches():
    document = Document(pages=[make_page(("ab", 0, 0), ("cd", 0, 12))])
    changes = DocumentChanges(
        pages=[
            PageChanges(page_number=1, prevent_bindings=[PreventBinding("ab", "cd")]),
            PageChanges(page_number=1, patches=[Patch(row=1, col=0, expected="cd", replacement="CD")]),
            PageChanges(page_number=2, patches=[Patch(row=0, col=0, expected="?", replacement="!")]),
        ]
    )
    cluster_document(document, changes)
    assert document.pages[0].text == "ab\nCD"


def test_cluster_document_without_changes():
    document = Document(pages=[make_page(("ab", 0, 0)), make_page(("cd", 0, 0), number=2)])
    cluster_document(document)
    assert [page.text for page in document.pages] == ["ab", "cd"]
