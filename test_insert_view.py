"""
Tests for richtree.insert and richtree.view: splicing inline and block
elements at the cursor, and line-break / backspace handling around atomic
elements.

Run: python3 test_insert_view.py
"""

import sys

sys.path.insert(0, '.')

from richtree.html import serialize
from richtree.insert import (
    insert_anchor,
    insert_anchor_link,
    insert_hover_area,
    insert_image,
    insert_link,
    insert_table,
)
from richtree.models import EditorContext, Element, Point, Range, Text
from richtree.table import create_table
from richtree.view import delete_backward, insert_break, remove_element, resize_element, update_image


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _para(text):
    return Element(type="paragraph", children=[Text(text=text)])


def _cursor(document, path, offset):
    return EditorContext(document=document, selection=Range.collapsed(Point(path=path, offset=offset)))


def _types(ctx):
    return [block.type for block in ctx.document]


# ---------------------------------------------------------------------------
# Block insertion
# ---------------------------------------------------------------------------

def test_insert_image_at_block_end_adds_trailing_paragraph():
    ctx = _cursor([_para("Hello")], (0, 0), 5)
    result = insert_image(ctx, "data:image/png;base64,AAA", "logo")
    assert _types(result) == ["paragraph", "image", "paragraph"]
    image = result.document[1]
    assert image.url == "data:image/png;base64,AAA"
    assert image.alt == "logo"
    assert (image.width, image.height) == ("300px", "auto")
    assert result.document[2].children[0].text == ""
    assert result.selection == Range.collapsed(Point(path=(2, 0), offset=0))
    print("PASS: test_insert_image_at_block_end_adds_trailing_paragraph")


def test_insert_table_mid_block_splits_it():
    ctx = _cursor([_para("Hello")], (0, 0), 2)
    result = insert_table(ctx, 2, 3)
    assert _types(result) == ["paragraph", "table", "paragraph", "paragraph"]
    assert result.document[0].children[0].text == "He"
    assert result.document[3].children[0].text == "llo"
    table = result.document[1]
    assert len(table.rows) == 2 and len(table.rows[0].children) == 3
    print("PASS: test_insert_table_mid_block_splits_it")


def test_insert_at_block_start_goes_before():
    ctx = _cursor([_para("Hello")], (0, 0), 0)
    result = insert_hover_area(ctx)
    assert _types(result) == ["hover-area", "paragraph", "paragraph"]
    hover = result.document[0]
    assert hover.children[0].text == "Hover text"
    assert hover.hover_content == "Hover content"
    assert hover.is_edit_mode is True
    assert result.document[2].children[0].text == "Hello"
    print("PASS: test_insert_at_block_start_goes_before")


def test_insert_without_selection_appends():
    ctx = EditorContext(document=[_para("only")])
    result = insert_table(ctx, 1, 1)
    assert _types(result) == ["paragraph", "table", "paragraph"]
    print("PASS: test_insert_without_selection_appends")


def test_cancelled_insertions_are_no_ops():
    ctx = _cursor([_para("Hello")], (0, 0), 2)
    assert insert_image(ctx, "") is ctx
    assert insert_link(ctx, "") is ctx
    assert insert_anchor(ctx, "") is ctx
    assert insert_anchor_link(ctx, "") is ctx
    assert insert_table(ctx, 0, 3) is ctx
    print("PASS: test_cancelled_insertions_are_no_ops")


# ---------------------------------------------------------------------------
# Inline insertion
# ---------------------------------------------------------------------------

def test_insert_link_splits_text_leaf():
    ctx = _cursor([_para("Hello world")], (0, 0), 5)
    result = insert_link(ctx, "https://example.com", "site")
    children = result.document[0].children
    assert [type(c).__name__ for c in children] == ["Text", "Element", "Text"]
    assert children[0].text == "Hello"
    assert children[2].text == " world"
    link = children[1]
    assert (link.type, link.href, link.target) == ("link", "https://example.com", "_blank")
    assert link.children[0].text == "site"
    assert result.selection == Range.collapsed(Point(path=(0, 1, 0), offset=4))
    print("PASS: test_insert_link_splits_text_leaf")


def test_insert_link_at_leaf_start_keeps_text_on_both_sides():
    ctx = _cursor([_para("Hello")], (0, 0), 0)
    result = insert_link(ctx, "https://example.com")
    children = result.document[0].children
    assert isinstance(children[0], Text) and children[0].text == ""
    assert children[1].children[0].text == "https://example.com"
    assert children[2].text == "Hello"
    print("PASS: test_insert_link_at_leaf_start_keeps_text_on_both_sides")


def test_insert_anchor_and_anchor_link():
    ctx = _cursor([_para("ab")], (0, 0), 2)
    anchored = insert_anchor(ctx, "intro")
    anchor = anchored.document[0].children[1]
    assert (anchor.type, anchor.id, anchor.children[0].text) == ("anchor", "intro", "[intro]")

    linked = insert_anchor_link(_cursor([_para("ab")], (0, 0), 2), "intro")
    link = linked.document[0].children[1]
    assert link.href == "#intro"
    assert link.target is None
    assert link.children[0].text == "Go to intro"
    assert '<a href="#intro" target="_blank">Go to intro</a>' in serialize(linked.document)
    print("PASS: test_insert_anchor_and_anchor_link")


def test_inline_insertion_inside_atomic_is_no_op():
    ctx = _cursor([create_table(1, 1)], (0, 0), 0)
    assert insert_link(ctx, "https://example.com") is ctx
    print("PASS: test_inline_insertion_inside_atomic_is_no_op")


def test_insert_over_selection_replaces_it():
    ctx = EditorContext(
        document=[_para("click here now")],
        selection=Range(anchor=Point(path=(0, 0), offset=10), focus=Point(path=(0, 0), offset=6)),
    )
    result = insert_link(ctx, "http://x", "here")
    assert serialize(result.document) == '<p>click <a href="http://x" target="_blank">here</a> now</p>'
    assert serialize(ctx.document) == "<p>click here now</p>"
    print("PASS: test_insert_over_selection_replaces_it")


def test_insert_over_selection_across_blocks_joins_them():
    ctx = EditorContext(
        document=[_para("Hello"), _para("world")],
        selection=Range(anchor=Point(path=(0, 0), offset=2), focus=Point(path=(1, 0), offset=3)),
    )
    result = insert_table(ctx, 1, 1)
    assert _types(result) == ["paragraph", "table", "paragraph", "paragraph"]
    assert result.document[0].children[0].text == "He"
    assert result.document[3].children[0].text == "ld"
    print("PASS: test_insert_over_selection_across_blocks_joins_them")


# ---------------------------------------------------------------------------
# Line breaks
# ---------------------------------------------------------------------------

def test_break_at_image_adds_exactly_one_paragraph():
    ctx = insert_image(_cursor([_para("a")], (0, 0), 1), "data:image/png;base64,AAA")
    assert _types(ctx) == ["paragraph", "image", "paragraph"]

    at_image = ctx.evolve(ctx.document, Range.collapsed(Point(path=(1, 0), offset=0)))
    result = insert_break(at_image)
    assert _types(result) == ["paragraph", "image", "paragraph", "paragraph"]
    assert result.document[2].children[0].text == ""
    assert result.document[1] == ctx.document[1]
    assert result.selection == Range.collapsed(Point(path=(2, 0), offset=0))
    print("PASS: test_break_at_image_adds_exactly_one_paragraph")


def test_break_splits_paragraph():
    ctx = _cursor([_para("Hello")], (0, 0), 2)
    result = insert_break(ctx)
    assert [b.children[0].text for b in result.document] == ["He", "llo"]
    assert _types(result) == ["paragraph", "paragraph"]
    assert result.selection == Range.collapsed(Point(path=(1, 0), offset=0))
    print("PASS: test_break_splits_paragraph")


def test_break_in_list_item_adds_item():
    items = [Element(type="list-item", children=[Text(text="ab")])]
    ctx = _cursor([Element(type="bulleted-list", children=items)], (0, 0, 0), 1)
    result = insert_break(ctx)
    assert len(result.document) == 1
    assert [item.children[0].text for item in result.document[0].children] == ["a", "b"]
    assert result.selection.anchor.path == (0, 1, 0)
    print("PASS: test_break_in_list_item_adds_item")


def test_break_over_selection_deletes_then_splits():
    items = [Element(type="list-item", children=[Text(text=t)]) for t in ("a", "bc")]
    ctx = EditorContext(
        document=[_para("intro"), Element(type="bulleted-list", children=items)],
        selection=Range(anchor=Point(path=(0, 0), offset=2), focus=Point(path=(1, 1, 0), offset=1)),
    )
    result = insert_break(ctx)
    assert _types(result) == ["paragraph", "paragraph"]
    assert [b.children[0].text for b in result.document] == ["in", "c"]
    assert result.selection == Range.collapsed(Point(path=(1, 0), offset=0))
    print("PASS: test_break_over_selection_deletes_then_splits")


def test_break_over_selection_into_table_is_no_op():
    ctx = EditorContext(
        document=[_para("Hello"), create_table(1, 1)],
        selection=Range(anchor=Point(path=(0, 0), offset=1), focus=Point(path=(1, 0), offset=0)),
    )
    assert insert_break(ctx) is ctx
    print("PASS: test_break_over_selection_into_table_is_no_op")


# ---------------------------------------------------------------------------
# Backward deletion
# ---------------------------------------------------------------------------

def test_delete_backward_removes_atomic_from_its_start():
    image = Element(type="image", url="x.png", children=[Text()])
    ctx = _cursor([_para("a"), image, _para("")], (1, 0), 0)
    result = delete_backward(ctx)
    assert _types(result) == ["paragraph", "paragraph"]
    assert result.selection == Range.collapsed(Point(path=(0, 0), offset=1))
    print("PASS: test_delete_backward_removes_atomic_from_its_start")


def test_delete_backward_never_empties_document():
    ctx = _cursor([create_table(2, 2)], (0, 0), 0)
    result = delete_backward(ctx)
    assert _types(result) == ["paragraph"]
    assert result.selection == Range.collapsed(Point(path=(0, 0), offset=0))
    print("PASS: test_delete_backward_never_empties_document")


def test_delete_backward_inside_atomic_text_deletes_character():
    hover = Element(type="hover-area", hover_content="c", children=[Text(text="hover")])
    ctx = _cursor([hover, _para("")], (0, 0), 3)
    result = delete_backward(ctx)
    assert result.document[0].children[0].text == "hoer"
    print("PASS: test_delete_backward_inside_atomic_text_deletes_character")


def test_delete_backward_removes_selected_text():
    ctx = EditorContext(
        document=[_para("Hello world")],
        selection=Range(anchor=Point(path=(0, 0), offset=5), focus=Point(path=(0, 0), offset=11)),
    )
    result = delete_backward(ctx)
    assert result.document[0].children[0].text == "Hello"
    assert result.selection == Range.collapsed(Point(path=(0, 0), offset=5))
    print("PASS: test_delete_backward_removes_selected_text")


def test_delete_backward_deletes_one_character():
    ctx = _cursor([_para("abc")], (0, 0), 2)
    result = delete_backward(ctx)
    assert result.document[0].children[0].text == "ac"
    assert result.selection == Range.collapsed(Point(path=(0, 0), offset=1))
    assert ctx.document[0].children[0].text == "abc"

    at_start = _cursor([_para("abc")], (0, 0), 0)
    assert delete_backward(at_start) is at_start
    print("PASS: test_delete_backward_deletes_one_character")


# ---------------------------------------------------------------------------
# Element helpers
# ---------------------------------------------------------------------------

def test_resize_update_and_remove_elements():
    image = Element(type="image", url="a.png", children=[Text()])
    ctx = EditorContext(document=[_para("p"), image, create_table(1, 1)])

    resized = resize_element(ctx, (2,), width="640px")
    assert resized.document[2].width == "640px"
    assert resized.document[2].height is None
    assert resize_element(ctx, (0,), width="10px") is ctx

    updated = update_image(resized, [1], alt="A picture", title="Pic")
    assert (updated.document[1].alt, updated.document[1].title) == ("A picture", "Pic")
    assert update_image(updated, (1,), url="") is updated
    assert update_image(updated, (2,), alt="nope") is updated

    removed = remove_element(updated, (2,))
    assert _types(removed) == ["paragraph", "image"]
    assert remove_element(removed, (0,)) is removed
    assert remove_element(removed, (9,)) is removed
    print("PASS: test_resize_update_and_remove_elements")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_insert_image_at_block_end_adds_trailing_paragraph,
        test_insert_table_mid_block_splits_it,
        test_insert_at_block_start_goes_before,
        test_insert_without_selection_appends,
        test_cancelled_insertions_are_no_ops,
        test_insert_link_splits_text_leaf,
        test_insert_link_at_leaf_start_keeps_text_on_both_sides,
        test_insert_anchor_and_anchor_link,
        test_inline_insertion_inside_atomic_is_no_op,
        test_insert_over_selection_replaces_it,
        test_insert_over_selection_across_blocks_joins_them,
        test_break_at_image_adds_exactly_one_paragraph,
        test_break_splits_paragraph,
        test_break_in_list_item_adds_item,
        test_break_over_selection_deletes_then_splits,
        test_break_over_selection_into_table_is_no_op,
        test_delete_backward_removes_atomic_from_its_start,
        test_delete_backward_never_empties_document,
        test_delete_backward_inside_atomic_text_deletes_character,
        test_delete_backward_removes_selected_text,
        test_delete_backward_deletes_one_character,
        test_resize_update_and_remove_elements,
    ]

    passed = 0
    failed = 0
    for t in tests:
        try:
            t()
            passed += 1
        except Exception as e:
            print(f"FAIL: {t.__name__} — {e}")
            failed += 1

    print(f"\n{'=' * 50}")
    print(f"Results: {passed} passed, {failed} failed out of {len(tests)} tests")
    if failed > 0:
        sys.exit(1)
    else:
        print("All tests passed!")
