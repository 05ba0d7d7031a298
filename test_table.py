"""
Tests for richtree.table: grid shape, row/column edits, merge bookkeeping
and per-cell setters.

Run: python3 test_table.py
"""

import sys

sys.path.insert(0, '.')

from richtree.html import serialize
from richtree.models import CellRef, EditorContext, Element, Point, Range, Text
from richtree.table import (
    add_table_column,
    add_table_row,
    create_table,
    find_table,
    get_cell_selection,
    is_merge_eligible,
    merge_table_cells,
    remove_table_column,
    remove_table_row,
    set_cell_alignment,
    set_cell_background_color,
    set_cell_text,
    unmerge_table_cells,
    update_table,
    validate_table_structure,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _filled(rows, cols):
    """A table whose cell (r, c) holds the text 'rc'."""
    table = create_table(rows, cols)
    for r in range(rows):
        for c in range(cols):
            table = set_cell_text(table, r, c, f"{r}{c}")
    return table


def _texts(table):
    return [[cell.text for cell in row.children] for row in table.rows]


def _para(text):
    return Element(type="paragraph", children=[Text(text=text)])


# ---------------------------------------------------------------------------
# Grid shape
# ---------------------------------------------------------------------------

def test_create_table_grid_shape():
    table = create_table(3, 4)
    assert table.type == "table"
    assert len(table.rows) == 3
    for row in table.rows:
        assert len(row.children) == 4
        for cell in row.children:
            assert not cell.is_merged
            assert cell.text == ""
            assert cell.col_span is None and cell.row_span is None
    assert validate_table_structure(table)
    print("PASS: test_create_table_grid_shape")


def test_create_table_rejects_non_positive():
    for rows, cols in [(0, 2), (2, 0), (-1, 3)]:
        try:
            create_table(rows, cols)
            assert False, f"{rows}x{cols} should be rejected"
        except ValueError:
            pass
    print("PASS: test_create_table_rejects_non_positive")


def test_validate_table_structure_detects_ragged_rows():
    table = create_table(2, 2).model_copy(deep=True)
    table.rows[1].children.pop()
    assert not validate_table_structure(table)
    print("PASS: test_validate_table_structure_detects_ragged_rows")


# ---------------------------------------------------------------------------
# Rows and columns
# ---------------------------------------------------------------------------

def test_add_row_below_adds_one_full_row():
    table = _filled(2, 3)
    result = add_table_row(table, 0, "below")
    assert len(result.rows) == 3
    assert len(result.rows[1].children) == 3
    assert _texts(result) == [["00", "01", "02"], ["", "", ""], ["10", "11", "12"]]
    # Input untouched
    assert len(table.rows) == 2
    print("PASS: test_add_row_below_adds_one_full_row")


def test_add_row_above():
    result = add_table_row(_filled(2, 2), 0, "above")
    assert _texts(result) == [["", ""], ["00", "01"], ["10", "11"]]
    print("PASS: test_add_row_above")


def test_add_column_left_and_right():
    table = _filled(2, 2)
    left = add_table_column(table, 1, "left")
    assert _texts(left) == [["00", "", "01"], ["10", "", "11"]]
    right = add_table_column(table, 1, "right")
    assert _texts(right) == [["00", "01", ""], ["10", "11", ""]]
    print("PASS: test_add_column_left_and_right")


def test_invalid_row_and_column_requests_are_no_ops():
    table = _filled(2, 2)
    assert add_table_row(table, 5, "below") is table
    assert add_table_row(table, 0, "left") is table
    assert add_table_column(table, -1, "right") is table
    assert add_table_column(table, 0, "below") is table
    assert remove_table_row(table, 2) is table
    assert remove_table_column(table, 9) is table
    print("PASS: test_invalid_row_and_column_requests_are_no_ops")


def test_remove_row_and_column():
    table = _filled(3, 3)
    assert _texts(remove_table_row(table, 1)) == [["00", "01", "02"], ["20", "21", "22"]]
    assert _texts(remove_table_column(table, 0)) == [["01", "02"], ["11", "12"], ["21", "22"]]
    print("PASS: test_remove_row_and_column")


def test_minimum_size_guard():
    one_row = create_table(1, 3)
    assert remove_table_row(one_row, 0) is one_row
    one_col = create_table(3, 1)
    assert remove_table_column(one_col, 0) is one_col
    print("PASS: test_minimum_size_guard")


# ---------------------------------------------------------------------------
# Selection and merge
# ---------------------------------------------------------------------------

def test_get_cell_selection_normalizes():
    sel = get_cell_selection((2, 3), (0, 1))
    assert (sel.start_row, sel.start_col, sel.end_row, sel.end_col) == (0, 1, 2, 3)
    sel = get_cell_selection(CellRef(row=1, col=0), CellRef(row=0, col=1))
    assert (sel.start_row, sel.start_col, sel.end_row, sel.end_col) == (0, 0, 1, 1)
    assert is_merge_eligible(sel)
    assert not is_merge_eligible(get_cell_selection((1, 1), (1, 1)))
    assert not is_merge_eligible(None)
    print("PASS: test_get_cell_selection_normalizes")


def test_merge_first_row():
    table = _filled(2, 2)
    merged = merge_table_cells(table, get_cell_selection((0, 0), (0, 1)))

    anchor = merged.rows[0].children[0]
    assert anchor.col_span == 2
    assert anchor.row_span == 1
    assert not anchor.is_merged
    assert anchor.text == "00 01"

    covered = merged.rows[0].children[1]
    assert covered.is_merged
    assert covered.merged_cells == [CellRef(row=0, col=0)]
    assert covered.text == ""

    # Row 1 untouched
    assert _texts(merged)[1] == ["10", "11"]
    assert not any(cell.is_merged for cell in merged.rows[1].children)
    print("PASS: test_merge_first_row")


def test_merge_rectangle_joins_non_blank_text_row_major():
    table = create_table(2, 3)
    table = set_cell_text(table, 0, 1, "b")
    table = set_cell_text(table, 1, 0, "c")
    table = set_cell_text(table, 1, 2, "   ")
    table = set_cell_text(table, 1, 1, "d")

    merged = merge_table_cells(table, get_cell_selection((1, 2), (0, 0)))
    anchor = merged.rows[0].children[0]
    assert (anchor.row_span, anchor.col_span) == (2, 3)
    assert anchor.text == "b c d"
    covered = [cell for row in merged.rows for cell in row.children][1:]
    assert all(cell.is_merged and cell.text == "" for cell in covered)
    print("PASS: test_merge_rectangle_joins_non_blank_text_row_major")


def test_merge_rejections():
    table = _filled(3, 3)
    assert merge_table_cells(table, get_cell_selection((1, 1), (1, 1))) is table
    assert merge_table_cells(table, get_cell_selection((0, 0), (3, 3))) is table

    merged = merge_table_cells(table, get_cell_selection((0, 0), (1, 1)))
    # Overlapping an existing region, at the anchor or a covered cell
    assert merge_table_cells(merged, get_cell_selection((1, 1), (2, 2))) is merged
    assert merge_table_cells(merged, get_cell_selection((0, 0), (0, 2))) is merged
    # Disjoint region is fine
    again = merge_table_cells(merged, get_cell_selection((2, 0), (2, 2)))
    assert again is not merged
    assert again.rows[2].children[0].col_span == 3
    print("PASS: test_merge_rejections")


def test_merge_then_unmerge_is_lossy():
    table = _filled(2, 2)
    merged = merge_table_cells(table, get_cell_selection((0, 0), (1, 1)))
    restored = unmerge_table_cells(merged, 0, 0)

    anchor = restored.rows[0].children[0]
    assert anchor.col_span == 1 and anchor.row_span == 1
    assert anchor.text == "00 01 10 11"
    for r, c in [(0, 1), (1, 0), (1, 1)]:
        cell = restored.rows[r].children[c]
        assert cell.is_merged is False
        assert cell.merged_cells is None
        assert cell.text == ""
    print("PASS: test_merge_then_unmerge_is_lossy")


def test_unmerge_requires_anchor():
    table = _filled(2, 2)
    assert unmerge_table_cells(table, 0, 0) is table
    merged = merge_table_cells(table, get_cell_selection((0, 0), (0, 1)))
    assert unmerge_table_cells(merged, 0, 1) is merged
    assert unmerge_table_cells(merged, 7, 7) is merged
    print("PASS: test_unmerge_requires_anchor")


def test_row_insertion_leaves_merged_cells_stale():
    table = _filled(2, 2)
    merged = merge_table_cells(table, get_cell_selection((0, 0), (0, 1)))
    shifted = add_table_row(merged, 0, "above")

    # The region moved down a row but the back-reference did not.
    anchor = shifted.rows[1].children[0]
    covered = shifted.rows[1].children[1]
    assert anchor.col_span == 2
    assert covered.merged_cells == [CellRef(row=0, col=0)]

    # Unmerging at the anchor's new position cannot find its covered cell.
    result = unmerge_table_cells(shifted, 1, 0)
    assert result.rows[1].children[0].col_span == 1
    assert result.rows[1].children[1].is_merged is True
    print("PASS: test_row_insertion_leaves_merged_cells_stale")


def test_column_insertion_leaves_merged_cells_stale():
    table = _filled(2, 2)
    merged = merge_table_cells(table, get_cell_selection((0, 0), (1, 0)))
    shifted = add_table_column(merged, 0, "left")
    assert shifted.rows[0].children[1].row_span == 2
    assert shifted.rows[1].children[1].merged_cells == [CellRef(row=0, col=0)]
    print("PASS: test_column_insertion_leaves_merged_cells_stale")


# ---------------------------------------------------------------------------
# Cell setters
# ---------------------------------------------------------------------------

def test_set_cell_background_color():
    table = create_table(2, 2)
    colored = set_cell_background_color(table, 0, 1, "#ff0000")
    assert colored.rows[0].children[1].background_color == "#ff0000"
    assert colored.rows[0].children[0].background_color is None

    cleared = set_cell_background_color(colored, 0, 1, "transparent")
    assert cleared.rows[0].children[1].background_color is None

    themed = set_cell_background_color(table, 0, 0, "color-mix(in srgb, red 40%, white)")
    assert themed.rows[0].children[0].background_color == "color-mix(in srgb, red 40%, white)"
    assert "background-color: color-mix(in srgb, red 40%, white);" in serialize([themed])
    assert set_cell_background_color(table, 4, 0, "#fff") is table
    print("PASS: test_set_cell_background_color")


def test_set_cell_alignment():
    table = create_table(1, 2)
    aligned = set_cell_alignment(table, 0, 0, "center")
    assert aligned.rows[0].children[0].align == "center"
    assert set_cell_alignment(table, 0, 0, "middle") is table
    assert set_cell_alignment(table, 0, 5, "left") is table
    print("PASS: test_set_cell_alignment")


# ---------------------------------------------------------------------------
# Document-level access
# ---------------------------------------------------------------------------

def test_update_table_by_path_and_by_selection():
    document = [_para("before"), create_table(2, 2), _para("after")]
    ctx = EditorContext(document=document)

    by_path = update_table(ctx, add_table_row, 1, "below", table_path=(1,))
    assert len(by_path.document[1].rows) == 3
    assert len(ctx.document[1].rows) == 2

    inside = ctx.evolve(ctx.document, Range.collapsed(Point(path=(1, 0), offset=0)))
    assert find_table(inside)[0] == (1,)
    by_selection = update_table(inside, set_cell_text, 0, 0, "hi")
    assert by_selection.document[1].rows[0].children[0].text == "hi"
    assert by_selection.selection == inside.selection
    print("PASS: test_update_table_by_path_and_by_selection")


def test_update_table_without_table_is_no_op():
    ctx = EditorContext(
        document=[_para("text")],
        selection=Range.collapsed(Point(path=(0, 0), offset=1)),
    )
    assert update_table(ctx, add_table_row, 0, "below") is ctx
    assert update_table(ctx, add_table_row, 0, "below", table_path=(0,)) is ctx

    with_table = EditorContext(document=[create_table(1, 1)])
    assert update_table(with_table, remove_table_row, 0, table_path=(0,)) is with_table
    print("PASS: test_update_table_without_table_is_no_op")


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

if __name__ == '__main__':
    tests = [
        test_create_table_grid_shape,
        test_create_table_rejects_non_positive,
        test_validate_table_structure_detects_ragged_rows,
        test_add_row_below_adds_one_full_row,
        test_add_row_above,
        test_add_column_left_and_right,
        test_invalid_row_and_column_requests_are_no_ops,
        test_remove_row_and_column,
        test_minimum_size_guard,
        test_get_cell_selection_normalizes,
        test_merge_first_row,
        test_merge_rectangle_joins_non_blank_text_row_major,
        test_merge_rejections,
        test_merge_then_unmerge_is_lossy,
        test_unmerge_requires_anchor,
        test_row_insertion_leaves_merged_cells_stale,
        test_column_insertion_leaves_merged_cells_stale,
        test_set_cell_background_color,
        test_set_cell_alignment,
        test_update_table_by_path_and_by_selection,
        test_update_table_without_table_is_no_op,
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
