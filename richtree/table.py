"""
Table grid engine.

The functions in the first half work on a single table Element. Each one
returns a modified copy, or the very same object when the request is not
valid (out of range, removing the last row, merging a single cell, ...),
so a no-op can be told apart by identity.

`mergedCells` back-references are positional. Row and column edits do not
rewrite them: after inserting or removing a row/column above or left of a
merged region, the covered cells keep pointing at the old anchor position.
"""

from copy import deepcopy
from typing import Callable, Optional, Tuple, Union

import structlog

from richtree.models import (
    ALIGNMENTS,
    TABLE,
    CellRef,
    CellSelection,
    EditorContext,
    Element,
    Path,
    TableCell,
    TableRow,
    Text,
)
from richtree.tree import ancestors, is_valid_point, node_at

logger = structlog.get_logger(__name__)

ROW_POSITIONS = ("above", "below")
COLUMN_POSITIONS = ("left", "right")
TRANSPARENT = "transparent"

CellCoords = Union[Tuple[int, int], CellRef]


def _blank_cell() -> TableCell:
    return TableCell(children=[Text()])


def _blank_row(width: int) -> TableRow:
    return TableRow(children=[_blank_cell() for _ in range(width)])


def create_table(rows: int, cols: int) -> Element:
    """Builds a rows x cols table of blank, unmerged cells."""
    if rows < 1 or cols < 1:
        raise ValueError(f"table needs at least one row and one column, got {rows}x{cols}")
    return Element(type=TABLE, rows=[_blank_row(cols) for _ in range(rows)], children=[Text()])


def validate_table_structure(table: Element) -> bool:
    """True when the table has rows and every row has the same cell count."""
    if not table.rows:
        return False
    width = len(table.rows[0].children)
    return all(len(row.children) == width for row in table.rows)


def row_count(table: Element) -> int:
    return len(table.rows or [])


def column_count(table: Element) -> int:
    return len(table.rows[0].children) if table.rows else 0


def cell_at(table: Element, row: int, col: int) -> Optional[TableCell]:
    if not 0 <= row < row_count(table):
        return None
    cells = table.rows[row].children
    if not 0 <= col < len(cells):
        return None
    return cells[col]


# ---------------------------------------------------------------------------
# Rows and columns
# ---------------------------------------------------------------------------


def add_table_row(table: Element, index: int, position: str = "below") -> Element:
    if position not in ROW_POSITIONS:
        logger.warning("Invalid row position", position=position)
        return table
    if not 0 <= index < row_count(table):
        logger.warning("Row index out of range", index=index, rows=row_count(table))
        return table

    table = table.model_copy(deep=True)
    insert_at = index if position == "above" else index + 1
    table.rows.insert(insert_at, _blank_row(column_count(table)))
    return table


def remove_table_row(table: Element, index: int) -> Element:
    if row_count(table) <= 1:
        logger.debug("Refusing to remove the only row")
        return table
    if not 0 <= index < row_count(table):
        logger.warning("Row index out of range", index=index, rows=row_count(table))
        return table

    table = table.model_copy(deep=True)
    del table.rows[index]
    return table


def add_table_column(table: Element, index: int, position: str = "right") -> Element:
    if position not in COLUMN_POSITIONS:
        logger.warning("Invalid column position", position=position)
        return table
    if not 0 <= index < column_count(table):
        logger.warning("Column index out of range", index=index, cols=column_count(table))
        return table

    table = table.model_copy(deep=True)
    insert_at = index if position == "left" else index + 1
    for row in table.rows:
        row.children.insert(insert_at, _blank_cell())
    return table


def remove_table_column(table: Element, index: int) -> Element:
    if column_count(table) <= 1:
        logger.debug("Refusing to remove the only column")
        return table
    if not 0 <= index < column_count(table):
        logger.warning("Column index out of range", index=index, cols=column_count(table))
        return table

    table = table.model_copy(deep=True)
    for row in table.rows:
        del row.children[index]
    return table


# ---------------------------------------------------------------------------
# Selection, merge and unmerge
# ---------------------------------------------------------------------------


def _coords(cell: CellCoords) -> Tuple[int, int]:
    if isinstance(cell, CellRef):
        return cell.row, cell.col
    row, col = cell
    return row, col


def get_cell_selection(start: CellCoords, end: CellCoords) -> CellSelection:
    """Normalizes two (row, col) corners into a rectangle."""
    start_row, start_col = _coords(start)
    end_row, end_col = _coords(end)
    return CellSelection(
        start_row=min(start_row, end_row),
        start_col=min(start_col, end_col),
        end_row=max(start_row, end_row),
        end_col=max(start_col, end_col),
    )


def is_merge_eligible(selection: Optional[CellSelection]) -> bool:
    return selection is not None and selection.cell_count > 1


def merge_table_cells(table: Element, selection: CellSelection) -> Element:
    """
    Merges the rectangle into its top-left cell.

    The anchor receives the spans and the space-joined text of every
    non-blank cell (row-major). Every other cell is marked covered, points
    back at the anchor and loses its text.
    """
    if not is_merge_eligible(selection):
        logger.debug("Merge needs more than one cell", selection=selection.model_dump() if selection else None)
        return table
    if cell_at(table, selection.end_row, selection.end_col) is None or selection.start_row < 0 or selection.start_col < 0:
        logger.warning("Merge selection out of range", selection=selection.model_dump())
        return table

    rectangle = [
        (row, col)
        for row in range(selection.start_row, selection.end_row + 1)
        for col in range(selection.start_col, selection.end_col + 1)
    ]
    for row, col in rectangle:
        cell = table.rows[row].children[col]
        if cell.is_merged or cell.is_anchor:
            logger.warning("Merge selection overlaps a merged region", row=row, col=col)
            return table

    table = table.model_copy(deep=True)
    texts = [table.rows[row].children[col].text for row, col in rectangle]
    merged_text = " ".join(text for text in texts if text.strip())

    anchor_row, anchor_col = selection.start_row, selection.start_col
    anchor = table.rows[anchor_row].children[anchor_col]
    anchor.col_span = selection.end_col - selection.start_col + 1
    anchor.row_span = selection.end_row - selection.start_row + 1
    anchor.is_merged = False
    anchor.children = [Text(text=merged_text)]

    for row, col in rectangle[1:]:
        covered = table.rows[row].children[col]
        covered.is_merged = True
        covered.merged_cells = [CellRef(row=anchor_row, col=anchor_col)]
        covered.children = [Text()]
    return table


def unmerge_table_cells(table: Element, row: int, col: int) -> Element:
    """
    Splits the merged region anchored at (row, col).

    Covered cells come back empty; the anchor keeps all of the text it
    absorbed.
    """
    cell = cell_at(table, row, col)
    if cell is None or not cell.is_anchor:
        logger.debug("Unmerge needs an anchor cell", row=row, col=col)
        return table

    table = table.model_copy(deep=True)
    anchor = table.rows[row].children[col]
    anchor.col_span = 1
    anchor.row_span = 1
    anchor.is_merged = False

    for table_row in table.rows:
        for other in table_row.children:
            if other.references(row, col):
                other.is_merged = False
                other.merged_cells = None
    return table


# ---------------------------------------------------------------------------
# Cell presentation and content
# ---------------------------------------------------------------------------


def _update_cell(table: Element, row: int, col: int, **changes) -> Element:
    if cell_at(table, row, col) is None:
        logger.warning("Cell out of range", row=row, col=col)
        return table
    table = table.model_copy(deep=True)
    cell = table.rows[row].children[col]
    for attr, value in changes.items():
        setattr(cell, attr, value)
    return table


def set_cell_background_color(table: Element, row: int, col: int, color: str) -> Element:
    """`"transparent"` clears the background; any other value is stored as given."""
    if color == TRANSPARENT:
        return _update_cell(table, row, col, background_color=None)
    return _update_cell(table, row, col, background_color=color)


def set_cell_alignment(table: Element, row: int, col: int, align: str) -> Element:
    if align not in ALIGNMENTS:
        logger.warning("Invalid cell alignment", align=align)
        return table
    return _update_cell(table, row, col, align=align)


def set_cell_text(table: Element, row: int, col: int, text: str) -> Element:
    return _update_cell(table, row, col, children=[Text(text=text)])


# ---------------------------------------------------------------------------
# Document-level access
# ---------------------------------------------------------------------------


def find_table(ctx: EditorContext, table_path: Optional[Path] = None) -> Optional[Tuple[Path, Element]]:
    """
    The table at `table_path`, or the table holding the selection anchor
    when no path is given.
    """
    if table_path is not None:
        node = node_at(ctx.document, tuple(table_path))
        if isinstance(node, Element) and node.type == TABLE:
            return tuple(table_path), node
        return None
    selection = ctx.selection
    if selection is None or not is_valid_point(ctx.document, selection.anchor):
        return None
    for path, node in reversed(ancestors(ctx.document, selection.anchor.path)):
        if node.type == TABLE:
            return path, node
    return None


def update_table(
    ctx: EditorContext,
    operation: Callable[..., Element],
    *args,
    table_path: Optional[Path] = None,
) -> EditorContext:
    """Runs a table operation against a table in the document."""
    located = find_table(ctx, table_path)
    if located is None:
        logger.warning("No table found", operation=operation.__name__, table_path=table_path)
        return ctx

    path, table = located
    updated = operation(table, *args)
    if updated is table:
        return ctx

    document = deepcopy(ctx.document)
    siblings = document if len(path) == 1 else node_at(document, path[:-1]).children
    siblings[path[-1]] = updated
    return ctx.evolve(document, ctx.selection)
