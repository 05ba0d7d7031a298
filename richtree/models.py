from enum import Enum
from typing import Annotated, Any, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, model_validator

# --- Node types ---
PARAGRAPH = "paragraph"
HEADING_ONE = "heading-one"
HEADING_TWO = "heading-two"
HEADING_THREE = "heading-three"
BLOCK_QUOTE = "block-quote"
BULLETED_LIST = "bulleted-list"
NUMBERED_LIST = "numbered-list"
LIST_ITEM = "list-item"
IMAGE = "image"
TABLE = "table"
LINK = "link"
ANCHOR = "anchor"
ABBR = "abbr"
HOVER_AREA = "hover-area"

LIST_TYPES = (BULLETED_LIST, NUMBERED_LIST)
INLINE_TYPES = (LINK, ANCHOR, ABBR)
# Never split by a line break; removed whole when deleting backward from their start.
ATOMIC_TYPES = (TABLE, IMAGE, HOVER_AREA)
ALIGNMENTS = ("left", "center", "right", "justify")

# Public mark name -> model attribute
MARKS = {
    "bold": "bold",
    "italic": "italic",
    "underline": "underline",
    "strikethrough": "strikethrough",
    "superscript": "superscript",
    "subscript": "subscript",
    "code": "code",
    "color": "color",
    "backgroundColor": "background_color",
    "fontSize": "font_size",
}

# toggle_mark stores True; add_mark may store any scalar in any mark.
MarkValue = Union[bool, int, float, str]


class Text(BaseModel):
    """A run of characters carrying inline marks."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    text: str = ""
    bold: Optional[MarkValue] = None
    italic: Optional[MarkValue] = None
    underline: Optional[MarkValue] = None
    strikethrough: Optional[MarkValue] = None
    superscript: Optional[MarkValue] = None
    subscript: Optional[MarkValue] = None
    code: Optional[MarkValue] = None
    color: Optional[MarkValue] = None
    background_color: Optional[MarkValue] = Field(None, alias="backgroundColor")
    font_size: Optional[MarkValue] = Field(None, alias="fontSize")

    def marks(self) -> dict:
        """Active marks keyed by their public name."""
        active = {}
        for name, attr in MARKS.items():
            value = getattr(self, attr)
            if value is not None:
                active[name] = value
        return active


class CellRef(BaseModel):
    row: int
    col: int


class TableCell(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str = "table-cell"
    children: List[Text] = Field(default_factory=lambda: [Text()])
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    align: Optional[str] = None
    col_span: Optional[int] = Field(None, alias="colSpan")
    row_span: Optional[int] = Field(None, alias="rowSpan")
    is_header: Optional[bool] = Field(None, alias="isHeader")
    is_merged: Optional[bool] = Field(None, alias="isMerged")
    merged_cells: Optional[List[CellRef]] = Field(None, alias="mergedCells")

    @property
    def text(self) -> str:
        return "".join(leaf.text for leaf in self.children)

    @property
    def is_anchor(self) -> bool:
        """True for the visible cell of a merged region."""
        return not self.is_merged and ((self.col_span or 1) > 1 or (self.row_span or 1) > 1)

    def references(self, row: int, col: int) -> bool:
        return any(ref.row == row and ref.col == col for ref in self.merged_cells or [])


class TableRow(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str = "table-row"
    children: List[TableCell]
    is_header: Optional[bool] = Field(None, alias="isHeader")


class Element(BaseModel):
    """
    A tagged block or inline node.

    `type` and `align` are independent: block toggles change one and never
    reset the other.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    type: str
    children: List["Node"] = Field(default_factory=lambda: [Text()])
    align: Optional[str] = None
    font_size: Optional[str] = Field(None, alias="fontSize")
    # image
    url: Optional[str] = None
    alt: Optional[str] = None
    title: Optional[str] = None
    width: Optional[str] = None
    height: Optional[str] = None
    # link
    href: Optional[str] = None
    target: Optional[str] = None
    # anchor / abbr / hover-area
    id: Optional[str] = None
    definition: Optional[str] = None
    hover_content: Optional[str] = Field(None, alias="hoverContent")
    is_edit_mode: Optional[bool] = Field(None, alias="isEditMode")
    # table
    rows: Optional[List[TableRow]] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "Element":
        if not self.children:
            raise ValueError(f"'{self.type}' element must have at least one child")
        if self.type == TABLE:
            if not self.rows:
                raise ValueError("table element requires at least one row")
            widths = {len(row.children) for row in self.rows}
            if len(widths) != 1 or 0 in widths:
                raise ValueError(f"table rows must all have the same number of cells, got {sorted(widths)}")
        return self

    @property
    def is_inline(self) -> bool:
        return self.type in INLINE_TYPES

    @property
    def is_atomic(self) -> bool:
        return self.type in ATOMIC_TYPES


def _node_kind(value: Any) -> str:
    if isinstance(value, dict):
        return "text" if "text" in value else "element"
    return "text" if isinstance(value, Text) else "element"


Node = Annotated[
    Union[Annotated[Element, Tag("element")], Annotated[Text, Tag("text")]],
    Discriminator(_node_kind),
]

Element.model_rebuild()

Path = Tuple[int, ...]


def compare_paths(a: Path, b: Path) -> int:
    """
    Orders two paths in document order.
    An ancestor compares equal to its descendants.
    """
    for x, y in zip(a, b):
        if x < y:
            return -1
        if x > y:
            return 1
    return 0


class Point(BaseModel):
    """A position inside a text leaf: the leaf's path plus a character offset."""

    model_config = ConfigDict(frozen=True)

    path: Path
    offset: int = 0

    def compare(self, other: "Point") -> int:
        result = compare_paths(self.path, other.path)
        if result != 0:
            return result
        return (self.offset > other.offset) - (self.offset < other.offset)


class Range(BaseModel):
    model_config = ConfigDict(frozen=True)

    anchor: Point
    focus: Point

    @classmethod
    def collapsed(cls, point: Point) -> "Range":
        return cls(anchor=point, focus=point)

    @property
    def is_collapsed(self) -> bool:
        return self.anchor == self.focus

    @property
    def is_backward(self) -> bool:
        return self.anchor.compare(self.focus) > 0

    def edges(self) -> Tuple[Point, Point]:
        """(start, end) in document order."""
        if self.is_backward:
            return self.focus, self.anchor
        return self.anchor, self.focus


class CellSelection(BaseModel):
    """
    A rectangle over a table's row/column index space.
    Always stored normalized (start <= end on both axes).
    """

    model_config = ConfigDict(populate_by_name=True)

    start_row: int = Field(..., alias="startRow")
    start_col: int = Field(..., alias="startCol")
    end_row: int = Field(..., alias="endRow")
    end_col: int = Field(..., alias="endCol")

    @model_validator(mode="after")
    def _normalize(self) -> "CellSelection":
        if self.start_row > self.end_row:
            self.start_row, self.end_row = self.end_row, self.start_row
        if self.start_col > self.end_col:
            self.start_col, self.end_col = self.end_col, self.start_col
        return self

    @property
    def cell_count(self) -> int:
        return (self.end_row - self.start_row + 1) * (self.end_col - self.start_col + 1)

    def contains(self, row: int, col: int) -> bool:
        return self.start_row <= row <= self.end_row and self.start_col <= col <= self.end_col


class EditorContext(BaseModel):
    """
    The explicit editing context: a tree snapshot and the current selection.
    Every operation takes one and returns a new one (or the same one on a no-op).
    """

    document: List[Element]
    selection: Optional[Range] = None

    def evolve(self, document: List[Element], selection: Optional[Range] = None) -> "EditorContext":
        return EditorContext(document=document, selection=selection)


class EditActionType(str, Enum):
    SELECT = "SELECT"
    TOGGLE_MARK = "TOGGLE_MARK"
    ADD_MARK = "ADD_MARK"
    REMOVE_MARK = "REMOVE_MARK"
    CLEAR_FORMATTING = "CLEAR_FORMATTING"
    TOGGLE_BLOCK = "TOGGLE_BLOCK"
    INSERT_IMAGE = "INSERT_IMAGE"
    INSERT_LINK = "INSERT_LINK"
    INSERT_ANCHOR = "INSERT_ANCHOR"
    INSERT_ANCHOR_LINK = "INSERT_ANCHOR_LINK"
    INSERT_HOVER_AREA = "INSERT_HOVER_AREA"
    INSERT_TABLE = "INSERT_TABLE"
    ADD_TABLE_ROW = "ADD_TABLE_ROW"
    ADD_TABLE_COLUMN = "ADD_TABLE_COLUMN"
    REMOVE_TABLE_ROW = "REMOVE_TABLE_ROW"
    REMOVE_TABLE_COLUMN = "REMOVE_TABLE_COLUMN"
    MERGE_TABLE_CELLS = "MERGE_TABLE_CELLS"
    UNMERGE_TABLE_CELLS = "UNMERGE_TABLE_CELLS"
    SET_CELL_BACKGROUND_COLOR = "SET_CELL_BACKGROUND_COLOR"
    SET_CELL_ALIGNMENT = "SET_CELL_ALIGNMENT"
    SET_CELL_TEXT = "SET_CELL_TEXT"
    INSERT_BREAK = "INSERT_BREAK"
    DELETE_BACKWARD = "DELETE_BACKWARD"


class EditAction(BaseModel):
    """
    One discrete editing action, replayable against an editor session.
    Only the fields relevant to `action` are read.
    """

    action: EditActionType = Field(..., description="Which operation to run.")

    selection: Optional[Range] = Field(None, description="For SELECT: the new selection.")
    format: Optional[str] = Field(
        None,
        description="Mark name (bold, color, ...) for mark actions, or block format for TOGGLE_BLOCK.",
    )
    value: Optional[MarkValue] = Field(None, description="For ADD_MARK: the mark value.")

    url: Optional[str] = Field(None, description="For INSERT_IMAGE / INSERT_LINK.")
    text: Optional[str] = Field(None, description="Link text, hover-area text, or cell text.")
    alt: Optional[str] = None
    id: Optional[str] = Field(None, description="For INSERT_ANCHOR / INSERT_ANCHOR_LINK.")
    content: Optional[str] = Field(None, description="For INSERT_HOVER_AREA: the hover content.")

    rows: Optional[int] = Field(None, description="For INSERT_TABLE.")
    cols: Optional[int] = Field(None, description="For INSERT_TABLE.")

    table_path: Optional[List[int]] = Field(
        None, description="Path of the target table. Defaults to the table under the selection."
    )
    index: Optional[int] = Field(None, description="Row or column index for row/column actions.")
    position: Optional[str] = Field(None, description="above/below for rows, left/right for columns.")
    row: Optional[int] = None
    col: Optional[int] = None
    cells: Optional[CellSelection] = Field(None, description="For MERGE_TABLE_CELLS.")
    color: Optional[MarkValue] = None
    align: Optional[str] = None
