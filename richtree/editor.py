import asyncio
from copy import deepcopy
from pathlib import Path
from typing import Annotated, Any, Callable, Dict, List, Optional, Union

import structlog
from pydantic import Field, TypeAdapter, ValidationError

from richtree import blocks, insert, marks, table, view
from richtree.html import get_html_output, sanitize_html, serialize
from richtree.models import (
    BULLETED_LIST,
    LIST_ITEM,
    PARAGRAPH,
    CellSelection,
    EditAction,
    EditActionType,
    EditorContext,
    Element,
    Range,
    Text,
)
from richtree.tree import is_valid_point
from richtree.utils.images import encode_data_uri, guess_image_mime

logger = structlog.get_logger(__name__)

# A document always holds at least one block.
DocumentAdapter = TypeAdapter(Annotated[List[Element], Field(min_length=1)])


def default_document() -> List[Element]:
    """The welcome document shown when an editor starts without content."""

    def paragraph(text: str) -> Element:
        return Element(type=PARAGRAPH, children=[Text(text=text)])

    def item(text: str) -> Element:
        return Element(type=LIST_ITEM, children=[Text(text=text)])

    return [
        paragraph("Welcome to the enhanced rich text editor! Try all the features:"),
        Element(
            type=BULLETED_LIST,
            children=[
                item("Right-click tables for editing options"),
                item("Resize images and tables by dragging corners"),
                item("Create anchor links that scroll smoothly"),
                item("Use color pickers for text and background"),
            ],
        ),
        paragraph("Start editing below..."),
    ]


def load_document(data: Union[str, bytes, list]) -> List[Element]:
    """Validates a JSON document (text or already-decoded list). Raises ValidationError,
    also for an empty list."""
    if isinstance(data, (str, bytes)):
        return DocumentAdapter.validate_json(data)
    return DocumentAdapter.validate_python(data)


def dump_document(document: List[Element], indent: Optional[int] = 2) -> str:
    return DocumentAdapter.dump_json(document, indent=indent, by_alias=True, exclude_none=True).decode("utf-8")


class RichTextEditor:
    """
    An editing session: one document, one selection.

    Every mutating method returns True when the document or selection
    changed. `on_change` and `on_html_change` fire only when the document
    itself changed.
    """

    HOTKEYS = {
        "mod+b": "bold",
        "mod+i": "italic",
        "mod+u": "underline",
    }

    def __init__(
        self,
        initial_value: Optional[List[Union[Element, Dict[str, Any]]]] = None,
        on_change: Optional[Callable[[List[Element]], None]] = None,
        on_html_change: Optional[Callable[[str], None]] = None,
        on_save: Optional[Callable[[List[Element]], None]] = None,
        read_only: bool = False,
    ):
        document = load_document(initial_value) if initial_value is not None else default_document()
        self._ctx = EditorContext(document=document)
        self.on_change = on_change
        self.on_html_change = on_html_change
        self.on_save = on_save
        self.read_only = read_only
        self.saved_content: Optional[List[Element]] = None
        self._closed = False

    # --- State ---

    @property
    def value(self) -> List[Element]:
        return self._ctx.document

    @property
    def selection(self) -> Optional[Range]:
        return self._ctx.selection

    @property
    def context(self) -> EditorContext:
        return self._ctx

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Tears the session down. Pending image reads are dropped on completion."""
        self._closed = True

    def select(self, selection: Optional[Range]) -> bool:
        if selection is not None and not (
            is_valid_point(self.value, selection.anchor) and is_valid_point(self.value, selection.focus)
        ):
            logger.warning("Selection does not resolve", selection=selection.model_dump())
            return False
        self._ctx = self._ctx.evolve(self._ctx.document, selection)
        return True

    def _run(self, operation: Callable[..., EditorContext], *args, **kwargs) -> bool:
        if self.read_only:
            logger.debug("Editor is read-only, ignoring operation", operation=operation.__name__)
            return False
        updated = operation(self._ctx, *args, **kwargs)
        if updated is self._ctx:
            return False
        document_changed = updated.document != self._ctx.document
        self._ctx = updated
        if document_changed:
            self._emit_change()
        return True

    def _emit_change(self):
        if self.on_change:
            self.on_change(self.value)
        if self.on_html_change:
            self.on_html_change(self.html())

    # --- Marks and blocks ---

    def is_mark_active(self, mark: str) -> bool:
        return marks.mark_active(self._ctx, mark)

    def toggle_mark(self, mark: str) -> bool:
        return self._run(marks.toggle_mark, mark)

    def add_mark(self, mark: str, value: Any) -> bool:
        return self._run(marks.add_mark, mark, value)

    def remove_mark(self, mark: str) -> bool:
        return self._run(marks.remove_mark, mark)

    def clear_formatting(self) -> bool:
        return self._run(marks.clear_formatting)

    def is_block_active(self, format: str, axis: str = "type") -> bool:
        return blocks.block_active(self._ctx, format, axis)

    def toggle_block(self, format: str) -> bool:
        return self._run(blocks.toggle_block, format)

    def handle_hotkey(self, hotkey: str) -> bool:
        """Dispatches a key chord such as "mod+b" or "ctrl+i". Returns True when handled."""
        chord = hotkey.strip().lower()
        for prefix in ("ctrl+", "cmd+", "meta+"):
            if chord.startswith(prefix):
                chord = "mod+" + chord[len(prefix) :]
        mark = self.HOTKEYS.get(chord)
        if mark is None:
            return False
        self.toggle_mark(mark)
        return True

    # --- Insertions ---

    def insert_image(self, url: str, alt: str = "") -> bool:
        return self._run(insert.insert_image, url, alt)

    def insert_link(self, url: str, text: Optional[str] = None) -> bool:
        return self._run(insert.insert_link, url, text)

    def insert_anchor(self, anchor_id: str) -> bool:
        return self._run(insert.insert_anchor, anchor_id)

    def insert_anchor_link(self, anchor_id: str) -> bool:
        return self._run(insert.insert_anchor_link, anchor_id)

    def insert_hover_area(self, text: str = "", content: str = "") -> bool:
        return self._run(insert.insert_hover_area, text, content)

    def insert_table(self, rows: int, cols: int) -> bool:
        return self._run(insert.insert_table, rows, cols)

    async def insert_image_file(self, path: Union[str, Path]) -> bool:
        """
        Reads a local image off the event loop and inserts it as a base64
        data URI, with the file name as alt text.
        """
        path = Path(path)
        mime = guess_image_mime(path)
        if mime is None:
            logger.warning("Not an image file", path=str(path))
            return False
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            logger.error("Failed to read image file", path=str(path), error=str(e))
            return False
        if self._closed:
            logger.debug("Editor closed while reading image, dropping it", path=str(path))
            return False
        return self.insert_image(encode_data_uri(data, mime), alt=path.name)

    # --- Tables ---

    def add_table_row(self, index: int, position: str = "below", table_path=None) -> bool:
        return self._run(table.update_table, table.add_table_row, index, position, table_path=table_path)

    def add_table_column(self, index: int, position: str = "right", table_path=None) -> bool:
        return self._run(table.update_table, table.add_table_column, index, position, table_path=table_path)

    def remove_table_row(self, index: int, table_path=None) -> bool:
        return self._run(table.update_table, table.remove_table_row, index, table_path=table_path)

    def remove_table_column(self, index: int, table_path=None) -> bool:
        return self._run(table.update_table, table.remove_table_column, index, table_path=table_path)

    def merge_table_cells(self, cells: CellSelection, table_path=None) -> bool:
        return self._run(table.update_table, table.merge_table_cells, cells, table_path=table_path)

    def unmerge_table_cells(self, row: int, col: int, table_path=None) -> bool:
        return self._run(table.update_table, table.unmerge_table_cells, row, col, table_path=table_path)

    def set_cell_background_color(self, row: int, col: int, color: str, table_path=None) -> bool:
        return self._run(
            table.update_table, table.set_cell_background_color, row, col, color, table_path=table_path
        )

    def set_cell_alignment(self, row: int, col: int, align: str, table_path=None) -> bool:
        return self._run(table.update_table, table.set_cell_alignment, row, col, align, table_path=table_path)

    def set_cell_text(self, row: int, col: int, text: str, table_path=None) -> bool:
        return self._run(table.update_table, table.set_cell_text, row, col, text, table_path=table_path)

    # --- Elements and view edits ---

    def resize_element(self, path, width: Optional[str] = None, height: Optional[str] = None) -> bool:
        return self._run(view.resize_element, path, width, height)

    def update_image(self, path, url: Optional[str] = None, alt: Optional[str] = None, title: Optional[str] = None) -> bool:
        return self._run(view.update_image, path, url, alt, title)

    def remove_element(self, path) -> bool:
        return self._run(view.remove_element, path)

    def insert_break(self) -> bool:
        return self._run(view.insert_break)

    def delete_backward(self) -> bool:
        return self._run(view.delete_backward)

    # --- Code view, output, save ---

    def to_json(self, indent: Optional[int] = 2) -> str:
        return dump_document(self.value, indent=indent)

    def replace_from_json(self, text: Union[str, bytes]) -> bool:
        """
        Replaces the whole document from hand-edited JSON. Invalid input
        leaves the document untouched and returns False.
        """
        if self.read_only:
            return False
        try:
            document = load_document(text)
        except ValidationError as e:
            logger.warning("Rejected code view input", errors=e.error_count())
            return False
        self._ctx = EditorContext(document=document)
        self._emit_change()
        return True

    def html(self) -> str:
        return serialize(self.value)

    def export_html(self, sanitize: bool = False) -> str:
        output = get_html_output(self.value)
        return sanitize_html(output) if sanitize else output

    def save(self) -> List[Element]:
        """Snapshots the current document and hands it to `on_save`."""
        self.saved_content = deepcopy(self.value)
        if self.on_save:
            self.on_save(self.saved_content)
        logger.info("Document saved", blocks=len(self.saved_content))
        return self.saved_content

    # --- Batch replay ---

    def apply_actions(self, actions: List[EditAction]) -> tuple[int, int]:
        """Replays actions in order. Returns (applied, skipped)."""
        applied = 0
        skipped = 0
        for act in actions:
            if self._apply_action(act):
                applied += 1
            else:
                logger.warning("Skipping action", action=act.action.value)
                skipped += 1
        return applied, skipped

    def _apply_action(self, act: EditAction) -> bool:
        kind = act.action
        path = tuple(act.table_path) if act.table_path is not None else None

        if kind == EditActionType.SELECT:
            return self.select(act.selection)
        if kind == EditActionType.TOGGLE_MARK:
            return bool(act.format) and self.toggle_mark(act.format)
        if kind == EditActionType.ADD_MARK:
            return bool(act.format) and act.value is not None and self.add_mark(act.format, act.value)
        if kind == EditActionType.REMOVE_MARK:
            return bool(act.format) and self.remove_mark(act.format)
        if kind == EditActionType.CLEAR_FORMATTING:
            return self.clear_formatting()
        if kind == EditActionType.TOGGLE_BLOCK:
            return bool(act.format) and self.toggle_block(act.format)

        if kind == EditActionType.INSERT_IMAGE:
            return self.insert_image(act.url or "", act.alt or "")
        if kind == EditActionType.INSERT_LINK:
            return self.insert_link(act.url or "", act.text)
        if kind == EditActionType.INSERT_ANCHOR:
            return self.insert_anchor(act.id or "")
        if kind == EditActionType.INSERT_ANCHOR_LINK:
            return self.insert_anchor_link(act.id or "")
        if kind == EditActionType.INSERT_HOVER_AREA:
            return self.insert_hover_area(act.text or "", act.content or "")
        if kind == EditActionType.INSERT_TABLE:
            return act.rows is not None and act.cols is not None and self.insert_table(act.rows, act.cols)

        if kind in (EditActionType.ADD_TABLE_ROW, EditActionType.ADD_TABLE_COLUMN):
            if act.index is None:
                return False
            if kind == EditActionType.ADD_TABLE_ROW:
                return self.add_table_row(act.index, act.position or "below", table_path=path)
            return self.add_table_column(act.index, act.position or "right", table_path=path)
        if kind == EditActionType.REMOVE_TABLE_ROW:
            return act.index is not None and self.remove_table_row(act.index, table_path=path)
        if kind == EditActionType.REMOVE_TABLE_COLUMN:
            return act.index is not None and self.remove_table_column(act.index, table_path=path)
        if kind == EditActionType.MERGE_TABLE_CELLS:
            return act.cells is not None and self.merge_table_cells(act.cells, table_path=path)

        if kind == EditActionType.INSERT_BREAK:
            return self.insert_break()
        if kind == EditActionType.DELETE_BACKWARD:
            return self.delete_backward()

        # Remaining actions address a single cell.
        if act.row is None or act.col is None:
            return False
        if kind == EditActionType.UNMERGE_TABLE_CELLS:
            return self.unmerge_table_cells(act.row, act.col, table_path=path)
        if kind == EditActionType.SET_CELL_BACKGROUND_COLOR:
            return bool(act.color) and self.set_cell_background_color(act.row, act.col, act.color, table_path=path)
        if kind == EditActionType.SET_CELL_ALIGNMENT:
            return bool(act.align) and self.set_cell_alignment(act.row, act.col, act.align, table_path=path)
        if kind == EditActionType.SET_CELL_TEXT:
            return self.set_cell_text(act.row, act.col, act.text or "", table_path=path)
        return False
