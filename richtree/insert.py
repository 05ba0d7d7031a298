"""
Insertion helpers for images, links, anchors, hover-areas and tables.

Block insertions land next to the block holding the cursor (splitting it
when the cursor is in the middle). Atomic insertions are followed by an
empty paragraph so there is always an editable position after them.
Inserting over an expanded selection replaces the selected content.
"""

from copy import deepcopy
from typing import List, Optional, Tuple

import structlog

from richtree.models import (
    ANCHOR,
    HOVER_AREA,
    IMAGE,
    LINK,
    PARAGRAPH,
    EditorContext,
    Element,
    Point,
    Range,
    Text,
)
from richtree.table import create_table
from richtree.tree import (
    atomic_above,
    block_above,
    children_of,
    delete_range,
    end_point,
    is_valid_point,
    next_path,
    split_element,
    split_leaf,
    start_point,
)

logger = structlog.get_logger(__name__)

DEFAULT_IMAGE_WIDTH = "300px"
DEFAULT_IMAGE_HEIGHT = "auto"
DEFAULT_HOVER_TEXT = "Hover text"
DEFAULT_HOVER_CONTENT = "Hover content"


def empty_paragraph() -> Element:
    return Element(type=PARAGRAPH, children=[Text()])


def _collapse_selection(ctx: EditorContext) -> Tuple[List[Element], Optional[Point]]:
    """
    A working copy of the document and the insertion point in it. An
    expanded selection is deleted first and the point is where it started;
    a range reaching into an atomic element is kept and its end is used.
    """
    document = deepcopy(ctx.document)
    selection = ctx.selection
    if selection is None:
        return document, None
    if not (is_valid_point(document, selection.anchor) and is_valid_point(document, selection.focus)):
        logger.warning("Selection does not resolve, ignoring it", selection=selection.model_dump())
        return document, None
    start, end = selection.edges()
    if selection.is_collapsed:
        return document, start
    point = delete_range(document, start, end)
    if point is None:
        logger.debug("Selection reaches into an atomic element, inserting at its end")
        return document, end
    return document, point


def insert_block(ctx: EditorContext, node: Element, trailing_paragraph: bool = False) -> EditorContext:
    """
    Splices a block-level `node` in at the cursor, or appends it when there is
    no cursor. The new selection is the end of the node, or the start of the
    trailing paragraph when one is added.
    """
    document, point = _collapse_selection(ctx)
    if point is None:
        at = (len(document),)
    else:
        entry = block_above(document, point.path)
        block_path, block = entry if entry else (point.path[:1], document[point.path[0]])
        start = start_point(document, block_path)
        end = end_point(document, block_path)
        if block.is_atomic or point == end:
            at = next_path(block_path)
        elif point == start:
            at = block_path
        else:
            left, right = split_element(block, point.path[len(block_path) :], point.offset)
            siblings = children_of(document, block_path[:-1])
            siblings[block_path[-1] : block_path[-1] + 1] = [left, right]
            at = next_path(block_path)

    children_of(document, at[:-1]).insert(at[-1], node)
    selection = Range.collapsed(end_point(document, at))

    if trailing_paragraph:
        after = next_path(at)
        children_of(document, after[:-1]).insert(after[-1], empty_paragraph())
        selection = Range.collapsed(start_point(document, after))

    return ctx.evolve(document, selection)


def insert_inline(ctx: EditorContext, node: Element) -> EditorContext:
    """
    Splices an inline `node` into the text leaf under the cursor, keeping a
    text leaf on both sides of it.
    """
    document, point = _collapse_selection(ctx)
    if point is None:
        logger.debug("Inline insertion ignored: no cursor", type=node.type)
        return ctx
    if atomic_above(document, point.path) is not None:
        logger.debug("Inline insertion ignored: cursor is inside an atomic element", type=node.type)
        return ctx

    siblings: List = children_of(document, point.path[:-1])
    index = point.path[-1]
    leaf = siblings[index]

    if split_leaf(siblings, index, point.offset):
        index += 1
    elif point.offset == len(leaf.text):
        index += 1
    siblings.insert(index, node)

    if index == 0 or not isinstance(siblings[index - 1], Text):
        siblings.insert(index, Text())
        index += 1
    if index + 1 >= len(siblings) or not isinstance(siblings[index + 1], Text):
        siblings.insert(index + 1, Text())

    node_path = point.path[:-1] + (index,)
    return ctx.evolve(document, Range.collapsed(end_point(document, node_path)))


def insert_image(ctx: EditorContext, url: str, alt: str = "") -> EditorContext:
    if not url:
        logger.debug("Image insertion cancelled: empty url")
        return ctx
    image = Element(
        type=IMAGE,
        url=url,
        alt=alt,
        width=DEFAULT_IMAGE_WIDTH,
        height=DEFAULT_IMAGE_HEIGHT,
        children=[Text()],
    )
    return insert_block(ctx, image, trailing_paragraph=True)


def insert_link(ctx: EditorContext, url: str, text: Optional[str] = None) -> EditorContext:
    if not url:
        logger.debug("Link insertion cancelled: empty url")
        return ctx
    link = Element(type=LINK, href=url, target="_blank", children=[Text(text=text or url)])
    return insert_inline(ctx, link)


def insert_anchor(ctx: EditorContext, anchor_id: str) -> EditorContext:
    if not anchor_id:
        logger.debug("Anchor insertion cancelled: empty id")
        return ctx
    anchor = Element(type=ANCHOR, id=anchor_id, children=[Text(text=f"[{anchor_id}]")])
    return insert_inline(ctx, anchor)


def insert_anchor_link(ctx: EditorContext, anchor_id: str) -> EditorContext:
    """Inserts a same-document link to `#anchor_id`. No target is set."""
    if not anchor_id:
        logger.debug("Anchor link insertion cancelled: empty id")
        return ctx
    link = Element(type=LINK, href=f"#{anchor_id}", children=[Text(text=f"Go to {anchor_id}")])
    return insert_inline(ctx, link)


def insert_hover_area(ctx: EditorContext, text: str = "", content: str = "") -> EditorContext:
    hover_area = Element(
        type=HOVER_AREA,
        hover_content=content or DEFAULT_HOVER_CONTENT,
        is_edit_mode=True,
        children=[Text(text=text or DEFAULT_HOVER_TEXT)],
    )
    return insert_block(ctx, hover_area, trailing_paragraph=True)


def insert_table(ctx: EditorContext, rows: int, cols: int) -> EditorContext:
    try:
        table = create_table(rows, cols)
    except ValueError as e:
        logger.warning("Table insertion ignored", rows=rows, cols=cols, reason=str(e))
        return ctx
    return insert_block(ctx, table, trailing_paragraph=True)
