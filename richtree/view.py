"""
Edits an editable view delegates to the core.

Line breaks and backward deletion treat atomic elements (tables, images,
hover-areas) as a single unit. The element helpers at the bottom back the
resize handles, the image dialog and the delete buttons.
"""

from copy import deepcopy
from typing import List, Optional, Tuple

import structlog

from richtree.insert import empty_paragraph
from richtree.models import IMAGE, TABLE, EditorContext, Element, Point, Range, Text
from richtree.tree import (
    atomic_above,
    block_above,
    children_of,
    delete_range,
    end_point,
    is_valid_point,
    next_path,
    node_at,
    replace_node,
    split_element,
    start_point,
)

logger = structlog.get_logger(__name__)


def _cursor(ctx: EditorContext, operation: str) -> Optional[Point]:
    selection = ctx.selection
    if selection is None:
        logger.debug("Ignored: no selection", operation=operation)
        return None
    if not (is_valid_point(ctx.document, selection.anchor) and is_valid_point(ctx.document, selection.focus)):
        logger.warning("Ignored: selection does not resolve", operation=operation)
        return None
    return selection.anchor


def _delete_selection(ctx: EditorContext, operation: str) -> Optional[Tuple[List[Element], Point]]:
    """Deletes an expanded selection from a copy of the document."""
    document = deepcopy(ctx.document)
    point = delete_range(document, *ctx.selection.edges())
    if point is None:
        logger.debug("Ignored: selection reaches into an atomic element", operation=operation)
        return None
    return document, point


def insert_break(ctx: EditorContext) -> EditorContext:
    """
    Inside an atomic element: adds an empty paragraph right after it and
    moves the cursor there. Elsewhere: splits the lowest block at the cursor,
    after deleting an expanded selection.
    """
    point = _cursor(ctx, "insert_break")
    if point is None:
        return ctx

    if ctx.selection.is_collapsed:
        document = deepcopy(ctx.document)
    else:
        deleted = _delete_selection(ctx, "insert_break")
        if deleted is None:
            return ctx
        document, point = deleted

    atomic = atomic_above(document, point.path)
    if atomic is not None:
        after = next_path(atomic[0])
        children_of(document, after[:-1]).insert(after[-1], empty_paragraph())
        return ctx.evolve(document, Range.collapsed(start_point(document, after)))

    entry = block_above(document, point.path)
    if entry is None:
        logger.warning("Break ignored: no block above cursor", path=point.path)
        return ctx
    block_path, block = entry
    left, right = split_element(block, point.path[len(block_path) :], point.offset)
    replace_node(document, block_path, [left, right])
    return ctx.evolve(document, Range.collapsed(start_point(document, next_path(block_path))))


def delete_backward(ctx: EditorContext) -> EditorContext:
    """
    An expanded selection is deleted. At the very start of an atomic
    element: removes the whole element. Otherwise deletes the character
    before the cursor; at the start of a text leaf nothing happens.
    """
    point = _cursor(ctx, "delete_backward")
    if point is None:
        return ctx
    if not ctx.selection.is_collapsed:
        deleted = _delete_selection(ctx, "delete_backward")
        if deleted is None:
            return ctx
        document, point = deleted
        return ctx.evolve(document, Range.collapsed(point))

    atomic = atomic_above(ctx.document, point.path)
    if atomic is not None and point == start_point(ctx.document, atomic[0]):
        return _remove_atomic(ctx, atomic[0])

    if point.offset == 0:
        return ctx

    document = deepcopy(ctx.document)
    leaf = node_at(document, point.path)
    leaf.text = leaf.text[: point.offset - 1] + leaf.text[point.offset :]
    return ctx.evolve(document, Range.collapsed(Point(path=point.path, offset=point.offset - 1)))


def _remove_atomic(ctx: EditorContext, path) -> EditorContext:
    document = deepcopy(ctx.document)
    siblings = children_of(document, path[:-1])
    del siblings[path[-1]]
    if not siblings:
        siblings.append(empty_paragraph() if not path[:-1] else Text())

    index = path[-1]
    if index > 0:
        selection = Range.collapsed(end_point(document, path[:-1] + (index - 1,)))
    else:
        selection = Range.collapsed(start_point(document, path[:-1] + (0,)))
    logger.debug("Removed atomic element", path=path)
    return ctx.evolve(document, selection)


def remove_element(ctx: EditorContext, path) -> EditorContext:
    """Removes a table or image (or any atomic element) by path."""
    path = tuple(path)
    node = node_at(ctx.document, path)
    if node is None or isinstance(node, Text) or not node.is_atomic:
        logger.warning("Remove ignored: no atomic element at path", path=path)
        return ctx
    return _remove_atomic(ctx, path)


def _set_element_attrs(ctx: EditorContext, path, types, **changes) -> EditorContext:
    path = tuple(path)
    node = node_at(ctx.document, path)
    if node is None or isinstance(node, Text) or node.type not in types:
        logger.warning("Ignored: no matching element at path", path=path, types=types)
        return ctx
    changes = {attr: value for attr, value in changes.items() if value is not None}
    if all(getattr(node, attr) == value for attr, value in changes.items()):
        return ctx
    document = deepcopy(ctx.document)
    target = node_at(document, path)
    for attr, value in changes.items():
        setattr(target, attr, value)
    return ctx.evolve(document, ctx.selection)


def resize_element(ctx: EditorContext, path, width: Optional[str] = None, height: Optional[str] = None) -> EditorContext:
    """Sets the CSS width/height of a table or image (the end of a drag-resize)."""
    return _set_element_attrs(ctx, path, (TABLE, IMAGE), width=width, height=height)


def update_image(
    ctx: EditorContext,
    path,
    url: Optional[str] = None,
    alt: Optional[str] = None,
    title: Optional[str] = None,
) -> EditorContext:
    if url == "":
        logger.debug("Image update ignored: empty url")
        return ctx
    return _set_element_attrs(ctx, path, (IMAGE,), url=url, alt=alt, title=title)
