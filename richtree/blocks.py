"""
Block-level toggles: element type (headings, quotes, lists) and alignment.
"""

from copy import deepcopy
from typing import List

import structlog

from richtree.models import (
    ALIGNMENTS,
    LIST_ITEM,
    LIST_TYPES,
    PARAGRAPH,
    EditorContext,
    Element,
    Point,
    compare_paths,
)
from richtree.tree import (
    PointRef,
    children_of,
    common_path,
    is_ancestor,
    is_valid_point,
    lowest_blocks,
    node_at,
    nodes_in_range,
    resolve_range,
    unhang_range,
)

logger = structlog.get_logger(__name__)


def block_active(ctx: EditorContext, format: str, axis: str = "type") -> bool:
    """
    True when any element spanned by the selection (ancestors included) has
    `axis` ("type" or "align") equal to `format`.
    """
    if axis not in ("type", "align"):
        raise ValueError(f"axis must be 'type' or 'align', got {axis!r}")
    selection = ctx.selection
    if selection is None or not is_valid_point(ctx.document, selection.anchor):
        return False
    start, end = unhang_range(ctx.document, selection)
    for _, node in nodes_in_range(ctx.document, start.path, end.path):
        if isinstance(node, Element) and getattr(node, axis) == format:
            return True
    return False


def _edges(document, anchor_ref: PointRef, focus_ref: PointRef):
    selection = resolve_range(document, anchor_ref, focus_ref)
    return unhang_range(document, selection)


def _unwrap_lists(document: List[Element], anchor_ref: PointRef, focus_ref: PointRef) -> None:
    """
    Lifts the selected items out of every innermost list container spanned
    by the selection. Items outside the selection stay in split-off
    containers on either side.
    """
    start, end = _edges(document, anchor_ref, focus_ref)
    containers = [
        path
        for path, node in nodes_in_range(document, start.path, end.path)
        if isinstance(node, Element) and node.type in LIST_TYPES
    ]
    containers = [path for path in containers if not any(is_ancestor(path, other) for other in containers)]

    # Last first, so earlier container paths stay valid.
    for path in reversed(containers):
        start, end = _edges(document, anchor_ref, focus_ref)
        container = node_at(document, path)
        covered = [
            index
            for index in range(len(container.children))
            if compare_paths(path + (index,), start.path) >= 0 and compare_paths(path + (index,), end.path) <= 0
        ]
        if not covered:
            continue
        first, last = covered[0], covered[-1]
        before = container.children[:first]
        lifted = container.children[first : last + 1]
        after = container.children[last + 1 :]

        replacement = []
        if before:
            replacement.append(container.model_copy(update={"children": before}))
        replacement.extend(lifted)
        if after:
            replacement.append(container.model_copy(update={"children": after}))

        siblings = children_of(document, path[:-1])
        siblings[path[-1] : path[-1] + 1] = replacement


def _wrap_blocks(document: List[Element], start: Point, end: Point, list_type: str) -> None:
    """Wraps the run of sibling blocks spanning [start, end] in a new list container."""
    blocks = lowest_blocks(document, start.path, end.path)
    if not blocks:
        return
    first, last = blocks[0], blocks[-1]
    parent = first[:-1] if first == last else common_path(first, last)
    depth = len(parent)
    siblings = children_of(document, parent)
    lo, hi = first[depth], last[depth]
    wrapper = Element(type=list_type, children=siblings[lo : hi + 1])
    siblings[lo : hi + 1] = [wrapper]


def toggle_block(ctx: EditorContext, format: str) -> EditorContext:
    """
    Alignment formats only ever touch `align`. Any other format changes
    `type`, unwrapping list containers first and re-wrapping when a list
    format is switched on.
    """
    selection = ctx.selection
    if selection is None:
        logger.debug("Block toggle ignored: no selection", format=format)
        return ctx
    if not (is_valid_point(ctx.document, selection.anchor) and is_valid_point(ctx.document, selection.focus)):
        logger.warning("Block toggle ignored: selection does not resolve", format=format)
        return ctx

    is_align = format in ALIGNMENTS
    is_list = format in LIST_TYPES
    active = block_active(ctx, format, "align" if is_align else "type")

    document = deepcopy(ctx.document)
    anchor_ref = PointRef(document, selection.anchor)
    focus_ref = PointRef(document, selection.focus)

    if not is_align:
        _unwrap_lists(document, anchor_ref, focus_ref)

    start, end = _edges(document, anchor_ref, focus_ref)
    for path in lowest_blocks(document, start.path, end.path):
        block = node_at(document, path)
        if is_align:
            block.align = None if active else format
        elif active:
            block.type = PARAGRAPH
        else:
            block.type = LIST_ITEM if is_list else format

    if is_list and not active:
        _wrap_blocks(document, start, end, format)

    return ctx.evolve(document, resolve_range(document, anchor_ref, focus_ref))
