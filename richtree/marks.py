"""
Inline mark operations (bold, color, font size, ...).

All functions are pure: they take an EditorContext and return a new one,
or the same one when nothing changes.
"""

from copy import deepcopy
from typing import Any, Callable, List, Optional, Tuple

import structlog

from richtree.models import MARKS, EditorContext, Element, Path, Text
from richtree.tree import (
    PointRef,
    block_above,
    children_of,
    is_ancestor,
    is_valid_point,
    iter_texts,
    merge_adjacent_texts,
    node_at,
    resolve_range,
    split_leaf,
)

logger = structlog.get_logger(__name__)

# Marks removed by clear_formatting. `code` is left alone on purpose: it is
# a semantic mark rather than presentation.
FORMATTING_MARKS = (
    "bold",
    "italic",
    "underline",
    "superscript",
    "subscript",
    "strikethrough",
    "color",
    "backgroundColor",
    "fontSize",
)


def _leaves_in_range(document: List[Element], start, end) -> List[Tuple[Path, Text]]:
    """
    Text leaves covered by [start, end] without splitting. A start sitting at
    the very end of its leaf, or an end at offset 0, does not cover that leaf.
    """
    leaves = []
    inside = False
    for path, leaf in iter_texts(document):
        if path == start.path:
            inside = True
            if start.offset == len(leaf.text) and start.path != end.path and leaf.text:
                continue
        if inside:
            if path == end.path and end.offset == 0 and start.path != end.path:
                break
            leaves.append((path, leaf))
        if path == end.path:
            break
    return leaves


def current_marks(ctx: EditorContext) -> dict:
    """
    Marks at the selection: those of the first covered leaf for an expanded
    selection; for a cursor at offset 0, those of the previous leaf in the
    same block.
    """
    selection = ctx.selection
    if selection is None or not is_valid_point(ctx.document, selection.anchor):
        return {}
    if not selection.is_collapsed:
        start, end = selection.edges()
        leaves = _leaves_in_range(ctx.document, start, end)
        return leaves[0][1].marks() if leaves else {}

    anchor = selection.anchor
    leaf = node_at(ctx.document, anchor.path)
    if anchor.offset == 0:
        block = block_above(ctx.document, anchor.path)
        previous = None
        for path, candidate in iter_texts(ctx.document):
            if path == anchor.path:
                break
            previous = (path, candidate)
        if previous is not None and block is not None and is_ancestor(block[0], previous[0]):
            leaf = previous[1]
    return leaf.marks()


def mark_active(ctx: EditorContext, mark: str) -> bool:
    return current_marks(ctx).get(mark) is True


def _apply_to_selection(ctx: EditorContext, setter: Callable[[Text], None]) -> EditorContext:
    """
    Splits the leaves at the selection edges, runs `setter` on every covered
    leaf, then re-joins equal neighbours in the affected parents.
    """
    selection = ctx.selection
    if selection is None or selection.is_collapsed:
        logger.debug("Mark change ignored: no expanded selection")
        return ctx
    if not (is_valid_point(ctx.document, selection.anchor) and is_valid_point(ctx.document, selection.focus)):
        logger.warning("Mark change ignored: selection does not resolve", selection=selection.model_dump())
        return ctx

    document = deepcopy(ctx.document)
    backward = selection.is_backward
    anchor_ref = PointRef(document, selection.anchor, affinity="backward" if backward else "forward")
    focus_ref = PointRef(document, selection.focus, affinity="forward" if backward else "backward")
    refs = (anchor_ref, focus_ref)
    start_ref, end_ref = (focus_ref, anchor_ref) if backward else (anchor_ref, focus_ref)

    # Split at the end first so the start's path stays valid.
    for ref in (end_ref, start_ref):
        point = ref.resolve(document)
        siblings = children_of(document, point.path[:-1])
        split_leaf(siblings, point.path[-1], point.offset, refs)

    start = start_ref.resolve(document)
    end = end_ref.resolve(document)
    affected_parents = []
    for path, leaf in _leaves_in_range(document, start, end):
        setter(leaf)
        parent = children_of(document, path[:-1])
        if not any(parent is seen for seen in affected_parents):
            affected_parents.append(parent)
    for parent in affected_parents:
        merge_adjacent_texts(parent, refs)

    return ctx.evolve(document, resolve_range(document, anchor_ref, focus_ref))


def _set_attr(attr: str, value: Any) -> Callable[[Text], None]:
    def setter(leaf: Text) -> None:
        setattr(leaf, attr, value)

    return setter


def toggle_mark(ctx: EditorContext, mark: str) -> EditorContext:
    """Adds `mark` with value True when inactive, removes it when active."""
    if mark not in MARKS:
        logger.warning("Unknown mark", mark=mark)
        return ctx
    attr = MARKS[mark]
    if mark_active(ctx, mark):
        return _apply_to_selection(ctx, _set_attr(attr, None))
    return _apply_to_selection(ctx, _set_attr(attr, True))


def add_mark(ctx: EditorContext, mark: str, value: Any) -> EditorContext:
    """
    Sets `mark` to an explicit value (a color, a font size, ...). The value
    is stored as given; the serializer escapes it on output.
    """
    if mark not in MARKS:
        logger.warning("Unknown mark", mark=mark)
        return ctx
    if value is None:
        return remove_mark(ctx, mark)
    if not isinstance(value, (bool, int, float, str)):
        logger.warning("Mark value is not a scalar", mark=mark, value=repr(value))
        return ctx
    return _apply_to_selection(ctx, _set_attr(MARKS[mark], value))


def remove_mark(ctx: EditorContext, mark: str) -> EditorContext:
    if mark not in MARKS:
        logger.warning("Unknown mark", mark=mark)
        return ctx
    return _apply_to_selection(ctx, _set_attr(MARKS[mark], None))


def clear_formatting(ctx: EditorContext, marks: Optional[tuple] = None) -> EditorContext:
    attrs = [MARKS[name] for name in (marks or FORMATTING_MARKS)]

    def setter(leaf: Text) -> None:
        for attr in attrs:
            setattr(leaf, attr, None)

    return _apply_to_selection(ctx, setter)
