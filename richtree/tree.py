"""
Path addressing and structural primitives for the document tree.

Paths index through `children` only: `(2, 0)` is the first child of the
third top-level block. Table cells live in `Element.rows` and are addressed
by the table grid engine, not by paths.
"""

from typing import Iterator, List, Optional, Tuple, Union

from richtree.models import Element, Path, Point, Range, Text, compare_paths

NodeEntry = Tuple[Path, Union[Element, Text]]


def node_at(document: List[Element], path: Path) -> Optional[Union[Element, Text]]:
    """Returns the node at `path`, or None if the path does not resolve."""
    if not path:
        return None
    children: list = document
    node = None
    for index in path:
        if children is None or not 0 <= index < len(children):
            return None
        node = children[index]
        children = node.children if isinstance(node, Element) else None
    return node


def children_of(document: List[Element], parent_path: Path) -> Optional[list]:
    """The mutable child list at `parent_path` (the document itself for `()`)."""
    if not parent_path:
        return document
    parent = node_at(document, parent_path)
    if isinstance(parent, Element):
        return parent.children
    return None


def iter_nodes(document: List[Element]) -> Iterator[NodeEntry]:
    """Yields every node in document order (pre-order)."""

    def walk(children, prefix):
        for index, node in enumerate(children):
            path = prefix + (index,)
            yield path, node
            if isinstance(node, Element):
                yield from walk(node.children, path)

    yield from walk(document, ())


def iter_texts(document: List[Element]) -> Iterator[Tuple[Path, Text]]:
    for path, node in iter_nodes(document):
        if isinstance(node, Text):
            yield path, node


def is_ancestor(path: Path, other: Path) -> bool:
    return len(path) < len(other) and other[: len(path)] == path


def next_path(path: Path) -> Path:
    return path[:-1] + (path[-1] + 1,)


def common_path(a: Path, b: Path) -> Path:
    common = []
    for x, y in zip(a, b):
        if x != y:
            break
        common.append(x)
    return tuple(common)


def is_valid_point(document: List[Element], point: Point) -> bool:
    leaf = node_at(document, point.path)
    return isinstance(leaf, Text) and 0 <= point.offset <= len(leaf.text)


def start_point(document: List[Element], path: Path) -> Optional[Point]:
    """First position inside the node at `path` (Editor.start)."""
    node = node_at(document, path)
    while isinstance(node, Element):
        path = path + (0,)
        node = node.children[0]
    if node is None:
        return None
    return Point(path=path, offset=0)


def end_point(document: List[Element], path: Path) -> Optional[Point]:
    """Last position inside the node at `path` (Editor.end)."""
    node = node_at(document, path)
    while isinstance(node, Element):
        last = len(node.children) - 1
        path = path + (last,)
        node = node.children[last]
    if node is None:
        return None
    return Point(path=path, offset=len(node.text))


def ancestors(document: List[Element], path: Path) -> List[Tuple[Path, Element]]:
    """Element ancestors of `path`, outermost first."""
    found = []
    for depth in range(1, len(path)):
        node = node_at(document, path[:depth])
        if isinstance(node, Element):
            found.append((path[:depth], node))
    return found


def block_above(document: List[Element], path: Path) -> Optional[Tuple[Path, Element]]:
    """The lowest non-inline element containing `path`."""
    for entry in reversed(ancestors(document, path)):
        if not entry[1].is_inline:
            return entry
    return None


def atomic_above(document: List[Element], path: Path) -> Optional[Tuple[Path, Element]]:
    """The outermost atomic element containing `path`, if any."""
    for entry in ancestors(document, path):
        if entry[1].is_atomic:
            return entry
    return None


def nodes_in_range(document: List[Element], start: Path, end: Path) -> Iterator[NodeEntry]:
    """Every node spanned by [start, end], ancestors included."""
    for path, node in iter_nodes(document):
        if compare_paths(path, start) >= 0 and compare_paths(path, end) <= 0:
            yield path, node


def lowest_blocks(document: List[Element], start: Path, end: Path, skip_atomic: bool = True) -> List[Path]:
    """Paths of the innermost block elements spanned by [start, end]."""
    candidates = [
        path
        for path, node in nodes_in_range(document, start, end)
        if isinstance(node, Element) and not node.is_inline and not (skip_atomic and node.is_atomic)
    ]
    return [path for path in candidates if not any(is_ancestor(path, other) for other in candidates)]


def unhang_range(document: List[Element], selection: Range) -> Tuple[Point, Point]:
    """
    Edges of `selection`, with an end that sits at offset 0 of a later leaf
    pulled back to the end of the previous leaf.
    """
    start, end = selection.edges()
    if selection.is_collapsed or end.offset != 0 or end.path == start.path:
        return start, end
    previous = None
    for path, leaf in iter_texts(document):
        if path == end.path:
            break
        previous = (path, leaf)
    if previous is not None and compare_paths(previous[0], start.path) >= 0:
        end = Point(path=previous[0], offset=len(previous[1].text))
    return start, end


class PointRef:
    """
    Tracks a point by the identity of its text leaf, so it survives
    structural edits made to the same document objects.

    `affinity` decides which side of a split at exactly this offset the
    point follows.
    """

    __slots__ = ("leaf", "offset", "affinity")

    def __init__(self, document: List[Element], point: Point, affinity: str = "forward"):
        self.leaf = node_at(document, point.path)
        self.offset = point.offset
        self.affinity = affinity

    def resolve(self, document: List[Element]) -> Optional[Point]:
        for path, leaf in iter_texts(document):
            if leaf is self.leaf:
                return Point(path=path, offset=min(self.offset, len(leaf.text)))
        return None


def resolve_range(document: List[Element], anchor: PointRef, focus: PointRef) -> Optional[Range]:
    a = anchor.resolve(document)
    f = focus.resolve(document)
    if a is None or f is None:
        return None
    return Range(anchor=a, focus=f)


def split_leaf(children: list, index: int, offset: int, refs=()) -> bool:
    """
    Splits the text leaf at `children[index]` in two at `offset`.
    Returns False when the offset is at an edge and nothing was split.
    """
    leaf = children[index]
    if not 0 < offset < len(leaf.text):
        return False
    right = leaf.model_copy(update={"text": leaf.text[offset:]})
    leaf.text = leaf.text[:offset]
    children.insert(index + 1, right)
    for ref in refs:
        if ref.leaf is not leaf:
            continue
        if ref.offset > offset or (ref.offset == offset and ref.affinity == "forward"):
            ref.leaf = right
            ref.offset -= offset
    return True


def merge_adjacent_texts(children: list, refs=()) -> None:
    """Joins neighbouring text leaves that carry identical marks."""
    index = len(children) - 1
    while index > 0:
        current = children[index]
        previous = children[index - 1]
        if isinstance(current, Text) and isinstance(previous, Text) and current.marks() == previous.marks():
            shift = len(previous.text)
            previous.text += current.text
            for ref in refs:
                if ref.leaf is current:
                    ref.leaf = previous
                    ref.offset += shift
            del children[index]
        index -= 1


def split_element(element: Element, relative_path: Path, offset: int) -> Tuple[Element, Element]:
    """
    Splits `element` at the point `(relative_path, offset)` inside it.
    Both halves keep the element's attributes; the right half of a text
    leaf keeps its marks even when empty.
    """
    index = relative_path[0]
    child = element.children[index]
    if isinstance(child, Text):
        left_child = child.model_copy(update={"text": child.text[:offset]})
        right_child = child.model_copy(update={"text": child.text[offset:]})
    else:
        left_child, right_child = split_element(child, relative_path[1:], offset)
    left = element.model_copy(update={"children": element.children[:index] + [left_child]})
    right = element.model_copy(update={"children": [right_child] + element.children[index + 1 :]})
    return left, right


def replace_node(document: List[Element], path: Path, nodes: list) -> None:
    """Replaces the node at `path` with zero or more nodes, in place."""
    siblings = children_of(document, path[:-1])
    siblings[path[-1] : path[-1] + 1] = nodes


def _is_block(node) -> bool:
    return isinstance(node, Element) and not node.is_inline


def _truncate_after(children: list, relative_path: Path, offset: int) -> None:
    index = relative_path[0]
    node = children[index]
    if isinstance(node, Text):
        node.text = node.text[:offset]
    else:
        _truncate_after(node.children, relative_path[1:], offset)
    del children[index + 1 :]


def _truncate_before(children: list, relative_path: Path, offset: int) -> None:
    index = relative_path[0]
    node = children[index]
    if isinstance(node, Text):
        node.text = node.text[offset:]
    else:
        _truncate_before(node.children, relative_path[1:], offset)
    del children[:index]


def _join_blocks(siblings: list, index: int, refs=()) -> None:
    """
    Moves the content of the first lowest block under `siblings[index + 1]`
    to the end of the last lowest block under `siblings[index]`. Containers
    left empty by the move are removed. Atomic elements are never joined.
    """
    target = siblings[index]
    while not target.is_atomic and _is_block(target.children[-1]):
        target = target.children[-1]
    source = siblings[index + 1]
    owners = [(siblings, index + 1)]
    while not source.is_atomic and _is_block(source.children[0]):
        owners.append((source.children, 0))
        source = source.children[0]
    if target.is_atomic or source.is_atomic:
        return

    target.children.extend(source.children)
    for owner, position in reversed(owners):
        del owner[position]
        if owner:
            break
    merge_adjacent_texts(target.children, refs)


def delete_range(document: List[Element], start: Point, end: Point) -> Optional[Point]:
    """
    Deletes everything between `start` and `end` (document order), in place,
    and joins the two blocks the range cut through. Returns the collapsed
    point left behind, or None without touching the document when either
    edge is inside an atomic element.
    """
    if atomic_above(document, start.path) is not None or atomic_above(document, end.path) is not None:
        return None
    if start.path == end.path:
        leaf = node_at(document, start.path)
        leaf.text = leaf.text[: start.offset] + leaf.text[end.offset :]
        return start

    ref = PointRef(document, start, affinity="backward")
    depth = len(common_path(start.path, end.path))
    siblings = children_of(document, start.path[:depth])
    left = start.path[depth]
    right = end.path[depth]

    left_node = siblings[left]
    if isinstance(left_node, Text):
        left_node.text = left_node.text[: start.offset]
    else:
        _truncate_after(left_node.children, start.path[depth + 1 :], start.offset)
    right_node = siblings[right]
    if isinstance(right_node, Text):
        right_node.text = right_node.text[end.offset :]
    else:
        _truncate_before(right_node.children, end.path[depth + 1 :], end.offset)
    del siblings[left + 1 : right]

    if _is_block(siblings[left]) and _is_block(siblings[left + 1]):
        _join_blocks(siblings, left, (ref,))
    merge_adjacent_texts(siblings, (ref,))
    return ref.resolve(document)
