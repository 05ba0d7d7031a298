"""
HTML serialization of the document tree.

Output is byte-stable for a given tree: mark wrappers, style declarations
and attributes are always emitted in the same order. Serialization only
reads the tree.
"""

import re
from html import escape
from typing import Iterable, List, Union

from richtree.models import (
    ABBR,
    ANCHOR,
    BLOCK_QUOTE,
    BULLETED_LIST,
    HEADING_ONE,
    HEADING_THREE,
    HEADING_TWO,
    HOVER_AREA,
    IMAGE,
    LINK,
    LIST_ITEM,
    NUMBERED_LIST,
    PARAGRAPH,
    TABLE,
    Element,
    TableCell,
    Text,
)

BLOCK_TAGS = {
    PARAGRAPH: "p",
    HEADING_ONE: "h1",
    HEADING_TWO: "h2",
    HEADING_THREE: "h3",
    BLOCK_QUOTE: "blockquote",
    BULLETED_LIST: "ul",
    NUMBERED_LIST: "ol",
    LIST_ITEM: "li",
}

# Innermost first.
MARK_TAGS = (
    ("bold", "strong"),
    ("italic", "em"),
    ("underline", "u"),
    ("strikethrough", "del"),
    ("superscript", "sup"),
    ("subscript", "sub"),
    ("code", "code"),
)
MARK_STYLES = (
    ("color", "color"),
    ("background_color", "background-color"),
    ("font_size", "font-size"),
)

TABLE_ATTRS = 'border="1" cellpadding="8" cellspacing="0"'
TABLE_BASE_STYLE = (
    "border-collapse: collapse; width: 100%; border: 2px solid #4a5568; "
    "box-shadow: 0 4px 6px -1px rgba(0, 0, 0, 0.1);"
)
CELL_BASE_STYLE = ("border: 1px solid #4a5568", "padding: 12px")

BASELINE_STYLESHEET = """\
        body { font-family: Arial, sans-serif; line-height: 1.6; margin: 20px; }
        .anchor { background-color: #fff3cd; padding: 2px 4px; border-radius: 3px; border-left: 2px solid #ffc107; }
        .hover-area { background-color: #e1f5fe; padding: 2px 4px; border-radius: 3px; cursor: pointer; }
        table { border-collapse: collapse; width: 100%; border: 2px solid #333; }
        table td, table th { border: 1px solid #333; padding: 8px; text-align: left; }
        table td { background-color: #fff; }
        blockquote { border-left: 4px solid #ccc; padding-left: 16px; font-style: italic; }
        code { background-color: #f8f9fa; padding: 2px 4px; border-radius: 3px; }
        img { max-width: 100%; height: auto; }
        .prose { max-width: none; }
        .prose table { margin: 1rem 0; }
        .prose table td, .prose table th { border: 1px solid #333; padding: 8px; }"""

DOCUMENT_TEMPLATE = """
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Generated Content</title>
    <style>
{stylesheet}
    </style>
</head>
<body>
    {body}
</body>
</html>"""


def _attr(value) -> str:
    return escape(str(value), quote=True)


def _style_attr(declarations: List[str]) -> str:
    if not declarations:
        return ""
    return f' style="{_attr("; ".join(declarations))}"'


def serialize_text(leaf: Text) -> str:
    html = escape(leaf.text, quote=False)
    for attr, tag in MARK_TAGS:
        if getattr(leaf, attr):
            html = f"<{tag}>{html}</{tag}>"
    for attr, prop in MARK_STYLES:
        value = getattr(leaf, attr)
        if value:
            html = f'<span style="{_attr(f"{prop}: {value}")}">{html}</span>'
    return html


def _serialize_children(children: Iterable[Union[Element, Text]]) -> str:
    return "".join(serialize_node(child) for child in children)


def _serialize_cell(cell: TableCell) -> str:
    style = []
    if cell.background_color:
        style.append(f"background-color: {cell.background_color}")
    if cell.align:
        style.append(f"text-align: {cell.align}")
    style.extend(CELL_BASE_STYLE)

    spans = ""
    if cell.col_span and cell.col_span > 1:
        spans += f' colspan="{cell.col_span}"'
    if cell.row_span and cell.row_span > 1:
        spans += f' rowspan="{cell.row_span}"'
    return f"<td{_style_attr(style)}{spans}>{_serialize_children(cell.children)}</td>"


def _serialize_table(element: Element) -> str:
    style = TABLE_BASE_STYLE
    if element.width:
        style += f" width: {element.width};"
    if element.height:
        style += f" height: {element.height};"

    rows = []
    for row in element.rows or []:
        cells = "".join(_serialize_cell(cell) for cell in row.children if not cell.is_merged)
        rows.append(f"<tr>{cells}</tr>")
    return f'<table {TABLE_ATTRS} style="{_attr(style)}">{"".join(rows)}</table>'


def _serialize_image(element: Element) -> str:
    style = []
    if element.width:
        style.append(f"width: {element.width}")
    if element.height:
        style.append(f"height: {element.height}")
    return (
        f'<img src="{_attr(element.url or "")}" alt="{_attr(element.alt or "")}" '
        f'title="{_attr(element.title or "")}"{_style_attr(style)} />'
    )


def serialize_node(node: Union[Element, Text]) -> str:
    if isinstance(node, Text):
        return serialize_text(node)

    if node.type == TABLE:
        return _serialize_table(node)
    if node.type == IMAGE:
        return _serialize_image(node)

    children = _serialize_children(node.children)
    if node.type == LINK:
        return f'<a href="{_attr(node.href or "#")}" target="{_attr(node.target or "_blank")}">{children}</a>'
    if node.type == ANCHOR:
        return f'<span id="{_attr(node.id or "")}" class="anchor">{children}</span>'
    if node.type == ABBR:
        return f'<abbr title="{_attr(node.definition or "")}">{children}</abbr>'
    if node.type == HOVER_AREA:
        return f'<span title="{_attr(node.hover_content or "")}" class="hover-area">{children}</span>'

    style = []
    if node.align:
        style.append(f"text-align: {node.align}")
    if node.font_size:
        style.append(f"font-size: {node.font_size}")
    tag = BLOCK_TAGS.get(node.type, "p")
    return f"<{tag}{_style_attr(style)}>{children}</{tag}>"


def serialize(nodes: Iterable[Union[Element, Text]]) -> str:
    """Serializes a document (or any node list) to an HTML fragment."""
    return "".join(serialize_node(node) for node in nodes)


def get_html_output(nodes: Iterable[Union[Element, Text]]) -> str:
    """Wraps the serialized fragment in a standalone HTML5 document."""
    return DOCUMENT_TEMPLATE.format(stylesheet=BASELINE_STYLESHEET, body=serialize(nodes))


_SCRIPT = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_IFRAME = re.compile(r"<iframe\b[^<]*(?:(?!</iframe>)<[^<]*)*</iframe>", re.IGNORECASE)
_JAVASCRIPT_URL = re.compile(r"javascript:", re.IGNORECASE)


def sanitize_html(html: str) -> str:
    """
    Strips script and iframe blocks and `javascript:` URL schemes.

    A coarse filter for exported documents, not a general HTML sanitizer.
    """
    html = _SCRIPT.sub("", html)
    html = _IFRAME.sub("", html)
    return _JAVASCRIPT_URL.sub("", html)
