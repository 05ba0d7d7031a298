from importlib.metadata import PackageNotFoundError, version

from richtree.editor import RichTextEditor, default_document
from richtree.html import get_html_output, sanitize_html, serialize
from richtree.models import EditAction, EditorContext, Element, Text
from richtree.table import create_table

try:
    __version__ = version("richtree")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

__all__ = [
    "RichTextEditor",
    "EditorContext",
    "EditAction",
    "Element",
    "Text",
    "create_table",
    "default_document",
    "serialize",
    "get_html_output",
    "sanitize_html",
    "__version__",
]
