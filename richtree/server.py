import logging
import sys
from pathlib import Path
from typing import List, Optional

import structlog
from mcp.server.fastmcp import FastMCP
from pydantic import ValidationError

from richtree.editor import RichTextEditor, default_document, dump_document, load_document
from richtree.html import get_html_output, sanitize_html, serialize
from richtree.models import EditAction, Element

# --- LOGGING CONFIGURATION ---
# MCP communicates over stdio.
# CRITICAL: All logs must go to stderr. Any print to stdout will break the JSON-RPC protocol.
logging.basicConfig(stream=sys.stderr, level=logging.INFO, force=True)

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

mcp = FastMCP("richtree Document Service")


def _read_document(path: str) -> List[Element]:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with open(p, "r", encoding="utf-8") as f:
        return load_document(f.read())


def _write_text(text: str, path: str):
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


@mcp.tool()
def render_document(document_path: str) -> str:
    """
    Reads a JSON document tree and returns its HTML fragment.

    Args:
        document_path: Absolute path to the JSON document (a list of block elements).
    """
    try:
        return serialize(_read_document(document_path))
    except ValidationError as e:
        return f"Error: invalid document: {e}"
    except Exception as e:
        return f"Error rendering document: {str(e)}"


@mcp.tool()
def export_document(document_path: str, output_path: Optional[str] = None, sanitize: bool = True) -> str:
    """
    Exports a JSON document tree as a standalone HTML page.

    Args:
        document_path: Absolute path to the JSON document.
        output_path: Optional. Defaults to the document path with an .html extension.
        sanitize: If True (default), strips scripts, iframes and javascript: URLs.
    """
    try:
        html = get_html_output(_read_document(document_path))
        if sanitize:
            html = sanitize_html(html)

        if not output_path:
            output_path = str(Path(document_path).with_suffix(".html"))
        _write_text(html, output_path)
        return f"Exported HTML to: {output_path}"
    except ValidationError as e:
        return f"Error: invalid document: {e}"
    except Exception as e:
        return f"Error exporting document: {str(e)}"


@mcp.tool()
def apply_actions(
    document_path: str,
    actions: List[EditAction],
    output_path: Optional[str] = None,
) -> str:
    """
    Replays editing actions against a JSON document tree.

    Actions run in order against one editor session, so a SELECT action
    sets the selection used by the actions after it. Table actions target
    the table under the selection unless `table_path` is given.

    Args:
        document_path: Absolute path to the JSON document.
        actions: List of actions (SELECT, TOGGLE_MARK, TOGGLE_BLOCK, INSERT_TABLE, MERGE_TABLE_CELLS, ...).
        output_path: Optional. If not provided, updates the file in place.
    """
    try:
        editor = RichTextEditor(initial_value=_read_document(document_path))
        applied, skipped = editor.apply_actions(actions)

        output_path = output_path or document_path
        _write_text(editor.to_json(), output_path)
        return f"Applied {applied} actions. Skipped {skipped} actions. Saved to: {output_path}"
    except ValidationError as e:
        return f"Error: invalid document: {e}"
    except Exception as e:
        return f"Error applying actions: {str(e)}"


@mcp.tool()
def create_document(output_path: str) -> str:
    """
    Writes the default welcome document to `output_path` as JSON, as a
    starting point for apply_actions.
    """
    try:
        _write_text(dump_document(default_document()), output_path)
        return f"Created document: {output_path}"
    except Exception as e:
        return f"Error creating document: {str(e)}"


def main():
    mcp.run()


if __name__ == "__main__":
    main()
