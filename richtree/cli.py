import argparse
import sys
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from richtree import __version__
from richtree.editor import RichTextEditor, default_document, dump_document, load_document
from richtree.html import get_html_output, sanitize_html, serialize
from richtree.models import EditAction, Element


def _load_tree(path: Path) -> List[Element]:
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return load_document(f.read())
    except ValidationError as e:
        print(f"Error: {path} is not a valid document ({e.error_count()} errors)", file=sys.stderr)
        for err in e.errors()[:5]:
            loc = ".".join(str(part) for part in err["loc"])
            print(f"  {loc}: {err['msg']}", file=sys.stderr)
        sys.exit(1)


def _load_actions(path: Path) -> List[EditAction]:
    if not path.exists():
        print(f"Error: Actions file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return TypeAdapter(List[EditAction]).validate_json(f.read())
    except ValidationError as e:
        print(f"Error parsing JSON actions: {e}", file=sys.stderr)
        sys.exit(1)


def _write_output(text: str, output: Optional[Path], label: str):
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(text)
        print(f"✅ Saved {label} to {output}", file=sys.stderr)
    else:
        print(text)


def handle_render(args):
    document = _load_tree(args.input)
    _write_output(serialize(document), args.output, "HTML fragment")


def handle_export(args):
    document = _load_tree(args.input)
    html = get_html_output(document)
    if args.sanitize:
        html = sanitize_html(html)
    _write_output(html, args.output, "HTML document")


def handle_validate(args):
    document = _load_tree(args.input)
    print(f"✅ {args.input} is valid ({len(document)} top-level blocks).", file=sys.stderr)


def handle_apply(args):
    document = _load_tree(args.input)
    actions = _load_actions(args.actions)

    print(f"Applying {len(actions)} actions...", file=sys.stderr)
    editor = RichTextEditor(initial_value=document)
    applied, skipped = editor.apply_actions(actions)

    output_path = args.output
    if not output_path:
        output_path = args.input.with_name(f"{args.input.stem}_edited.json")
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(editor.to_json())

    print(f"✅ Saved to {output_path}", file=sys.stderr)
    print(f"Stats: {applied} applied, {skipped} skipped.", file=sys.stderr)
    if skipped > 0:
        sys.exit(1)


def handle_welcome(args):
    _write_output(dump_document(default_document()), args.output, "welcome document")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="richtree", description="richtree: rich-text document trees to HTML")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_render = subparsers.add_parser("render", help="Serialize a JSON document to an HTML fragment")
    p_render.add_argument("input", type=Path, help="Input JSON document")
    p_render.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_render.set_defaults(func=handle_render)

    p_export = subparsers.add_parser("export", help="Export a JSON document as a standalone HTML page")
    p_export.add_argument("input", type=Path, help="Input JSON document")
    p_export.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_export.add_argument("--sanitize", action="store_true", help="Strip scripts, iframes and javascript: URLs")
    p_export.set_defaults(func=handle_export)

    p_validate = subparsers.add_parser("validate", help="Check that a JSON document is well-formed")
    p_validate.add_argument("input", type=Path, help="Input JSON document")
    p_validate.set_defaults(func=handle_validate)

    p_apply = subparsers.add_parser("apply", help="Replay a list of edit actions against a document")
    p_apply.add_argument("input", type=Path, help="Input JSON document")
    p_apply.add_argument("actions", type=Path, help="JSON file containing edit actions")
    p_apply.add_argument("-o", "--output", type=Path, help="Output JSON path (default: input_edited.json)")
    p_apply.set_defaults(func=handle_apply)

    p_welcome = subparsers.add_parser("welcome", help="Write the default welcome document")
    p_welcome.add_argument("-o", "--output", type=Path, help="Output file (default: stdout)")
    p_welcome.set_defaults(func=handle_welcome)
    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
