import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import structlog

from docfill import __version__
from docfill.api import fill_template, list_placeholders
from docfill.config import FillOptions
from docfill.errors import DocfillError


def _configure_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _load_values(path: Path) -> Dict[str, Any]:
    if not path.exists():
        print(f"Error: Values file not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        print(f"Error parsing JSON values: {e}", file=sys.stderr)
        sys.exit(1)
    if not isinstance(data, dict):
        print("Error: Values file must contain a JSON object", file=sys.stderr)
        sys.exit(1)
    return data


def handle_fill(args):
    values = _load_values(args.values)
    options = FillOptions(strict=args.strict, styled_tables=not args.plain_tables)

    output_path = args.output
    if not output_path:
        output_path = args.template.with_name(f"{args.template.stem}_filled.docx")

    try:
        report = fill_template(args.template, output_path, values, options)
    except (DocfillError, ValueError) as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    print(f"✅ Saved to {output_path}", file=sys.stderr)
    print(
        f"Stats: {report.substituted} text, {report.images} images, {report.tables} tables, "
        f"{report.rows_added} rows added, {len(report.unresolved)} unresolved.",
        file=sys.stderr,
    )
    if report.unresolved:
        print(f"Unresolved: {', '.join(sorted(set(report.unresolved)))}", file=sys.stderr)


def handle_scan(args):
    try:
        names = list_placeholders(args.template)
    except DocfillError as e:
        print(f"❌ {e}", file=sys.stderr)
        sys.exit(1)

    if args.json:
        print(json.dumps(names, indent=2))
    else:
        print(f"Found {len(names)} placeholders:", file=sys.stderr)
        for name in names:
            print(name)


def main():
    parser = argparse.ArgumentParser(prog="docfill", description="Docfill: DOCX template placeholder filler")
    parser.add_argument("-v", "--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", action="store_true", help="Log debug events to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Subcommands")

    p_fill = subparsers.add_parser("fill", help="Fill a DOCX template with values from a JSON file")
    p_fill.add_argument("template", type=Path, help="Template DOCX")
    p_fill.add_argument("values", type=Path, help="JSON object of placeholder name -> value")
    p_fill.add_argument("-o", "--output", type=Path, help="Output DOCX path (default: <template>_filled.docx)")
    p_fill.add_argument(
        "--strict",
        action="store_true",
        help="Fail on missing keys, unterminated markers and ambiguous row bindings",
    )
    p_fill.add_argument("--plain-tables", action="store_true", help="Synthesize tables without the styled preset")
    p_fill.set_defaults(func=handle_fill)

    p_scan = subparsers.add_parser("scan", help="List the placeholders of a DOCX template")
    p_scan.add_argument("template", type=Path, help="Template DOCX")
    p_scan.add_argument("--json", action="store_true", help="Output a JSON array")
    p_scan.set_defaults(func=handle_scan)

    args = parser.parse_args()
    _configure_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
