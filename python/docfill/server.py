import json
import logging
import sys

import structlog
from mcp.server.fastmcp import FastMCP

from docfill.api import fill_template, list_placeholders
from docfill.config import FillOptions

# --- LOGGING CONFIGURATION ---
# MCP communicates over stdio, so every log line must go to stderr.
logging.basicConfig(stream=sys.stderr, level=logging.INFO, force=True)

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
)

mcp = FastMCP("Docfill Template Service")


@mcp.tool()
def list_docx_placeholders(template_path: str) -> str:
    """
    Lists the %*name*% placeholders of a DOCX template, one per line, in document order.

    Args:
        template_path: Absolute path to the template DOCX file.
    """
    try:
        names = list_placeholders(template_path)
    except Exception as e:
        return f"Error reading template: {str(e)}"
    if not names:
        return "No placeholders found."
    return "\n".join(names)


@mcp.tool()
def fill_docx_template(
    template_path: str,
    output_path: str,
    values_json: str,
    strict: bool = False,
    styled_tables: bool = True,
) -> str:
    """
    Fills a DOCX template and writes the result to output_path. The template is not modified.

    Args:
        template_path: Absolute path to the template DOCX.
        output_path: Absolute path for the filled DOCX.
        values_json: JSON object mapping placeholder names to values:
                     - text: "name": "value"
                     - image: "logo": {"image": "/abs/logo.png", "width": 200, "height": 80}
                     - image group: "photos(i)": {"1": {"image": "/abs/a.jpg"}, "2": {"image": "/abs/b.jpg"}}
                     - table: "items": [["Header A", "Header B"], ["a", "b"]]
                     - table row template: "tableC(k)": [[{"value": "A", "bgColor": "FFFF00"}, "B"], ...]
                       (fills a row holding %*tableC1*%, %*tableC2*%)
        strict: Fail instead of leaving unresolved placeholders visible.
        styled_tables: Use the bordered, shaded preset for inline tables.
    """
    try:
        values = json.loads(values_json)
    except json.JSONDecodeError as e:
        return f"Error: values_json is not valid JSON: {e}"
    if not isinstance(values, dict):
        return "Error: values_json must be a JSON object."

    try:
        report = fill_template(
            template_path,
            output_path,
            values,
            FillOptions(strict=strict, styled_tables=styled_tables),
        )
    except Exception as e:
        return f"Error filling template: {str(e)}"

    msg = (
        f"Saved to {output_path}. Applied: {report.substituted} text, {report.images} images, "
        f"{report.tables} tables, {report.rows_added} rows added."
    )
    if report.unresolved:
        msg += f" Unresolved placeholders: {', '.join(sorted(set(report.unresolved)))}."
    return msg


def main():
    mcp.run()


if __name__ == "__main__":
    main()
