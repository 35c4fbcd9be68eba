"""Conversion of executed notebooks into converter-ready Markdown.

Architecture
: `notebook_to_markdown` walks the cells in order and emits pandoc Markdown:
  prose verbatim, code inside ``::: {.cell}`` divs, and outputs inside
  ``.cell-output`` divs. Figures are written below the assets figure
  directory and referenced by relative path.
: The conversion consumes the notebook. Outputs are popped from their cells
  while converting and the cell list is emptied at the end, so large notebooks
  are never copied. Callers must not read the notebook afterwards.
: HTML that the converter would mangle is swapped for placeholder tokens and
  returned in `NotebookConversionResult.html_preserve` for the post-process
  step. Widget runtimes are summarised in a `WidgetDependencies` record.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
import json
import logging
from pathlib import Path
import re
from typing import Any

from nbformat import NotebookNode
import yaml

from nbsmith.core.config import ExecuteConfig

from .assets import JupyterAssets
from .preserve import needs_preservation, preserve_html
from .widgets import WIDGET_STATE_MIME, WIDGET_VIEW_MIME, WidgetDependencies


logger = logging.getLogger(__name__)

_ANSI = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_OPTION_PREFIXES = ("#|", "//|", "--|")
_TAG = r"\s*(?:<script\b[^>]*\bsrc\s*=[^>]*>\s*</script>|<link\b[^>]*>)\s*"
_LIBRARY_TAG = re.compile(_TAG, re.IGNORECASE)
# Outputs made only of library loading tags move to the document header.
_LIBRARY_ONLY = re.compile(rf"(?:{_TAG})+", re.IGNORECASE)
_REQUIRE_MARKERS = ("require(", "requirejs", "require.config", "define(")

_IMAGE_EXTENSIONS = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/svg+xml": "svg",
    "application/pdf": "pdf",
}
_FIGURE_PREFERENCE = {
    "png": "image/png",
    "retina": "image/png",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
}


@dataclass(frozen=True, slots=True)
class ConversionOptions:
    """Switches controlling how a notebook is turned into Markdown."""

    language: str
    assets: JupyterAssets
    execute: ExecuteConfig
    keep_hidden: bool = False
    to_html: bool = False
    to_latex: bool = False
    to_markdown: bool = False
    fig_format: str | None = None


@dataclass(slots=True)
class NotebookConversionResult:
    markdown: str
    dependencies: WidgetDependencies | None = None
    html_preserve: dict[str, str] | None = None


def strip_ansi(text: str) -> str:
    return _ANSI.sub("", text)


def parse_cell_options(source: str) -> tuple[dict[str, Any], str]:
    """Split leading ``#| key: value`` option comments from cell source."""
    lines = source.splitlines()
    option_lines: list[str] = []
    index = 0
    for index, line in enumerate(lines):
        stripped = line.lstrip()
        prefix = next((p for p in _OPTION_PREFIXES if stripped.startswith(p)), None)
        if prefix is None:
            break
        option_lines.append(stripped[len(prefix) :])
    else:
        index = len(lines)

    if not option_lines:
        return {}, source
    try:
        options = yaml.safe_load("\n".join(option_lines)) or {}
    except yaml.YAMLError:
        logger.warning("Ignoring malformed cell options: %s", option_lines)
        return {}, source
    if not isinstance(options, dict):
        options = {}
    return options, "\n".join(lines[index:])


def _source_text(value: Any) -> str:
    if isinstance(value, list):
        return "".join(value)
    return str(value or "")


def _attributes(classes: list[str], identifier: str | None = None) -> str:
    parts = []
    if identifier:
        parts.append(f"#{identifier}")
    parts.extend(f".{name}" for name in classes)
    return "{" + " ".join(parts) + "}"


def _fenced(text: str, classes: list[str] | None = None) -> str:
    fence = "```"
    while fence in text:
        fence += "`"
    header = fence + (_attributes(classes) if classes else "")
    return f"{header}\n{text.rstrip()}\n{fence}"


def _raw_block(text: str, fmt: str) -> str:
    fence = "```"
    while fence in text:
        fence += "`"
    return f"{fence}{{={fmt}}}\n{text.rstrip()}\n{fence}"


def _output_div(classes: list[str], body: str) -> str:
    return f"::: {_attributes(classes)}\n{body}\n:::"


class _CellConverter:
    """Convert cells one at a time while accumulating document-level state."""

    def __init__(self, options: ConversionOptions) -> None:
        self.options = options
        self.preserve: dict[str, str] = {}
        self.dependencies = WidgetDependencies()

    def mime_preference(self) -> list[str]:
        options = self.options
        if options.to_latex:
            order = ["application/pdf", "image/png", "image/jpeg", "image/svg+xml"]
            text = ["text/latex", "text/markdown", "text/plain"]
        elif options.to_html:
            order = ["image/svg+xml", "image/png", "image/jpeg"]
            text = ["text/markdown", "text/plain"]
        else:
            order = ["image/png", "image/jpeg", "image/svg+xml"]
            text = ["text/markdown", "text/plain"]
        preferred = _FIGURE_PREFERENCE.get(options.fig_format or "")
        if preferred:
            order = [preferred, *(mime for mime in order if mime != preferred)]
        head = ["text/html"] if options.to_html else []
        return [*head, *order, *text]

    def raw_cell(self, cell: NotebookNode) -> str:
        source = _source_text(cell.get("source"))
        metadata = cell.get("metadata", {})
        mimetype = str(metadata.get("raw_mimetype") or metadata.get("format") or "").lower()
        if mimetype in {"text/html", "html"}:
            return _raw_block(source, "html")
        if mimetype in {"text/latex", "latex", "text/x-latex"}:
            return _raw_block(source, "latex")
        return source.strip("\n")

    def code_cell(self, cell: NotebookNode, index: int) -> str:
        execute = self.options.execute
        keep_hidden = self.options.keep_hidden
        cell_options, code = parse_cell_options(_source_text(cell.get("source")))
        outputs = cell.pop("outputs", None) or []

        include = bool(cell_options.get("include", execute.include))
        if not include and not keep_hidden:
            return ""
        echo = bool(cell_options.get("echo", execute.echo))
        show_output = cell_options.get("output", execute.output) is not False
        show_warning = bool(cell_options.get("warning", execute.warning))

        label = cell_options.get("label")
        identifier = str(label) if isinstance(label, str) and label.strip() else None
        cell_classes = ["cell"] if include else ["cell", "hidden"]
        parts: list[str] = []

        if code.strip() and (echo or keep_hidden):
            classes = [self.options.language, "cell-code"]
            if not echo:
                classes.append("hidden")
            parts.append(_fenced(code, classes))

        if show_output or keep_hidden:
            hidden = [] if show_output else ["hidden"]
            for position, output in enumerate(outputs, start=1):
                rendered = self.output(output, cell_options, identifier or f"cell-{index}", position)
                if rendered is None:
                    continue
                kind, body = rendered
                if kind == "cell-output-stderr" and not show_warning:
                    if not keep_hidden:
                        continue
                    parts.append(_output_div(["cell-output", kind, "hidden"], body))
                    continue
                parts.append(_output_div(["cell-output", kind, *hidden], body))

        if not parts:
            return ""
        return f"::: {_attributes(cell_classes, identifier)}\n" + "\n\n".join(parts) + "\n:::"

    def output(
        self,
        output: NotebookNode,
        cell_options: dict[str, Any],
        stem: str,
        position: int,
    ) -> tuple[str, str] | None:
        output_type = output.get("output_type")
        if output_type == "stream":
            name = output.get("name", "stdout")
            text = strip_ansi(_source_text(output.get("text")))
            if not text.strip():
                return None
            return f"cell-output-{name}", _fenced(text)
        if output_type == "error":
            traceback = output.get("traceback") or [
                f"{output.get('ename', 'Error')}: {output.get('evalue', '')}"
            ]
            return "cell-output-error", _fenced(strip_ansi("\n".join(traceback)))
        if output_type in {"display_data", "execute_result"}:
            body = self.display(output.get("data") or {}, cell_options, stem, position)
            if body is None:
                return None
            return "cell-output-display", body
        return None

    def display(
        self,
        data: dict[str, Any],
        cell_options: dict[str, Any],
        stem: str,
        position: int,
    ) -> str | None:
        if WIDGET_VIEW_MIME in data and self.options.to_html:
            self.dependencies.jupyter_widgets = True
            view = json.dumps(data[WIDGET_VIEW_MIME])
            script = f'<script type="{WIDGET_VIEW_MIME}">\n{view}\n</script>'
            return self.raw_html(preserve_html(script, self.preserve))

        for mime in self.mime_preference():
            if mime not in data:
                continue
            value = data[mime]
            if mime in _IMAGE_EXTENSIONS:
                return self.figure(mime, value, cell_options, stem, position)
            text = _source_text(value)
            if mime == "text/html":
                return self.html(text)
            if mime == "text/latex":
                return _raw_block(text, "latex")
            if mime == "text/markdown":
                return text.strip("\n")
            return _fenced(strip_ansi(text))
        return None

    def html(self, html: str) -> str | None:
        stripped = html.strip()
        if not stripped:
            return None
        if any(marker in html for marker in _REQUIRE_MARKERS):
            self.dependencies.js_widgets = True
        if _LIBRARY_ONLY.fullmatch(stripped):
            for match in _LIBRARY_TAG.finditer(stripped):
                tag = match.group(0).strip()
                if tag not in self.dependencies.html_libraries:
                    self.dependencies.html_libraries.append(tag)
            return None
        if needs_preservation(html):
            return self.raw_html(preserve_html(html, self.preserve))
        return self.raw_html(html)

    @staticmethod
    def raw_html(content: str) -> str:
        return _raw_block(content.strip("\n"), "html")

    def figure(
        self,
        mime: str,
        value: Any,
        cell_options: dict[str, Any],
        stem: str,
        position: int,
    ) -> str:
        assets = self.options.assets
        directory = assets.figures_path()
        directory.mkdir(parents=True, exist_ok=True)
        filename = f"{stem}-output-{position}.{_IMAGE_EXTENSIONS[mime]}"
        target = directory / filename
        if mime == "image/svg+xml":
            target.write_text(_source_text(value), encoding="utf-8")
        else:
            target.write_bytes(base64.b64decode(_source_text(value)))
        caption = cell_options.get("fig-cap") or ""
        if isinstance(caption, list):
            caption = caption[position - 1] if position <= len(caption) else ""
        reference = Path(assets.figures_dir, filename).as_posix()
        return f"![{caption}]({reference})"


def notebook_to_markdown(
    notebook: NotebookNode, options: ConversionOptions
) -> NotebookConversionResult:
    """Convert ``notebook`` into Markdown, consuming it in the process."""
    converter = _CellConverter(options)
    blocks: list[str] = []
    for index, cell in enumerate(notebook.cells, start=1):
        cell_type = cell.get("cell_type")
        if cell_type == "markdown":
            block = _source_text(cell.get("source")).strip("\n")
        elif cell_type == "raw":
            block = converter.raw_cell(cell)
        elif cell_type == "code":
            block = converter.code_cell(cell, index)
        else:
            block = ""
        if block:
            blocks.append(block)
    notebook.cells.clear()

    dependencies = converter.dependencies
    if dependencies.jupyter_widgets:
        widgets = notebook.get("metadata", {}).get("widgets") or {}
        dependencies.widgets_state = widgets.get(WIDGET_STATE_MIME)

    markdown = "\n\n".join(blocks)
    return NotebookConversionResult(
        markdown=markdown + "\n" if markdown else "",
        dependencies=dependencies if dependencies else None,
        html_preserve=converter.preserve or None,
    )


__all__ = [
    "ConversionOptions",
    "NotebookConversionResult",
    "notebook_to_markdown",
    "parse_cell_options",
    "strip_ansi",
]
