"""Notebook artifacts: reading, writing, and synthesis from computational Markdown.

Architecture
: `markdown_to_notebook` turns a `.qmd` document into a notebook. The YAML
  front matter becomes a leading raw cell, every executable chunk
  (```` ```{lang} ````) becomes a code cell, and the prose in between becomes
  markdown cells.
: Synthesised notebooks are tagged under ``metadata.nbsmith`` so a later
  resolution recognises its own stale artifacts and never mistakes a user's
  notebook for one of them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import nbformat
from nbformat import NotebookNode

from nbsmith.core.exceptions import NotebookFormatError
from nbsmith.core.metadata import (
    closes_fence,
    match_chunk_fence,
    plain_fence,
    split_front_matter,
)
from nbsmith.core.utils import dir_and_stem


NOTEBOOK_EXTENSIONS = (".ipynb",)
TRANSIENT_METADATA_KEY = "nbsmith"

_DEFAULT_KERNELS = {
    "python": ("python3", "Python 3"),
    "julia": ("julia", "Julia"),
    "r": ("ir", "R"),
    "bash": ("bash", "Bash"),
}


def is_jupyter_notebook(path: str | Path) -> bool:
    return Path(path).suffix.lower() in NOTEBOOK_EXTENSIONS


def read_notebook(path: Path) -> NotebookNode:
    """Read a notebook from disk, upgrading it to nbformat 4."""
    try:
        return nbformat.read(str(path), as_version=4)
    except FileNotFoundError:
        raise
    except Exception as exc:
        raise NotebookFormatError(f"Unable to read notebook '{path}': {exc}") from exc


def write_notebook(notebook: NotebookNode, path: Path) -> None:
    nbformat.write(notebook, str(path))


def transient_metadata(notebook: NotebookNode) -> dict[str, Any]:
    payload = notebook.get("metadata", {}).get(TRANSIENT_METADATA_KEY)
    return dict(payload) if isinstance(payload, dict) else {}


def is_transient_notebook(path: Path, source: Path) -> bool:
    """Return whether ``path`` is a transient notebook synthesised from ``source``."""
    try:
        notebook = read_notebook(path)
    except (OSError, NotebookFormatError):
        return False
    meta = transient_metadata(notebook)
    return bool(meta.get("transient")) and meta.get("source") == source.name


def transient_notebook_path(source: Path) -> Path:
    """Return the notebook path used as execution target for ``source``.

    ``<stem>.ipynb`` is preferred. When that file exists but is not a transient
    artifact of ``source``, the first free or reusable
    ``<stem>.transient[-N].ipynb`` is returned instead.
    """
    directory, stem = dir_and_stem(source)
    candidates = [directory / f"{stem}.ipynb", directory / f"{stem}.transient.ipynb"]
    index = 2
    while True:
        for candidate in candidates:
            if not candidate.exists() or is_transient_notebook(candidate, source):
                return candidate
        candidates = [directory / f"{stem}.transient-{index}.ipynb"]
        index += 1


def _kernelspec(front_matter: dict[str, Any], languages: list[str]) -> dict[str, str]:
    declared = front_matter.get("jupyter")
    if isinstance(declared, dict):
        spec = declared.get("kernelspec")
        if isinstance(spec, dict) and spec.get("name"):
            return {
                "name": str(spec["name"]),
                "language": str(spec.get("language") or (languages[0] if languages else "python")),
                "display_name": str(spec.get("display_name") or spec["name"]),
            }
    language = languages[0] if languages else "python"
    name, display = _DEFAULT_KERNELS.get(language, (language, language.title()))
    if isinstance(declared, str) and declared.strip():
        name = declared.strip()
        display = name
        for candidate, (kernel, label) in _DEFAULT_KERNELS.items():
            if kernel == name:
                language, display = candidate, label
                break
    return {"name": name, "language": language, "display_name": display}


def _flush_markdown(cells: list[NotebookNode], lines: list[str]) -> None:
    text = "\n".join(lines).strip("\n")
    if text.strip():
        cells.append(nbformat.v4.new_markdown_cell(text))
    lines.clear()


def markdown_to_notebook(source: Path) -> NotebookNode:
    """Synthesise a notebook from a computational Markdown document."""
    text = source.read_text(encoding="utf-8")
    front_matter, body = split_front_matter(text)

    cells: list[NotebookNode] = []
    if front_matter:
        header = text[: len(text) - len(body)].strip()
        cells.append(nbformat.v4.new_raw_cell(header))

    languages: list[str] = []
    prose: list[str] = []
    code: list[str] | None = None
    plain: str | None = None
    fence = ""
    for line in body.splitlines():
        if code is not None:
            if closes_fence(line, fence):
                cells.append(nbformat.v4.new_code_cell("\n".join(code)))
                code = None
            else:
                code.append(line)
            continue
        if plain is not None:
            # Chunk fences inside a plain code block are examples, not code.
            prose.append(line)
            if closes_fence(line, plain):
                plain = None
            continue
        match = match_chunk_fence(line)
        if match:
            _flush_markdown(cells, prose)
            fence = match.group("fence")
            language = match.group("lang").lower()
            if language not in languages:
                languages.append(language)
            code = []
        else:
            plain = plain_fence(line)
            prose.append(line)
    if code is not None:
        raise NotebookFormatError(f"Unterminated code chunk in '{source}'.")
    _flush_markdown(cells, prose)
    # Stable ids so a recreated transient notebook is byte-identical.
    for index, cell in enumerate(cells):
        cell["id"] = f"cell-{index}"

    kernelspec = _kernelspec(front_matter, languages)
    notebook = nbformat.v4.new_notebook(cells=cells)
    notebook.metadata["kernelspec"] = kernelspec
    notebook.metadata["language_info"] = {"name": kernelspec["language"]}
    notebook.metadata[TRANSIENT_METADATA_KEY] = {"transient": True, "source": source.name}
    return notebook


def notebook_markdown(notebook: NotebookNode) -> str:
    """Concatenate the markdown and raw cells of a notebook."""
    chunks: list[str] = []
    for cell in notebook.cells:
        if cell.get("cell_type") in {"markdown", "raw"}:
            chunks.append(cell.get("source", ""))
    return "\n".join(chunks)


def notebook_language(notebook: NotebookNode) -> str:
    metadata = notebook.get("metadata", {})
    spec = metadata.get("kernelspec") or {}
    info = metadata.get("language_info") or {}
    return str(spec.get("language") or info.get("name") or "python")


def notebook_kernel_name(notebook: NotebookNode) -> str:
    spec = notebook.get("metadata", {}).get("kernelspec") or {}
    return str(spec.get("name") or "python3")


__all__ = [
    "NOTEBOOK_EXTENSIONS",
    "TRANSIENT_METADATA_KEY",
    "is_jupyter_notebook",
    "is_transient_notebook",
    "markdown_to_notebook",
    "notebook_kernel_name",
    "notebook_language",
    "notebook_markdown",
    "read_notebook",
    "transient_notebook_path",
    "write_notebook",
]
