"""Front matter parsing for computational Markdown documents."""

from __future__ import annotations

from pathlib import Path
import re
from typing import Any

import yaml


QMD_EXTENSIONS = (".qmd",)
MARKDOWN_EXTENSIONS = (".md", ".markdown")

# Opening fence of an executable chunk, e.g. ```{python} or ```{python label="x"}
_CHUNK_OPEN = re.compile(r"^(?P<fence>`{3,})\s*\{(?P<lang>[A-Za-z][\w+-]*)(?P<rest>[^}]*)\}\s*$")


def split_front_matter(source: str) -> tuple[dict[str, Any], str]:
    """Split YAML front matter from Markdown content, returning metadata and body."""
    candidate = source.lstrip("\ufeff")
    prefix_len = len(source) - len(candidate)
    lines = candidate.splitlines()
    if not lines or lines[0].strip() != "---":
        return {}, source

    front_matter_lines: list[str] = []
    closing_index: int | None = None
    for idx, line in enumerate(lines[1:], start=1):
        stripped = line.strip()
        if stripped in {"---", "..."}:
            closing_index = idx
            break
        front_matter_lines.append(line)

    if closing_index is None:
        return {}, source

    raw_block = "\n".join(front_matter_lines)
    try:
        metadata = yaml.safe_load(raw_block) or {}
    except yaml.YAMLError:
        return {}, source

    if not isinstance(metadata, dict):
        metadata = {}

    body_lines = lines[closing_index + 1 :]
    body = "\n".join(body_lines)
    if source.endswith("\n"):
        body += "\n"

    prefix = source[:prefix_len]
    return metadata, prefix + body


def read_markdown_metadata(path: Path) -> dict[str, Any]:
    """Return the front matter declared at the top of a Markdown file."""
    metadata, _ = split_front_matter(path.read_text(encoding="utf-8"))
    return metadata


def match_chunk_fence(line: str) -> re.Match[str] | None:
    """Return the match for an executable chunk opening fence."""
    return _CHUNK_OPEN.match(line.rstrip())


def plain_fence(line: str) -> str | None:
    """Return the backtick run opening a non-executable code block, if any."""
    stripped = line.strip()
    if not stripped.startswith("```"):
        return None
    return "`" * (len(stripped) - len(stripped.lstrip("`")))


def closes_fence(line: str, fence: str) -> bool:
    """Return whether ``line`` closes a block opened with ``fence``."""
    stripped = line.strip()
    return set(stripped) == {"`"} and len(stripped) >= len(fence)


def chunk_languages(markdown: str) -> list[str]:
    """Return the languages of executable chunks in order of first appearance.

    Chunk fences shown inside plain code blocks are not executable.
    """
    languages: list[str] = []
    closing: str | None = None
    for line in markdown.splitlines():
        if closing is not None:
            if closes_fence(line, closing):
                closing = None
            continue
        match = match_chunk_fence(line)
        if match:
            closing = match.group("fence")
            language = match.group("lang").lower()
            if language not in languages:
                languages.append(language)
        else:
            closing = plain_fence(line)
    return languages


def is_qmd_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in QMD_EXTENSIONS


__all__ = [
    "MARKDOWN_EXTENSIONS",
    "QMD_EXTENSIONS",
    "chunk_languages",
    "closes_fence",
    "is_qmd_file",
    "match_chunk_fence",
    "plain_fence",
    "read_markdown_metadata",
    "split_front_matter",
]
