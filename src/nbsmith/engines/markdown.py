"""Engine for plain Markdown documents that carry no executable code."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from nbsmith.core.metadata import MARKDOWN_EXTENSIONS, QMD_EXTENSIONS, read_markdown_metadata

from .base import ExecuteOptions, ExecuteResult, ExecutionEngine, ExecutionTarget, IncludeSet


MARKDOWN_LANGUAGE = "markdown"


class MarkdownEngine(ExecutionEngine):
    """Pass Markdown through to the converter untouched."""

    name = "markdown"
    default_ext = ".md"

    def valid_extensions(self) -> tuple[str, ...]:
        return (*MARKDOWN_EXTENSIONS, *QMD_EXTENSIONS)

    def claims_extension(self, ext: str) -> bool:
        return ext.lower() in MARKDOWN_EXTENSIONS

    def claims_language(self, language: str) -> bool:
        return language.lower() == MARKDOWN_LANGUAGE

    async def target(self, file: Path) -> ExecutionTarget | None:
        return ExecutionTarget(source=file, input=file, transient=False)

    async def metadata(self, file: Path) -> dict[str, Any]:
        return await asyncio.to_thread(read_markdown_metadata, file)

    async def execute(self, options: ExecuteOptions) -> ExecuteResult:
        markdown = await asyncio.to_thread(options.target.input.read_text, encoding="utf-8")
        if options.wants_dependency_records:
            return ExecuteResult(markdown=markdown, engine_dependencies=[])
        return ExecuteResult(markdown=markdown, includes=IncludeSet())


__all__ = ["MARKDOWN_LANGUAGE", "MarkdownEngine"]
