"""Pandoc converter invoked on the Markdown produced by execution engines."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import shutil
import tempfile
from typing import Any, Protocol

import yaml

from nbsmith.core.config import FormatSpec
from nbsmith.core.diagnostics import DiagnosticEmitter, ensure_emitter
from nbsmith.core.exceptions import ConverterError
from nbsmith.core.utils import remove_if_exists
from nbsmith.engines.base import IncludeSet


logger = logging.getLogger(__name__)

# Writers pandoc only reaches through the output file extension.
_IMPLICIT_WRITERS = {"pdf"}


@dataclass(frozen=True, slots=True)
class ConverterRequest:
    """Everything the converter needs to produce one output file."""

    source: Path
    markdown: str
    format: FormatSpec
    output: Path
    includes: IncludeSet = field(default_factory=IncludeSet)
    metadata: Mapping[str, Any] = field(default_factory=dict)
    resource_paths: Sequence[Path] = ()


class Converter(Protocol):
    async def convert(self, request: ConverterRequest) -> Path: ...


def intermediate_path(source: Path, fmt: FormatSpec) -> Path:
    """Return the path of the Markdown handed to the converter."""
    return source.with_name(f"{source.stem}.{fmt.base_format}.md")


def build_pandoc_command(
    binary: str | Path,
    request: ConverterRequest,
    markdown_path: Path,
    *,
    header_files: Sequence[Path] = (),
    after_body_files: Sequence[Path] = (),
    metadata_file: Path | None = None,
) -> list[str]:
    fmt = request.format
    command = [str(binary), str(markdown_path), "--from", "markdown", "--standalone"]
    if fmt.base_format not in _IMPLICIT_WRITERS:
        command += ["--to", fmt.to]
    command += ["--output", str(request.output)]
    for path in header_files:
        command += ["--include-in-header", str(path)]
    for path in after_body_files:
        command += ["--include-after-body", str(path)]
    if metadata_file is not None:
        command += ["--metadata-file", str(metadata_file)]
    resource_paths = [request.source.parent, *request.resource_paths]
    command += ["--resource-path", os.pathsep.join(str(path) for path in resource_paths)]
    command += list(fmt.pandoc_args)
    return command


class PandocConverter:
    """Run the ``pandoc`` executable in a subprocess."""

    def __init__(
        self,
        binary: str | Path | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self._binary = binary
        self.emitter = ensure_emitter(emitter)

    def binary(self) -> str:
        if self._binary is not None:
            return str(self._binary)
        found = shutil.which("pandoc")
        if found is None:
            raise ConverterError("pandoc is not available on PATH.")
        return found

    async def convert(self, request: ConverterRequest) -> Path:
        binary = self.binary()
        markdown_path = intermediate_path(request.source, request.format)
        await asyncio.to_thread(markdown_path.write_text, request.markdown, encoding="utf-8")
        try:
            with tempfile.TemporaryDirectory(prefix="nbsmith-") as tmpdir:
                command = build_pandoc_command(
                    binary,
                    request,
                    markdown_path,
                    **_write_side_files(Path(tmpdir), request),
                )
                self.emitter.event(
                    "converter_run", {"command": "pandoc", "output": str(request.output)}
                )
                logger.debug("Running %s", " ".join(command))
                await _run(command, cwd=request.source.parent)
        finally:
            if not request.format.render.keep_md:
                remove_if_exists(markdown_path)
        return request.output


def _write_side_files(directory: Path, request: ConverterRequest) -> dict[str, Any]:
    header_files: list[Path] = []
    after_body_files: list[Path] = []
    for index, fragment in enumerate(request.includes.in_header):
        path = directory / f"in-header-{index}.html"
        path.write_text(fragment, encoding="utf-8")
        header_files.append(path)
    for index, fragment in enumerate(request.includes.after_body):
        path = directory / f"after-body-{index}.html"
        path.write_text(fragment, encoding="utf-8")
        after_body_files.append(path)

    metadata_file = None
    if request.metadata:
        metadata_file = directory / "metadata.yaml"
        metadata_file.write_text(
            yaml.safe_dump(dict(request.metadata), allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
    return {
        "header_files": header_files,
        "after_body_files": after_body_files,
        "metadata_file": metadata_file,
    }


async def _run(command: list[str], *, cwd: Path) -> None:
    try:
        process = await asyncio.create_subprocess_exec(
            *command,
            cwd=str(cwd),
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as exc:
        raise ConverterError(f"Unable to launch pandoc: {exc}") from exc
    stdout, stderr = await process.communicate()
    if stdout:
        logger.debug(stdout.decode("utf-8", errors="replace"))
    if process.returncode != 0:
        details = stderr.decode("utf-8", errors="replace").strip()
        raise ConverterError(
            f"pandoc exited with status {process.returncode}" + (f": {details}" if details else ".")
        )
    if stderr:
        logger.warning(stderr.decode("utf-8", errors="replace").strip())


__all__ = [
    "Converter",
    "ConverterRequest",
    "PandocConverter",
    "build_pandoc_command",
    "intermediate_path",
]
