from __future__ import annotations

import asyncio
import os
from pathlib import Path
import sys

import pytest

from nbsmith.adapters.pandoc import (
    ConverterRequest,
    PandocConverter,
    build_pandoc_command,
    intermediate_path,
)
from nbsmith.core.config import FormatSpec
from nbsmith.core.exceptions import ConverterError
from nbsmith.engines import IncludeSet


FAKE_PANDOC = """#!/bin/sh
out=""
while [ $# -gt 0 ]; do
  if [ "$1" = "--output" ]; then out="$2"; fi
  shift
done
echo converted > "$out"
"""

FAILING_PANDOC = """#!/bin/sh
echo "unknown writer" >&2
exit 3
"""


def _script(tmp_path: Path, body: str) -> Path:
    path = tmp_path / "bin" / "pandoc"
    path.parent.mkdir(exist_ok=True)
    path.write_text(body, encoding="utf-8")
    path.chmod(0o755)
    return path


def _request(tmp_path: Path, fmt: FormatSpec | None = None, **kwargs) -> ConverterRequest:
    return ConverterRequest(
        source=tmp_path / "doc.qmd",
        markdown="# Hello\n",
        format=fmt or FormatSpec(),
        output=tmp_path / "doc.html",
        **kwargs,
    )


def test_intermediate_path_uses_the_base_format(tmp_path: Path) -> None:
    fmt = FormatSpec.from_metadata({"format": "html5+smart"})
    assert intermediate_path(tmp_path / "doc.qmd", fmt) == tmp_path / "doc.html5.md"


def test_command_lists_includes_metadata_and_extra_args(tmp_path: Path) -> None:
    fmt = FormatSpec.from_metadata({"pandoc-args": ["--toc"]})
    request = _request(tmp_path, fmt, resource_paths=(tmp_path / "doc_files",))

    command = build_pandoc_command(
        "pandoc",
        request,
        tmp_path / "doc.html.md",
        header_files=[Path("h.html")],
        after_body_files=[Path("a.html")],
        metadata_file=Path("meta.yaml"),
    )

    assert command == [
        "pandoc",
        str(tmp_path / "doc.html.md"),
        "--from",
        "markdown",
        "--standalone",
        "--to",
        "html",
        "--output",
        str(tmp_path / "doc.html"),
        "--include-in-header",
        "h.html",
        "--include-after-body",
        "a.html",
        "--metadata-file",
        "meta.yaml",
        "--resource-path",
        os.pathsep.join([str(tmp_path), str(tmp_path / "doc_files")]),
        "--toc",
    ]


def test_pdf_output_relies_on_the_extension(tmp_path: Path) -> None:
    request = _request(tmp_path, FormatSpec(to="pdf"))
    command = build_pandoc_command("pandoc", request, tmp_path / "doc.pdf.md")
    assert "--to" not in command


def test_missing_binary_is_reported(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("nbsmith.adapters.pandoc.shutil.which", lambda _name: None)
    with pytest.raises(ConverterError, match="not available"):
        PandocConverter().binary()


requires_posix = pytest.mark.skipif(sys.platform == "win32", reason="requires a POSIX shell")


@requires_posix
def test_convert_runs_pandoc_and_removes_the_intermediate(tmp_path: Path, emitter) -> None:
    converter = PandocConverter(_script(tmp_path, FAKE_PANDOC), emitter=emitter)
    request = _request(tmp_path, includes=IncludeSet(["<script></script>"]), metadata={"a": 1})

    output = asyncio.run(converter.convert(request))

    assert output.read_text(encoding="utf-8").strip() == "converted"
    assert not (tmp_path / "doc.html.md").exists()
    assert emitter.names() == ["converter_run"]


@requires_posix
def test_keep_md_leaves_the_intermediate(tmp_path: Path) -> None:
    converter = PandocConverter(_script(tmp_path, FAKE_PANDOC))
    fmt = FormatSpec.from_metadata({}, {"render": {"keep-md": True}})

    asyncio.run(converter.convert(_request(tmp_path, fmt)))

    assert (tmp_path / "doc.html.md").read_text(encoding="utf-8") == "# Hello\n"


@requires_posix
def test_failing_pandoc_raises_with_stderr(tmp_path: Path) -> None:
    converter = PandocConverter(_script(tmp_path, FAILING_PANDOC))

    with pytest.raises(ConverterError, match="status 3: unknown writer"):
        asyncio.run(converter.convert(_request(tmp_path)))

    assert not (tmp_path / "doc.html.md").exists()
