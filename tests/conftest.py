from __future__ import annotations

import asyncio
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import nbformat
import pytest

from nbsmith.adapters.pandoc import ConverterRequest
from nbsmith.core.platform import EnvironmentSignals
from nbsmith.engines.jupyter.kernel import SETUP_CELL_TAG, KernelDispatcher


class RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


class FakeKernelBackend:
    """In-memory kernel that echoes each code cell as a stdout stream."""

    def __init__(self, *, delay: float = 0.0) -> None:
        self.delay = delay
        self.fail_next = 0
        self.started: list[str] = []
        self.shutdowns: list[str] = []
        self.executions: list[tuple[str, Path]] = []
        self.active = 0
        self.max_active = 0
        self._counter = 0

    async def start(self, kernel_name: str, *, cwd: Path) -> str:
        self._counter += 1
        handle = f"{kernel_name}-{self._counter}"
        self.started.append(handle)
        return handle

    async def execute(self, handle, notebook, *, cwd: Path, allow_errors: bool):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.executions.append((handle, Path(cwd)))
            if self.fail_next:
                self.fail_next -= 1
                raise RuntimeError("kernel died")
            count = 0
            for cell in notebook.cells:
                if cell.cell_type != "code":
                    continue
                if SETUP_CELL_TAG in cell.metadata.get("tags", []):
                    continue
                count += 1
                cell.execution_count = count
                cell.outputs = [
                    nbformat.v4.new_output("stream", name="stdout", text=f"ran {cell.source}\n")
                ]
            return notebook
        finally:
            self.active -= 1

    async def shutdown(self, handle: str) -> None:
        self.shutdowns.append(handle)


class FakeConverter:
    """Converter writing the Markdown it receives as the output file."""

    def __init__(self) -> None:
        self.requests: list[ConverterRequest] = []

    async def convert(self, request: ConverterRequest) -> Path:
        self.requests.append(request)
        request.output.write_text(request.markdown, encoding="utf-8")
        return request.output


QUIET_SIGNALS = EnvironmentSignals(interactive=False, windows=False, ci=True)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()


@pytest.fixture
def make_backend():
    return FakeKernelBackend


@pytest.fixture
def backend() -> FakeKernelBackend:
    return FakeKernelBackend()


@pytest.fixture
def dispatcher(backend: FakeKernelBackend, emitter: RecordingEmitter) -> KernelDispatcher:
    return KernelDispatcher(backend, signals=QUIET_SIGNALS, emitter=emitter)


@pytest.fixture
def converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def write_qmd(tmp_path: Path):
    def _write(name: str = "report.qmd", body: str | None = None, front_matter: str = "") -> Path:
        if body is None:
            body = "# Title\n\n```{python}\nprint(1 + 1)\n```\n"
        header = f"---\n{front_matter}---\n\n" if front_matter else ""
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(header + body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def write_ipynb(tmp_path: Path):
    def _write(name: str = "analysis.ipynb", cells: list[Any] | None = None, **metadata: Any) -> Path:
        notebook = nbformat.v4.new_notebook(
            cells=cells
            if cells is not None
            else [
                nbformat.v4.new_markdown_cell("# Analysis"),
                nbformat.v4.new_code_cell("x = 1"),
            ]
        )
        notebook.metadata["kernelspec"] = {
            "name": "python3",
            "language": "python",
            "display_name": "Python 3",
        }
        notebook.metadata.update(metadata)
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        nbformat.write(notebook, str(path))
        return path

    return _write
