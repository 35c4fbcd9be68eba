from __future__ import annotations

import asyncio
from pathlib import Path

import nbformat
import pytest

from nbsmith.core.config import ExecuteConfig
from nbsmith.core.exceptions import KernelExecutionError
from nbsmith.core.platform import EnvironmentSignals
from nbsmith.engines.jupyter.kernel import (
    SETUP_CELL_TAG,
    KernelDispatcher,
    kernel_setup_cell,
)


ONE_SHOT = ExecuteConfig(daemon=False)
KEEPALIVE = ExecuteConfig(daemon=True)


def _outputs(path: Path) -> list[str]:
    notebook = nbformat.read(str(path), as_version=4)
    return [
        output.text
        for cell in notebook.cells
        if cell.cell_type == "code"
        for output in cell.outputs
    ]


def test_oneshot_starts_and_stops_a_kernel_per_execution(dispatcher, backend, write_ipynb) -> None:
    path = write_ipynb()

    async def main() -> None:
        await dispatcher.execute(path, ONE_SHOT)
        await dispatcher.execute(path, ONE_SHOT)

    asyncio.run(main())

    assert backend.started == ["python3-1", "python3-2"]
    assert backend.shutdowns == ["python3-1", "python3-2"]
    assert _outputs(path) == ["ran x = 1\n"]
    assert len(dispatcher.sessions) == 0


def test_setup_cell_is_removed_after_execution(dispatcher, write_ipynb) -> None:
    path = write_ipynb()
    asyncio.run(dispatcher.execute(path, ExecuteConfig(daemon=False, fig_dpi=200)))

    notebook = nbformat.read(str(path), as_version=4)
    tags = [tag for cell in notebook.cells for tag in cell.metadata.get("tags", [])]
    assert SETUP_CELL_TAG not in tags
    assert len(notebook.cells) == 2


def test_oneshot_failure_still_shuts_down(dispatcher, backend, write_ipynb) -> None:
    path = write_ipynb()
    backend.fail_next = 1

    with pytest.raises(KernelExecutionError, match="kernel died"):
        asyncio.run(dispatcher.execute(path, ONE_SHOT))

    assert backend.shutdowns == backend.started == ["python3-1"]


def test_keepalive_reuses_the_session_kernel(dispatcher, backend, emitter, write_ipynb) -> None:
    path = write_ipynb()

    async def main() -> None:
        await dispatcher.execute(path, KEEPALIVE)
        await dispatcher.execute(path, KEEPALIVE)

    asyncio.run(main())

    assert backend.started == ["python3-1"]
    assert backend.shutdowns == []
    assert [handle for handle, _ in backend.executions] == ["python3-1", "python3-1"]
    assert "kernel_reused" in emitter.names()
    session = dispatcher.sessions.get(path.resolve())
    assert session is not None and session.executions == 2


def test_keepalive_failure_invalidates_the_session(dispatcher, backend, emitter, write_ipynb) -> None:
    path = write_ipynb()

    async def main() -> None:
        backend.fail_next = 1
        with pytest.raises(KernelExecutionError):
            await dispatcher.execute(path, KEEPALIVE)
        await dispatcher.execute(path, KEEPALIVE)

    asyncio.run(main())

    assert backend.started == ["python3-1", "python3-2"]
    assert backend.shutdowns == ["python3-1"]
    assert "session_invalidated" in emitter.names()


def test_sessions_are_keyed_by_canonical_path(dispatcher, backend, write_ipynb, tmp_path) -> None:
    first = write_ipynb("a/report.ipynb")
    second = write_ipynb("b/report.ipynb")
    link = tmp_path / "linked.ipynb"
    link.symlink_to(first)

    async def main() -> None:
        await dispatcher.execute(first, KEEPALIVE)
        await dispatcher.execute(second, KEEPALIVE)
        await dispatcher.execute(link, KEEPALIVE)

    asyncio.run(main())

    assert len(dispatcher.sessions) == 2
    assert backend.started == ["python3-1", "python3-2"]
    assert [handle for handle, _ in backend.executions] == ["python3-1", "python3-2", "python3-1"]


def test_concurrent_requests_for_one_session_are_serialised(
    emitter, make_backend, write_ipynb
) -> None:
    backend = make_backend(delay=0.01)
    dispatcher = KernelDispatcher(
        backend,
        signals=EnvironmentSignals(interactive=True, windows=False, ci=False),
        emitter=emitter,
    )
    path = write_ipynb()

    async def main() -> None:
        await asyncio.gather(*(dispatcher.execute(path, ExecuteConfig()) for _ in range(3)))

    asyncio.run(main())

    assert backend.max_active == 1
    assert len(backend.executions) == 3
    assert backend.started == ["python3-1"]


def test_restart_request_replaces_the_kernel(dispatcher, backend, write_ipynb) -> None:
    path = write_ipynb()

    async def main() -> None:
        await dispatcher.execute(path, KEEPALIVE)
        await dispatcher.execute(path, ExecuteConfig(daemon=True, daemon_restart=True))

    asyncio.run(main())

    assert backend.started == ["python3-1", "python3-2"]
    assert backend.shutdowns == ["python3-1"]


def test_shutdown_all_stops_every_session(dispatcher, backend, write_ipynb) -> None:
    first = write_ipynb("one.ipynb")
    second = write_ipynb("two.ipynb")

    async def main() -> None:
        await dispatcher.execute(first, KEEPALIVE)
        await dispatcher.execute(second, KEEPALIVE)
        await dispatcher.sessions.shutdown_all()

    asyncio.run(main())

    assert sorted(backend.shutdowns) == ["python3-1", "python3-2"]
    assert len(dispatcher.sessions) == 0


def test_environment_policy_decides_when_unset(backend, emitter, write_ipynb) -> None:
    path = write_ipynb()
    quiet = KernelDispatcher(
        backend, signals=EnvironmentSignals(interactive=True, windows=False, ci=True), emitter=emitter
    )
    asyncio.run(quiet.execute(path, ExecuteConfig()))
    assert backend.shutdowns == ["python3-1"]
    assert quiet.use_daemon(ExecuteConfig(daemon=1)) is True


def test_kernel_setup_cell_only_for_python(tmp_path: Path) -> None:
    cell = kernel_setup_cell("python", cwd=tmp_path, fig_format="retina", fig_dpi=120)
    assert cell is not None
    assert "set_matplotlib_formats('retina')" in cell.source
    assert "matplotlib.rcParams['figure.dpi'] = 120" in cell.source
    assert cell.metadata["tags"] == [SETUP_CELL_TAG]
    assert kernel_setup_cell("julia", cwd=tmp_path) is None


def test_unreadable_notebook_fails_and_invalidates_the_session(
    dispatcher, backend, emitter, write_ipynb
) -> None:
    path = write_ipynb()

    async def main() -> None:
        await dispatcher.execute(path, KEEPALIVE)
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(KernelExecutionError, match="Unable to load"):
            await dispatcher.execute(path, KEEPALIVE)

    asyncio.run(main())

    assert backend.shutdowns == ["python3-1"]
    assert "session_invalidated" in emitter.names()
    assert dispatcher.sessions.get(path.resolve()).alive is False
