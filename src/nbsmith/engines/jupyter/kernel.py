"""Kernel dispatch: one-shot kernels, keepalive sessions, and their policy.

Architecture
: `KernelBackend` is the seam to the kernel protocol. `NbclientKernelBackend`
  drives real Jupyter kernels through ``jupyter_client`` and ``nbclient``;
  tests substitute in-memory backends.
: `KernelDispatcher` decides per execution whether to use a one-shot kernel
  (started, used, shut down in ``finally``) or a keepalive session. Sessions
  live in a `KernelSessionRegistry` keyed by the canonical absolute path of the
  notebook, so two notebooks never share a kernel even when their relative
  names collide.
: Every access to a session's kernel goes through that session's
  `RequestQueue`, which is the only mutual exclusion in the design. A failed
  execution drops the session's kernel; the next request starts a new one.

Usage Example
:
    >>> from nbsmith.core.platform import EnvironmentSignals
    >>> from nbsmith.engines.jupyter.kernel import resolve_daemon
    >>> signals = EnvironmentSignals(interactive=True, windows=False, ci=False)
    >>> resolve_daemon(None, signals=signals)
    True
    >>> resolve_daemon(0, signals=signals)
    False
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
import functools
import logging
from pathlib import Path
from typing import Any, Protocol

import nbformat
from nbformat import NotebookNode

from nbsmith.core.config import ExecuteConfig
from nbsmith.core.diagnostics import DiagnosticEmitter, ensure_emitter
from nbsmith.core.exceptions import KernelExecutionError, NbsmithError, NotebookFormatError
from nbsmith.core.platform import EnvironmentSignals
from nbsmith.core.queue import RequestQueue
from nbsmith.core.utils import canonical_path

from .notebook import notebook_kernel_name, notebook_language, read_notebook, write_notebook


logger = logging.getLogger(__name__)

SETUP_CELL_TAG = "nbsmith-setup"

DaemonPolicy = Callable[[EnvironmentSignals], bool]


def default_daemon_policy(signals: EnvironmentSignals) -> bool:
    """Keep kernels alive only for interactive, non-Windows, non-CI sessions."""
    return signals.interactive and not signals.windows and not signals.ci


def resolve_daemon(
    setting: bool | int | None,
    *,
    policy: DaemonPolicy = default_daemon_policy,
    signals: EnvironmentSignals | None = None,
) -> bool:
    """Return whether a keepalive kernel should be used.

    An explicit setting always wins; ``0`` counts as off. When unset, ``policy``
    decides from the host environment signals.
    """
    if setting is None:
        return policy(signals if signals is not None else EnvironmentSignals.detect())
    if isinstance(setting, bool):
        return setting
    return setting != 0


class KernelBackend(Protocol):
    """Minimal kernel lifecycle used by the dispatcher."""

    async def start(self, kernel_name: str, *, cwd: Path) -> Any: ...

    async def execute(
        self,
        handle: Any,
        notebook: NotebookNode,
        *,
        cwd: Path,
        allow_errors: bool,
    ) -> NotebookNode: ...

    async def shutdown(self, handle: Any) -> None: ...


class NbclientKernelBackend:
    """Run notebooks on Jupyter kernels managed by ``jupyter_client``."""

    def __init__(self, *, startup_timeout: int = 60) -> None:
        self.startup_timeout = startup_timeout

    async def start(self, kernel_name: str, *, cwd: Path) -> Any:
        from jupyter_client.manager import AsyncKernelManager

        manager = AsyncKernelManager(kernel_name=kernel_name)
        await manager.start_kernel(cwd=str(cwd))
        return manager

    async def execute(
        self,
        handle: Any,
        notebook: NotebookNode,
        *,
        cwd: Path,
        allow_errors: bool,
    ) -> NotebookNode:
        from nbclient import NotebookClient

        client = NotebookClient(
            notebook,
            km=handle,
            allow_errors=allow_errors,
            startup_timeout=self.startup_timeout,
            resources={"metadata": {"path": str(cwd)}},
        )
        try:
            await client.async_execute()
        finally:
            # The manager outlives this client; only its channels are released.
            if client.kc is not None:
                client.kc.stop_channels()
        return notebook

    async def shutdown(self, handle: Any) -> None:
        await handle.shutdown_kernel(now=True)


def kernel_setup_cell(
    language: str,
    *,
    cwd: Path,
    fig_format: str | None = None,
    fig_dpi: int | None = None,
) -> NotebookNode | None:
    """Return a setup cell applying figure settings and the working directory."""
    if language.lower() != "python":
        return None
    lines = ["import os", f"os.chdir({str(cwd)!r})"]
    if fig_format:
        lines += [
            "try:",
            "    from matplotlib_inline.backend_inline import set_matplotlib_formats",
            f"    set_matplotlib_formats({fig_format!r})",
            "except Exception:",
            "    pass",
        ]
    if fig_dpi:
        lines += [
            "try:",
            "    import matplotlib",
            f"    matplotlib.rcParams['figure.dpi'] = {int(fig_dpi)}",
            "except Exception:",
            "    pass",
        ]
    cell = nbformat.v4.new_code_cell("\n".join(lines))
    cell.metadata["tags"] = [SETUP_CELL_TAG]
    return cell


def _strip_setup_cells(notebook: NotebookNode) -> None:
    notebook.cells = [
        cell
        for cell in notebook.cells
        if SETUP_CELL_TAG not in (cell.get("metadata", {}).get("tags") or [])
    ]


@dataclass(eq=False, slots=True)
class KernelSession:
    """Keepalive kernel bound to one canonical notebook path."""

    key: Path
    queue: RequestQueue[Any] = field(default_factory=RequestQueue)
    handle: Any = None
    kernel_name: str | None = None
    executions: int = 0

    @property
    def alive(self) -> bool:
        return self.handle is not None


class KernelSessionRegistry:
    """Own the keepalive sessions of a host process."""

    def __init__(self, backend: KernelBackend, *, emitter: DiagnosticEmitter | None = None) -> None:
        self._backend = backend
        self._sessions: dict[Path, KernelSession] = {}
        self.emitter = ensure_emitter(emitter)

    def __contains__(self, key: object) -> bool:
        return key in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, key: Path) -> KernelSession | None:
        return self._sessions.get(key)

    def session(self, key: Path) -> KernelSession:
        """Return the session for ``key``, creating an idle one when missing."""
        if not key.is_absolute():
            raise ValueError(f"Kernel sessions are keyed by absolute paths, got '{key}'.")
        session = self._sessions.get(key)
        if session is None:
            session = KernelSession(key=key)
            self._sessions[key] = session
        return session

    async def invalidate(self, key: Path, reason: str | None = None) -> None:
        """Shut down the kernel of ``key``; the next request starts a fresh one.

        Must be called from within the session's queue or while it is idle.
        """
        session = self._sessions.get(key)
        if session is None or session.handle is None:
            return
        handle, session.handle = session.handle, None
        session.kernel_name = None
        self.emitter.event("session_invalidated", {"path": str(key), "reason": reason})
        try:
            await self._backend.shutdown(handle)
        except Exception as exc:
            logger.debug("Kernel shutdown failed for %s", key, exc_info=True)
            self.emitter.warning(f"Unable to shut down kernel for {key}", exc)

    async def restart(self, key: Path) -> None:
        """Queue a restart of the kernel bound to ``key``."""
        session = self.session(key)
        await session.queue.submit(functools.partial(self.invalidate, key, "restart requested"))

    async def shutdown_all(self) -> None:
        """Drain every session queue, then shut down all kernels."""
        sessions = list(self._sessions.values())
        for session in sessions:
            await session.queue.submit(
                functools.partial(self.invalidate, session.key, "host shutdown")
            )
        self._sessions.clear()


class KernelDispatcher:
    """Choose and drive one-shot or keepalive kernel execution."""

    def __init__(
        self,
        backend: KernelBackend | None = None,
        *,
        sessions: KernelSessionRegistry | None = None,
        policy: DaemonPolicy = default_daemon_policy,
        signals: EnvironmentSignals | None = None,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        self.emitter = ensure_emitter(emitter)
        self.backend: KernelBackend = backend if backend is not None else NbclientKernelBackend()
        self.sessions = (
            sessions
            if sessions is not None
            else KernelSessionRegistry(self.backend, emitter=self.emitter)
        )
        self.policy = policy
        self._signals = signals

    @property
    def signals(self) -> EnvironmentSignals:
        if self._signals is None:
            self._signals = EnvironmentSignals.detect()
        return self._signals

    def use_daemon(self, execute: ExecuteConfig) -> bool:
        if execute.daemon is None:
            return resolve_daemon(None, policy=self.policy, signals=self.signals)
        return resolve_daemon(execute.daemon)

    async def execute(self, notebook_path: Path, execute: ExecuteConfig) -> None:
        """Execute the notebook at ``notebook_path`` in place."""
        if self.use_daemon(execute):
            await self.execute_keepalive(notebook_path, execute)
        else:
            await self.execute_oneshot(notebook_path, execute)

    async def execute_oneshot(self, notebook_path: Path, execute: ExecuteConfig) -> None:
        notebook = await self._read(notebook_path)
        kernel_name = notebook_kernel_name(notebook)
        self.emitter.event("kernel_started", {"kernel": kernel_name, "mode": "one-shot"})
        handle = await self._start(kernel_name, notebook_path)
        try:
            await self._run(handle, notebook, notebook_path, execute)
        finally:
            try:
                await self.backend.shutdown(handle)
            except Exception as exc:
                self.emitter.warning(f"Unable to shut down kernel for {notebook_path}", exc)
            else:
                self.emitter.event(
                    "kernel_shutdown", {"kernel": kernel_name, "path": str(notebook_path)}
                )

    async def execute_keepalive(self, notebook_path: Path, execute: ExecuteConfig) -> None:
        key = canonical_path(notebook_path)
        session = self.sessions.session(key)
        if execute.daemon_restart:
            await self.sessions.restart(key)
        await session.queue.submit(functools.partial(self._run_in_session, session, execute))

    async def _run_in_session(self, session: KernelSession, execute: ExecuteConfig) -> None:
        try:
            notebook = await self._read(session.key)
        except KernelExecutionError as exc:
            await self.sessions.invalidate(session.key, str(exc))
            raise
        kernel_name = notebook_kernel_name(notebook)
        if session.alive and session.kernel_name != kernel_name:
            await self.sessions.invalidate(session.key, "kernel changed")

        if session.alive:
            self.emitter.event("kernel_reused", {"kernel": kernel_name, "path": str(session.key)})
        else:
            self.emitter.event("kernel_started", {"kernel": kernel_name, "mode": "keepalive"})
            session.handle = await self._start(kernel_name, session.key)
            session.kernel_name = kernel_name

        try:
            await self._run(session.handle, notebook, session.key, execute)
        except Exception as exc:
            await self.sessions.invalidate(session.key, str(exc))
            raise
        session.executions += 1

    async def _read(self, notebook_path: Path) -> NotebookNode:
        try:
            return await asyncio.to_thread(read_notebook, notebook_path)
        except (OSError, NotebookFormatError) as exc:
            raise KernelExecutionError(
                f"Unable to load {notebook_path} for execution: {exc}"
            ) from exc

    async def _start(self, kernel_name: str, notebook_path: Path) -> Any:
        try:
            return await self.backend.start(kernel_name, cwd=notebook_path.parent)
        except Exception as exc:
            raise KernelExecutionError(
                f"Unable to start kernel '{kernel_name}' for {notebook_path}: {exc}"
            ) from exc

    async def _run(
        self,
        handle: Any,
        notebook: NotebookNode,
        notebook_path: Path,
        execute: ExecuteConfig,
    ) -> None:
        setup = kernel_setup_cell(
            notebook_language(notebook),
            cwd=notebook_path.parent,
            fig_format=execute.fig_format,
            fig_dpi=execute.fig_dpi,
        )
        if setup is not None:
            notebook.cells.insert(0, setup)
        try:
            executed = await self.backend.execute(
                handle,
                notebook,
                cwd=notebook_path.parent,
                allow_errors=execute.error,
            )
        except NbsmithError:
            raise
        except Exception as exc:
            raise KernelExecutionError(f"Execution of {notebook_path} failed: {exc}") from exc
        _strip_setup_cells(executed)
        await asyncio.to_thread(write_notebook, executed, notebook_path)


__all__ = [
    "DaemonPolicy",
    "KernelBackend",
    "KernelDispatcher",
    "KernelSession",
    "KernelSessionRegistry",
    "NbclientKernelBackend",
    "default_daemon_policy",
    "kernel_setup_cell",
    "resolve_daemon",
]
