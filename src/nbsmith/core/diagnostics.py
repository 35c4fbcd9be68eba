"""Diagnostic abstractions shared across the execution pipeline."""

from __future__ import annotations

from collections.abc import Mapping
import logging
from typing import Any, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DiagnosticEmitter(Protocol):
    """Interface used to surface warnings, errors, and structured events."""

    debug_enabled: bool

    def warning(self, message: str, exc: BaseException | None = None) -> None: ...

    def error(self, message: str, exc: BaseException | None = None) -> None: ...

    def event(self, name: str, payload: Mapping[str, Any]) -> None: ...


class NullEmitter:
    """Emitter that ignores every diagnostic."""

    debug_enabled: bool = False

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        return

    def error(self, message: str, exc: BaseException | None = None) -> None:
        return

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        return


class LoggingEmitter:
    """Emitter that forwards diagnostics to the standard logging module."""

    def __init__(
        self, *, logger_obj: logging.Logger | None = None, debug_enabled: bool = False
    ) -> None:
        self._logger = logger_obj or logger
        self.debug_enabled = debug_enabled

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.warning(message, exc_info=exc)
        else:
            self._logger.warning(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        if exc is not None:
            self._logger.error(message, exc_info=exc)
        else:
            self._logger.error(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        message = format_event_message(name, payload)
        if message:
            self._logger.info(message)
            return
        self._logger.debug("diagnostic event %s: %s", name, dict(payload))


def ensure_emitter(emitter: DiagnosticEmitter | None) -> DiagnosticEmitter:
    """Return a usable emitter, defaulting to the null implementation."""
    return emitter if emitter is not None else NullEmitter()


def format_event_message(name: str, payload: Mapping[str, Any]) -> str | None:
    """Return a human-friendly summary for selected diagnostic events."""
    data = dict(payload)

    if name == "notebook_created":
        return f"Created notebook {data.get('path') or '<unknown>'}"

    if name == "kernel_started":
        kernel = data.get("kernel") or "<unknown>"
        mode = data.get("mode")
        suffix = f" ({mode})" if mode else ""
        return f"Starting {kernel} kernel{suffix}"

    if name == "kernel_shutdown":
        return f"Stopped {data.get('kernel') or '<unknown>'} kernel for {data.get('path')}"

    if name == "kernel_reused":
        return f"Reusing {data.get('kernel') or '<unknown>'} kernel for {data.get('path')}"

    if name == "session_invalidated":
        reason = data.get("reason")
        suffix = f": {reason}" if reason else ""
        return f"Discarded kernel session for {data.get('path')}{suffix}"

    if name == "transient_removed":
        return f"Removed transient notebook {data.get('path')}"

    if name == "execution_skipped":
        reason = data.get("reason") or "disabled"
        return f"Skipping execution of {data.get('path')} ({reason})"

    if name == "freeze_hit":
        return f"Reusing frozen execution results for {data.get('path')}"

    if name == "converter_run":
        return f"Running {data.get('command') or 'converter'} -> {data.get('output')}"

    return None


__all__ = [
    "DiagnosticEmitter",
    "LoggingEmitter",
    "NullEmitter",
    "ensure_emitter",
    "format_event_message",
]
