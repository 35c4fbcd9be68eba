"""Diagnostic emitter printing pipeline activity through the rich CLI consoles."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from nbsmith.core.diagnostics import DiagnosticEmitter, format_event_message

from .state import CLIState, emit_error, emit_warning, get_cli_state, render_message


# Kernel chatter is only shown with -vv; document-level events with -v.
KERNEL_EVENTS = frozenset(
    {"kernel_started", "kernel_reused", "kernel_shutdown", "session_invalidated"}
)


class CliEmitter(DiagnosticEmitter):
    """Report warnings, errors and render events on stderr."""

    def __init__(self, state: CLIState | None = None, *, debug_enabled: bool | None = None) -> None:
        self._state = state or get_cli_state()
        if debug_enabled is None:
            debug_enabled = self._state.show_tracebacks
        self.debug_enabled = bool(debug_enabled)

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        emit_warning(message, exception=exc)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        emit_error(message, exception=exc)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        data = dict(payload)
        self._state.record_event(name, data)
        message = format_event_message(name, data)
        if message is None:
            return
        required = 2 if name in KERNEL_EVENTS else 1
        if self._state.verbosity >= required:
            render_message("info", message)


__all__ = ["CliEmitter", "KERNEL_EVENTS"]
