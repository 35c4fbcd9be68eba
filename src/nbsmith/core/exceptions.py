"""Custom exception hierarchy for the execution and rendering pipeline."""

from __future__ import annotations


class NbsmithError(RuntimeError):
    """Base exception for execution and rendering failures."""


class ConfigurationError(NbsmithError):
    """Raised when render configuration is invalid; aborts before execution."""


class EngineConfigurationError(ConfigurationError):
    """Raised when no single execution engine can be selected for an input."""


class LanguageResourceError(ConfigurationError):
    """Raised when a declared language translation file cannot be located."""


class NotebookFormatError(NbsmithError):
    """Raised when a notebook artifact is malformed or cannot be read."""


class KernelExecutionError(NbsmithError):
    """Raised when a kernel fails while executing a notebook."""


class ConverterError(NbsmithError):
    """Raised when the external document converter fails to execute properly."""


def exception_messages(exc: BaseException) -> list[str]:
    """Return the collected message chain for an exception and its causes."""
    messages: list[str] = []
    visited: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in visited:
        visited.add(id(current))
        text = str(current).strip()
        if text:
            first_line = text.splitlines()[0].strip()
            if first_line:
                messages.append(first_line)
        current = current.__cause__ or current.__context__
    return messages


def exception_hint(exc: BaseException) -> str | None:
    """Return the most specific message available for an exception chain."""
    messages = exception_messages(exc)
    return messages[-1] if messages else None


__all__ = [
    "ConfigurationError",
    "ConverterError",
    "EngineConfigurationError",
    "KernelExecutionError",
    "LanguageResourceError",
    "NbsmithError",
    "NotebookFormatError",
    "exception_hint",
    "exception_messages",
]
