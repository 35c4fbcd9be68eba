"""Core building blocks shared by execution engines and the render driver."""

from __future__ import annotations

from .config import ExecuteConfig, FormatSpec, RenderConfig
from .diagnostics import DiagnosticEmitter, LoggingEmitter, NullEmitter
from .exceptions import (
    ConfigurationError,
    ConverterError,
    EngineConfigurationError,
    KernelExecutionError,
    LanguageResourceError,
    NbsmithError,
    NotebookFormatError,
)
from .platform import EnvironmentSignals
from .queue import RequestQueue


__all__ = [
    "ConfigurationError",
    "ConverterError",
    "DiagnosticEmitter",
    "EngineConfigurationError",
    "EnvironmentSignals",
    "ExecuteConfig",
    "FormatSpec",
    "KernelExecutionError",
    "LanguageResourceError",
    "LoggingEmitter",
    "NbsmithError",
    "NotebookFormatError",
    "NullEmitter",
    "RenderConfig",
    "RequestQueue",
]
