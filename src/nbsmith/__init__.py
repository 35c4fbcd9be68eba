"""Primary public API for nbsmith."""

from __future__ import annotations

from nbsmith.api import FreezeStore, RenderResult, RenderService
from nbsmith.core import (
    ConfigurationError,
    ConverterError,
    EngineConfigurationError,
    EnvironmentSignals,
    ExecuteConfig,
    FormatSpec,
    KernelExecutionError,
    NbsmithError,
    NotebookFormatError,
    RenderConfig,
    RequestQueue,
)
from nbsmith.engines import (
    EngineRegistry,
    ExecutionEngine,
    ExecutionTarget,
    JupyterEngine,
    MarkdownEngine,
)
from nbsmith.version import get_version


__version__ = get_version()


__all__ = [
    "ConfigurationError",
    "ConverterError",
    "EngineConfigurationError",
    "EngineRegistry",
    "EnvironmentSignals",
    "ExecuteConfig",
    "ExecutionEngine",
    "ExecutionTarget",
    "FormatSpec",
    "FreezeStore",
    "JupyterEngine",
    "KernelExecutionError",
    "MarkdownEngine",
    "NbsmithError",
    "NotebookFormatError",
    "RenderConfig",
    "RenderResult",
    "RenderService",
    "RequestQueue",
    "__version__",
]
