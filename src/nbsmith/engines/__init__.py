"""Execution engines and their registry."""

from __future__ import annotations

from .base import (
    DependenciesOptions,
    DependenciesResult,
    ExecuteOptions,
    ExecuteResult,
    ExecutionEngine,
    ExecutionTarget,
    IncludeSet,
    PostProcessOptions,
)
from .jupyter import JupyterEngine
from .markdown import MarkdownEngine
from .registry import EngineRegistry


__all__ = [
    "DependenciesOptions",
    "DependenciesResult",
    "EngineRegistry",
    "ExecuteOptions",
    "ExecuteResult",
    "ExecutionEngine",
    "ExecutionTarget",
    "IncludeSet",
    "JupyterEngine",
    "MarkdownEngine",
    "PostProcessOptions",
]
