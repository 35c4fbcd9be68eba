"""Execution engine contract and the data exchanged with the render driver.

Architecture
: `ExecutionEngine` is the capability interface every engine implements. The
  registry asks engines whether they claim an input (extension first, then
  language) and never inspects engine types.
: `ExecutionTarget` names the artifact that actually runs. A transient target
  was created by `ExecutionEngine.target` and belongs to the engine, which
  deletes it after execution unless the format asks to keep it.
: `ExecuteResult` carries the Markdown handed to the converter, the supporting
  directories the converter must treat as assets, and dependencies either as
  an `IncludeSet` or as raw records, depending on
  `ExecuteOptions.wants_dependency_records`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar

from nbsmith.core.config import FormatSpec
from nbsmith.core.diagnostics import DiagnosticEmitter, ensure_emitter


@dataclass(frozen=True, slots=True)
class ExecutionTarget:
    """Source document and the artifact executed on its behalf."""

    source: Path
    input: Path
    transient: bool = False


@dataclass(frozen=True, slots=True)
class ExecuteOptions:
    """Inputs of a single `ExecutionEngine.execute` call."""

    target: ExecutionTarget
    format: FormatSpec
    wants_dependency_records: bool = False


@dataclass(slots=True)
class IncludeSet:
    """Content fragments injected into the header or at the end of the body."""

    in_header: list[str] = field(default_factory=list)
    after_body: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.in_header or self.after_body)

    def merge(self, other: IncludeSet | None) -> IncludeSet:
        """Return a new include set with ``other`` appended."""
        if other is None:
            return IncludeSet(list(self.in_header), list(self.after_body))
        return IncludeSet(
            in_header=[*self.in_header, *other.in_header],
            after_body=[*self.after_body, *other.after_body],
        )


@dataclass(slots=True)
class ExecuteResult:
    """Converted document content plus the side-channel artifacts of execution."""

    markdown: str
    supporting: list[Path] = field(default_factory=list)
    includes: IncludeSet | None = None
    engine_dependencies: list[Any] | None = None
    preserve: dict[str, str] | None = None
    post_process: bool = False


@dataclass(frozen=True, slots=True)
class DependenciesOptions:
    target: ExecutionTarget
    format: FormatSpec
    dependencies: tuple[Any, ...] = ()


@dataclass(slots=True)
class DependenciesResult:
    includes: IncludeSet = field(default_factory=IncludeSet)


@dataclass(frozen=True, slots=True)
class PostProcessOptions:
    """Arguments of the post-process hook run once the converter finished."""

    target: ExecutionTarget
    format: FormatSpec
    output: Path
    preserve: dict[str, str] | None = None


class ExecutionEngine(ABC):
    """Capability bundle implemented by every execution engine."""

    name: ClassVar[str]
    default_ext: ClassVar[str]
    can_freeze: ClassVar[bool] = False

    def __init__(self, *, emitter: DiagnosticEmitter | None = None) -> None:
        self.emitter = ensure_emitter(emitter)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name!r}>"

    @abstractmethod
    def valid_extensions(self) -> tuple[str, ...]:
        """Return every extension this engine is able to process."""

    @abstractmethod
    def claims_extension(self, ext: str) -> bool:
        """Return whether files with ``ext`` always belong to this engine."""

    @abstractmethod
    def claims_language(self, language: str) -> bool:
        """Return whether code chunks in ``language`` belong to this engine."""

    @abstractmethod
    async def target(self, file: Path) -> ExecutionTarget | None:
        """Resolve the artifact executed for ``file``."""

    @abstractmethod
    async def metadata(self, file: Path) -> dict[str, Any]:
        """Return the front matter of ``file`` without executing anything."""

    @abstractmethod
    async def execute(self, options: ExecuteOptions) -> ExecuteResult:
        """Execute the target and convert it into Markdown."""

    def execute_target_skipped(self, target: ExecutionTarget, fmt: FormatSpec) -> None:
        """Release resources held by ``target`` when execution is skipped."""
        return

    async def dependencies(self, options: DependenciesOptions) -> DependenciesResult:
        """Turn raw dependency records into an include set."""
        return DependenciesResult()

    async def postprocess(self, options: PostProcessOptions) -> None:
        """Finalise the converter output."""
        return

    def keep_files(self, file: Path) -> list[Path] | None:
        """Return extra artifacts that must survive output cleanup."""
        return None

    async def shutdown(self) -> None:
        """Release long-lived resources such as keepalive kernels."""
        return


__all__ = [
    "DependenciesOptions",
    "DependenciesResult",
    "ExecuteOptions",
    "ExecuteResult",
    "ExecutionEngine",
    "ExecutionTarget",
    "IncludeSet",
    "PostProcessOptions",
]
