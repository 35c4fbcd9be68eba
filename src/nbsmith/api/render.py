"""Render orchestration: engine selection, execution, conversion, post-processing.

Architecture
: `RenderService.render` drives one document through the pipeline. Front
  matter is read and validated before any artifact is created, so
  configuration errors never leave a transient notebook behind.
: Execution results may be served from the freeze store, in which case the
  engine is told the execution was skipped and releases its target.
: With ``defer_dependencies`` the service asks engines for raw dependency
  records and turns them into includes through `ExecutionEngine.dependencies`.
: `RenderService.render_many` renders documents concurrently on the running
  event loop. A failure is reported for its own document only.

Usage Example
:
    >>> import asyncio
    >>> from nbsmith.api import RenderService
    >>> async def main(path):
    ...     service = RenderService()
    ...     try:
    ...         return await service.render(path, to="html")
    ...     finally:
    ...         await service.close()
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from nbsmith.adapters.pandoc import Converter, ConverterRequest, PandocConverter
from nbsmith.core.config import FormatSpec
from nbsmith.core.diagnostics import DiagnosticEmitter, ensure_emitter
from nbsmith.core.exceptions import EngineConfigurationError
from nbsmith.core.language import LANGUAGE_KEY, resolve_language_metadata, translations_for_lang
from nbsmith.engines.base import (
    DependenciesOptions,
    ExecuteOptions,
    ExecuteResult,
    ExecutionEngine,
    ExecutionTarget,
    IncludeSet,
    PostProcessOptions,
)
from nbsmith.engines.registry import EngineRegistry

from .freeze import FreezeStore


@dataclass(slots=True)
class RenderResult:
    """Outcome of rendering one document."""

    source: Path
    output: Path
    engine: str
    format: FormatSpec
    markdown: str
    includes: IncludeSet = field(default_factory=IncludeSet)
    supporting: list[Path] = field(default_factory=list)
    resources: list[Path] = field(default_factory=list)
    frozen: bool = False


def default_output_path(source: Path, fmt: FormatSpec) -> Path:
    output = source.with_suffix(f".{fmt.extension()}")
    if output == source:
        output = source.with_name(f"{source.stem}.rendered.{fmt.extension()}")
    return output


class RenderService:
    """Render documents with the registered execution engines."""

    def __init__(
        self,
        registry: EngineRegistry | None = None,
        converter: Converter | None = None,
        *,
        emitter: DiagnosticEmitter | None = None,
        freeze_store: FreezeStore | None = None,
        defer_dependencies: bool = False,
    ) -> None:
        self.emitter = ensure_emitter(emitter)
        self.registry = registry if registry is not None else EngineRegistry.default(emitter=self.emitter)
        self.converter: Converter = (
            converter if converter is not None else PandocConverter(emitter=self.emitter)
        )
        self.freeze_store = freeze_store if freeze_store is not None else FreezeStore()
        self.defer_dependencies = defer_dependencies

    async def render(
        self,
        path: str | Path,
        *,
        to: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        output: Path | None = None,
    ) -> RenderResult:
        """Execute and convert the document at ``path``."""
        source = Path(path)
        if not source.exists():
            raise FileNotFoundError(f"Input file does not exist: {source}")

        engine = await self.registry.select(source)
        metadata = await engine.metadata(source)
        resources = await asyncio.to_thread(resolve_language_metadata, metadata, source.parent)
        fmt = FormatSpec.from_metadata(metadata, overrides, to=to)

        target = await engine.target(source)
        if target is None:
            raise EngineConfigurationError(
                f"Engine '{engine.name}' cannot produce an execution target for '{source.name}'."
            )

        frozen = None
        if fmt.execute.enabled and fmt.execute.freeze and engine.can_freeze:
            frozen = await asyncio.to_thread(self.freeze_store.load, source, fmt.to)

        if frozen is not None:
            engine.execute_target_skipped(target, fmt)
            self.emitter.event("freeze_hit", {"path": str(source)})
            result = frozen.to_result()
        else:
            result = await engine.execute(
                ExecuteOptions(
                    target=target,
                    format=fmt,
                    wants_dependency_records=self.defer_dependencies,
                )
            )

        includes = await self._resolve_includes(engine, target, fmt, result)
        if frozen is None and fmt.execute.enabled and fmt.execute.freeze and engine.can_freeze:
            await asyncio.to_thread(self.freeze_store.save, source, fmt.to, result, includes)

        output_path = output if output is not None else default_output_path(source, fmt)
        rendered = await self.converter.convert(
            ConverterRequest(
                source=source,
                markdown=result.markdown,
                format=fmt,
                output=output_path,
                includes=includes,
                metadata=_converter_metadata(metadata),
                resource_paths=tuple(result.supporting),
            )
        )

        if result.post_process:
            await engine.postprocess(
                PostProcessOptions(
                    target=target,
                    format=fmt,
                    output=rendered,
                    preserve=result.preserve,
                )
            )

        return RenderResult(
            source=source,
            output=rendered,
            engine=engine.name,
            format=fmt,
            markdown=result.markdown,
            includes=includes,
            supporting=list(result.supporting),
            resources=resources,
            frozen=frozen is not None,
        )

    async def render_many(
        self,
        paths: Iterable[str | Path],
        *,
        to: str | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> list[RenderResult | BaseException]:
        """Render ``paths`` concurrently, returning a result or error per path."""
        tasks = [self.render(path, to=to, overrides=overrides) for path in paths]
        return await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self) -> None:
        """Shut down every engine, including their keepalive kernels."""
        for engine in self.registry:
            await engine.shutdown()

    async def _resolve_includes(
        self,
        engine: ExecutionEngine,
        target: ExecutionTarget,
        fmt: FormatSpec,
        result: ExecuteResult,
    ) -> IncludeSet:
        includes = result.includes if result.includes is not None else IncludeSet()
        if result.engine_dependencies is None:
            return includes
        resolved = await engine.dependencies(
            DependenciesOptions(
                target=target,
                format=fmt,
                dependencies=tuple(result.engine_dependencies),
            )
        )
        return includes.merge(resolved.includes)


def _converter_metadata(metadata: Mapping[str, Any]) -> dict[str, Any]:
    language = metadata.get(LANGUAGE_KEY)
    if not isinstance(language, Mapping) or not language:
        return {}
    lang = metadata.get("lang")
    lang = lang if isinstance(lang, str) and lang else "en"
    translations = translations_for_lang(language, lang)
    return {LANGUAGE_KEY: translations} if translations else {}


__all__ = ["RenderResult", "RenderService", "default_output_path"]
