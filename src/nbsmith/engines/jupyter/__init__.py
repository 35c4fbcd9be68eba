"""Jupyter execution engine.

Architecture
: `.ipynb` inputs are claimed by extension and executed in place. `.qmd`
  inputs whose chunks are written in a kernel language are first synthesised
  into a transient notebook beside the source (see
  `nbsmith.engines.jupyter.notebook`), executed, converted, and removed.
: Kernel work is delegated to a `KernelDispatcher`, which applies the
  keepalive policy and serialises access to shared kernels.
: Conversion produces Markdown plus widget dependency records. Depending on
  `ExecuteOptions.wants_dependency_records` the records are returned as is or
  turned into an `IncludeSet` straight away.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from nbsmith.core.config import FormatSpec
from nbsmith.core.diagnostics import DiagnosticEmitter
from nbsmith.core.metadata import QMD_EXTENSIONS, is_qmd_file, read_markdown_metadata, split_front_matter
from nbsmith.core.utils import remove_if_exists

from ..base import (
    DependenciesOptions,
    DependenciesResult,
    ExecuteOptions,
    ExecuteResult,
    ExecutionEngine,
    ExecutionTarget,
    IncludeSet,
    PostProcessOptions,
)
from .assets import jupyter_assets
from .convert import ConversionOptions, notebook_to_markdown
from .kernel import KernelDispatcher
from .notebook import (
    NOTEBOOK_EXTENSIONS,
    is_jupyter_notebook,
    markdown_to_notebook,
    notebook_language,
    notebook_markdown,
    read_notebook,
    transient_notebook_path,
    write_notebook,
)
from .preserve import restore_preserved_html
from .widgets import WidgetDependencies, includes_for_widget_dependencies


KERNEL_LANGUAGES = frozenset({"python", "julia", "bash", "r", "sql", "ocaml", "scala", "octave"})


def includes_from_records(records: Iterable[Any]) -> IncludeSet:
    """Turn widget dependency records into an include set."""
    widgets = [record for record in records if isinstance(record, WidgetDependencies)]
    includes = includes_for_widget_dependencies(widgets)
    return IncludeSet(
        in_header=[includes.in_header] if includes.in_header else [],
        after_body=[includes.after_body] if includes.after_body else [],
    )


class JupyterEngine(ExecutionEngine):
    """Execute notebooks, and computational Markdown, on Jupyter kernels."""

    name = "jupyter"
    default_ext = ".qmd"
    can_freeze = True

    def __init__(
        self,
        dispatcher: KernelDispatcher | None = None,
        *,
        languages: Iterable[str] = KERNEL_LANGUAGES,
        emitter: DiagnosticEmitter | None = None,
    ) -> None:
        super().__init__(emitter=emitter)
        self.dispatcher = dispatcher if dispatcher is not None else KernelDispatcher(emitter=self.emitter)
        self.languages = frozenset(language.lower() for language in languages)

    def valid_extensions(self) -> tuple[str, ...]:
        return (*NOTEBOOK_EXTENSIONS, *QMD_EXTENSIONS)

    def claims_extension(self, ext: str) -> bool:
        return ext.lower() in NOTEBOOK_EXTENSIONS

    def claims_language(self, language: str) -> bool:
        return language.lower() in self.languages

    async def target(self, file: Path) -> ExecutionTarget | None:
        if is_jupyter_notebook(file):
            return ExecutionTarget(source=file, input=file, transient=False)
        if not is_qmd_file(file):
            return None
        notebook_path = await asyncio.to_thread(transient_notebook_path, file)
        target = ExecutionTarget(source=file, input=notebook_path, transient=True)
        await self._create_notebook(target)
        return target

    async def _create_notebook(self, target: ExecutionTarget) -> None:
        notebook = await asyncio.to_thread(markdown_to_notebook, target.source)
        await asyncio.to_thread(write_notebook, notebook, target.input)
        self.emitter.event("notebook_created", {"path": str(target.input)})

    async def metadata(self, file: Path) -> dict[str, Any]:
        if is_jupyter_notebook(file):
            notebook = await asyncio.to_thread(read_notebook, file)
            front_matter, _ = split_front_matter(notebook_markdown(notebook))
            return front_matter
        return await asyncio.to_thread(read_markdown_metadata, file)

    async def execute(self, options: ExecuteOptions) -> ExecuteResult:
        target, fmt = options.target, options.format
        assets = jupyter_assets(target.source, fmt.to)
        try:
            # A concurrent render of the same source may have cleaned it up.
            if target.transient and not target.input.exists():
                await self._create_notebook(target)

            if fmt.execute.enabled:
                await self.dispatcher.execute(target.input, fmt.execute)
            else:
                self.emitter.event(
                    "execution_skipped", {"path": str(target.source), "reason": "disabled"}
                )

            notebook = await asyncio.to_thread(read_notebook, target.input)
            conversion = await asyncio.to_thread(
                notebook_to_markdown,
                notebook,
                ConversionOptions(
                    language=notebook_language(notebook),
                    assets=assets,
                    execute=fmt.execute,
                    keep_hidden=fmt.render.keep_hidden,
                    to_html=fmt.is_html_compatible(),
                    to_latex=fmt.is_latex_output(),
                    to_markdown=fmt.is_markdown_output(),
                    fig_format=fmt.execute.fig_format,
                ),
            )
        finally:
            self.cleanup_notebook(target, fmt)

        records = [conversion.dependencies] if conversion.dependencies else []
        if options.wants_dependency_records:
            includes, engine_dependencies = None, records
        else:
            includes, engine_dependencies = includes_from_records(records), None

        return ExecuteResult(
            markdown=conversion.markdown,
            supporting=[assets.supporting_path()],
            includes=includes,
            engine_dependencies=engine_dependencies,
            preserve=conversion.html_preserve,
            post_process=bool(conversion.html_preserve),
        )

    def cleanup_notebook(self, target: ExecutionTarget, fmt: FormatSpec) -> None:
        """Remove a transient notebook unless the format keeps it."""
        if not target.transient or fmt.execute.keep_ipynb:
            return
        try:
            removed = remove_if_exists(target.input)
        except OSError as exc:
            self.emitter.warning(f"Unable to remove transient notebook {target.input}", exc)
            return
        if removed:
            self.emitter.event("transient_removed", {"path": str(target.input)})

    def execute_target_skipped(self, target: ExecutionTarget, fmt: FormatSpec) -> None:
        self.cleanup_notebook(target, fmt)

    async def dependencies(self, options: DependenciesOptions) -> DependenciesResult:
        return DependenciesResult(includes=includes_from_records(options.dependencies))

    async def postprocess(self, options: PostProcessOptions) -> None:
        if not options.preserve:
            return
        output = options.output
        content = await asyncio.to_thread(output.read_text, encoding="utf-8")
        restored = restore_preserved_html(content, options.preserve)
        if restored != content:
            await asyncio.to_thread(output.write_text, restored, encoding="utf-8")

    def keep_files(self, file: Path) -> list[Path] | None:
        if is_jupyter_notebook(file):
            return None
        return [file.with_suffix(".ipynb")]

    async def shutdown(self) -> None:
        await self.dispatcher.sessions.shutdown_all()


__all__ = ["KERNEL_LANGUAGES", "JupyterEngine", "includes_from_records"]
