"""Implementation of the ``nbsmith render`` command."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import click
import typer

from nbsmith.api.render import RenderResult, RenderService
from nbsmith.core.debug import format_user_friendly_render_error
from nbsmith.core.diagnostics import DiagnosticEmitter
from nbsmith.core.exceptions import NbsmithError

from .._options import (
    DebugOption,
    ExecuteDaemonOption,
    ExecuteDaemonRestartOption,
    ExecuteOption,
    InputPathArgument,
    KeepIpynbOption,
    KeepMdOption,
    OutputPathOption,
    ToOption,
    VerboseOption,
)
from ..diagnostics import CliEmitter
from ..state import CLIState, debug_enabled, emit_error, set_cli_state


def build_service(emitter: DiagnosticEmitter) -> RenderService:
    """Return the render service used by the CLI."""
    return RenderService(emitter=emitter)


def build_overrides(
    *,
    execute: bool | None = None,
    execute_daemon: bool | None = None,
    execute_daemon_restart: bool = False,
    keep_ipynb: bool = False,
    keep_md: bool = False,
    pandoc_args: Sequence[str] = (),
) -> dict[str, Any]:
    """Translate command-line switches into front matter overrides."""
    execute_block: dict[str, Any] = {}
    if execute is not None:
        execute_block["enabled"] = execute
    if execute_daemon is not None:
        execute_block["daemon"] = execute_daemon
    if execute_daemon_restart:
        execute_block["daemon-restart"] = True
    if keep_ipynb:
        execute_block["keep-ipynb"] = True

    overrides: dict[str, Any] = {}
    if execute_block:
        overrides["execute"] = execute_block
    if keep_md:
        overrides["render"] = {"keep-md": True}
    if pandoc_args:
        overrides["pandoc-args"] = list(pandoc_args)
    return overrides


def split_arguments(arguments: Sequence[str]) -> tuple[list[Path], list[str]]:
    """Separate input documents from the pandoc arguments that trail them."""
    inputs: list[Path] = []
    for index, argument in enumerate(arguments):
        if argument.startswith("-") and len(argument) > 1:
            return inputs, list(arguments[index:])
        inputs.append(Path(argument))
    return inputs, []


def _resolve_inputs(paths: Sequence[Path]) -> list[Path]:
    resolved: list[Path] = []
    for path in paths:
        if not path.is_file():
            raise typer.BadParameter(f"File '{path}' does not exist.", param_hint="INPUT")
        resolved.append(path.resolve())
    return resolved


async def _render_all(
    service: RenderService,
    inputs: Sequence[Path],
    *,
    to: str | None,
    output: Path | None,
    overrides: dict[str, Any],
) -> list[RenderResult | BaseException]:
    try:
        if output is not None:
            try:
                return [await service.render(inputs[0], to=to, overrides=overrides, output=output)]
            except Exception as exc:
                return [exc]
        return await service.render_many(inputs, to=to, overrides=overrides)
    finally:
        await service.close()


def _report_failure(state: CLIState, source: Path, exc: BaseException) -> None:
    if isinstance(exc, NbsmithError) and not state.show_tracebacks and state.verbosity == 0:
        emit_error(f"{source.name}: {format_user_friendly_render_error(exc)}", exception=exc)
        return
    emit_error(f"{source.name}: {exc}", exception=exc)
    if state.show_tracebacks:
        from rich.traceback import Traceback

        state.err_console.print(
            Traceback.from_exception(type(exc), exc, exc.__traceback__, show_locals=False)
        )


def render(
    arguments: InputPathArgument,
    to: ToOption = None,
    output: OutputPathOption = None,
    execute: ExecuteOption = None,
    execute_daemon: ExecuteDaemonOption = None,
    execute_daemon_restart: ExecuteDaemonRestartOption = False,
    keep_ipynb: KeepIpynbOption = False,
    keep_md: KeepMdOption = False,
    verbose: VerboseOption = 0,
    debug: DebugOption = False,
) -> None:
    """Execute computational documents and convert them with pandoc."""

    ctx = click.get_current_context(silent=True)
    state = set_cli_state(ctx=ctx, verbosity=verbose, debug=debug)

    paths, pandoc_args = split_arguments(arguments or [])
    if ctx is not None:
        pandoc_args.extend(ctx.args)
    if not paths:
        raise typer.BadParameter("Provide at least one input document.", param_hint="INPUT")
    if output is not None and len(paths) > 1:
        raise typer.BadParameter("--output can only be used with a single input.")
    inputs = _resolve_inputs(paths)

    overrides = build_overrides(
        execute=execute,
        execute_daemon=execute_daemon,
        execute_daemon_restart=execute_daemon_restart,
        keep_ipynb=keep_ipynb,
        keep_md=keep_md,
        pandoc_args=pandoc_args,
    )
    emitter = CliEmitter(state=state, debug_enabled=debug_enabled())
    service = build_service(emitter)

    outcomes = asyncio.run(
        _render_all(service, inputs, to=to, output=output, overrides=overrides)
    )

    failures = 0
    for source, outcome in zip(inputs, outcomes, strict=True):
        if isinstance(outcome, BaseException):
            failures += 1
            _report_failure(state, source, outcome)
            continue
        state.console.print(f"[green]Output created:[/] {outcome.output}")

    if failures:
        raise typer.Exit(code=1)


__all__ = ["build_overrides", "build_service", "render", "split_arguments"]
