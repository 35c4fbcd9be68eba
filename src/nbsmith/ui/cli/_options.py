"""Shared Typer option definitions for CLI commands."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer


INPUTS_PANEL = "Input Handling"
EXECUTION_PANEL = "Execution"
OUTPUT_PANEL = "Output"
DIAGNOSTICS_PANEL = "Diagnostics"

InputPathArgument = Annotated[
    list[str],
    typer.Argument(
        metavar="INPUT... [PANDOC-ARGS]...",
        help=(
            "Documents to render: notebooks (.ipynb), computational Markdown (.qmd) or "
            "Markdown. Unrecognised options and everything after them go to pandoc."
        ),
        show_default=False,
        rich_help_panel=INPUTS_PANEL,
    ),
]

ToOption = Annotated[
    str | None,
    typer.Option(
        "--to",
        "-t",
        metavar="FORMAT",
        help="Output format passed to the converter (defaults to the front matter or html).",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

OutputPathOption = Annotated[
    Path | None,
    typer.Option(
        "--output",
        "-o",
        help="Output file. Only valid with a single input.",
        dir_okay=False,
        resolve_path=True,
        rich_help_panel=OUTPUT_PANEL,
    ),
]

ExecuteOption = Annotated[
    bool | None,
    typer.Option(
        "--execute/--no-execute",
        help="Run code cells, or convert existing outputs as they are.",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

ExecuteDaemonOption = Annotated[
    bool | None,
    typer.Option(
        "--execute-daemon/--no-execute-daemon",
        help="Keep kernels alive between renders (defaults to interactive sessions only).",
        show_default=False,
        rich_help_panel=EXECUTION_PANEL,
    ),
]

ExecuteDaemonRestartOption = Annotated[
    bool,
    typer.Option(
        "--execute-daemon-restart",
        help="Restart the keepalive kernel before rendering.",
        rich_help_panel=EXECUTION_PANEL,
    ),
]

KeepIpynbOption = Annotated[
    bool,
    typer.Option(
        "--keep-ipynb",
        help="Keep the notebook generated from a .qmd source.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

KeepMdOption = Annotated[
    bool,
    typer.Option(
        "--keep-md",
        help="Keep the intermediate Markdown handed to pandoc.",
        rich_help_panel=OUTPUT_PANEL,
    ),
]

VerboseOption = Annotated[
    int,
    typer.Option(
        "--verbose",
        "-v",
        count=True,
        help="Increase CLI verbosity. Combine multiple times for additional diagnostics.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]

DebugOption = Annotated[
    bool,
    typer.Option(
        "--debug",
        help="Show full tracebacks when an unexpected error occurs.",
        rich_help_panel=DIAGNOSTICS_PANEL,
    ),
]


__all__ = [
    "DIAGNOSTICS_PANEL",
    "EXECUTION_PANEL",
    "INPUTS_PANEL",
    "OUTPUT_PANEL",
    "DebugOption",
    "ExecuteDaemonOption",
    "ExecuteDaemonRestartOption",
    "ExecuteOption",
    "InputPathArgument",
    "KeepIpynbOption",
    "KeepMdOption",
    "OutputPathOption",
    "ToOption",
    "VerboseOption",
]
