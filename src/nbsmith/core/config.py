"""Configuration models describing how a document is executed and rendered.

ExecuteConfig

`enabled` (`bool`)
: Run code cells. When `False` the existing notebook outputs are converted
  as they are.

`daemon` (`bool | int | None`)
: Keep the kernel alive between renders. `None` lets the host environment
  decide (interactive, not Windows, not CI). `0` behaves like `False`.

`daemon-restart` (`bool`)
: Restart the keepalive kernel before executing.

`keep-ipynb` (`bool`)
: Preserve the transient notebook generated from a `.qmd` source.

`freeze` (`bool`)
: Reuse cached execution results while the source is unchanged.

`fig-format` (`str | None`)
: Preferred figure format (`png`, `retina`, `jpeg`, `svg`, `pdf`).

`fig-dpi` (`int | None`)
: Figure resolution applied by the kernel setup code.

`echo`, `output`, `warning`, `include` (`bool`)
: Defaults for the matching per-cell options.

`error` (`bool`)
: Keep executing after a cell raises and include the traceback.

RenderConfig

`keep-hidden` (`bool`)
: Keep hidden cell content in the output, tagged with a `.hidden` class.

`keep-md` (`bool`)
: Preserve the intermediate Markdown handed to the converter.

`prefer-html` (`bool`)
: Treat Markdown targets as HTML compatible.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import ConfigurationError


FigureFormat = Literal["png", "retina", "jpeg", "svg", "pdf"]

_HTML_FORMATS = {
    "html",
    "html4",
    "html5",
    "revealjs",
    "slidy",
    "s5",
    "dzslides",
    "epub",
    "epub2",
    "epub3",
}
_LATEX_FORMATS = {"latex", "beamer", "pdf", "context"}
_MARKDOWN_FORMATS = {
    "md",
    "markdown",
    "gfm",
    "commonmark",
    "commonmark_x",
    "markdown_github",
    "markdown_mmd",
    "markdown_phpextra",
    "markdown_strict",
}


class ExecuteConfig(BaseModel):
    """Execution switches consumed by execution engines."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    enabled: bool = True
    daemon: bool | int | None = None
    daemon_restart: bool = Field(default=False, alias="daemon-restart")
    keep_ipynb: bool = Field(default=False, alias="keep-ipynb")
    freeze: bool = False
    fig_format: FigureFormat | None = Field(default=None, alias="fig-format")
    fig_dpi: int | None = Field(default=None, alias="fig-dpi", gt=0)
    echo: bool = True
    output: bool = True
    warning: bool = True
    error: bool = False
    include: bool = True


class RenderConfig(BaseModel):
    """Rendering switches shared by the engine and the converter."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    keep_hidden: bool = Field(default=False, alias="keep-hidden")
    keep_md: bool = Field(default=False, alias="keep-md")
    prefer_html: bool = Field(default=False, alias="prefer-html")


# Keys that may also appear at the top level of front matter.
_EXECUTE_TOP_LEVEL = {
    "keep-ipynb",
    "fig-format",
    "fig-dpi",
    "daemon-restart",
    "echo",
    "warning",
    "freeze",
}
_RENDER_TOP_LEVEL = {"keep-hidden", "keep-md", "prefer-html"}


class FormatSpec(BaseModel):
    """Resolved output format with its execution and render switches."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    to: str = "html"
    output_ext: str | None = Field(default=None, alias="output-ext")
    execute: ExecuteConfig = Field(default_factory=ExecuteConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    pandoc_args: tuple[str, ...] = Field(default=(), alias="pandoc-args")

    @property
    def base_format(self) -> str:
        """Return the writer name without pandoc extension modifiers."""
        name = self.to.strip().lower()
        for marker in ("+", "-"):
            head, _, _ = name.partition(marker)
            name = head
        return name

    def is_html_output(self) -> bool:
        return self.base_format in _HTML_FORMATS

    def is_latex_output(self) -> bool:
        return self.base_format in _LATEX_FORMATS

    def is_markdown_output(self) -> bool:
        return self.base_format in _MARKDOWN_FORMATS

    def is_html_compatible(self) -> bool:
        """Return whether raw HTML survives into the final output."""
        return self.is_html_output() or (self.is_markdown_output() and self.render.prefer_html)

    def extension(self) -> str:
        """Return the file extension of the rendered output."""
        if self.output_ext:
            return self.output_ext.lstrip(".")
        if self.is_html_output():
            return "epub" if self.base_format.startswith("epub") else "html"
        if self.base_format in {"pdf", "beamer"}:
            return "pdf"
        if self.base_format in {"latex", "context"}:
            return "tex"
        if self.is_markdown_output():
            return "md"
        return self.base_format

    @classmethod
    def from_metadata(
        cls,
        metadata: Mapping[str, Any] | None,
        overrides: Mapping[str, Any] | None = None,
        *,
        to: str | None = None,
    ) -> FormatSpec:
        """Merge front matter and caller overrides into a format specification.

        Front matter may carry `execute:` and `render:` blocks, top-level keys
        of either block, and a `format:` entry that is either a writer name or a
        mapping of writer names to option blocks. Overrides follow the same
        shape and win over front matter; an explicit ``to`` wins over both.
        """
        metadata = dict(metadata or {})
        overrides = dict(overrides or {})

        target = to or _string_or_none(overrides.get("to")) or _format_name(metadata.get("format"))
        target = target or "html"

        execute: dict[str, Any] = {}
        render: dict[str, Any] = {}
        pandoc_args: list[str] = []
        output_ext: str | None = None

        layers: list[Mapping[str, Any]] = [metadata]
        format_options = _format_options(metadata.get("format"), target)
        if format_options:
            layers.append(format_options)
        layers.append(overrides)

        for layer in layers:
            _collect(layer, _EXECUTE_TOP_LEVEL, execute)
            _collect(layer, _RENDER_TOP_LEVEL, render)
            block = layer.get("execute")
            if isinstance(block, Mapping):
                execute.update(_dashed(block))
            elif isinstance(block, bool):
                execute["enabled"] = block
            block = layer.get("render")
            if isinstance(block, Mapping):
                render.update(_dashed(block))
            args = layer.get("pandoc-args") or layer.get("pandoc_args")
            if isinstance(args, (list, tuple)):
                pandoc_args.extend(str(arg) for arg in args)
            ext = _string_or_none(layer.get("output-ext") or layer.get("output_ext"))
            if ext:
                output_ext = ext

        try:
            return cls(
                to=target,
                output_ext=output_ext,
                execute=ExecuteConfig.model_validate(execute),
                render=RenderConfig.model_validate(render),
                pandoc_args=tuple(pandoc_args),
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid execution options: {exc}") from exc


def _string_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _format_name(value: Any) -> str | None:
    if isinstance(value, str):
        return _string_or_none(value)
    if isinstance(value, Mapping):
        for key in value:
            if isinstance(key, str) and key.strip():
                return key.strip()
    return None


def _format_options(value: Any, target: str) -> Mapping[str, Any] | None:
    if not isinstance(value, Mapping):
        return None
    options = value.get(target)
    return options if isinstance(options, Mapping) else None


def _dashed(block: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).replace("_", "-"): value for key, value in block.items()}


def _collect(layer: Mapping[str, Any], keys: set[str], target: dict[str, Any]) -> None:
    for key in keys:
        if key in layer and layer[key] is not None:
            target[key] = layer[key]


__all__ = ["ExecuteConfig", "FigureFormat", "FormatSpec", "RenderConfig"]
