"""Public entry points for rendering computational documents."""

from __future__ import annotations

from .freeze import FreezeStore, FrozenExecution
from .render import RenderResult, RenderService, default_output_path


__all__ = [
    "FreezeStore",
    "FrozenExecution",
    "RenderResult",
    "RenderService",
    "default_output_path",
]
