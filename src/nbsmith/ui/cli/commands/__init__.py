"""CLI command implementations exposed via `nbsmith.ui.cli`."""

from __future__ import annotations

from .render import render


__all__ = ["render"]
