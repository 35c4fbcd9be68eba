"""User-facing summaries of render failures."""

from __future__ import annotations

from .exceptions import NbsmithError, exception_hint


def format_user_friendly_render_error(error: NbsmithError) -> str:
    """Return a concise render failure summary suitable for end users."""
    summary = "Render failed"
    hint_source = error.__cause__ or error
    hint = exception_hint(hint_source)
    if hint:
        summary = f"{summary}: {hint}"
    if summary.endswith("."):
        summary = summary.rstrip(".")
    return f"{summary}. Re-run with --debug for technical details."


__all__ = ["format_user_friendly_render_error"]
