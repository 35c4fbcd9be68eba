"""Placeholders for HTML the converter would otherwise mangle."""

from __future__ import annotations

from collections.abc import Mapping
import hashlib
import re


PRESERVE_PREFIX = "nbsmith-preserve-"

_UNSAFE_HTML = re.compile(r"<\s*(script|style)\b", re.IGNORECASE)


def needs_preservation(html: str) -> bool:
    """Return whether ``html`` contains markup the converter cannot round-trip."""
    return bool(_UNSAFE_HTML.search(html))


def preserve_html(html: str, preserve: dict[str, str]) -> str:
    """Record ``html`` under a placeholder token and return the token."""
    digest = hashlib.sha1(html.encode("utf-8")).hexdigest()[:16]  # noqa: S324
    key = f"{PRESERVE_PREFIX}{digest}"
    preserve[key] = html
    return key


def restore_preserved_html(output: str, preserve: Mapping[str, str] | None) -> str:
    """Substitute every placeholder token in ``output`` with its content."""
    if not preserve:
        return output
    for key, html in preserve.items():
        output = output.replace(key, html)
    return output


__all__ = [
    "PRESERVE_PREFIX",
    "needs_preservation",
    "preserve_html",
    "restore_preserved_html",
]
