"""Interactive widget runtime dependencies and the includes they imply."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import json
from typing import Any


WIDGET_VIEW_MIME = "application/vnd.jupyter.widget-view+json"
WIDGET_STATE_MIME = "application/vnd.jupyter.widget-state+json"

REQUIRE_JS = (
    '<script src="https://cdnjs.cloudflare.com/ajax/libs/require.js/2.3.6/require.min.js" '
    'crossorigin="anonymous"></script>'
)
JQUERY_JS = (
    '<script src="https://cdnjs.cloudflare.com/ajax/libs/jquery/3.5.1/jquery.min.js" '
    'crossorigin="anonymous"></script>'
)
JQUERY_DEFINE = (
    '<script type="application/javascript">'
    "define('jquery', [],function() {return window.jQuery;})"
    "</script>"
)
HTML_MANAGER_JS = (
    '<script src="https://unpkg.com/@jupyter-widgets/html-manager@*/dist/embed-amd.js" '
    'crossorigin="anonymous"></script>'
)


@dataclass(slots=True)
class WidgetDependencies:
    """Runtime requirements of widgets found in a notebook's outputs."""

    js_widgets: bool = False
    jupyter_widgets: bool = False
    html_libraries: list[str] = field(default_factory=list)
    widgets_state: Any = None

    def __bool__(self) -> bool:
        return bool(
            self.js_widgets
            or self.jupyter_widgets
            or self.html_libraries
            or self.widgets_state is not None
        )


@dataclass(slots=True)
class WidgetIncludes:
    in_header: str | None = None
    after_body: str | None = None


def includes_for_widget_dependencies(
    dependencies: Iterable[WidgetDependencies],
) -> WidgetIncludes:
    """Combine dependency records into header and end-of-body fragments."""
    records = list(dependencies)
    have_js_widgets = any(record.js_widgets for record in records)
    have_jupyter_widgets = any(record.jupyter_widgets for record in records)

    libraries: list[str] = []
    for record in records:
        for library in record.html_libraries:
            if library not in libraries:
                libraries.append(library)

    head: list[str] = []
    if have_js_widgets or have_jupyter_widgets:
        head.extend([REQUIRE_JS, JQUERY_JS, JQUERY_DEFINE])
    if have_jupyter_widgets:
        head.append(HTML_MANAGER_JS)
    head.extend(libraries)

    after: list[str] = []
    if have_jupyter_widgets:
        for record in records:
            if record.widgets_state is not None:
                after.append(
                    f'<script type="{WIDGET_STATE_MIME}">\n'
                    f"{json.dumps(record.widgets_state)}\n"
                    "</script>"
                )

    return WidgetIncludes(
        in_header="\n".join(head) if head else None,
        after_body="\n".join(after) if after else None,
    )


__all__ = [
    "HTML_MANAGER_JS",
    "JQUERY_DEFINE",
    "JQUERY_JS",
    "REQUIRE_JS",
    "WIDGET_STATE_MIME",
    "WIDGET_VIEW_MIME",
    "WidgetDependencies",
    "WidgetIncludes",
    "includes_for_widget_dependencies",
]
