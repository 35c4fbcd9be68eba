"""Layout of the supporting files written while converting notebook outputs."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class JupyterAssets:
    """Directories (relative to ``base_dir``) receiving extracted outputs."""

    base_dir: Path
    files_dir: str
    figures_dir: str
    supporting_dir: str

    def figures_path(self) -> Path:
        return self.base_dir / self.figures_dir

    def supporting_path(self) -> Path:
        return self.base_dir / self.supporting_dir


def figures_dir_name(to: str | None) -> str:
    writer = (to or "html").split("+", 1)[0].split("-", 1)[0] or "html"
    return f"figure-{writer}"


def jupyter_assets(source: Path, to: str | None = None) -> JupyterAssets:
    """Return the asset layout for a document rendered to ``to``."""
    files_dir = f"{source.stem}_files"
    return JupyterAssets(
        base_dir=source.parent,
        files_dir=files_dir,
        figures_dir=f"{files_dir}/{figures_dir_name(to)}",
        supporting_dir=files_dir,
    )


__all__ = ["JupyterAssets", "figures_dir_name", "jupyter_assets"]
