"""Persisted execution results reused while a source document is unchanged.

A frozen record lives in ``_freeze/<stem>.json`` beside the source. It is
valid only for the exact source digest and output format it was produced for.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from nbsmith.core.utils import file_digest
from nbsmith.engines.base import ExecuteResult, IncludeSet


FREEZE_DIR = "_freeze"


class FrozenExecution(BaseModel):
    """Serialized form of an `ExecuteResult` with resolved includes."""

    model_config = ConfigDict(extra="forbid")

    digest: str
    to: str
    markdown: str
    supporting: list[str] = Field(default_factory=list)
    in_header: list[str] = Field(default_factory=list)
    after_body: list[str] = Field(default_factory=list)
    preserve: dict[str, str] | None = None

    def to_result(self) -> ExecuteResult:
        return ExecuteResult(
            markdown=self.markdown,
            supporting=[Path(path) for path in self.supporting],
            includes=IncludeSet(list(self.in_header), list(self.after_body)),
            preserve=self.preserve,
            post_process=bool(self.preserve),
        )


class FreezeStore:
    """Read and write frozen execution results."""

    def __init__(self, directory_name: str = FREEZE_DIR) -> None:
        self.directory_name = directory_name

    def path_for(self, source: Path) -> Path:
        return source.parent / self.directory_name / f"{source.stem}.json"

    def load(self, source: Path, to: str) -> FrozenExecution | None:
        """Return the frozen result of ``source`` when still valid for ``to``."""
        path = self.path_for(source)
        if not path.exists():
            return None
        try:
            record = FrozenExecution.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError):
            return None
        if record.to != to or record.digest != file_digest(source):
            return None
        return record

    def save(self, source: Path, to: str, result: ExecuteResult, includes: IncludeSet) -> Path:
        record = FrozenExecution(
            digest=file_digest(source),
            to=to,
            markdown=result.markdown,
            supporting=[str(path) for path in result.supporting],
            in_header=list(includes.in_header),
            after_body=list(includes.after_body),
            preserve=result.preserve,
        )
        path = self.path_for(source)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
        return path


__all__ = ["FREEZE_DIR", "FreezeStore", "FrozenExecution"]
