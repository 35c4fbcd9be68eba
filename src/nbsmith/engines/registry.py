"""Engine selection for input documents."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from pathlib import Path

from nbsmith.core.exceptions import EngineConfigurationError
from nbsmith.core.metadata import chunk_languages, is_qmd_file, split_front_matter

from .base import ExecutionEngine
from .markdown import MARKDOWN_LANGUAGE


ENGINE_KEY = "engine"


class EngineRegistry:
    """Ordered collection of execution engines.

    Selection asks engines about extensions first. Computational Markdown
    (`.qmd`) then honours an explicit ``engine:`` front matter entry, and
    otherwise goes to the single engine claiming its chunk languages.
    """

    def __init__(self, engines: Iterable[ExecutionEngine] = ()) -> None:
        self._engines: list[ExecutionEngine] = []
        for engine in engines:
            self.register(engine)

    @classmethod
    def default(cls, **kwargs) -> EngineRegistry:
        """Return the built-in engines, forwarding ``kwargs`` to each of them."""
        from .jupyter import JupyterEngine
        from .markdown import MarkdownEngine

        emitter = kwargs.pop("emitter", None)
        return cls([JupyterEngine(emitter=emitter, **kwargs), MarkdownEngine(emitter=emitter)])

    def __iter__(self):
        return iter(self._engines)

    def __len__(self) -> int:
        return len(self._engines)

    def register(self, engine: ExecutionEngine) -> None:
        if any(existing.name == engine.name for existing in self._engines):
            raise EngineConfigurationError(f"Engine '{engine.name}' is already registered.")
        self._engines.append(engine)

    def get(self, name: str) -> ExecutionEngine:
        for engine in self._engines:
            if engine.name == name:
                return engine
        known = ", ".join(engine.name for engine in self._engines) or "none"
        raise EngineConfigurationError(f"Unknown engine '{name}' (available: {known}).")

    def select_for_text(self, path: Path, text: str) -> ExecutionEngine:
        """Select the engine for ``path`` whose content is ``text``."""
        ext = path.suffix.lower()
        claimants = [engine for engine in self._engines if engine.claims_extension(ext)]
        if len(claimants) > 1:
            names = ", ".join(engine.name for engine in claimants)
            raise EngineConfigurationError(f"Extension '{ext}' is claimed by several engines: {names}.")
        if claimants:
            return claimants[0]

        if not is_qmd_file(path):
            raise EngineConfigurationError(f"No engine is able to process '{path.name}'.")

        front_matter, body = split_front_matter(text)
        declared = front_matter.get(ENGINE_KEY)
        if isinstance(declared, str) and declared.strip():
            return self.get(declared.strip())
        if "jupyter" in front_matter:
            return self.get("jupyter")

        languages = chunk_languages(body) or [MARKDOWN_LANGUAGE]
        for language in languages:
            matches = [engine for engine in self._engines if engine.claims_language(language)]
            if len(matches) == 1:
                return matches[0]
            if len(matches) > 1:
                names = ", ".join(engine.name for engine in matches)
                raise EngineConfigurationError(
                    f"Language '{language}' in '{path.name}' is claimed by several engines: {names}."
                )
        raise EngineConfigurationError(
            f"No engine claims the languages used in '{path.name}': {', '.join(languages)}."
        )

    async def select(self, path: Path) -> ExecutionEngine:
        """Select the engine responsible for the document at ``path``."""
        if is_qmd_file(path):
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        else:
            text = ""
        return self.select_for_text(path, text)


__all__ = ["ENGINE_KEY", "EngineRegistry"]
