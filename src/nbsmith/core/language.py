"""Language translation resources declared in document front matter."""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from pathlib import Path
import re
from typing import Any

import yaml

from .exceptions import LanguageResourceError


LANGUAGE_KEY = "language"


def _read_translations(path: Path, files: list[Path]) -> dict[str, Any]:
    if not path.exists():
        return {}
    files.append(path.resolve())
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise LanguageResourceError(f"Unable to parse language file '{path}': {exc}") from exc
    return dict(payload) if isinstance(payload, Mapping) else {}


def _variations(path: Path, lang: str | None) -> list[str]:
    if lang:
        subtags = [tag for tag in lang.split("-") if tag]
        return ["-".join(subtags[: idx + 1]) for idx in range(len(subtags))]
    pattern = re.compile(rf"^{re.escape(path.stem)}-(.+){re.escape(path.suffix)}$", re.IGNORECASE)
    found: list[str] = []
    for candidate in sorted(path.parent.glob(f"{path.stem}-*{path.suffix}")):
        match = pattern.match(candidate.name)
        if match and candidate.is_file():
            found.append(match.group(1))
    return found


def read_language_translations(
    translation_file: Path, lang: str | None = None
) -> tuple[dict[str, Any], list[Path]]:
    """Read a translation file and its ``<stem>-<lang>`` variations.

    Plain string entries of a variation are stored under the variation key;
    mapping entries are stored under ``<variation>-<key>``. The second element
    of the returned tuple lists every file that was actually read.
    """
    files: list[Path] = []
    language = _read_translations(translation_file, files)

    for variation in _variations(translation_file, lang):
        variant_path = translation_file.with_name(
            f"{translation_file.stem}-{variation}{translation_file.suffix}"
        )
        for key, value in _read_translations(variant_path, files).items():
            if isinstance(value, Mapping):
                target_key = f"{variation}-{key}"
                merged = dict(language.get(target_key) or {})
                merged.update(value)
                language[target_key] = merged
            else:
                bucket = language.setdefault(variation, {})
                if isinstance(bucket, dict):
                    bucket[key] = value

    return language, files


def resolve_language_metadata(metadata: MutableMapping[str, Any], base_dir: Path) -> list[Path]:
    """Replace a ``language`` file reference with the translations it names.

    Raises `LanguageResourceError` when the referenced file does not exist.
    """
    value = metadata.get(LANGUAGE_KEY)
    if isinstance(value, str):
        translation_file = base_dir / value
        if not translation_file.exists():
            raise LanguageResourceError(
                f"Specified 'language' file does not exist: {translation_file}"
            )
        language, files = read_language_translations(translation_file)
        metadata[LANGUAGE_KEY] = language
        return files
    if not isinstance(value, Mapping):
        metadata[LANGUAGE_KEY] = {}
    return []


def translations_for_lang(language: Mapping[str, Any], lang: str) -> dict[str, Any]:
    """Return the flat translations for ``lang``, most specific variation last."""
    translations = {key: value for key, value in language.items() if not isinstance(value, Mapping)}
    subtags = [tag for tag in lang.split("-") if tag]
    for idx in range(len(subtags)):
        variation = language.get("-".join(subtags[: idx + 1]))
        if isinstance(variation, Mapping):
            translations.update(variation)
    return translations


__all__ = [
    "LANGUAGE_KEY",
    "read_language_translations",
    "resolve_language_metadata",
    "translations_for_lang",
]
