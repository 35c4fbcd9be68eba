from __future__ import annotations

from pathlib import Path

import pytest

from nbsmith.core.exceptions import LanguageResourceError
from nbsmith.core.language import (
    read_language_translations,
    resolve_language_metadata,
    translations_for_lang,
)


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_variations_are_discovered_beside_the_file(tmp_path: Path) -> None:
    base = _write(tmp_path / "_language.yml", "toc-title: Contents\n")
    _write(tmp_path / "_language-fr.yml", "toc-title: Sommaire\n")
    _write(tmp_path / "_language-fr-CA.yml", "toc-title: Table des matieres\n")

    language, files = read_language_translations(base)

    assert language["toc-title"] == "Contents"
    assert language["fr"] == {"toc-title": "Sommaire"}
    assert language["fr-CA"] == {"toc-title": "Table des matieres"}
    assert len(files) == 3


def test_mapping_entries_use_prefixed_keys(tmp_path: Path) -> None:
    base = _write(tmp_path / "_language.yml", "toc-title: Contents\n")
    _write(tmp_path / "_language-de.yml", "crossref:\n  fig-prefix: Abbildung\n")

    language, _ = read_language_translations(base, "de")

    assert language["de-crossref"] == {"fig-prefix": "Abbildung"}


def test_translations_for_lang_prefers_most_specific(tmp_path: Path) -> None:
    language = {
        "toc-title": "Contents",
        "callout-note-title": "Note",
        "fr": {"toc-title": "Sommaire"},
        "fr-CA": {"toc-title": "Table des matieres"},
    }
    assert translations_for_lang(language, "fr-CA") == {
        "toc-title": "Table des matieres",
        "callout-note-title": "Note",
    }
    assert translations_for_lang(language, "en")["toc-title"] == "Contents"


def test_resolve_replaces_reference_with_translations(tmp_path: Path) -> None:
    _write(tmp_path / "custom.yml", "toc-title: Outline\n")
    metadata = {"language": "custom.yml"}

    files = resolve_language_metadata(metadata, tmp_path)

    assert metadata["language"] == {"toc-title": "Outline"}
    assert files == [(tmp_path / "custom.yml").resolve()]


def test_missing_language_file_is_a_configuration_error(tmp_path: Path) -> None:
    with pytest.raises(LanguageResourceError, match="does not exist"):
        resolve_language_metadata({"language": "missing.yml"}, tmp_path)


def test_absent_language_key_yields_empty_translations(tmp_path: Path) -> None:
    metadata: dict[str, object] = {}
    assert resolve_language_metadata(metadata, tmp_path) == []
    assert metadata["language"] == {}
