"""Adapters bridging nbsmith to external tools."""

from __future__ import annotations

from .pandoc import Converter, ConverterRequest, PandocConverter


__all__ = ["Converter", "ConverterRequest", "PandocConverter"]
