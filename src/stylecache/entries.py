"""
Cache entry records and their stored JSON form.

A base entry carries the style source and the compiled document together;
an extended entry carries only the compiled document. Field names match
the records written by earlier deployments:

    {"style": ..., "version": ..., "xml": ..., "xml_version": ...}
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from jsonschema import Draft7Validator

ENTRY_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "style": {"type": "string"},
        "version": {"type": ["string", "null"]},
        "xml": {"type": "string"},
        "xml_version": {"type": ["string", "null"]},
    },
}

_validator = Draft7Validator(ENTRY_SCHEMA)


class EntryDecodeError(ValueError):
    """Stored payload is not a valid cache entry."""


@dataclass(frozen=True)
class StyleRecord:
    """Style source text and the style-language version it is written in."""
    style: str
    version: str


@dataclass(frozen=True)
class CompiledArtifact:
    """A rendering document tagged with the compiler version that produced it."""
    document: str
    version: str


@dataclass(frozen=True)
class CacheEntry:
    style: Optional[StyleRecord] = None
    artifact: Optional[CompiledArtifact] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.artifact is not None:
            payload["xml"] = self.artifact.document
            payload["xml_version"] = self.artifact.version
        if self.style is not None:
            payload["style"] = self.style.style
            payload["version"] = self.style.version
        return payload

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str, default_style_version: str) -> "CacheEntry":
        """
        Decode a stored payload.

        A record with a style but no version gets ``default_style_version``.
        A document without an ``xml_version`` is kept with an empty version,
        which never matches a target and so always reads as stale.

        Raises:
            EntryDecodeError: payload is not JSON or fails the entry schema
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            raise EntryDecodeError(f"entry is not valid JSON: {exc}") from exc

        errors = sorted(_validator.iter_errors(data), key=lambda e: list(e.path))
        if errors:
            messages = ", ".join(error.message for error in errors)
            raise EntryDecodeError(f"entry validation failed: {messages}")

        style = None
        if "style" in data:
            style = StyleRecord(data["style"], data.get("version") or default_style_version)

        artifact = None
        if data.get("xml"):
            artifact = CompiledArtifact(data["xml"], data.get("xml_version") or "")

        return cls(style=style, artifact=artifact)
