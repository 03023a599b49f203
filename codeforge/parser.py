"""Recovery of the project schema from free-form model output."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Optional

from .logging import get_logger
from .project import ProjectStructure

LOGGER = get_logger(__name__)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*$")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


@dataclass
class ParseResult:
    success: bool
    data: Optional[ProjectStructure] = None
    error: Optional[str] = None


class StructuredOutputParser:
    """Extract a :class:`ProjectStructure` from model text.

    Models wrap JSON in code fences, prepend prose and append commentary, so
    the parser narrows the text before decoding. The only hard requirement is
    a ``files`` list; everything else is optional.
    """

    def parse(self, raw_text: str) -> ParseResult:
        cleaned = (raw_text or "").strip()

        if cleaned.startswith("```"):
            cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
            cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)

        match = _JSON_OBJECT.search(cleaned)
        if match:
            cleaned = match.group(0)

        try:
            payload = json.loads(cleaned)
        except (ValueError, RecursionError) as exc:
            return ParseResult(
                success=False, error=f"Failed to parse AI response as JSON: {exc}"
            )

        if not isinstance(payload, dict) or not isinstance(payload.get("files"), list):
            return ParseResult(success=False, error="Invalid response: missing files array")

        if payload.get("folders") is None:
            payload["folders"] = []

        structure = ProjectStructure.from_mapping(payload)
        LOGGER.debug(
            "Parsed project structure with %s folder(s) and %s file(s)",
            len(structure.folders),
            len(structure.files),
        )
        return ParseResult(success=True, data=structure)


def parse_project_structure(raw_text: str) -> ParseResult:
    return StructuredOutputParser().parse(raw_text)
