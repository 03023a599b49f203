"""Project schema produced by code generation and consumed by the materializer."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

FILE_STATUSES = ("new", "modified", "unchanged")


@dataclass
class ProjectFile:
    """A single file to be written, relative to the materialization root."""

    path: str
    content: str
    status: Optional[str] = None

    @classmethod
    def from_value(cls, value: Any) -> "ProjectFile":
        if not isinstance(value, Mapping):
            # Left for the materializer to reject as an invalid path.
            return cls(path="", content="")
        content = value.get("content", "")
        if content is None:
            content = ""
        elif not isinstance(content, str):
            # Models regularly inline package.json & co. as objects.
            content = json.dumps(content, indent=2, ensure_ascii=False)
        status = value.get("status")
        return cls(
            path=str(value.get("path") or ""),
            content=content,
            status=status if status in FILE_STATUSES else None,
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"path": self.path, "content": self.content}
        if self.status:
            payload["status"] = self.status
        return payload


@dataclass
class ProjectStructure:
    """Folders and files describing a generated project."""

    files: List[ProjectFile] = field(default_factory=list)
    folders: List[str] = field(default_factory=list)
    project_name: Optional[str] = None
    description: Optional[str] = None
    suggested_commands: List[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ProjectStructure":
        """Build a structure from the decoded JSON the model returned.

        Only ``files`` is assumed to be a list; everything else is coerced.
        """

        return cls(
            files=[ProjectFile.from_value(item) for item in payload["files"]],
            folders=_string_list(payload.get("folders")),
            project_name=_optional_str(payload.get("projectName")),
            description=_optional_str(payload.get("description")),
            suggested_commands=_string_list(payload.get("suggestedCommands")),
        )

    def to_json(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "folders": list(self.folders),
            "files": [item.to_json() for item in self.files],
        }
        if self.project_name is not None:
            payload["projectName"] = self.project_name
        if self.description is not None:
            payload["description"] = self.description
        if self.suggested_commands:
            payload["suggestedCommands"] = list(self.suggested_commands)
        return payload

    @property
    def item_count(self) -> int:
        return len(self.folders) + len(self.files)


def _string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return []


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
