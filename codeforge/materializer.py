"""Write a generated project structure to disk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, Union, runtime_checkable

from .llm import ErrorKind
from .logging import get_logger
from .project import ProjectFile, ProjectStructure

LOGGER = get_logger(__name__)

PRIORITY_FILES = (
    "index.tsx",
    "index.ts",
    "index.js",
    "index.jsx",
    "App.tsx",
    "App.ts",
    "App.js",
    "App.jsx",
    "main.tsx",
    "main.ts",
    "main.js",
    "README.md",
)


class PathEscapeError(ValueError):
    """Raised when a project path is empty, absolute, or leaves the root."""


@dataclass
class ProgressUpdate:
    message: Optional[str] = None
    increment: Optional[float] = None


ProgressSink = Callable[[ProgressUpdate], None]


@dataclass
class MaterializationResult:
    success: bool
    files_created: int
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


@runtime_checkable
class Workspace(Protocol):
    """Filesystem surface the materializer writes through."""

    def create_directory(self, path: str) -> None:
        ...

    def write_file(self, path: str, data: bytes) -> None:
        ...


class LocalWorkspace:
    """Workspace rooted at a local directory; refuses paths outside the root."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root).expanduser().resolve()

    def resolve(self, relative: str) -> Path:
        if not relative or not relative.strip():
            raise PathEscapeError("Path cannot be empty")
        candidate = Path(relative.replace("\\", "/"))
        if candidate.is_absolute():
            raise PathEscapeError(f"Absolute paths are not allowed: '{relative}'")
        target = (self.root / candidate).resolve()
        if target != self.root and self.root not in target.parents:
            raise PathEscapeError(f"Path escapes the project root: '{relative}'")
        return target

    def create_directory(self, path: str) -> None:
        self.resolve(path).mkdir(parents=True, exist_ok=True)

    def write_file(self, path: str, data: bytes) -> None:
        target = self.resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def _display(path: str) -> str:
    return os.path.normpath(path) if path else path


class ProjectMaterializer:
    """Create the folders and files of a :class:`ProjectStructure`.

    Runs are not atomic: files written before a failure stay on disk and are
    counted in ``files_created``.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self.encoding = encoding

    def apply(
        self,
        root: Union[str, Path, Workspace],
        structure: ProjectStructure,
        progress: Optional[ProgressSink] = None,
    ) -> MaterializationResult:
        workspace = root if isinstance(root, Workspace) else LocalWorkspace(root)
        total_items = structure.item_count
        increment = 100 / total_items if total_items > 0 else 0

        for folder in structure.folders:
            display = _display(folder)
            self._report(progress, f"Creating folder: {display}", increment)
            try:
                workspace.create_directory(folder)
            except (OSError, ValueError) as exc:
                # Files create their own parents, so a missing folder is not fatal.
                LOGGER.warning("Folder creation warning for %s: %s", display, exc)

        files_created = 0
        for item in structure.files:
            display = _display(item.path)
            self._report(progress, f"Creating file: {display}", increment)
            try:
                self._write(workspace, item)
            except Exception as exc:  # any workspace failure ends the run
                LOGGER.error("Failed to create file %s: %s", display, exc)
                return MaterializationResult(
                    success=False,
                    files_created=files_created,
                    error=f'Failed to create file "{display}": {exc}',
                    error_kind=ErrorKind.MATERIALIZATION,
                )
            files_created += 1

        LOGGER.info("Materialized %s file(s) and %s folder(s)", files_created, len(structure.folders))
        return MaterializationResult(success=True, files_created=files_created)

    def _write(self, workspace: Workspace, item: ProjectFile) -> None:
        workspace.write_file(item.path, item.content.encode(self.encoding))

    @staticmethod
    def _report(progress: Optional[ProgressSink], message: str, increment: float) -> None:
        if progress is not None:
            progress(ProgressUpdate(message=message, increment=increment))


def apply_project_structure(
    root: Union[str, Path, Workspace],
    structure: ProjectStructure,
    progress: Optional[ProgressSink] = None,
    *,
    encoding: str = "utf-8",
) -> MaterializationResult:
    return ProjectMaterializer(encoding=encoding).apply(root, structure, progress)


def primary_file(structure: ProjectStructure) -> Optional[ProjectFile]:
    """Return the file a user would most likely open first."""

    if not structure.files:
        return None
    for name in PRIORITY_FILES:
        for item in structure.files:
            if item.path == name or item.path.endswith("/" + name):
                return item
    return structure.files[0]
