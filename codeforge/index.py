"""On-disk semantic index of workspace source files."""

from __future__ import annotations

import fnmatch
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple

from tqdm import tqdm

from .config import IndexConfig
from .embedding import cosine_similarity
from .logging import get_logger
from .ratelimit import TokenBucket

LOGGER = get_logger(__name__)

Embedder = Callable[[str], List[float]]


@dataclass
class CodeChunk:
    path: str
    content: str
    start: int
    end: int
    embedding: List[float] = field(default_factory=list)

    def to_json(self) -> Dict[str, object]:
        return {
            "path": self.path,
            "content": self.content,
            "range": {"start": self.start, "end": self.end},
            "embedding": self.embedding,
        }

    @classmethod
    def from_json(cls, payload: Dict[str, object]) -> "CodeChunk":
        line_range = payload.get("range") or {}
        return cls(
            path=str(payload.get("path", "")),
            content=str(payload.get("content", "")),
            start=int(line_range.get("start", 0)),  # type: ignore[union-attr]
            end=int(line_range.get("end", 0)),  # type: ignore[union-attr]
            embedding=[float(value) for value in payload.get("embedding") or []],  # type: ignore[union-attr]
        )


@dataclass
class SearchHit:
    score: float
    chunk: CodeChunk


def chunk_lines(path: str, content: str, *, size: int = 50, overlap: int = 10) -> List[CodeChunk]:
    """Split *content* into windows of *size* lines sharing *overlap* lines.

    Line ranges are 1-based and inclusive.
    """

    if size <= 0:
        raise ValueError("Chunk size must be positive.")
    step = max(1, size - overlap)
    lines = content.split("\n")
    chunks: List[CodeChunk] = []
    start = 0
    while start < len(lines):
        window = lines[start : start + size]
        chunks.append(
            CodeChunk(path=path, content="\n".join(window), start=start + 1, end=start + len(window))
        )
        if start + size >= len(lines):
            break
        start += step
    return chunks


class CodeIndex:
    """Embedding index owned by one instance.

    ``load`` reads the persisted index or starts empty; ``build`` replaces the
    in-memory chunks and persists them.
    """

    def __init__(
        self,
        index_path: Path,
        embed: Embedder,
        *,
        config: Optional[IndexConfig] = None,
        limiter: Optional[TokenBucket] = None,
    ) -> None:
        self.index_path = Path(index_path)
        self.embed = embed
        self.config = config or IndexConfig()
        self.limiter = limiter
        self.chunks: List[CodeChunk] = []

    @property
    def is_empty(self) -> bool:
        return not self.chunks

    def load(self) -> "CodeIndex":
        if not self.index_path.exists():
            self.chunks = []
            return self
        try:
            with self.index_path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            LOGGER.warning("Could not load index %s, starting empty: %s", self.index_path, exc)
            self.chunks = []
            return self
        self.chunks = [CodeChunk.from_json(item) for item in payload or []]
        LOGGER.info("Loaded %s chunk(s) from %s", len(self.chunks), self.index_path)
        return self

    def save(self) -> None:
        self.index_path.parent.mkdir(parents=True, exist_ok=True)
        with self.index_path.open("w", encoding="utf-8") as handle:
            json.dump([chunk.to_json() for chunk in self.chunks], handle)

    def list_files(self, root: Path) -> List[Path]:
        root = Path(root)
        candidates = set()
        for pattern in self.config.include:
            candidates.update(path for path in root.glob(pattern) if path.is_file())

        selected = []
        for path in candidates:
            rel = path.relative_to(root).as_posix()
            if any(fnmatch.fnmatch(rel, pattern) for pattern in self.config.exclude):
                continue
            selected.append(path)
        return sorted(selected)

    def _embed_chunks(self, chunks: Iterable[CodeChunk]) -> Iterator[CodeChunk]:
        for chunk in chunks:
            if self.limiter is not None:
                self.limiter.wait_for_token()
            chunk.embedding = self.embed(chunk.content)
            yield chunk

    def build(self, root: Path) -> Tuple[int, int]:
        """Index every matching file under *root*; return (files, chunks)."""

        root = Path(root)
        files = self.list_files(root)
        chunks: List[CodeChunk] = []
        for path in tqdm(files, desc="Indexing files", unit="file"):
            relative = path.relative_to(root).as_posix()
            try:
                content = path.read_text(encoding="utf-8")
                pieces = chunk_lines(
                    relative, content, size=self.config.chunk_lines, overlap=self.config.overlap
                )
                embedded = list(self._embed_chunks(pieces))
            except (OSError, UnicodeDecodeError, RuntimeError) as exc:
                LOGGER.warning("Skipping %s: %s", relative, exc)
                continue
            chunks.extend(embedded)
        self.chunks = chunks
        self.save()
        LOGGER.info("Indexed %s chunk(s) from %s file(s)", len(chunks), len(files))
        return len(files), len(chunks)

    def search(self, query: str, limit: int = 5) -> List[SearchHit]:
        if not self.chunks:
            return []
        query_vector = self.embed(query)
        hits = []
        for chunk in self.chunks:
            try:
                score = cosine_similarity(query_vector, chunk.embedding)
            except ValueError:
                LOGGER.debug("Skipping %s:%s with mismatched dimension", chunk.path, chunk.start)
                continue
            hits.append(SearchHit(score=score, chunk=chunk))
        hits.sort(key=lambda hit: hit.score, reverse=True)
        return hits[:limit]
