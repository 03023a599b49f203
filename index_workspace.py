"""Command-line utility to build and query the code index of a workspace."""

from __future__ import annotations

import argparse
import os
from pathlib import Path
from typing import List

from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from codeforge.config import AppConfig
from codeforge.console import console, print_error
from codeforge.gateway import ProviderGateway
from codeforge.index import CodeIndex, SearchHit
from codeforge.llm import ModelClientError, ProviderType, UnknownProviderError
from codeforge.logging import configure_logging, get_logger
from codeforge.ratelimit import TokenBucket

LOGGER = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Embed workspace source files into a local index and search it."
    )
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Workspace folder to index (default: current directory).",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        help="Path to a config file (YAML or JSON, default: config.yaml in project root).",
    )
    parser.add_argument("--env-file", type=Path, help="Path to a .env file (default: .env).")
    parser.add_argument(
        "--provider",
        choices=[provider.value for provider in ProviderType],
        help="Backend used to compute embeddings.",
    )
    parser.add_argument("--embedding-model", help="Embedding model for the selected backend.")
    parser.add_argument("--chunk-lines", type=int, help="Lines per chunk (default: 50).")
    parser.add_argument("--overlap", type=int, help="Lines shared by consecutive chunks (default: 10).")
    parser.add_argument(
        "--query", help="Search the existing index instead of rebuilding it."
    )
    parser.add_argument("--limit", type=int, default=5, help="Number of search results (default: 5).")
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO).")
    return parser.parse_args()


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.provider:
        config.llm.provider = args.provider
    if args.embedding_model:
        config.backend(config.llm.provider).embedding_model = args.embedding_model
    if args.chunk_lines:
        config.index.chunk_lines = args.chunk_lines
    if args.overlap is not None:
        config.index.overlap = args.overlap


def show_hits(hits: List[SearchHit], query: str) -> None:
    if not hits:
        console.print(Panel(f"No matches for '{query}'.", title="Search", style="warning"))
        return

    table = Table(title=f"Results for '{query}'", box=None, highlight=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Score", justify="right")
    table.add_column("Location", style="path")
    for idx, hit in enumerate(hits, start=1):
        chunk = hit.chunk
        table.add_row(str(idx), f"{hit.score:.3f}", f"{chunk.path}:{chunk.start}-{chunk.end}")
    console.print(table)

    best = hits[0].chunk
    lexer = Syntax.guess_lexer(best.path, code=best.content)
    console.print(
        Panel(
            Syntax(best.content, lexer, line_numbers=True, start_line=best.start),
            title=f"{best.path}:{best.start}",
        )
    )


def main() -> int:
    args = parse_args()
    configure_logging(args.log_level)

    if args.env_file:
        os.environ["ENV_FILE"] = str(args.env_file)

    config = AppConfig.load(config_path=args.config_file)
    try:
        apply_overrides(config, args)
        adapter = ProviderGateway(config).current()
    except UnknownProviderError as exc:
        LOGGER.error(str(exc))
        return 1

    root = args.root.resolve()
    limiter = TokenBucket(config.rate_limit.capacity, config.rate_limit.refill_rate)
    index = CodeIndex(
        config.index.index_path(root), adapter.get_embeddings, config=config.index, limiter=limiter
    )

    if args.query:
        index.load()
        if index.is_empty:
            LOGGER.error("No index found under %s. Run without --query to build it first.", root)
            return 1
        try:
            with console.status("[info]Searching...[/info]"):
                hits = index.search(args.query, limit=args.limit)
        except (ModelClientError, ValueError) as exc:
            LOGGER.error("Search failed: %s", exc)
            return 1
        show_hits(hits, args.query)
        return 0

    validation = adapter.validate()
    if not validation.valid:
        print_error(validation.error or "", title="Configuration Error")
        return 1

    files, chunks = index.build(root)
    console.print(
        Panel(
            f"Indexed [bold]{files}[/] file(s) into [bold]{chunks}[/] chunk(s) using "
            f"{adapter.name} ({adapter.embedding_model}).\nSaved to [path]{index.index_path}[/path].",
            title="Indexing Complete",
            style="success",
        )
    )
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
