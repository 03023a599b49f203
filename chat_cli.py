"""Interactive chat CLI backed by the provider gateway."""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from rich.panel import Panel
from rich.table import Table

from codeforge.chat import ChatSession
from codeforge.config import AppConfig
from codeforge.console import console, print_error
from codeforge.gateway import ProviderGateway
from codeforge.llm import ModelClientError, ProviderType, UnknownProviderError
from codeforge.logging import configure_logging, get_logger
from codeforge.ollama import OllamaAdapter

LOGGER = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Chat with a code generation backend and write generated projects to disk."
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        help="Path to a config file (YAML or JSON, default: config.yaml in project root).",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Path to a .env file with secrets such as OPENAI_API_KEY (default: .env).",
    )
    parser.add_argument(
        "--provider",
        choices=[provider.value for provider in ProviderType],
        help="Override the backend configured in the config file.",
    )
    parser.add_argument("--model", help="Model to use for the selected backend.")
    parser.add_argument(
        "--host",
        help="Ollama HTTP host (default: OLLAMA_HOST env or value from the config file).",
    )
    parser.add_argument("--timeout", type=float, help="HTTP timeout in seconds.")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Folder generated projects are written into (default: current directory).",
    )
    parser.add_argument(
        "--no-stream", action="store_true", help="Wait for complete answers instead of streaming."
    )
    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List models for the selected backend and exit.",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO).")
    return parser.parse_args()


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.provider:
        config.llm.provider = args.provider
    if args.model:
        config.backend(config.llm.provider).model = args.model
    if args.host:
        config.ollama.base_url = args.host
    if args.timeout:
        config.generation.timeout = args.timeout


def list_models(adapter) -> int:
    if isinstance(adapter, OllamaAdapter):
        try:
            names = [model.name for model in adapter.list_models()]
        except ModelClientError as exc:
            LOGGER.error("Failed to query models: %s", exc)
            return 1
    else:
        names = list(adapter.info.models)

    if not names:
        console.print(
            Panel(
                f"No models are currently available for {adapter.name}.",
                title="Models Unavailable",
                style="warning",
            )
        )
        return 0

    table = Table(title=f"{adapter.name} Models", box=None, highlight=True)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Name", style="magenta")
    for idx, name in enumerate(names, start=1):
        marker = " (default)" if name == adapter.model else ""
        table.add_row(str(idx), name + marker)
    console.print(table)
    return 0


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

    if args.list_models:
        return list_models(adapter)

    validation = adapter.validate()
    if not validation.valid:
        print_error(validation.error or "", title="Configuration Error")
        return 1

    session = ChatSession(adapter, root=args.root.resolve(), stream=not args.no_stream)
    session.run_cli()
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
