"""Generate a project from a task description and write it to disk."""

from __future__ import annotations

import argparse
import json
import os
from pathlib import Path

from rich.markdown import Markdown
from rich.panel import Panel
from rich.progress import BarColumn, Progress, TextColumn
from rich.prompt import Prompt
from rich.table import Table

from codeforge.chat import render_structure
from codeforge.config import AppConfig
from codeforge.console import console, print_error
from codeforge.gateway import ProviderGateway
from codeforge.llm import ProviderType, UnknownProviderError
from codeforge.logging import configure_logging, get_logger
from codeforge.materializer import ProgressUpdate, ProjectMaterializer, primary_file
from codeforge.project import ProjectStructure

LOGGER = get_logger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Ask an AI backend for a complete project and materialize it into a folder."
    )
    parser.add_argument("task", nargs="?", help="Description of the project to generate.")
    parser.add_argument(
        "--root",
        type=Path,
        default=Path.cwd(),
        help="Folder the project is written into (default: current directory).",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        help="Path to a config file (YAML or JSON, default: config.yaml in project root).",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        help="Path to a .env file with secrets such as GEMINI_API_KEY (default: .env).",
    )
    parser.add_argument(
        "--provider",
        choices=[provider.value for provider in ProviderType],
        help="Override the backend configured in the config file.",
    )
    parser.add_argument("--model", help="Model to use for the selected backend.")
    parser.add_argument("--base-url", help="Override the backend base URL.")
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: 120).")
    parser.add_argument(
        "--stream", action="store_true", help="Stream the model output while it is generated."
    )
    parser.add_argument(
        "--dry-run", action="store_true", help="Show the generated structure without writing files."
    )
    parser.add_argument(
        "--save-json", type=Path, help="Also write the parsed project structure to this JSON file."
    )
    parser.add_argument(
        "--list-providers", action="store_true", help="List the supported backends and exit."
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level (default: INFO).")
    return parser.parse_args()


def apply_overrides(config: AppConfig, args: argparse.Namespace) -> None:
    if args.provider:
        config.llm.provider = args.provider
    backend = config.backend(config.llm.provider)
    if args.model:
        backend.model = args.model
    if args.base_url:
        backend.base_url = args.base_url
    if args.timeout:
        config.generation.timeout = args.timeout


def list_providers(gateway: ProviderGateway) -> int:
    table = Table(title="Supported Backends", box=None, highlight=True)
    table.add_column("Type", style="cyan")
    table.add_column("Name", style="magenta")
    table.add_column("API key")
    table.add_column("Free tier")
    table.add_column("Models")
    for info in gateway.providers():
        table.add_row(
            info.type.value,
            info.name,
            "required" if info.requires_api_key else "-",
            "yes" if info.free_available else "no",
            ", ".join(info.models),
        )
    console.print(table)
    return 0


def materialize(config: AppConfig, root: Path, structure: ProjectStructure) -> int:
    materializer = ProjectMaterializer(encoding=config.materializer.encoding)
    with Progress(
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task_id = progress.add_task("Creating files...", total=100)

        def report(update: ProgressUpdate) -> None:
            progress.update(task_id, advance=update.increment or 0, description=update.message)

        outcome = materializer.apply(root, structure, report)

    if not outcome.success:
        print_error(
            f"{outcome.error}\n\n{outcome.files_created} file(s) were written before the "
            "failure. Inspect the folder before retrying.",
            title="Materialization Failed",
        )
        return 1

    lines = [f"Created [bold]{outcome.files_created}[/] file(s) in [path]{root}[/path]."]
    first = primary_file(structure)
    if first is not None:
        lines.append(f"Start with [path]{first.path}[/path].")
    if structure.suggested_commands:
        lines.append("")
        lines.append("Suggested commands:")
        lines.extend(f"  $ {command}" for command in structure.suggested_commands)
    console.print(Panel("\n".join(lines), title="Project Ready", style="success"))
    return 0


def main() -> int:
    args = parse_args()
    configure_logging(args.log_level)

    if args.env_file:
        os.environ["ENV_FILE"] = str(args.env_file)

    try:
        config = AppConfig.load(config_path=args.config_file)
        apply_overrides(config, args)
        gateway = ProviderGateway(config)
        if args.list_providers:
            return list_providers(gateway)
        adapter = gateway.current()
    except UnknownProviderError as exc:
        LOGGER.error(str(exc))
        return 1

    validation = adapter.validate()
    if not validation.valid:
        print_error(validation.error or "", title="Configuration Error")
        return 1

    task = args.task or Prompt.ask("Describe the project you want to generate")
    if not task.strip():
        LOGGER.error("No task description given.")
        return 1

    if args.stream:
        console.rule(f"{adapter.name} ({adapter.model})")
        result = adapter.generate_project(
            task,
            stream=True,
            on_delta=lambda delta: console.out(delta, end="", style="dim", highlight=False),
        )
        console.print()
    else:
        with console.status(f"[info]Generating project structure with {adapter.name}...[/info]"):
            result = adapter.generate_project(task)

    if not result.success:
        print_error(f"Generation failed: {result.error}", title="Provider Error")
        return 1

    structure = result.project_structure
    if structure is None:
        console.print(Panel.fit("The model answered without a project structure:", style="warning"))
        console.print(Markdown(result.message or ""))
        return 1

    if result.tokens_used is not None:
        LOGGER.info("Tokens used: %s", result.tokens_used)
    console.print(render_structure(structure))
    if structure.description:
        console.print(f"[info]{structure.description}[/info]")

    if args.save_json:
        args.save_json.write_text(
            json.dumps(structure.to_json(), indent=2, ensure_ascii=False), encoding="utf-8"
        )

    if args.dry_run:
        return 0
    return materialize(config, args.root.resolve(), structure)


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
