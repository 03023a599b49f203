"""Interactive chat orchestration on top of a backend adapter."""

from __future__ import annotations

import base64
import json
import sys
from pathlib import Path
from typing import List, Optional

from rich.markdown import Markdown
from rich.panel import Panel
from rich.prompt import Confirm
from rich.table import Table

from .base import BackendAdapter
from .console import console
from .llm import ChatMessage, ProviderResult
from .materializer import ProjectMaterializer, primary_file
from .project import ProjectStructure

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful senior software engineer. Answer questions conversationally. "
    "When the user asks you to create or change a project, reply with ONLY a JSON object "
    'with "folders" and "files" (each file has "path" and "content").'
)


def encode_image(path: Path) -> str:
    """Read an image file and return it base64-encoded for vision input."""

    return base64.b64encode(Path(path).read_bytes()).decode("ascii")


def render_structure(structure: ProjectStructure, *, title: str = "Generated Project") -> Table:
    table = Table(title=structure.project_name or title, show_header=True, header_style="bold cyan")
    table.add_column("#", justify="right")
    table.add_column("Path", style="path")
    table.add_column("Lines", justify="right")
    for idx, item in enumerate(structure.files, start=1):
        table.add_row(str(idx), item.path, str(item.content.count("\n") + 1))
    return table


class ChatSession:
    """Conversation with one backend; the message history lives on the session."""

    def __init__(
        self,
        adapter: BackendAdapter,
        *,
        root: Optional[Path] = None,
        system_prompt: Optional[str] = DEFAULT_SYSTEM_PROMPT,
        stream: bool = True,
        materializer: Optional[ProjectMaterializer] = None,
        console_override=None,
    ) -> None:
        self.adapter = adapter
        self.root = Path(root) if root is not None else Path.cwd()
        self.stream = stream
        self.materializer = materializer or ProjectMaterializer()
        self.console = console_override or console
        self.history: List[ChatMessage] = []
        if system_prompt:
            self.history.append(ChatMessage.system(system_prompt))

    def ask(self, text: str, *, image: Optional[str] = None, on_delta=None) -> ProviderResult:
        """Send *text* with the accumulated history and record the reply."""

        self.history.append(ChatMessage.user(text, image=image))
        if self.stream:
            result = self.adapter.stream_chat(self.history, on_delta or (lambda _delta: None))
        else:
            result = self.adapter.chat(self.history)

        if not result.success:
            # Keep the history replayable; a failed turn gets no assistant reply.
            self.history.pop()
            return result

        structure = result.project_structure
        if structure is not None:
            reply = json.dumps(structure.to_json(), ensure_ascii=False)
        else:
            reply = result.message or ""
        self.history.append(ChatMessage.assistant(reply))
        return result

    def run_cli(self) -> None:
        self.console.rule(
            f"{self.adapter.name} chat ({self.adapter.model}). "
            "Use '/image <path>' to attach an image. Empty line or Ctrl+D exits."
        )
        pending_image: Optional[str] = None
        while True:
            try:
                query = self.console.input("[prompt]\nYou:[/prompt] ").strip()
            except EOFError:
                self.console.print()
                break
            if not query:
                break

            if query.startswith("/image "):
                image_path = Path(query[len("/image ") :].strip()).expanduser()
                try:
                    pending_image = encode_image(image_path)
                except OSError as exc:
                    self.console.print(f"[error]Cannot read image {image_path}: {exc}[/error]")
                    continue
                self.console.print(f"[info]Attached {image_path.name} to your next message.[/info]")
                continue

            self.console.print(Panel.fit("Assistant:", style="bold"))
            result = self.ask(
                query,
                image=pending_image,
                on_delta=lambda delta: self.console.out(delta, end="", highlight=False),
            )
            pending_image = None
            if self.stream:
                self.console.print()
            self._show(result)

    def _show(self, result: ProviderResult) -> None:
        if not result.success:
            self.console.print(
                Panel(result.error or "Unknown error", title="Provider Error", style="error")
            )
            return

        structure = result.project_structure
        if structure is None:
            if not self.stream:
                answer = result.message or ""
                self.console.print(
                    Markdown(answer) if answer else "[warning]No response received.[/warning]"
                )
            return

        self.console.print(render_structure(structure))
        if not sys.stdin.isatty():
            return
        if Confirm.ask(f"Write {len(structure.files)} file(s) to {self.root}?", default=False):
            outcome = self.materializer.apply(self.root, structure)
            if outcome.success:
                first = primary_file(structure)
                self.console.print(
                    f"[success]Created {outcome.files_created} file(s).[/success]"
                    + (f" Start with [path]{first.path}[/path]." if first else "")
                )
            else:
                self.console.print(
                    Panel(
                        f"{outcome.error}\n{outcome.files_created} file(s) were written before the failure.",
                        title="Partial Write",
                        style="error",
                    )
                )
