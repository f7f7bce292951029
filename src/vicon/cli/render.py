"""CLI renderer for vicon."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager

from prompt_toolkit import PromptSession
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.text import Text

from vicon.core.recovery import RecoveryChoice
from vicon.core.types import CapabilitySnapshot, GenerateResult
from vicon.errors import ResponseValidationError

# Catppuccin Frappe
PALETTE = {
    "blue": "#8caaee",
    "green": "#a6d189",
    "lavender": "#babbf1",
    "mauve": "#ca9ee6",
    "overlay1": "#838ba7",
    "pink": "#f4b8e4",
    "red": "#e78284",
    "sapphire": "#85c1dc",
    "sky": "#99d1db",
    "yellow": "#e5c890",
}

BANNER_LINES = (
    "██╗   ██╗██╗ ██████╗ ██████╗ ███╗   ██╗",
    "██║   ██║██║██╔════╝██╔═══██╗████╗  ██║",
    "██║   ██║██║██║     ██║   ██║██╔██╗ ██║",
    "╚██╗ ██╔╝██║██║     ██║   ██║██║╚██╗██║",
    " ╚████╔╝ ██║╚██████╗╚██████╔╝██║ ╚████║",
    "  ╚═══╝  ╚═╝ ╚═════╝ ╚═════╝ ╚═╝  ╚═══╝",
)
BANNER_GRADIENT = ("mauve", "pink", "lavender", "blue", "sapphire", "sky")
BANNER_INDENT = "  "


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None

    def banner(self) -> None:
        text = Text("\n")
        for line, color in zip(BANNER_LINES, BANNER_GRADIENT):
            text.append(BANNER_INDENT + line + "\n", style=f"bold {PALETTE[color]}")
        self.console.print(text)

    def usage(self) -> None:
        self.info("Usage: vicon <request>  |  vicon --help for more")

    def info(self, message: str) -> None:
        self.console.print(message)

    def muted(self, message: str) -> None:
        self.console.print(Text(message, style=PALETTE["overlay1"]))

    def success(self, message: str) -> None:
        self.console.print(Text(message, style=PALETTE["green"]))

    def warn(self, message: str) -> None:
        self.console.print(Text(message, style=PALETTE["yellow"]))

    def error(self, message: str) -> None:
        self.console.print(Text.assemble(("Error: ", f"bold {PALETTE['red']}"), message))

    def step(self, message: str) -> None:
        self.console.print(Text(message, style=PALETTE["sky"]))

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        with self.console.status(message, spinner="dots"):
            yield

    def tool_summary(self, snapshot: CapabilitySnapshot) -> None:
        text = Text()
        transcoder = snapshot.transcoder
        if transcoder.installed:
            encoders = len(transcoder.video_encoders) + len(transcoder.audio_encoders)
            text.append(
                f"ffmpeg {transcoder.version or '?'} ({encoders} encoders · {len(transcoder.decoders)} decoders)",
                style=PALETTE["overlay1"],
            )
        else:
            text.append("ffmpeg not found", style=PALETTE["yellow"])

        text.append("  ·  ", style=PALETTE["overlay1"])

        image_tool = snapshot.image_tool
        if image_tool.installed:
            text.append(
                f"magick {image_tool.version or '?'} ({len(image_tool.formats)} formats)",
                style=PALETTE["overlay1"],
            )
        else:
            text.append("magick not found", style=PALETTE["yellow"])
        self.console.print(text)

    def result_panels(self, result: GenerateResult) -> None:
        self.console.print()
        self.console.print(
            Panel(
                Text(result.explanation),
                title="What this does",
                border_style=PALETTE["mauve"],
                padding=(1, 2),
            )
        )
        if result.commands:
            body = Text()
            for index, command in enumerate(result.commands, start=1):
                if index > 1:
                    body.append("\n")
                body.append(f"[{index}] ", style=PALETTE["sky"])
                body.append(command)
        else:
            body = Text("(no commands)", style=PALETTE["overlay1"])
        self.console.print(Panel(body, title="Commands", title_align="left", border_style="dim", padding=(0, 1)))
        self.console.print()

    def validation_failure(self, failure: ResponseValidationError) -> None:
        self.error(f"Could not parse AI response: {failure}")
        self.console.print(Panel(Text(failure.raw), title="Raw response", border_style=PALETTE["red"]))

    def select(self, message: str, choices: Sequence[str], default: str) -> str | None:
        """Ask for one of ``choices``; ``None`` when the user aborts."""

        try:
            return Prompt.ask(message, choices=list(choices), default=default, console=self.console)
        except (KeyboardInterrupt, EOFError):
            return None

    def confirm(self, message: str, *, default: bool = False) -> bool:
        try:
            return Confirm.ask(message, default=default, console=self.console)
        except (KeyboardInterrupt, EOFError):
            return False

    async def ask_text(
        self, message: str, *, default: str = "", multiline: bool = False, secret: bool = False
    ) -> str | None:
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        try:
            return await self._prompt_session.prompt_async(
                f"{message} ",
                default=default,
                multiline=multiline,
                is_password=secret,
            )
        except (KeyboardInterrupt, EOFError):
            return None


class ConsoleOperator:
    """Recovery operator backed by the terminal."""

    def __init__(self, renderer: Renderer) -> None:
        self._renderer = renderer

    async def choose(self, failure: ResponseValidationError) -> RecoveryChoice:
        self._renderer.validation_failure(failure)
        answer = self._renderer.select(
            "What would you like to do?",
            [choice.value for choice in RecoveryChoice],
            default=RecoveryChoice.RETRY.value,
        )
        if answer is None:
            return RecoveryChoice.CANCEL
        return RecoveryChoice(answer)

    async def edit_request(self, current: str) -> str | None:
        return await self._renderer.ask_text("Edit request:", default=current)
