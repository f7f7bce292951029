"""CLI main module for vicon."""

from __future__ import annotations

import asyncio
import shutil
import sys

import typer

from vicon import __version__
from vicon.cli.clipboard import copy_to_clipboard
from vicon.cli.render import ConsoleOperator, Renderer
from vicon.cli.runner import RunCallbacks, run_commands
from vicon.config import (
    CloudflareCredentials,
    ConfigStore,
    Provider,
    ProviderConfig,
    Settings,
    apply_provider_override,
    ensure_dispatchable,
    load_settings,
)
from vicon.core.dispatcher import Dispatcher
from vicon.core.prompt import build_system_prompt
from vicon.core.recovery import RecoveryLoop, RecoveryOperator
from vicon.core.tools import CapabilityProber
from vicon.core.types import GenerateResult, GenerationRequest
from vicon.errors import AgentNotFoundError, BackendError, ConfigurationError, CredentialStoreError
from vicon.logging_utils import configure_logging

SUBCOMMANDS = frozenset({"convert", "setup", "teardown"})
ROOT_OPTIONS = frozenset({"--help", "-h", "--version", "-v"})
ACTIONS = ("run", "edit", "copy", "cancel")

app = typer.Typer(
    name="vicon",
    help="Describe a media conversion, get the ffmpeg / magick commands.",
    add_completion=False,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"vicon v{__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-v", callback=_version_callback, is_eager=True, help="Print version"
    ),
) -> None:
    _ = version
    if ctx.invoked_subcommand is None:
        renderer = Renderer()
        renderer.banner()
        renderer.usage()


def _bootstrap() -> tuple[Settings, Renderer]:
    settings = load_settings()
    configure_logging(settings.log_level)
    return settings, Renderer()


@app.command()
def convert(
    request: str | None = typer.Argument(None, help="What to convert, in plain words"),
    provider: Provider | None = typer.Option(None, "--provider", help="Override provider for this invocation"),
) -> None:
    """Generate conversion commands for a request. This is the default command."""

    settings, renderer = _bootstrap()
    try:
        config = ensure_dispatchable(apply_provider_override(ConfigStore().load(), provider))
    except ConfigurationError as exc:
        renderer.banner()
        renderer.error(str(exc))
        raise typer.Exit(1) from exc

    renderer.banner()
    if not request:
        renderer.usage()
        return

    exit_code = asyncio.run(run_conversion(request, config, settings=settings, renderer=renderer))
    raise typer.Exit(exit_code)


@app.command()
def setup() -> None:
    """Configure AI provider credentials."""

    settings, renderer = _bootstrap()
    renderer.banner()
    exit_code = asyncio.run(run_setup(renderer, ConfigStore(), settings))
    raise typer.Exit(exit_code)


@app.command()
def teardown() -> None:
    """Remove saved credentials."""

    _, renderer = _bootstrap()
    renderer.banner()
    if not renderer.confirm("Delete vicon config from keychain?"):
        renderer.info("Teardown cancelled.")
        return
    try:
        ConfigStore().delete()
    except CredentialStoreError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc
    renderer.success("Config deleted.")


async def run_conversion(
    request: str,
    config: ProviderConfig,
    *,
    settings: Settings,
    renderer: Renderer,
    prober: CapabilityProber | None = None,
    dispatcher: Dispatcher | None = None,
    operator: RecoveryOperator | None = None,
) -> int:
    """Detect tools, generate and validate commands, then hand them to the action menu."""

    prober = prober or CapabilityProber(ffmpeg_binary=settings.ffmpeg_binary, magick_binary=settings.magick_binary)
    dispatcher = dispatcher or Dispatcher(settings)

    with renderer.status("Detecting tools…"):
        snapshot = await prober.detect()
    renderer.tool_summary(snapshot)
    system_prompt = build_system_prompt(snapshot)

    async def generate(generation: GenerationRequest) -> str:
        with renderer.status("Generating command…"):
            return await dispatcher.generate(generation.system_prompt, generation.user_prompt, config)

    loop = RecoveryLoop(generate, operator or ConsoleOperator(renderer))
    try:
        outcome = await loop.run(system_prompt, request)
    except BackendError as exc:
        renderer.error(str(exc))
        return 1

    if outcome.result is None:
        renderer.info("Cancelled.")
        return 0
    return await action_menu(outcome.result, renderer)


def parse_edited_commands(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


async def action_menu(result: GenerateResult, renderer: Renderer) -> int:
    """Run, edit, copy or cancel. Only edit loops back."""

    current = result
    renderer.result_panels(current)
    while True:
        action = renderer.select("What would you like to do?", ACTIONS, default="run")
        if action is None or action == "cancel":
            renderer.info("Cancelled.")
            return 0

        if action == "copy":
            if copy_to_clipboard("\n".join(current.commands)):
                renderer.success("Commands copied to clipboard.")
            else:
                renderer.warn("No clipboard tool found. Install xclip, xsel, or wl-copy.")
            return 0

        if action == "edit":
            edited = await renderer.ask_text(
                "Edit commands (one per line, Esc then Enter to finish):",
                default="\n".join(current.commands),
                multiline=True,
            )
            if edited is None:
                renderer.info("Cancelled.")
                return 0
            current = current.with_commands(parse_edited_commands(edited))
            renderer.result_panels(current)
            continue

        callbacks = RunCallbacks(
            on_before=lambda command, index, total: renderer.step(f"▶ [{index + 1}/{total}] {command}"),
            on_success=lambda: renderer.success("All commands completed successfully."),
            on_error=lambda command, code: renderer.error(f"Command exited with code {code}: {command}"),
        )
        return 0 if await run_commands(current.commands, callbacks) else 1


def check_agent_available(binary: str) -> str:
    path = shutil.which(binary)
    if path is None:
        raise AgentNotFoundError(f"{binary} CLI not found. Install it from https://claude.ai/code and re-run setup.")
    return path


async def _ask_required(renderer: Renderer, message: str, *, secret: bool = False) -> str | None:
    while True:
        answer = await renderer.ask_text(message, secret=secret)
        if answer is None:
            return None
        if answer.strip():
            return answer.strip()
        renderer.warn("Required")


async def run_setup(renderer: Renderer, store: ConfigStore, settings: Settings) -> int:
    choice = renderer.select(
        "Which AI provider? (cloudflare: Account ID + API token, claude: claude CLI installed)",
        [member.value for member in Provider],
        default=Provider.CLOUDFLARE.value,
    )
    if choice is None:
        renderer.info("Setup cancelled.")
        return 0
    provider = Provider(choice)

    if provider is Provider.CLOUDFLARE:
        account_id = await _ask_required(renderer, "Cloudflare Account ID:")
        if account_id is None:
            renderer.info("Setup cancelled.")
            return 0
        api_token = await _ask_required(renderer, "Cloudflare AI API token:", secret=True)
        if api_token is None:
            renderer.info("Setup cancelled.")
            return 0
        config = ProviderConfig(
            default_provider=provider,
            cloudflare=CloudflareCredentials(account_id=account_id, api_token=api_token),
        )
    else:
        try:
            check_agent_available(settings.agent_binary)
        except AgentNotFoundError as exc:
            renderer.error(str(exc))
            return 1
        config = ProviderConfig(default_provider=provider)

    try:
        store.save(config)
    except CredentialStoreError as exc:
        renderer.error(str(exc))
        return 1
    renderer.success(f"{provider.label} configured and saved.")
    return 0


def normalize_argv(argv: list[str]) -> list[str]:
    """Route ``vicon "<request>" ...`` to the convert command."""

    if not argv:
        return argv
    first = argv[0]
    if first in SUBCOMMANDS or first in ROOT_OPTIONS:
        return argv
    return ["convert", *argv]


def main() -> None:
    app(args=normalize_argv(sys.argv[1:]), prog_name="vicon")
