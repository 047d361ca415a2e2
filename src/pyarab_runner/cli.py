"""Typer CLI entrypoint for pyarab_runner."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import NoReturn

import typer
import yaml

from pyarab_runner.commands import RUN_FILE, SET_INTERPRETER_PATH, CommandOutcome, execute_command
from pyarab_runner.config import ConfigurationError, SettingsFileStore, load_settings, resolve_workspace_root
from pyarab_runner.host import (
    EchoNotifier,
    FilePicker,
    Host,
    PresetFilePicker,
    PromptFilePicker,
    ShellTerminalFactory,
    StaticActiveDocument,
)
from pyarab_runner.logging_utils import configure_logging
from pyarab_runner.verifier import verify

LOG_FILE = Path(".pyarab/logs/pyarab.log")

app = typer.Typer(
    add_completion=False,
    help="Run .pyarab files with a configured PyArab interpreter.",
    no_args_is_help=True,
)


@dataclass(frozen=True, slots=True)
class CliState:
    workspace_root: Path
    user_settings_file: Path | None

    def store(self) -> SettingsFileStore:
        return SettingsFileStore(self.workspace_root, self.user_settings_file)


@app.callback()
def main_callback(
    ctx: typer.Context,
    workspace: Path | None = typer.Option(
        None,
        "--workspace",
        help="Workspace root (default: nearest folder with .pyarab/settings.yaml, else cwd).",
        file_okay=False,
        dir_okay=True,
    ),
    user_settings: Path | None = typer.Option(
        None,
        "--user-settings",
        help="Optional user-level settings YAML path.",
        dir_okay=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    log_file: bool = typer.Option(
        True,
        "--log-file/--no-log-file",
        help="Also write logs to .pyarab/logs/pyarab.log in the workspace.",
    ),
) -> None:
    """Resolve the workspace and configure logging before any command runs."""

    workspace_root = resolve_workspace_root(workspace)
    state = CliState(workspace_root=workspace_root, user_settings_file=user_settings)
    try:
        level_name = "DEBUG" if verbose else load_settings(workspace_root, user_settings).log_level
    except ConfigurationError:
        level_name = "INFO"
    configure_logging(
        workspace_root / LOG_FILE if log_file else None,
        level=getattr(logging, level_name),
    )
    ctx.obj = state


def _build_host(state: CliState, picker: FilePicker, active_file: str | None = None) -> tuple[Host, ShellTerminalFactory]:
    store = state.store()
    terminals = ShellTerminalFactory(shell=store.get("shell"))
    host = Host(
        picker=picker,
        config=store,
        notifier=EchoNotifier(),
        terminals=terminals,
        documents=StaticActiveDocument(active_file),
    )
    return host, terminals


def _exit_for(outcome: CommandOutcome) -> None:
    if outcome is CommandOutcome.FAILED:
        raise typer.Exit(code=1)


def _fail(exc: Exception) -> NoReturn:
    typer.secho(str(exc), fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


@app.command("set-interpreter-path")
def set_interpreter_path(
    ctx: typer.Context,
    path: Path | None = typer.Option(
        None,
        "--path",
        help="Interpreter script to use instead of prompting.",
        exists=True,
        file_okay=True,
        dir_okay=False,
    ),
) -> None:
    """Choose the interpreter, save it for this workspace and test it."""

    state: CliState = ctx.obj
    picker: FilePicker = PresetFilePicker(str(path)) if path is not None else PromptFilePicker()
    try:
        host, _ = _build_host(state, picker)
        outcome = execute_command(SET_INTERPRETER_PATH, host)
    except ConfigurationError as exc:
        _fail(exc)
    _exit_for(outcome)


@app.command("run-file")
def run_file(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="The .pyarab file to run.", dir_okay=False),
) -> None:
    """Run a .pyarab file in a terminal opened in the file's directory."""

    state: CliState = ctx.obj
    try:
        host, terminals = _build_host(state, PromptFilePicker(), str(file.expanduser().resolve()))
        outcome = execute_command(RUN_FILE, host)
    except ConfigurationError as exc:
        _fail(exc)
    exit_codes = terminals.close_all()
    _exit_for(outcome)
    if exit_codes and exit_codes[-1]:
        raise typer.Exit(code=exit_codes[-1])


@app.command("verify")
def verify_interpreter(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Interpreter script to probe."),
) -> None:
    """Probe an interpreter without saving it."""

    state: CliState = ctx.obj
    try:
        settings = load_settings(state.workspace_root, state.user_settings_file)
    except ConfigurationError as exc:
        _fail(exc)
    result = verify(
        str(path),
        launcher=settings.launcher,
        timeout_seconds=settings.probe_timeout_seconds,
    )
    typer.echo(f"success: {str(result.success).lower()}")
    typer.echo(f"probes: {result.probe_count}")
    if not result.success:
        typer.echo(f"reason: {result.reason}")
        raise typer.Exit(code=1)


@app.command("show-config")
def show_config(ctx: typer.Context) -> None:
    """Print the effective configuration after env overrides."""

    state: CliState = ctx.obj
    try:
        settings = load_settings(state.workspace_root, state.user_settings_file)
    except ConfigurationError as exc:
        _fail(exc)
    typer.echo(f"workspace: {state.workspace_root}")
    typer.echo(yaml.safe_dump(settings.as_dict(), sort_keys=False))


def main() -> None:
    """CLI script entrypoint."""

    app()


if __name__ == "__main__":
    main()
