"""Command handlers and the registry that maps command identifiers to them."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Callable, Sequence, TypeVar

from pyarab_runner.config import ConfigurationError, ConfigurationTarget
from pyarab_runner.host import Host
from pyarab_runner.verifier import DEFAULT_LAUNCHER, DEFAULT_PROBE_TIMEOUT_SECONDS, verify

LOGGER = logging.getLogger(__name__)

SET_INTERPRETER_PATH = "pyarab.setInterpreterPath"
RUN_FILE = "pyarab.runFile"

INTERPRETER_PATH_KEY = "interpreter_path"
DEFAULT_FILE_SUFFIX = ".pyarab"
DEFAULT_TERMINAL_NAME = "PyArab Runner"

PICKER_TITLE = "Select PyArab Interpreter (pyarab.py)"
PICKER_OPEN_LABEL = "Select pyarab.py"
PICKER_FILTERS: dict[str, list[str]] = {
    "Python files": ["py"],
    "All files": ["*"],
}

CONFIGURE_CHOICE = "Set Interpreter Path"
CANCEL_CHOICE = "Cancel"


class CommandOutcome(str, Enum):
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


CommandHandler = Callable[[Host], CommandOutcome]
T = TypeVar("T")


def _setting(host: Host, key: str, default: T) -> T:
    value = host.config.get(key)
    return default if value is None else value


def is_configured(interpreter_path: str | None) -> bool:
    """Unset and missing on disk are the same not-configured state."""

    return bool(interpreter_path) and os.path.exists(interpreter_path)


def quote(text: str) -> str:
    return f'"{text}"'


def build_run_lines(file_path: str, interpreter_path: str, launcher: Sequence[str]) -> list[str]:
    """Shell lines that change into the file's directory and run it."""

    file_dir = os.path.dirname(file_path)
    file_name = os.path.basename(file_path)
    invocation = " ".join([*launcher, quote(interpreter_path), quote(file_name)])
    return [f"cd {quote(file_dir)}", invocation]


def set_interpreter_path(host: Host) -> CommandOutcome:
    """Pick the interpreter, persist it for the workspace, then verify it."""

    selected = host.picker.pick_file(PICKER_TITLE, PICKER_OPEN_LABEL, PICKER_FILTERS)
    if not selected:
        return CommandOutcome.CANCELLED

    try:
        host.config.update(INTERPRETER_PATH_KEY, selected, ConfigurationTarget.WORKSPACE)
        launcher = _setting(host, "launcher", list(DEFAULT_LAUNCHER))
        timeout_seconds = _setting(host, "probe_timeout_seconds", DEFAULT_PROBE_TIMEOUT_SECONDS)
    except ConfigurationError as exc:
        host.notifier.error(str(exc))
        return CommandOutcome.FAILED
    host.notifier.info(f"PyArab interpreter set to: {selected}")

    result = verify(selected, launcher=launcher, timeout_seconds=timeout_seconds, probe=host.probe)
    if result.success:
        host.notifier.info("Interpreter test successful!")
    else:
        host.notifier.warning(f"Interpreter test failed: {result.reason}")
    return CommandOutcome.COMPLETED


def _resolve_interpreter(host: Host) -> tuple[str | None, CommandOutcome]:
    interpreter_path = host.config.get(INTERPRETER_PATH_KEY)
    if is_configured(interpreter_path):
        return interpreter_path, CommandOutcome.COMPLETED

    choice = host.notifier.warning("PyArab interpreter not configured!", CONFIGURE_CHOICE, CANCEL_CHOICE)
    if choice != CONFIGURE_CHOICE:
        LOGGER.info("Interpreter configuration declined")
        return None, CommandOutcome.CANCELLED

    if execute_command(SET_INTERPRETER_PATH, host) is CommandOutcome.FAILED:
        return None, CommandOutcome.FAILED
    interpreter_path = host.config.get(INTERPRETER_PATH_KEY)
    if not is_configured(interpreter_path):
        LOGGER.info("Interpreter still not configured after prompting")
        return None, CommandOutcome.CANCELLED
    return interpreter_path, CommandOutcome.COMPLETED


def run_file(host: Host) -> CommandOutcome:
    """Run the active ``.pyarab`` file with the configured interpreter in a terminal."""

    file_path = host.documents.active_file()
    if not file_path:
        host.notifier.error("No active editor found!")
        return CommandOutcome.FAILED

    try:
        suffix = _setting(host, "file_suffix", DEFAULT_FILE_SUFFIX)
        if not file_path.endswith(suffix):
            host.notifier.error(f"This is not a {suffix} file!")
            return CommandOutcome.FAILED

        interpreter_path, outcome = _resolve_interpreter(host)
        if interpreter_path is None:
            return outcome

        launcher = _setting(host, "launcher", list(DEFAULT_LAUNCHER))
        terminal_name = _setting(host, "terminal_name", DEFAULT_TERMINAL_NAME)
    except ConfigurationError as exc:
        host.notifier.error(str(exc))
        return CommandOutcome.FAILED

    terminal = host.terminals.create_terminal(terminal_name)
    terminal.show()
    for line in build_run_lines(file_path, interpreter_path, launcher):
        terminal.send_text(line)

    LOGGER.info("Sent %s to terminal %s", file_path, terminal_name)
    host.notifier.info(
        f"Running {os.path.basename(file_path)} with interpreter: {Path(interpreter_path).name}"
    )
    return CommandOutcome.COMPLETED


COMMANDS: dict[str, CommandHandler] = {
    SET_INTERPRETER_PATH: set_interpreter_path,
    RUN_FILE: run_file,
}


def execute_command(command_id: str, host: Host) -> CommandOutcome:
    handler = COMMANDS.get(command_id)
    if handler is None:
        raise KeyError(f"Unknown command: {command_id}")
    LOGGER.debug("Executing command %s", command_id)
    return handler(host)
