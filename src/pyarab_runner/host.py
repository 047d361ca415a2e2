"""Host collaborators consumed by the commands, with command-line implementations."""

from __future__ import annotations

import fnmatch
import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Callable, Mapping, Protocol, Sequence

import typer

from pyarab_runner.config import ConfigurationTarget
from pyarab_runner.verifier import ProbeRunner, run_probe

LOGGER = logging.getLogger(__name__)

FileFilters = Mapping[str, Sequence[str]]
PromptFn = Callable[..., Any]
EchoFn = Callable[..., Any]


class FilePicker(Protocol):
    def pick_file(self, title: str, open_label: str, filters: FileFilters) -> str | None: ...


class ConfigurationStore(Protocol):
    def get(self, key: str) -> Any: ...

    def update(self, key: str, value: Any, target: ConfigurationTarget = ...) -> Any: ...


class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def warning(self, message: str, *choices: str) -> str | None: ...

    def error(self, message: str) -> None: ...


class Terminal(Protocol):
    name: str

    def show(self) -> None: ...

    def send_text(self, text: str) -> None: ...


class TerminalFactory(Protocol):
    def create_terminal(self, name: str) -> Terminal: ...


class ActiveDocument(Protocol):
    def active_file(self) -> str | None: ...


@dataclass(slots=True)
class Host:
    """Everything a command handler may talk to."""

    picker: FilePicker
    config: ConfigurationStore
    notifier: Notifier
    terminals: TerminalFactory
    documents: ActiveDocument
    probe: ProbeRunner = run_probe


def matches_filters(path: Path, filters: FileFilters) -> bool:
    """Return True when ``path`` matches any extension in ``filters``."""

    for extensions in filters.values():
        for extension in extensions:
            if extension == "*" or fnmatch.fnmatch(path.name.lower(), f"*.{extension.lower()}"):
                return True
    return False


def _describe_filters(filters: FileFilters) -> str:
    return "; ".join(
        f"{label} ({', '.join('*' if ext == '*' else f'*.{ext}' for ext in extensions)})"
        for label, extensions in filters.items()
    )


class PromptFilePicker:
    """Ask for a file path on the terminal until an existing matching file is given."""

    def __init__(self, prompt: PromptFn = typer.prompt, echo: EchoFn = typer.echo) -> None:
        self._prompt = prompt
        self._echo = echo

    def pick_file(self, title: str, open_label: str, filters: FileFilters) -> str | None:
        self._echo(title)
        if filters:
            self._echo(f"Accepted: {_describe_filters(filters)}")
        while True:
            answer = str(self._prompt(open_label, default="", show_default=False)).strip()
            if not answer:
                LOGGER.info("File selection cancelled")
                return None
            candidate = Path(answer).expanduser()
            if not candidate.is_file():
                self._echo(f"Not an existing file: {candidate}")
                continue
            if filters and not matches_filters(candidate, filters):
                self._echo(f"File type not accepted: {candidate.name}")
                continue
            return str(candidate.resolve())


class PresetFilePicker:
    """Picker that answers with a path chosen ahead of time, e.g. from a CLI option."""

    def __init__(self, path: str | None) -> None:
        self.path = path

    def pick_file(self, title: str, open_label: str, filters: FileFilters) -> str | None:
        if self.path is None:
            return None
        return str(Path(self.path).expanduser().resolve())


class EchoNotifier:
    """Messages on the console; warnings with choices prompt for one label."""

    def __init__(self, prompt: PromptFn = typer.prompt, echo: EchoFn = typer.secho) -> None:
        self._prompt = prompt
        self._echo = echo

    def info(self, message: str) -> None:
        self._echo(message)

    def error(self, message: str) -> None:
        self._echo(message, fg=typer.colors.RED, err=True)

    def warning(self, message: str, *choices: str) -> str | None:
        self._echo(message, fg=typer.colors.YELLOW, err=True)
        if not choices:
            return None
        menu = "  ".join(f"[{index}] {label}" for index, label in enumerate(choices, start=1))
        while True:
            answer = str(self._prompt(menu, default="", show_default=False)).strip()
            if not answer:
                return None
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            for label in choices:
                if answer.lower() == label.lower():
                    return label
            self._echo(f"Choose one of: {', '.join(choices)}")


class ShellTerminal:
    """Named terminal whose sent lines run as one shell session on the caller's console.

    The session inherits the caller's stdin, stdout and stderr, so programs it
    launches can prompt the user. Lines are collected by ``send_text`` and run
    together when the terminal is closed, which keeps ``cd`` in effect for the
    lines after it.
    """

    def __init__(
        self,
        name: str,
        shell: str = "/bin/sh",
        echo: EchoFn = typer.echo,
        stdin: IO[str] | None = None,
    ) -> None:
        self.name = name
        self.shell = shell
        self._echo = echo
        self._stdin = stdin
        self._closed = False
        self.sent: list[str] = []

    def show(self) -> None:
        self._echo(f"[{self.name}]")

    def send_text(self, text: str) -> None:
        if self._closed:
            raise RuntimeError(f"Terminal {self.name} is closed")
        self.sent.append(text)

    def close(self) -> int | None:
        """Run everything sent in one shell and wait for it to finish."""

        if self._closed or not self.sent:
            self._closed = True
            return None
        self._closed = True
        LOGGER.debug("Running %d line(s) in %s for terminal %s", len(self.sent), self.shell, self.name)
        completed = subprocess.run(
            [self.shell, "-c", "\n".join(self.sent)],
            stdin=self._stdin,
            check=False,
        )
        return completed.returncode


@dataclass(slots=True)
class ShellTerminalFactory:
    shell: str = "/bin/sh"
    echo: EchoFn = typer.echo
    terminals: list[ShellTerminal] = field(default_factory=list)

    def create_terminal(self, name: str) -> ShellTerminal:
        terminal = ShellTerminal(name, shell=self.shell, echo=self.echo)
        self.terminals.append(terminal)
        return terminal

    def close_all(self) -> list[int | None]:
        return [terminal.close() for terminal in self.terminals]


@dataclass(frozen=True, slots=True)
class StaticActiveDocument:
    path: str | None = None

    def active_file(self) -> str | None:
        return self.path
