from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from pyarab_runner.host import Host
from tests.helpers.fakes import (
    FakeConfig,
    FakeDocument,
    FakeNotifier,
    FakePicker,
    FakeTerminalFactory,
    ScriptedProbe,
)


@pytest.fixture(autouse=True)
def _isolated_settings_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "PYARAB_WORKSPACE",
        "PYARAB_INTERPRETER_PATH",
        "PYARAB_LAUNCHER",
        "PYARAB_PROBE_TIMEOUT_SECONDS",
        "PYARAB_FILE_SUFFIX",
        "PYARAB_TERMINAL_NAME",
        "PYARAB_SHELL",
        "PYARAB_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("PYARAB_USER_SETTINGS", str(tmp_path / "user-settings.yaml"))


@pytest.fixture
def make_host() -> Callable[..., Host]:
    def _make(
        *,
        active_file: str | None = None,
        picker: FakePicker | None = None,
        config: FakeConfig | None = None,
        notifier: FakeNotifier | None = None,
        probe: ScriptedProbe | None = None,
    ) -> Host:
        return Host(
            picker=picker or FakePicker(),
            config=config or FakeConfig(),
            notifier=notifier or FakeNotifier(),
            terminals=FakeTerminalFactory(),
            documents=FakeDocument(active_file),
            probe=probe or ScriptedProbe(True),
        )

    return _make


@pytest.fixture
def interpreter_script(tmp_path: Path) -> Path:
    path = tmp_path / "opt" / "tools" / "pyarab.py"
    path.parent.mkdir(parents=True)
    path.write_text("import sys\nprint(sys.argv[1:])\n", encoding="utf-8")
    return path
