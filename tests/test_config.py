from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from pyarab_runner.config import (
    WORKSPACE_SETTINGS_FILE,
    ConfigurationError,
    ConfigurationTarget,
    SettingsFileStore,
    load_settings,
    resolve_workspace_root,
)


def _write_yaml(path: Path, payload: object) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(payload), encoding="utf-8")


def test_defaults_without_any_settings_file(tmp_path: Path) -> None:
    settings = load_settings(tmp_path / "ws")

    assert settings.interpreter_path is None
    assert settings.launcher == ["python"]
    assert settings.probe_timeout_seconds == 5.0
    assert settings.file_suffix == ".pyarab"
    assert settings.terminal_name == "PyArab Runner"


def test_workspace_overrides_user_and_env_overrides_both(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    workspace = tmp_path / "ws"
    _write_yaml(tmp_path / "user-settings.yaml", {"interpreter_path": "/user/pyarab.py", "terminal_name": "User"})
    _write_yaml(workspace / WORKSPACE_SETTINGS_FILE, {"interpreter_path": "/ws/pyarab.py"})

    settings = load_settings(workspace)
    assert settings.interpreter_path == "/ws/pyarab.py"
    assert settings.terminal_name == "User"

    monkeypatch.setenv("PYARAB_INTERPRETER_PATH", "/env/pyarab.py")
    monkeypatch.setenv("PYARAB_LAUNCHER", '["python3"]')
    settings = load_settings(workspace)
    assert settings.interpreter_path == "/env/pyarab.py"
    assert settings.launcher == ["python3"]


def test_non_mapping_settings_file_is_rejected(tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    _write_yaml(workspace / WORKSPACE_SETTINGS_FILE, ["not", "a", "mapping"])

    with pytest.raises(ConfigurationError, match="YAML mapping"):
        load_settings(workspace)


def test_invalid_value_is_a_configuration_error(tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    _write_yaml(workspace / WORKSPACE_SETTINGS_FILE, {"probe_timeout_seconds": 0})

    with pytest.raises(ConfigurationError, match="Invalid settings"):
        load_settings(workspace)


def test_store_update_writes_workspace_file(tmp_path: Path) -> None:
    workspace = tmp_path / "ws"
    _write_yaml(workspace / WORKSPACE_SETTINGS_FILE, {"terminal_name": "Mine"})
    store = SettingsFileStore(workspace)

    written = store.update("interpreter_path", "/opt/tools/pyarab.py", ConfigurationTarget.WORKSPACE)

    assert written == workspace / WORKSPACE_SETTINGS_FILE
    payload = yaml.safe_load(written.read_text(encoding="utf-8"))
    assert payload == {"terminal_name": "Mine", "interpreter_path": "/opt/tools/pyarab.py"}
    assert store.get("interpreter_path") == "/opt/tools/pyarab.py"


def test_store_last_write_wins(tmp_path: Path) -> None:
    store = SettingsFileStore(tmp_path)

    store.update("interpreter_path", "/a/pyarab.py")
    store.update("interpreter_path", "/b/pyarab.py")
    store.update("interpreter_path", "/b/pyarab.py")

    assert store.get("interpreter_path") == "/b/pyarab.py"


def test_store_global_target_and_removal(tmp_path: Path) -> None:
    store = SettingsFileStore(tmp_path / "ws")

    store.update("terminal_name", "Global Runner", ConfigurationTarget.GLOBAL)
    assert store.user_settings_file == (tmp_path / "user-settings.yaml").resolve()
    assert store.get("terminal_name") == "Global Runner"

    store.update("terminal_name", None, ConfigurationTarget.GLOBAL)
    assert store.get("terminal_name") == "PyArab Runner"


def test_store_rejects_unknown_keys(tmp_path: Path) -> None:
    store = SettingsFileStore(tmp_path)

    with pytest.raises(KeyError):
        store.get("nope")
    with pytest.raises(KeyError):
        store.update("nope", 1)


def test_workspace_root_found_by_upward_search(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    workspace = tmp_path / "ws"
    nested = workspace / "src" / "deep"
    nested.mkdir(parents=True)
    _write_yaml(workspace / WORKSPACE_SETTINGS_FILE, {})
    monkeypatch.chdir(nested)

    assert resolve_workspace_root() == workspace.resolve()

    monkeypatch.setenv("PYARAB_WORKSPACE", str(tmp_path))
    assert resolve_workspace_root() == tmp_path.resolve()
    assert resolve_workspace_root(nested) == nested.resolve()


def test_store_refuses_to_save_a_key_shadowed_by_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PYARAB_INTERPRETER_PATH", "/gone/pyarab.py")
    store = SettingsFileStore(tmp_path)

    with pytest.raises(ConfigurationError, match="PYARAB_INTERPRETER_PATH"):
        store.update("interpreter_path", "/opt/tools/pyarab.py")

    assert not (tmp_path / WORKSPACE_SETTINGS_FILE).exists()
    assert store.env_override("terminal_name") is None
