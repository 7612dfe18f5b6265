"""Tests for binary lookup and process replacement."""

from __future__ import annotations

import stat
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from ssm_env_injector.core.exceptions import BinaryNotFoundError, ExecFailureError
from ssm_env_injector.launcher.exec import find_binary, launch


@pytest.fixture
def bin_dir(tmp_path: Path) -> Path:
    tool = tmp_path / "mytool"
    tool.write_text("#!/bin/sh\n")
    tool.chmod(tool.stat().st_mode | stat.S_IXUSR)
    return tmp_path


class TestFindBinary:
    def test_uses_environment_path(self, bin_dir: Path) -> None:
        assert find_binary("mytool", {"PATH": str(bin_dir)}) == str(bin_dir / "mytool")

    def test_falls_back_to_process_path(self, bin_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PATH", str(bin_dir))

        assert find_binary("mytool", {}) == str(bin_dir / "mytool")

    def test_absolute_path(self, bin_dir: Path) -> None:
        path = str(bin_dir / "mytool")
        assert find_binary(path, {"PATH": "/nonexistent"}) == path

    def test_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(BinaryNotFoundError, match="Binary not found: nothere"):
            find_binary("nothere", {"PATH": str(tmp_path)})

    def test_non_executable_is_not_found(self, tmp_path: Path) -> None:
        (tmp_path / "data.txt").write_text("x")

        with pytest.raises(BinaryNotFoundError):
            find_binary("data.txt", {"PATH": str(tmp_path)})


class TestLaunch:
    @patch("ssm_env_injector.launcher.exec.os.execve")
    def test_execs_with_exact_environment(self, mock_execve: MagicMock, bin_dir: Path) -> None:
        env = {"PATH": str(bin_dir), "B": "secret-x"}

        launch("mytool", ["mytool", "--flag"], env)

        mock_execve.assert_called_once_with(str(bin_dir / "mytool"), ["mytool", "--flag"], env)

    @patch("ssm_env_injector.launcher.exec.os.execve", side_effect=PermissionError(13, "Permission denied"))
    def test_exec_failure(self, _execve: MagicMock, bin_dir: Path) -> None:
        with pytest.raises(ExecFailureError, match="Permission denied") as exc_info:
            launch("mytool", ["mytool"], {"PATH": str(bin_dir)})
        assert isinstance(exc_info.value.cause, OSError)

    @patch("ssm_env_injector.launcher.exec.os.execve")
    def test_missing_binary_never_execs(self, mock_execve: MagicMock, tmp_path: Path) -> None:
        with pytest.raises(BinaryNotFoundError):
            launch("nothere", ["nothere"], {"PATH": str(tmp_path)})
        mock_execve.assert_not_called()
