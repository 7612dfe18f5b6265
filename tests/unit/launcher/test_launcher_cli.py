"""Tests for the ssm-env command-line entrypoint."""

from __future__ import annotations

from collections.abc import Iterator
from unittest.mock import MagicMock, patch

import pytest

from ssm_env_injector.core.config.base import LogFormat
from ssm_env_injector.core.config.launcher import LauncherConfig
from ssm_env_injector.core.exceptions import ConfigurationMissingError, ExecFailureError
from ssm_env_injector.launcher.cli import build_provider, main
from tests.factories import FakeProvider

CLI = "ssm_env_injector.launcher.cli"


@pytest.fixture(autouse=True)
def mock_logging() -> Iterator[MagicMock]:
    with patch(f"{CLI}.configure_logging") as mock:
        yield mock


@pytest.fixture
def mock_launch() -> Iterator[MagicMock]:
    with patch(f"{CLI}.launch") as mock:
        yield mock


@pytest.fixture
def mock_find() -> Iterator[MagicMock]:
    with patch(f"{CLI}.find_binary", return_value="/usr/bin/app") as mock:
        yield mock


def _with_provider(provider: FakeProvider):  # type: ignore[no-untyped-def]
    return patch(f"{CLI}.build_provider", return_value=provider)


class TestBuildProvider:
    def test_region_from_environment(self) -> None:
        provider = build_provider(LauncherConfig(fetch_timeout_seconds=4.0), {"AWS_REGION": "eu-west-1"})

        assert provider.provider_name == "ssm"
        assert provider.region_name == "eu-west-1"  # type: ignore[attr-defined]

    @patch(f"{CLI}.resolve_region", side_effect=ConfigurationMissingError("No region"))
    def test_missing_region(self, _resolve: MagicMock) -> None:
        with pytest.raises(ConfigurationMissingError):
            build_provider(LauncherConfig(), {})


class TestMain:
    def test_execs_resolved_environment(self, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        environ = {"A": "plain", "B": "ssm:/path/x", "PATH": "/usr/bin"}

        with _with_provider(FakeProvider({"/path/x": "secret-x"})):
            main(["app", "--serve"], environ)

        mock_find.assert_called_once_with("app", environ)
        mock_launch.assert_called_once_with(
            "/usr/bin/app",
            ["app", "--serve"],
            {"A": "plain", "B": "secret-x", "PATH": "/usr/bin"},
        )

    def test_missing_secret_strict_exits_1(self, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        with _with_provider(FakeProvider()):
            code = main(["app"], {"A": "plain", "B": "ssm:/path/x"})

        assert code == 1
        mock_launch.assert_not_called()

    def test_missing_secret_ignored(self, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        environ = {"A": "plain", "B": "ssm:/path/x", "SSM_IGNORE_MISSING_SECRETS": "true"}

        with _with_provider(FakeProvider()):
            main(["app"], environ)

        env = mock_launch.call_args.args[2]
        assert "B" not in env
        assert env["A"] == "plain"
        assert env["SSM_IGNORE_MISSING_SECRETS"] == "true"

    def test_no_command_exits_1(self, mock_launch: MagicMock) -> None:
        assert main([], {}) == 1
        mock_launch.assert_not_called()

    def test_binary_lookup_happens_before_fetch(self, mock_launch: MagicMock) -> None:
        provider = FakeProvider({"/x": "v"})

        with _with_provider(provider):
            code = main(["definitely-not-a-binary-xyz"], {"X": "ssm:/x", "PATH": "/nonexistent"})

        assert code == 1
        assert provider.calls == []
        mock_launch.assert_not_called()

    def test_invalid_policy_value_exits_1(self, mock_launch: MagicMock) -> None:
        assert main(["app"], {"SSM_IGNORE_MISSING_SECRETS": "sometimes"}) == 1
        mock_launch.assert_not_called()

    def test_region_failure_exits_1(self, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        with patch(f"{CLI}.resolve_region", side_effect=ConfigurationMissingError("No region")):
            assert main(["app"], {"X": "ssm:/x"}) == 1
        mock_launch.assert_not_called()

    def test_exec_failure_exits_1(self, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        mock_launch.side_effect = ExecFailureError("/usr/bin/app", PermissionError(13, "Permission denied"))

        with _with_provider(FakeProvider()):
            assert main(["app"], {}) == 1

    def test_json_log_selected(self, mock_logging: MagicMock, mock_launch: MagicMock, mock_find: MagicMock) -> None:
        with _with_provider(FakeProvider()):
            main(["app"], {"SSM_JSON_LOG": "true"})

        mock_logging.assert_called_once_with("ssm-env", LogFormat.JSON)
