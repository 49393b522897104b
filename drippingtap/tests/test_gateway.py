"""Tests for the plumbum-backed command gateway."""

from __future__ import annotations

import pytest

from drippingtap._errors import RemoteExecutionError
from drippingtap._gateway import CommandContext, CommandGateway, is_installed, split_command


def test_split_command_honours_quotes() -> None:
    argv = split_command("doctl compute ssh 42 --ssh-command '~/cfx/data/stop.sh'")
    assert argv[-1] == "~/cfx/data/stop.sh", "Quoted remote command should stay one argument"


@pytest.mark.parametrize("command", ["", "   ", "echo 'unterminated"])
def test_split_command_rejects_unusable_input(command: str) -> None:
    with pytest.raises(RemoteExecutionError):
        split_command(command)


def test_execute_returns_trimmed_stdout() -> None:
    output = CommandGateway().execute("printf '  314159 203.0.113.7 \\n\\n'")
    assert output == "314159 203.0.113.7", "Surrounding whitespace should be stripped"


def test_execute_empty_stdout_is_empty_string() -> None:
    assert CommandGateway().execute("true") == ""


def test_execute_raises_on_non_zero_exit() -> None:
    with pytest.raises(RemoteExecutionError, match="failed"):
        CommandGateway().execute("false")


def test_execute_reports_missing_program() -> None:
    with pytest.raises(RemoteExecutionError, match="not installed"):
        CommandGateway().execute("drippingtap-no-such-tool --version")


def test_execute_honours_timeout() -> None:
    gateway = CommandGateway(CommandContext(timeout=0.2))
    with pytest.raises(RemoteExecutionError, match="timed out"):
        gateway.execute("sleep 5")


def test_is_installed() -> None:
    assert is_installed("sh") is True
    assert is_installed("drippingtap-no-such-tool") is False
