from __future__ import annotations

import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path

import pytest


def pytest_configure() -> None:
    project_root = Path(__file__).resolve().parents[2]
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


class FakeGateway:
    """Record executed commands and answer them from a fixed table."""

    def __init__(self, responses: Mapping[str, str | Exception] | None = None) -> None:
        self.responses: dict[str, str | Exception] = dict(responses or {})
        self.calls: list[str] = []

    def execute(self, command: str) -> str:
        self.calls.append(command)
        if command not in self.responses:
            raise AssertionError(f"Unexpected command: {command}")
        response = self.responses[command]
        if isinstance(response, Exception):
            raise response
        return response


class ScriptedOperator:
    """Operator double answering prompts from queues and recording output."""

    def __init__(
        self,
        *,
        confirms: Sequence[bool] = (),
        answers: Sequence[str] = (),
        selections: Sequence[str] = (),
    ) -> None:
        self.confirms = list(confirms)
        self.answers = list(answers)
        self.selections = list(selections)
        self.events: list[tuple[str, str]] = []
        self.offered: list[list[tuple[str, str]]] = []

    def confirm(self, message: str) -> bool:
        self.events.append(("confirm", message))
        if not self.confirms:
            raise AssertionError(f"Unexpected confirmation: {message}")
        return self.confirms.pop(0)

    def ask(self, message: str, *, default: str | None = None) -> str:
        self.events.append(("ask", message))
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        answer = self.answers.pop(0)
        return answer or (default or "")

    def select(self, message: str, choices: Sequence[tuple[str, str]]) -> str:
        self.events.append(("select", message))
        self.offered.append(list(choices))
        if self.selections:
            return self.selections.pop(0)
        return choices[0][1]

    def succeed(self, message: str) -> None:
        self.events.append(("succeed", message))

    def fail(self, message: str) -> None:
        self.events.append(("fail", message))

    def info(self, message: str) -> None:
        self.events.append(("info", message))

    def warning(self, message: str) -> None:
        self.events.append(("warning", message))

    @contextmanager
    def status(self, message: str) -> Iterator[None]:
        self.events.append(("status", message))
        yield

    def messages(self, kind: str) -> list[str]:
        return [message for event, message in self.events if event == kind]


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "configstore" / "dripping-tap.json"
