"""
Shared pytest fixtures for kind-ubi tests.

This module provides:
- FakeRunner: scripted replacement for the subprocess runner (podman, kind,
  kubectl, pgrep/pkill) with pattern-matched responses and a call history
- FakeClock: deterministic clock/sleep pair for readiness waits
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

import pytest

from core.config import AppSettings
from core.domain.models import CommandResult


@dataclass
class FakeResponse:
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0


@dataclass
class FakeCall:
    argv: list[str]
    env: dict[str, str] | None = None
    input_text: str | None = None
    timeout: float | None = None

    @property
    def command(self) -> str:
        return " ".join(self.argv)


@dataclass
class FakeProcess:
    pid: int = 4242
    returncode: int | None = None

    def poll(self) -> int | None:
        return self.returncode


class FakeRunner:
    """
    Scripted CommandRunner.

    Usage:
        runner.register("kind get clusters", FakeResponse(stdout="kind\\n"))
        runner.register("get pod", pending, pending, ready)  # sequence

    Patterns are substrings of the joined argv, checked in registration
    order. A sequence is consumed one response per call and the last
    response repeats.
    """

    def __init__(self) -> None:
        self._responses: list[tuple[str, list[FakeResponse]]] = []
        self.calls: list[FakeCall] = []
        self.events: list[str] = []
        self.spawned: list[tuple[list[str], Path]] = []
        self.interactive_calls: list[list[str]] = []
        self.missing: set[str] = set()
        self.process = FakeProcess()
        self.interactive_code = 0
        self.default = FakeResponse(stderr="fake runner: command not scripted", returncode=1)

    def register(self, pattern: str, *responses: FakeResponse) -> None:
        self._responses.append((pattern, list(responses) or [FakeResponse()]))

    def which(self, tool: str) -> str | None:
        if tool in self.missing:
            return None
        return f"/usr/bin/{tool}"

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        call = FakeCall(list(argv), dict(env) if env else None, input_text, timeout)
        self.calls.append(call)
        self.events.append(call.command)
        response = self.default
        for pattern, queue in self._responses:
            if pattern in call.command:
                response = queue.pop(0) if len(queue) > 1 else queue[0]
                break
        return CommandResult(
            argv=call.argv,
            returncode=response.returncode,
            stdout=response.stdout,
            stderr=response.stderr,
        )

    def spawn(self, argv: Sequence[str], *, log_path: Path) -> FakeProcess:
        self.spawned.append((list(argv), log_path))
        self.events.append("spawn " + " ".join(argv))
        return self.process

    def interactive(self, argv: Sequence[str]) -> int:
        self.interactive_calls.append(list(argv))
        return self.interactive_code

    def commands(self, contains: str = "") -> list[str]:
        return [c.command for c in self.calls if contains in c.command]

    def was_called_with(self, contains: str) -> bool:
        return bool(self.commands(contains))


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def pod_json(
    name: str = "ubi-ssh",
    *,
    phase: str = "Running",
    ready: bool = True,
    waiting_reason: str | None = None,
    pod_ip: str = "10.244.0.5",
) -> str:
    payload: dict[str, Any] = {
        "metadata": {"name": name, "namespace": "default"},
        "spec": {"nodeName": "kind-control-plane"},
        "status": {
            "phase": phase,
            "podIP": pod_ip,
            "conditions": [
                {"type": "PodScheduled", "status": "True"},
                {"type": "Ready", "status": "True" if ready else "False"},
            ],
        },
    }
    if waiting_reason:
        payload["status"]["containerStatuses"] = [
            {"name": "ubi", "state": {"waiting": {"reason": waiting_reason, "message": "back-off"}}}
        ]
    return json.dumps(payload)


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        _env_file=None,
        log_dir=tmp_path / "logs",
        authorized_key_path=tmp_path / "missing.pub",
        poll_interval_seconds=1.0,
        ready_timeout_seconds=10.0,
    )
