"""
CLI tests (Typer CliRunner) with the scripted runner injected.
"""

from __future__ import annotations

import pytest
import yaml
from typer.testing import CliRunner

import cli.main as cli_main
from adapters.kubectl import Kubectl
from adapters.port_forward import PortForwarder
from conftest import FakeResponse, FakeRunner, pod_json
from core.errors import ReadinessTimeoutError

cli = CliRunner()


@pytest.fixture
def fake(monkeypatch, tmp_path):
    runner = FakeRunner()
    monkeypatch.setattr(cli_main, "build_runner", lambda settings: runner)
    monkeypatch.setenv("KIND_UBI_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("KIND_UBI_AUTHORIZED_KEY_PATH", str(tmp_path / "none.pub"))
    monkeypatch.setenv("KIND_UBI_CLUSTER_NAME", "kind")
    monkeypatch.chdir(tmp_path)
    return runner


def test_manifest_prints_pod_yaml(fake):
    result = cli.invoke(cli_main.app, ["manifest", "--pod", "box", "--image", "ubi8/ubi"])

    assert result.exit_code == 0, result.output
    data = yaml.safe_load(result.output)
    assert data["kind"] == "Pod"
    assert data["metadata"]["name"] == "box"
    assert data["spec"]["containers"][0]["image"] == "ubi8/ubi"


def test_invalid_cluster_name_is_a_usage_error(fake):
    result = cli.invoke(cli_main.app, ["cluster", "create", "my_cluster"])

    assert result.exit_code == 2
    assert fake.calls == []


def test_tool_failure_exits_1(fake):
    fake.register("get clusters", FakeResponse(stdout=""))
    fake.register("create cluster", FakeResponse(stderr="ERROR: failed to create cluster", returncode=1))

    result = cli.invoke(cli_main.app, ["cluster", "create", "dev"])

    assert result.exit_code == 1
    assert "ERROR: failed to create cluster" in result.output


def test_cluster_create_skips_existing(fake):
    fake.register("get clusters", FakeResponse(stdout="dev\n"))

    result = cli.invoke(cli_main.app, ["cluster", "create", "dev"])

    assert result.exit_code == 0
    assert not fake.was_called_with("create cluster")


def test_readiness_timeout_exits_2(fake, monkeypatch):
    def _timeout(self, name, namespace, **kwargs):
        raise ReadinessTimeoutError(name, kwargs["timeout_seconds"], "Pending")

    monkeypatch.setattr(Kubectl, "wait_ready", _timeout)

    result = cli.invoke(cli_main.app, ["pod", "wait", "--timeout", "5"])

    assert result.exit_code == 2
    assert "not Ready" in result.output


def test_up_without_machine_and_forward(fake):
    fake.register("get clusters", FakeResponse(stdout="kind\n"))
    fake.register("apply -f -", FakeResponse(stdout="pod/ubi-ssh created\n"))
    fake.register("get pod", FakeResponse(stdout=pod_json()))

    result = cli.invoke(cli_main.app, ["--no-banner", "up", "--no-machine", "--no-forward"])

    assert result.exit_code == 0, result.output
    assert "Ready" in result.output
    assert fake.spawned == []


def test_forward_start_reports_busy_port(fake, monkeypatch):
    fake.register("pgrep", FakeResponse(returncode=1))
    monkeypatch.setattr(
        cli_main,
        "PortForwarder",
        lambda runner, settings: PortForwarder(runner, settings, port_check=lambda a, p: False, sleep=lambda s: None),
    )

    result = cli.invoke(cli_main.app, ["forward", "start", "--port", "2222"])

    assert result.exit_code == 3
    assert "already in use" in result.output
    assert fake.spawned == []


def test_ssh_print(fake):
    result = cli.invoke(cli_main.app, ["ssh", "--print", "--port", "2200"])

    assert result.exit_code == 0
    assert result.output.strip().endswith("-p 2200 -o StrictHostKeyChecking=no -o UserKnownHostsFile=/dev/null root@localhost")


def test_ssh_runs_interactively_and_propagates_exit_code(fake):
    fake.interactive_code = 255

    result = cli.invoke(cli_main.app, ["ssh"])

    assert result.exit_code == 255
    assert fake.interactive_calls[0][0] == "ssh"


def test_pod_exec_uses_kubectl_exec(fake):
    result = cli.invoke(cli_main.app, ["pod", "exec", "--", "cat", "/etc/redhat-release"])

    assert result.exit_code == 0
    assert fake.interactive_calls[0][-3:] == ["--", "cat", "/etc/redhat-release"]


def test_inventory_to_file(fake, tmp_path):
    out = tmp_path / "hosts.ini"
    result = cli.invoke(cli_main.app, ["inventory", "--port", "2201", "--output", str(out)])

    assert result.exit_code == 0
    assert "ansible_port=2201" in out.read_text(encoding="utf-8")


def test_forward_stop_when_nothing_runs(fake):
    fake.register("pgrep", FakeResponse(returncode=1))

    result = cli.invoke(cli_main.app, ["forward", "stop"])

    assert result.exit_code == 0
    assert "No port-forward running" in result.output


def test_doctor_check_tools_marks_optional_and_missing(settings):
    from cli.doctor import check_tools

    runner = FakeRunner()
    runner.missing = {"ansible", "kind"}
    runner.register("--version", FakeResponse(stdout="podman version 5.2.0\n"))
    runner.register("version --client", FakeResponse(stdout="Client Version: v1.30.2\n"))
    runner.register("-V", FakeResponse(stderr="OpenSSH_9.7p1\n"))

    rows = {tool: (status, detail) for tool, status, detail in check_tools(runner, settings)}

    assert rows["podman"] == ("OK", "podman version 5.2.0")
    assert rows["kind"][0] == "FAIL"
    assert rows["ansible"][0] == "OPTIONAL"
    assert rows["ssh"] == ("OK", "OpenSSH_9.7p1")


def test_invalid_pod_name_is_a_usage_error(fake):
    result = cli.invoke(cli_main.app, ["manifest", "--pod", "Bad_Name"])

    assert result.exit_code == 2
    assert "Traceback" not in result.output


def test_invalid_namespace_is_a_usage_error(fake):
    result = cli.invoke(cli_main.app, ["pod", "deploy", "-n", "UPPER"])

    assert result.exit_code == 2
    assert fake.calls == []
