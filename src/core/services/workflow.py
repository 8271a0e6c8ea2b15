"""Cluster + pod workflow orchestration.

This module sequences the podman/kind/kubectl steps that the CLI exposes
as `up`, `down` and `status`. Side-effects on the terminal (spinners,
tables) stay in the CLI layer; progress is reported through hooks so the
same flow can be driven from tests or other entry-points.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from adapters.kind import KindCluster
from adapters.kubectl import Kubectl
from adapters.manifest import render_pod_manifest
from adapters.podman import PodmanMachine
from adapters.port_forward import PortForwarder
from core.config import AppSettings
from core.domain.models import (
    MachineStatus,
    PodSpec,
    PodStatus,
    PortForwardSpec,
    kube_context,
    validate_cluster_name,
)
from core.errors import ToolCommandError
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)


@dataclass
class WorkflowRequest:
    """Parameters that control a workflow invocation."""

    cluster_name: str
    pod: PodSpec
    local_port: int = 2222
    address: str = "127.0.0.1"
    manage_machine: bool = True
    forward: bool = True

    def __post_init__(self) -> None:
        validate_cluster_name(self.cluster_name)

    @property
    def context(self) -> str:
        return kube_context(self.cluster_name)

    def forward_spec(self) -> PortForwardSpec:
        return PortForwardSpec(
            pod_name=self.pod.name,
            namespace=self.pod.namespace,
            context=self.context,
            local_port=self.local_port,
            remote_port=self.pod.container_port,
            address=self.address,
        )

    @classmethod
    def from_settings(cls, settings: AppSettings, **overrides: object) -> "WorkflowRequest":
        pod = PodSpec.for_ssh(
            name=str(overrides.pop("pod_name", None) or settings.pod_name),
            namespace=str(overrides.pop("namespace", None) or settings.namespace),
            image=str(overrides.pop("image", None) or settings.image),
            port=settings.remote_port,
            authorized_key=settings.resolved_authorized_key(),
        )
        values: dict[str, object] = {
            "cluster_name": overrides.pop("cluster_name", None) or settings.cluster_name,
            "local_port": overrides.pop("local_port", None) or settings.local_port,
            "address": settings.forward_address,
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(pod=pod, **values)  # type: ignore[arg-type]


@dataclass
class WorkflowHooks:
    """Optional callbacks for UI layers (progress, warnings)."""

    step: Callable[[str], None] | None = None
    warning: Callable[[str], None] | None = None

    def emit_step(self, message: str) -> None:
        logger.debug("step: %s", message)
        if self.step:
            self.step(message)

    def emit_warning(self, message: str) -> None:
        logger.debug("warning: %s", message)
        if self.warning:
            self.warning(message)


@dataclass
class UpResult:
    cluster_name: str
    pod: PodStatus
    forward: PortForwardSpec | None = None
    forward_pid: int | None = None
    cluster_created: bool = False
    ssh_argv: list[str] = field(default_factory=list)


@dataclass
class StatusReport:
    cluster_name: str
    machine: MachineStatus | None = None
    cluster_exists: bool = False
    pod: PodStatus | None = None
    forward_pids: list[int] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def ssh_command(
    spec: PortForwardSpec,
    *,
    user: str = "root",
    identity_file: Path | None = None,
    ssh_bin: str = "ssh",
) -> list[str]:
    """argv de `ssh` contra el puerto reenviado."""

    argv = [
        ssh_bin,
        "-p",
        str(spec.local_port),
        "-o",
        "StrictHostKeyChecking=no",
        "-o",
        "UserKnownHostsFile=/dev/null",
    ]
    if identity_file is not None:
        argv += ["-i", str(identity_file)]
    host = "localhost" if spec.address in ("127.0.0.1", "0.0.0.0") else spec.address
    argv.append(f"{user}@{host}")
    return argv


def up(
    *,
    settings: AppSettings,
    request: WorkflowRequest,
    runner: CommandRunner,
    hooks: WorkflowHooks | None = None,
    forwarder: PortForwarder | None = None,
) -> UpResult:
    hooks = hooks or WorkflowHooks()
    forwarder = forwarder or PortForwarder(runner, settings)

    if request.manage_machine:
        machine = PodmanMachine(runner, settings)
        name = settings.machine_name
        if not machine.exists(name):
            hooks.emit_step(f"Initialising podman machine {name}")
            machine.init(
                name,
                cpus=settings.machine_cpus,
                memory_mb=settings.machine_memory_mb,
                rootful=settings.machine_rootful,
            )
        hooks.emit_step(f"Starting podman machine {name}")
        if not machine.start(name):
            hooks.emit_step(f"Podman machine {name} already running")

    kind = KindCluster(runner, settings)
    created = False
    if kind.exists(request.cluster_name):
        hooks.emit_step(f"Cluster {request.cluster_name} already exists")
    else:
        hooks.emit_step(f"Creating kind cluster {request.cluster_name}")
        kind.create(
            request.cluster_name,
            image=settings.node_image,
            wait_seconds=settings.cluster_wait_seconds,
        )
        created = True

    kubectl = Kubectl(runner, settings, cluster_name=request.cluster_name)
    if request.pod.authorized_key is None:
        hooks.emit_warning("No SSH public key found: the pod will only be reachable with `kubectl exec`")

    hooks.emit_step(f"Applying pod {request.pod.namespace}/{request.pod.name}")
    kubectl.apply(render_pod_manifest(request.pod))

    hooks.emit_step(f"Waiting for pod {request.pod.name} (timeout {settings.ready_timeout_seconds:g}s)")
    status = kubectl.wait_ready(
        request.pod.name,
        request.pod.namespace,
        timeout_seconds=settings.ready_timeout_seconds,
        poll_interval=settings.poll_interval_seconds,
    )

    result = UpResult(cluster_name=request.cluster_name, pod=status, cluster_created=created)
    if request.forward:
        spec = request.forward_spec()
        hooks.emit_step(f"Forwarding {spec.address}:{spec.local_port} -> {spec.pod_name}:{spec.remote_port}")
        result.forward = spec
        result.forward_pid = forwarder.start(spec)
        result.ssh_argv = ssh_command(spec, user=settings.ssh_user, ssh_bin=settings.ssh_bin)
    return result


def down(
    *,
    settings: AppSettings,
    request: WorkflowRequest,
    runner: CommandRunner,
    hooks: WorkflowHooks | None = None,
    delete_cluster: bool = True,
    stop_machine: bool = False,
    forwarder: PortForwarder | None = None,
) -> None:
    """Desmonta en orden inverso; los recursos ausentes se saltan."""

    hooks = hooks or WorkflowHooks()
    forwarder = forwarder or PortForwarder(runner, settings)

    if forwarder.stop(request.forward_spec()):
        hooks.emit_step(f"Stopped port-forward for {request.pod.name}")

    kind = KindCluster(runner, settings)
    cluster_exists = kind.exists(request.cluster_name)

    if cluster_exists and not delete_cluster:
        kubectl = Kubectl(runner, settings, cluster_name=request.cluster_name)
        if kubectl.delete_pod(request.pod.name, request.pod.namespace):
            hooks.emit_step(f"Deleted pod {request.pod.name}")
        else:
            hooks.emit_warning(f"Pod {request.pod.name} not found")

    if delete_cluster:
        if cluster_exists:
            hooks.emit_step(f"Deleting kind cluster {request.cluster_name}")
            kind.delete(request.cluster_name)
        else:
            hooks.emit_warning(f"Cluster {request.cluster_name} not found")

    if stop_machine:
        machine = PodmanMachine(runner, settings)
        if machine.stop(settings.machine_name):
            hooks.emit_step(f"Stopped podman machine {settings.machine_name}")


def status(
    *,
    settings: AppSettings,
    request: WorkflowRequest,
    runner: CommandRunner,
    forwarder: PortForwarder | None = None,
) -> StatusReport:
    report = StatusReport(cluster_name=request.cluster_name)

    if request.manage_machine:
        try:
            report.machine = PodmanMachine(runner, settings).get(settings.machine_name)
        except ToolCommandError as exc:
            report.warnings.append(str(exc))

    try:
        report.cluster_exists = KindCluster(runner, settings).exists(request.cluster_name)
    except ToolCommandError as exc:
        report.warnings.append(str(exc))

    if report.cluster_exists:
        kubectl = Kubectl(runner, settings, cluster_name=request.cluster_name)
        try:
            report.pod = kubectl.get_pod(request.pod.name, request.pod.namespace)
        except ToolCommandError as exc:
            report.warnings.append(str(exc))

    forwarder = forwarder or PortForwarder(runner, settings)
    report.forward_pids = forwarder.running(request.forward_spec())
    return report
