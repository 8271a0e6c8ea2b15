"""Adaptador: kubectl.

Responsabilidad:
- Aplicar el manifest, consultar/esperar el estado del pod, borrar, logs.
- Todas las llamadas van acotadas con `--context kind-<cluster>`.
"""

from __future__ import annotations

import json
import logging
import math
import time
from typing import Any, Callable

from core.config import AppSettings
from core.domain.models import TIMEOUT_RETURNCODE, CommandResult, PodStatus, kube_context
from core.errors import (
    ManifestRejectedError,
    PodFailedError,
    ReadinessTimeoutError,
    ToolCommandError,
)
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

# Estados de contenedor que no se resuelven esperando.
FATAL_WAITING_REASONS = frozenset(
    {
        "ErrImagePull",
        "ImagePullBackOff",
        "CrashLoopBackOff",
        "InvalidImageName",
        "CreateContainerConfigError",
    }
)


def parse_pod_status(payload: dict[str, Any]) -> PodStatus:
    """Normaliza el JSON de `kubectl get pod -o json` a `PodStatus`."""

    metadata = payload.get("metadata") or {}
    status = payload.get("status") or {}
    spec = payload.get("spec") or {}

    ready = False
    for condition in status.get("conditions") or []:
        if condition.get("type") == "Ready":
            ready = condition.get("status") == "True"

    reason = status.get("reason")
    message = status.get("message")
    for container in status.get("containerStatuses") or []:
        waiting = (container.get("state") or {}).get("waiting")
        if waiting and waiting.get("reason"):
            reason = waiting.get("reason")
            message = waiting.get("message") or message
            break

    return PodStatus(
        name=str(metadata.get("name", "")),
        phase=str(status.get("phase") or "Unknown"),
        ready=ready,
        reason=reason,
        message=message,
        pod_ip=status.get("podIP"),
        node=spec.get("nodeName"),
    )


class Kubectl:
    def __init__(
        self,
        runner: CommandRunner,
        settings: AppSettings | None = None,
        *,
        cluster_name: str | None = None,
        context: str | None = None,
    ) -> None:
        self._runner = runner
        self._settings = settings or AppSettings()
        self.context = context or kube_context(cluster_name or self._settings.cluster_name)

    def argv(self, *args: str) -> list[str]:
        return [self._settings.kubectl_bin, "--context", self.context, *args]

    def _run(self, *args: str, input_text: str | None = None, timeout: float | None = None) -> CommandResult:
        return self._runner.run(self.argv(*args), input_text=input_text, timeout=timeout)

    def _check(self, result: CommandResult) -> CommandResult:
        if not result.ok:
            raise ToolCommandError(result.argv, result.returncode, result.stderr, result.stdout)
        return result

    def cluster_info(self) -> str:
        return self._check(self._run("cluster-info")).stdout

    def apply(self, manifest_text: str) -> str:
        result = self._run("apply", "-f", "-", input_text=manifest_text)
        if not result.ok:
            raise ManifestRejectedError(result.argv, result.returncode, result.stderr, result.stdout)
        return result.stdout.strip()

    def get_pod(self, name: str, namespace: str, *, timeout: float | None = None) -> PodStatus | None:
        args = ["get", "pod", name, "--namespace", namespace, "--output", "json"]
        if timeout is not None:
            args.append(f"--request-timeout={max(math.ceil(timeout), 1)}s")
        result = self._run(*args, timeout=timeout)
        if not result.ok:
            if "NotFound" in result.stderr or "not found" in result.stderr:
                return None
            self._check(result)
        return parse_pod_status(json.loads(result.stdout))

    def wait_ready(
        self,
        name: str,
        namespace: str,
        *,
        timeout_seconds: float,
        poll_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> PodStatus:
        """Espera a que el pod esté Ready sin superar `timeout_seconds`.

        Cada consulta también va acotada al tiempo restante, así un API server
        colgado no alarga la espera.
        """

        deadline = clock() + timeout_seconds
        last_phase: str | None = None
        while True:
            remaining = deadline - clock()
            if remaining <= 0:
                raise ReadinessTimeoutError(name, timeout_seconds, last_phase)
            try:
                status = self.get_pod(name, namespace, timeout=remaining)
            except ToolCommandError as exc:
                if exc.returncode != TIMEOUT_RETURNCODE:
                    raise
                logger.debug("pod %s: status query timed out", name)
                status = None
            if status is not None:
                last_phase = status.phase
                if status.ready:
                    return status
                if status.phase in ("Failed", "Succeeded"):
                    raise PodFailedError(name, status.reason or status.phase, status.message)
                if status.reason in FATAL_WAITING_REASONS:
                    raise PodFailedError(name, status.reason, status.message)
                logger.debug("pod %s phase=%s reason=%s", name, status.phase, status.reason)

            remaining = deadline - clock()
            if remaining <= 0:
                raise ReadinessTimeoutError(name, timeout_seconds, last_phase)
            sleep(min(poll_interval, remaining))

    def delete_pod(self, name: str, namespace: str, *, wait: bool = True) -> bool:
        """Borra el pod; devuelve False si no existía."""

        args = ["delete", "pod", name, "--namespace", namespace, "--ignore-not-found"]
        if not wait:
            args.append("--wait=false")
        result = self._check(self._run(*args))
        return bool(result.stdout.strip())

    def logs(self, name: str, namespace: str, *, tail: int | None = None) -> str:
        args = ["logs", name, "--namespace", namespace]
        if tail is not None:
            args.append(f"--tail={tail}")
        return self._check(self._run(*args)).stdout

    def exec_argv(self, name: str, namespace: str, command: list[str] | None = None) -> list[str]:
        return self.argv("exec", "-it", name, "--namespace", namespace, "--", *(command or ["/bin/bash"]))

    def port_forward_argv(self, name: str, namespace: str, local_port: int, remote_port: int, address: str) -> list[str]:
        return self.argv(
            "port-forward",
            f"pod/{name}",
            f"{local_port}:{remote_port}",
            "--namespace",
            namespace,
            "--address",
            address,
        )
