"""Adaptador: `kubectl port-forward` en background.

Reglas:
- `start` es idempotente: mata cualquier port-forward previo del mismo pod
  (por línea de comando, `pkill -f`) antes de lanzar uno nuevo.
- Si el puerto local sigue ocupado tras eso, falla con `PortInUseError`.
"""

from __future__ import annotations

import logging
import socket
import time
from pathlib import Path
from typing import Callable

from adapters.kubectl import Kubectl
from core.config import AppSettings
from core.domain.models import PortForwardSpec
from core.errors import PortForwardError, PortInUseError, ToolCommandError
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)


def port_is_free(address: str, port: int) -> bool:
    """True si se puede hacer bind en `address:port`."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((address, port))
        except OSError:
            return False
    return True


def _tail(path: Path, lines: int = 10) -> str:
    if not path.exists():
        return ""
    text = path.read_text(encoding="utf-8", errors="replace")
    return "\n".join(text.splitlines()[-lines:])


class PortForwarder:
    def __init__(
        self,
        runner: CommandRunner,
        settings: AppSettings | None = None,
        *,
        port_check: Callable[[str, int], bool] = port_is_free,
        sleep: Callable[[float], None] = time.sleep,
        settle_seconds: float = 1.0,
    ) -> None:
        self._runner = runner
        self._settings = settings or AppSettings()
        self._port_check = port_check
        self._sleep = sleep
        self._settle_seconds = settle_seconds

    def log_path(self, spec: PortForwardSpec) -> Path:
        return self._settings.resolved_log_dir() / f"port-forward-{spec.pod_name}.log"

    def running(self, spec: PortForwardSpec) -> list[int]:
        """PIDs de port-forwards activos para el pod."""

        result = self._runner.run(["pgrep", "-f", spec.match_pattern()])
        # pgrep devuelve 1 cuando no hay coincidencias.
        if not result.ok:
            return []
        return [int(pid) for pid in result.stdout.split() if pid.isdigit()]

    def stop(self, spec: PortForwardSpec) -> bool:
        """Mata los port-forwards del pod; False si no había ninguno."""

        if not self.running(spec):
            return False
        result = self._runner.run(["pkill", "-f", spec.match_pattern()])
        # pkill: 1 = nada señalizado, 2 = error de sintaxis, 3 = error fatal.
        if result.returncode >= 2:
            raise ToolCommandError(result.argv, result.returncode, result.stderr, result.stdout)
        if not result.ok:
            pids = self.running(spec)
            if pids:
                raise PortForwardError(
                    f"could not stop port-forward for pod/{spec.pod_name} "
                    f"(pids {', '.join(map(str, pids))}): {result.stderr.strip() or 'no process signalled'}"
                )
        logger.info("stopped port-forward for pod/%s", spec.pod_name)
        return True

    def start(self, spec: PortForwardSpec) -> int:
        """Arranca el port-forward y devuelve su PID."""

        if self.stop(spec):
            self._sleep(self._settle_seconds)

        if not self._port_check(spec.address, spec.local_port):
            raise PortInUseError(spec.address, spec.local_port)

        kubectl = Kubectl(self._runner, self._settings, context=spec.context)
        argv = kubectl.port_forward_argv(
            spec.pod_name, spec.namespace, spec.local_port, spec.remote_port, spec.address
        )
        log_path = self.log_path(spec)
        process = self._runner.spawn(argv, log_path=log_path)

        self._sleep(self._settle_seconds)
        returncode = process.poll()
        if returncode is not None:
            raise PortForwardError(
                f"port-forward exited with {returncode}: {_tail(log_path) or 'no output'}"
            )
        logger.info(
            "port-forward %s:%s -> pod/%s:%s (pid %s)",
            spec.address,
            spec.local_port,
            spec.pod_name,
            spec.remote_port,
            process.pid,
        )
        return process.pid
