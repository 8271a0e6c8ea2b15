"""Adaptador: Podman machine.

En macOS los contenedores corren dentro de una VM gestionada con
`podman machine`; Kind necesita que esté arrancada (y rootful).
"""

from __future__ import annotations

import json
import logging

from core.config import AppSettings
from core.domain.models import CommandResult, MachineStatus
from core.errors import ToolCommandError
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)


class PodmanMachine:
    def __init__(self, runner: CommandRunner, settings: AppSettings | None = None) -> None:
        self._runner = runner
        self._settings = settings or AppSettings()

    def _run(self, *args: str) -> CommandResult:
        result = self._runner.run([self._settings.podman_bin, "machine", *args])
        if not result.ok:
            raise ToolCommandError(result.argv, result.returncode, result.stderr, result.stdout)
        return result

    def list(self) -> list[MachineStatus]:
        result = self._run("list", "--format", "json")
        raw = json.loads(result.stdout or "[]") or []
        machines: list[MachineStatus] = []
        for item in raw:
            # podman marca la máquina por defecto con '*' en el nombre.
            name = str(item.get("Name", "")).rstrip("*")
            if not name:
                continue
            machines.append(
                MachineStatus(
                    name=name,
                    running=bool(item.get("Running", False)),
                    rootful=item.get("Rootful"),
                )
            )
        return machines

    def get(self, name: str) -> MachineStatus | None:
        for machine in self.list():
            if machine.name == name:
                return machine
        return None

    def exists(self, name: str) -> bool:
        return self.get(name) is not None

    def init(self, name: str, *, cpus: int, memory_mb: int, rootful: bool) -> None:
        args = ["init", "--cpus", str(cpus), "--memory", str(memory_mb)]
        if rootful:
            args.append("--rootful")
        args.append(name)
        logger.info("initialising podman machine %s", name)
        self._run(*args)

    def start(self, name: str) -> bool:
        """Arranca la máquina; devuelve False si ya estaba corriendo."""

        machine = self.get(name)
        if machine is not None and machine.running:
            logger.debug("podman machine %s already running", name)
            return False
        self._run("start", name)
        return True

    def stop(self, name: str) -> bool:
        machine = self.get(name)
        if machine is None or not machine.running:
            return False
        self._run("stop", name)
        return True
