"""Adaptador: Kind (clusters Kubernetes en contenedores).

Todas las invocaciones llevan `KIND_EXPERIMENTAL_PROVIDER` para que Kind use
Podman en lugar de Docker como backend de nodos.
"""

from __future__ import annotations

import logging

from core.config import AppSettings
from core.domain.models import CommandResult, validate_cluster_name
from core.errors import ToolCommandError
from core.interfaces.runner import CommandRunner

logger = logging.getLogger(__name__)

PROVIDER_ENV_VAR = "KIND_EXPERIMENTAL_PROVIDER"


class KindCluster:
    def __init__(self, runner: CommandRunner, settings: AppSettings | None = None) -> None:
        self._runner = runner
        self._settings = settings or AppSettings()

    @property
    def env(self) -> dict[str, str]:
        return {PROVIDER_ENV_VAR: self._settings.provider}

    def _run(self, *args: str) -> CommandResult:
        result = self._runner.run([self._settings.kind_bin, *args], env=self.env)
        if not result.ok:
            raise ToolCommandError(result.argv, result.returncode, result.stderr, result.stdout)
        return result

    def list(self) -> list[str]:
        result = self._run("get", "clusters")
        # Kind escribe "No kind clusters found." en stderr cuando no hay ninguno.
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def exists(self, name: str) -> bool:
        return validate_cluster_name(name) in self.list()

    def create(self, name: str, *, image: str | None = None, wait_seconds: int = 60) -> None:
        validate_cluster_name(name)
        args = ["create", "cluster", "--name", name]
        if image:
            args += ["--image", image]
        if wait_seconds > 0:
            args += ["--wait", f"{wait_seconds}s"]
        logger.info("creating kind cluster %s (provider=%s)", name, self._settings.provider)
        self._run(*args)

    def delete(self, name: str) -> None:
        validate_cluster_name(name)
        logger.info("deleting kind cluster %s", name)
        self._run("delete", "cluster", "--name", name)

    def kubeconfig(self, name: str) -> str:
        validate_cluster_name(name)
        return self._run("get", "kubeconfig", "--name", name).stdout
