"""Contrato del ejecutor de comandos externos.

Por qué Protocol:
- Los wrappers de podman/kind/kubectl dependen de esta abstracción, no de
  `subprocess`, y los tests pueden sustituirla por un runner con respuestas
  guionadas.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Protocol, Sequence, runtime_checkable

from core.domain.models import CommandResult


@runtime_checkable
class BackgroundProcess(Protocol):
    pid: int

    def poll(self) -> int | None:
        ...


@runtime_checkable
class CommandRunner(Protocol):
    """Contrato mínimo para ejecutar binarios externos.

    Reglas de diseño:
    - `run` es síncrono y nunca lanza por exit code: devuelve `CommandResult`.
    - `spawn` arranca un proceso en background (port-forward).
    """

    def which(self, tool: str) -> str | None:
        ...

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        ...

    def spawn(self, argv: Sequence[str], *, log_path: Path) -> BackgroundProcess:
        ...

    def interactive(self, argv: Sequence[str]) -> int:
        """Ejecuta con la TTY del usuario (exec/ssh) y devuelve el exit code."""

        ...
