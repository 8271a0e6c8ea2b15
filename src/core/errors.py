"""Errores del dominio.

Por qué una jerarquía propia:
- Los adaptadores lanzan; la CLI captura `KindUbiError` y decide el exit code.
- Conserva el stderr de la herramienta externa tal cual para el operador.
"""

from __future__ import annotations

from typing import Sequence


class KindUbiError(Exception):
    """Base de todos los errores de kind-ubi."""

    exit_code = 1


class InvalidNameError(KindUbiError, ValueError):
    """Nombre de cluster/pod con formato inválido."""


class ToolNotFoundError(KindUbiError):
    """El binario externo no está en el PATH."""

    def __init__(self, tool: str) -> None:
        super().__init__(f"'{tool}' not found in PATH")
        self.tool = tool


class ToolCommandError(KindUbiError):
    """Un comando externo terminó con exit code distinto de cero."""

    def __init__(self, argv: Sequence[str], returncode: int, stderr: str = "", stdout: str = "") -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout
        detail = stderr.strip() or stdout.strip() or "no output"
        super().__init__(f"`{' '.join(self.argv)}` exited with {returncode}: {detail}")


class ManifestRejectedError(ToolCommandError):
    """El API server rechazó el manifest."""


class ReadinessTimeoutError(KindUbiError):
    exit_code = 2

    def __init__(self, pod: str, timeout_seconds: float, last_phase: str | None = None) -> None:
        self.pod = pod
        self.timeout_seconds = timeout_seconds
        self.last_phase = last_phase
        phase = f" (last phase: {last_phase})" if last_phase else ""
        super().__init__(f"pod '{pod}' not Ready after {timeout_seconds:g}s{phase}")


class PodFailedError(KindUbiError):
    """El pod entró en un estado terminal o de back-off."""

    def __init__(self, pod: str, reason: str, message: str | None = None) -> None:
        self.pod = pod
        self.reason = reason
        self.detail = message
        text = f"pod '{pod}' failed: {reason}"
        if message:
            text += f" ({message})"
        super().__init__(text)


class PortInUseError(KindUbiError):
    exit_code = 3

    def __init__(self, address: str, port: int) -> None:
        self.address = address
        self.port = port
        super().__init__(f"local port {address}:{port} is already in use")


class PortForwardError(KindUbiError):
    """El port-forward terminó apenas arrancó o no se pudo detener."""
