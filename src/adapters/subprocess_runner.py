"""Wrapper de subprocess.

Por qué un wrapper:
- Estandariza timeouts, entorno, captura de salida y logging de cada argv.
- Facilita testeo: se puede sustituir por un runner guionado.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Mapping, Sequence

from core.config import AppSettings
from core.domain.models import TIMEOUT_RETURNCODE, CommandResult
from core.errors import ToolNotFoundError

logger = logging.getLogger(__name__)


class SubprocessRunner:
    """Implementación real de `core.interfaces.runner.CommandRunner`."""

    def __init__(self, settings: AppSettings | None = None) -> None:
        self._settings = settings or AppSettings()

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)

    def _require(self, tool: str) -> None:
        if self.which(tool) is None:
            raise ToolNotFoundError(tool)

    @staticmethod
    def _merged_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        merged = dict(os.environ)
        merged.update(env)
        return merged

    def run(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        input_text: str | None = None,
        timeout: float | None = None,
    ) -> CommandResult:
        argv = list(argv)
        self._require(argv[0])
        if env:
            logger.debug("run %s (env: %s)", " ".join(argv), ", ".join(f"{k}={v}" for k, v in env.items()))
        else:
            logger.debug("run %s", " ".join(argv))

        try:
            proc = subprocess.run(
                argv,
                input=input_text,
                capture_output=True,
                text=True,
                env=self._merged_env(env),
                timeout=timeout or self._settings.command_timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            logger.debug("timeout after %ss: %s", exc.timeout, " ".join(argv))
            return CommandResult(
                argv=argv,
                returncode=TIMEOUT_RETURNCODE,
                stdout=_as_text(exc.stdout),
                stderr=f"command timed out after {exc.timeout}s",
            )

        logger.debug("exit %s: %s", proc.returncode, argv[0])
        return CommandResult(
            argv=argv,
            returncode=proc.returncode,
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
        )

    def spawn(self, argv: Sequence[str], *, log_path: Path) -> subprocess.Popen:
        argv = list(argv)
        self._require(argv[0])
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("spawn %s (log: %s)", " ".join(argv), log_path)
        with log_path.open("ab") as log_file:
            # Sesión propia: el port-forward sobrevive al cierre de la CLI.
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=log_file,
                stderr=subprocess.STDOUT,
                start_new_session=True,
            )

    def interactive(self, argv: Sequence[str]) -> int:
        argv = list(argv)
        self._require(argv[0])
        logger.debug("interactive %s", " ".join(argv))
        return subprocess.call(argv)


def _as_text(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
