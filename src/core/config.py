"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (podman/kind/kubectl) lean config de forma consistente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "kind-ubi"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "kind-ubi"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "kind-ubi"
    return Path.home() / ".config" / "kind-ubi"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


def _parse_env_lines(text: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if key:
            data[key] = value
    return data


def write_user_env_vars(values: dict[str, str], env_path: Path | None = None) -> Path:
    """Escribe/actualiza variables en el .env global del usuario."""

    env_path = env_path or get_user_env_file()
    env_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, str] = {}
    if env_path.exists():
        existing = _parse_env_lines(env_path.read_text(encoding="utf-8"))

    existing.update({k: v for k, v in values.items() if v is not None})

    lines = ["# kind-ubi user config (.env)"]
    for key in sorted(existing.keys()):
        lines.append(f"{key}={existing[key]}")
    env_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return env_path


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="KIND_UBI_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    # Binarios externos
    podman_bin: str = Field(default="podman", min_length=1, description="Ejecutable de Podman.")
    kind_bin: str = Field(default="kind", min_length=1, description="Ejecutable de Kind.")
    kubectl_bin: str = Field(default="kubectl", min_length=1, description="Ejecutable de kubectl.")
    ssh_bin: str = Field(default="ssh", min_length=1, description="Cliente SSH.")

    provider: str = Field(
        default="podman",
        min_length=1,
        description="Valor de KIND_EXPERIMENTAL_PROVIDER (backend de nodos de Kind).",
    )
    command_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Timeout duro por comando externo (segundos).",
    )

    # Podman machine
    machine_name: str = Field(
        default="podman-machine-default",
        min_length=1,
        description="Nombre de la máquina virtual de Podman.",
    )
    machine_cpus: int = Field(default=2, ge=1, le=64, description="CPUs para `podman machine init`.")
    machine_memory_mb: int = Field(
        default=4096,
        ge=512,
        description="Memoria (MiB) para `podman machine init`.",
    )
    machine_rootful: bool = Field(
        default=True,
        description="Kind necesita una máquina rootful en macOS.",
    )

    # Cluster
    cluster_name: str = Field(default="kind", min_length=1, description="Nombre del cluster Kind.")
    node_image: str | None = Field(
        default=None,
        description="Imagen de nodo de Kind (kindest/node:<version>); None usa la de Kind.",
    )
    cluster_wait_seconds: int = Field(
        default=60,
        ge=0,
        description="Valor de `kind create cluster --wait`.",
    )

    # Pod
    namespace: str = Field(default="default", min_length=1)
    pod_name: str = Field(default="ubi-ssh", min_length=1)
    image: str = Field(
        default="registry.access.redhat.com/ubi9/ubi:latest",
        min_length=1,
        description="Imagen UBI del pod.",
    )
    authorized_key_path: Path | None = Field(
        default=None,
        description="Clave pública para root; None busca ~/.ssh/id_ed25519.pub o id_rsa.pub.",
    )

    # Readiness
    ready_timeout_seconds: float = Field(default=180.0, gt=0, description="Tope de espera a Ready.")
    poll_interval_seconds: float = Field(default=2.0, gt=0, description="Intervalo de polling.")

    # Port-forward / SSH
    local_port: int = Field(default=2222, ge=1, le=65535)
    remote_port: int = Field(default=22, ge=1, le=65535)
    forward_address: str = Field(default="127.0.0.1", min_length=1)
    ssh_user: str = Field(default="root", min_length=1)
    log_dir: Path | None = Field(
        default=None,
        description="Directorio para logs del port-forward; None usa el dir de usuario.",
    )

    def resolved_log_dir(self) -> Path:
        return self.log_dir or (get_user_config_dir() / "logs")

    def resolved_authorized_key(self) -> str | None:
        """Devuelve el contenido de la clave pública a inyectar (si existe)."""

        candidates: list[Path]
        if self.authorized_key_path is not None:
            candidates = [self.authorized_key_path.expanduser()]
        else:
            ssh_dir = Path.home() / ".ssh"
            candidates = [ssh_dir / "id_ed25519.pub", ssh_dir / "id_rsa.pub"]
        for path in candidates:
            if path.is_file():
                text = path.read_text(encoding="utf-8").strip()
                if text:
                    return text
        return None
