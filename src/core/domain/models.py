"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta (nombres, puertos) en el borde, antes de llamar
  a cualquier binario externo.
- Los adaptadores reciben estructuras ya validadas.

Nota:
- Estos modelos describen *qué* se despliega, no *cómo* se invoca kind/kubectl.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field, field_validator
from pydantic.config import ConfigDict

from core.errors import InvalidNameError

CLUSTER_NAME_RE = re.compile(r"^[a-z0-9.-]+$")
DNS_LABEL_RE = re.compile(r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")

DEFAULT_IMAGE = "registry.access.redhat.com/ubi9/ubi:latest"

# Código que devuelve el runner cuando un comando agota su timeout.
TIMEOUT_RETURNCODE = -1

_ERE_SPECIAL_RE = re.compile(r"([.\[\]()*+?{}|^$\\])")


def ere_escape(text: str) -> str:
    """Escapa `text` como literal para una regex extendida (pgrep/pkill)."""

    return _ERE_SPECIAL_RE.sub(r"\\\1", text)


def validate_cluster_name(value: str) -> str:
    """Valida un nombre de cluster Kind (`^[a-z0-9.-]+$`)."""

    if not isinstance(value, str) or not CLUSTER_NAME_RE.match(value):
        raise InvalidNameError(
            f"invalid cluster name {value!r}: use lowercase letters, digits, '.' and '-'"
        )
    return value


def validate_dns_label(value: str, *, kind: str = "name") -> str:
    if not isinstance(value, str) or len(value) > 63 or not DNS_LABEL_RE.match(value):
        raise InvalidNameError(
            f"invalid {kind} {value!r}: must be a DNS-1123 label (lowercase, digits, '-')"
        )
    return value


def kube_context(cluster_name: str) -> str:
    """Contexto kubeconfig que Kind registra para un cluster."""

    return f"kind-{validate_cluster_name(cluster_name)}"


def default_pod_command(authorized_key: str | None, port: int = 22) -> list[str]:
    """Comando del contenedor UBI.

    Con clave pública: instala y arranca sshd en foreground.
    Sin clave: duerme para permitir acceso vía `kubectl exec`.
    """

    if not authorized_key:
        return ["/bin/bash", "-c", "trap 'exit 0' TERM; sleep infinity & wait"]

    key = authorized_key.replace("'", "")
    script = " && ".join(
        [
            "dnf install -y openssh-server openssh-clients",
            "ssh-keygen -A",
            "mkdir -p /root/.ssh",
            "chmod 700 /root/.ssh",
            f"echo '{key}' > /root/.ssh/authorized_keys",
            "chmod 600 /root/.ssh/authorized_keys",
            f"exec /usr/sbin/sshd -D -e -p {port} -o PermitRootLogin=prohibit-password",
        ]
    )
    return ["/bin/bash", "-c", script]


class PodSpec(BaseModel):
    """Pod UBI a desplegar."""

    name: str = Field(default="ubi-ssh", description="Nombre del pod (DNS-1123 label).")
    namespace: str = Field(default="default", description="Namespace del pod.")
    image: str = Field(default=DEFAULT_IMAGE, min_length=1, description="Referencia de imagen.")
    command: list[str] = Field(
        default_factory=lambda: default_pod_command(None),
        min_length=1,
        description="Array de comando del contenedor.",
    )
    container_port: int = Field(default=22, ge=1, le=65535)
    authorized_key: str | None = Field(default=None, description="Clave pública SSH para root.")
    labels: dict[str, str] = Field(default_factory=lambda: {"app": "ubi-ssh"})

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        return validate_dns_label(value, kind="pod name")

    @field_validator("namespace")
    @classmethod
    def _check_namespace(cls, value: str) -> str:
        return validate_dns_label(value, kind="namespace")

    @classmethod
    def for_ssh(
        cls,
        *,
        name: str,
        namespace: str,
        image: str,
        port: int,
        authorized_key: str | None,
    ) -> "PodSpec":
        return cls(
            name=name,
            namespace=namespace,
            image=image,
            container_port=port,
            authorized_key=authorized_key,
            command=default_pod_command(authorized_key, port),
            labels={"app": name},
        )


class PortForwardSpec(BaseModel):
    """Port-forward local -> pod."""

    pod_name: str
    namespace: str = "default"
    context: str
    local_port: int = Field(default=2222, ge=1, le=65535)
    remote_port: int = Field(default=22, ge=1, le=65535)
    address: str = Field(default="127.0.0.1", min_length=1)

    @field_validator("pod_name")
    @classmethod
    def _check_pod(cls, value: str) -> str:
        return validate_dns_label(value, kind="pod name")

    def match_pattern(self) -> str:
        """Patrón para `pgrep -f`/`pkill -f` que identifica este port-forward.

        pgrep interpreta el patrón como regex: el contexto puede llevar '.'.
        """

        return ere_escape(f"{self.context} port-forward pod/{self.pod_name} ")


class CommandResult(BaseModel):
    """Resultado crudo de un comando externo."""

    model_config = ConfigDict(frozen=True)

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def timed_out(self) -> bool:
        return self.returncode == TIMEOUT_RETURNCODE


class PodStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    phase: str = "Unknown"
    ready: bool = False
    reason: str | None = None
    message: str | None = None
    pod_ip: str | None = None
    node: str | None = None


class MachineStatus(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    running: bool = False
    rootful: bool | None = None
