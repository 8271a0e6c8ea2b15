"""Render del manifest del pod (y del inventario Ansible).

Por qué está en adapters:
- YAML/INI son detalles de infraestructura (Jinja2/PyYAML).
- El Core solo conoce `PodSpec`.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

from core.domain.models import PodSpec

_TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def yaml_quote(value: Any) -> str:
    """Escalar o lista en flow style, entre comillas dobles y en una sola línea.

    A diferencia de `tojson`, deja `&` y `'` tal cual (sin escapes `\\u0026`).
    """

    text = yaml.safe_dump(
        value,
        default_flow_style=True,
        default_style='"',
        allow_unicode=True,
        width=float("inf"),
    )
    return text.strip()


def _get_env() -> Environment:
    env = Environment(
        loader=FileSystemLoader(str(_TEMPLATES_DIR)),
        autoescape=select_autoescape(["html", "xml"]),
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.filters["yaml_quote"] = yaml_quote
    return env


def render_pod_manifest(spec: PodSpec, *, container_name: str = "ubi") -> str:
    """Renderiza el manifest `v1/Pod` para `spec`."""

    template = _get_env().get_template("pod.yaml.j2")
    return template.render(spec=spec, container_name=container_name)


def load_manifest(text: str) -> dict[str, Any]:
    """Parsea un manifest y comprueba que es un `v1/Pod`."""

    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("manifest is not a YAML mapping")
    if data.get("apiVersion") != "v1" or data.get("kind") != "Pod":
        raise ValueError(
            f"expected apiVersion v1 / kind Pod, got {data.get('apiVersion')!r} / {data.get('kind')!r}"
        )
    return data


def render_ansible_inventory(
    *,
    host: str,
    port: int,
    user: str,
    alias: str = "ubi",
    group: str = "kind_ubi",
    identity_file: Path | None = None,
) -> str:
    """Inventario INI para alcanzar el pod con Ansible por el puerto reenviado."""

    template = _get_env().get_template("inventory.ini.j2")
    return template.render(
        host=host,
        port=port,
        user=user,
        alias=alias,
        group=group,
        identity_file=str(identity_file) if identity_file else None,
    )
