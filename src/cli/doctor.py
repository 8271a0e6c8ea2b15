"""Doctor command for environment diagnostics."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from core.config import AppSettings, write_user_env_vars
from core.domain.models import validate_cluster_name
from core.errors import InvalidNameError
from core.interfaces.runner import CommandRunner

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()

# (tool, version args, required)
_TOOLS: tuple[tuple[str, tuple[str, ...], bool], ...] = (
    ("podman", ("--version",), True),
    ("kind", ("version",), True),
    ("kubectl", ("version", "--client"), True),
    ("ssh", ("-V",), True),
    ("pgrep", ("-V",), True),
    ("ansible", ("--version",), False),
)


def _binary_for(settings: AppSettings, tool: str) -> str:
    return {
        "podman": settings.podman_bin,
        "kind": settings.kind_bin,
        "kubectl": settings.kubectl_bin,
        "ssh": settings.ssh_bin,
    }.get(tool, tool)


def check_tools(runner: CommandRunner, settings: AppSettings) -> list[tuple[str, str, str]]:
    """Devuelve filas (tool, status, detalle) para cada binario externo."""

    rows: list[tuple[str, str, str]] = []
    for tool, version_args, required in _TOOLS:
        binary = _binary_for(settings, tool)
        path = runner.which(binary)
        if path is None:
            rows.append((tool, "FAIL" if required else "OPTIONAL", f"'{binary}' not found in PATH"))
            continue
        result = runner.run([binary, *version_args], timeout=15)
        # ssh -V escribe la versión en stderr.
        first_line = (result.stdout.strip() or result.stderr.strip()).splitlines()
        detail = first_line[0] if first_line else path
        rows.append((tool, "OK" if result.ok else "WARN", detail))
    return rows


@app.command()
def run() -> None:
    """Run baseline diagnostics and show recommended fixes."""

    from cli.main import build_runner  # noqa: PLC0415

    settings = AppSettings()
    runner = build_runner(settings)

    table = Table(title="kind-ubi Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    rows = check_tools(runner, settings)
    for row in rows:
        table.add_row(*row)

    table.add_row("Kind provider", "OK", f"KIND_EXPERIMENTAL_PROVIDER={settings.provider}")

    try:
        validate_cluster_name(settings.cluster_name)
        table.add_row("Cluster name", "OK", settings.cluster_name)
    except InvalidNameError as exc:
        table.add_row("Cluster name", "FAIL", str(exc))

    if settings.resolved_authorized_key():
        table.add_row("SSH key", "OK", "public key found")
    else:
        table.add_row("SSH key", "OPTIONAL", "No key -> pod reachable only via kubectl exec")

    _console.print(table)

    if any(status == "FAIL" for _, status, _ in rows):
        _console.print("\n[yellow]Note:[/yellow] install the missing tools and re-run `kind-ubi doctor run`.")
        raise typer.Exit(code=1)


@app.command(name="configure")
def configure() -> None:
    """Interactive setup of defaults (stored in the user config .env)."""

    settings = AppSettings()

    cluster = typer.prompt("Cluster name", default=settings.cluster_name, show_default=True).strip()
    try:
        validate_cluster_name(cluster)
    except InvalidNameError as exc:
        raise typer.BadParameter(str(exc)) from exc

    machine = typer.prompt("Podman machine", default=settings.machine_name, show_default=True).strip()
    image = typer.prompt("Pod image", default=settings.image, show_default=True).strip()
    local_port = typer.prompt("Local SSH port", default=settings.local_port, type=int, show_default=True)
    key_path = typer.prompt(
        "SSH public key path (empty for auto-detect)",
        default=str(settings.authorized_key_path or ""),
        show_default=False,
    ).strip()

    if not 1 <= local_port <= 65535:
        raise typer.BadParameter("local port must be between 1 and 65535")
    if key_path and not Path(key_path).expanduser().is_file():
        raise typer.BadParameter(f"{key_path} does not exist")

    values = {
        "KIND_UBI_CLUSTER_NAME": cluster,
        "KIND_UBI_MACHINE_NAME": machine,
        "KIND_UBI_IMAGE": image,
        "KIND_UBI_LOCAL_PORT": str(local_port),
    }
    if key_path:
        values["KIND_UBI_AUTHORIZED_KEY_PATH"] = key_path
    env_path = write_user_env_vars(values)

    _console.print(f"[green]Saved config to:[/green] {env_path}")
