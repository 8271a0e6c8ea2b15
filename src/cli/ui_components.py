"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

import shlex

from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import MachineStatus, PodStatus
from core.errors import KindUbiError, ToolCommandError
from core.services.workflow import StatusReport, UpResult


def print_banner(console: Console) -> None:
    """Imprime el banner de bienvenida."""

    title = Text("kind-ubi", style="bold cyan")
    subtitle = Text("Podman • Kind • UBI pod", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _yes_no(value: bool | None) -> str:
    if value is None:
        return "[dim]?[/dim]"
    return "[green]yes[/green]" if value else "[red]no[/red]"


def build_machines_table(machines: list[MachineStatus]) -> Table:
    table = Table(title="Podman machines")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Running")
    table.add_column("Rootful")
    for machine in machines:
        table.add_row(machine.name, _yes_no(machine.running), _yes_no(machine.rootful))
    return table


def build_pod_table(pod: PodStatus) -> Table:
    table = Table(title=f"Pod {pod.name}")
    table.add_column("Phase", style="cyan")
    table.add_column("Ready")
    table.add_column("Reason", style="yellow")
    table.add_column("IP", style="magenta")
    table.add_column("Node", style="dim")
    table.add_row(pod.phase, _yes_no(pod.ready), pod.reason or "", pod.pod_ip or "", pod.node or "")
    return table


def build_status_table(report: StatusReport, *, machine_name: str) -> Table:
    table = Table(title=f"kind-ubi status ({report.cluster_name})")
    table.add_column("Component", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    if report.machine is not None:
        table.add_row(
            "Podman machine",
            "running" if report.machine.running else "stopped",
            machine_name,
        )
    else:
        table.add_row("Podman machine", "missing", machine_name)

    table.add_row("Kind cluster", "present" if report.cluster_exists else "absent", f"kind-{report.cluster_name}")

    if report.pod is not None:
        state = "ready" if report.pod.ready else report.pod.phase
        table.add_row("Pod", state, report.pod.reason or report.pod.name)
    else:
        table.add_row("Pod", "absent", "")

    if report.forward_pids:
        table.add_row("Port-forward", "running", "pid " + ", ".join(str(p) for p in report.forward_pids))
    else:
        table.add_row("Port-forward", "stopped", "")
    return table


def build_up_panel(result: UpResult) -> Panel:
    body = Text()
    body.append(f"Cluster: kind-{result.cluster_name}")
    if result.cluster_created:
        body.append(" (created)", style="dim")
    body.append(f"\nPod: {result.pod.name} ({result.pod.pod_ip or 'no IP'})\n")
    if result.forward is not None:
        body.append(
            f"Forward: {result.forward.address}:{result.forward.local_port} -> {result.forward.remote_port}"
            f" (pid {result.forward_pid})\n"
        )
    if result.ssh_argv:
        body.append("\nConnect with:\n", style="bold")
        body.append(f"  {shlex.join(result.ssh_argv)}\n", style="green")
    body.append(
        f"  kubectl --context kind-{result.cluster_name} exec -it {result.pod.name} -- /bin/bash",
        style="green",
    )
    return Panel(body, title=Text("Ready", style="bold green"), border_style="green")


def print_error(console: Console, exc: KindUbiError) -> None:
    """Muestra el error; el stderr de la herramienta externa va tal cual."""

    if isinstance(exc, ToolCommandError):
        console.print(f"[red]Command failed ({exc.returncode}):[/red] {escape(shlex.join(exc.argv))}")
        output = exc.stderr.strip() or exc.stdout.strip()
        if output:
            console.print(output, markup=False, highlight=False)
        return
    console.print(f"[red]Error:[/red] {escape(str(exc))}", highlight=False)
