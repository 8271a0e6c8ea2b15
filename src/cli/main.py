"""CLI principal (Typer).

Por qué Typer:
- Subcomandos (`machine`, `cluster`, `pod`, `forward`) con ayuda autogenerada.
- La CLI solo traduce opciones a `AppSettings`/`WorkflowRequest` y pinta
  resultados; la secuencia vive en `core.services.workflow`.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from adapters.kind import KindCluster
from adapters.kubectl import Kubectl
from adapters.manifest import render_ansible_inventory, render_pod_manifest
from adapters.podman import PodmanMachine
from adapters.port_forward import PortForwarder
from adapters.subprocess_runner import SubprocessRunner
from cli import doctor
from cli.ui_components import (
    build_machines_table,
    build_pod_table,
    build_status_table,
    build_up_panel,
    print_banner,
    print_error,
)
from core.config import AppSettings
from core.domain.models import validate_cluster_name
from core.errors import InvalidNameError, KindUbiError
from core.interfaces.runner import CommandRunner
from core.services import workflow
from core.services.workflow import WorkflowHooks, WorkflowRequest, ssh_command

app = typer.Typer(
    name="kind-ubi",
    no_args_is_help=True,
    help="Local Kind cluster on Podman with a UBI pod reachable over SSH.",
)
machine_app = typer.Typer(no_args_is_help=True, help="Podman machine lifecycle.")
cluster_app = typer.Typer(no_args_is_help=True, help="Kind cluster lifecycle.")
pod_app = typer.Typer(no_args_is_help=True, help="UBI pod deployment.")
forward_app = typer.Typer(no_args_is_help=True, help="kubectl port-forward to the pod.")

app.add_typer(machine_app, name="machine")
app.add_typer(cluster_app, name="cluster")
app.add_typer(pod_app, name="pod")
app.add_typer(forward_app, name="forward")
app.add_typer(doctor.app, name="doctor")

_console = Console()
_err_console = Console(stderr=True)

_state: dict[str, Any] = {"banner": True}

ClusterOpt = typer.Option(None, "--cluster", "-c", help="Kind cluster name (default from settings).")
PodOpt = typer.Option(None, "--pod", help="Pod name (default from settings).")
NamespaceOpt = typer.Option(None, "--namespace", "-n", help="Namespace (default from settings).")
PortOpt = typer.Option(None, "--port", "-p", min=1, max=65535, help="Local port for the forward.")


def build_runner(settings: AppSettings) -> CommandRunner:
    return SubprocessRunner(settings)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=_err_console, show_path=False, rich_tracebacks=True)],
        force=True,
    )


@contextmanager
def handle_errors() -> Iterator[None]:
    """Traduce errores del dominio a salida Rich + exit code."""

    try:
        yield
    except InvalidNameError as exc:
        raise typer.BadParameter(str(exc)) from exc
    except ValidationError as exc:
        # Pydantic envuelve los errores de los field_validator del dominio.
        detail = "; ".join(error["msg"].removeprefix("Value error, ") for error in exc.errors())
        raise typer.BadParameter(detail) from exc
    except KindUbiError as exc:
        print_error(_err_console, exc)
        raise typer.Exit(code=exc.exit_code) from exc


def _settings(**updates: Any) -> AppSettings:
    settings = AppSettings()
    values = {k: v for k, v in updates.items() if v is not None}
    return settings.model_copy(update=values) if values else settings


def _request(
    settings: AppSettings,
    *,
    cluster: str | None = None,
    pod: str | None = None,
    namespace: str | None = None,
    port: int | None = None,
    **extra: Any,
) -> WorkflowRequest:
    return WorkflowRequest.from_settings(
        settings,
        cluster_name=cluster,
        pod_name=pod,
        namespace=namespace,
        local_port=port,
        **extra,
    )


def _hooks() -> WorkflowHooks:
    return WorkflowHooks(
        step=lambda msg: _console.print(f"[cyan]»[/cyan] {msg}", highlight=False),
        warning=lambda msg: _console.print(f"[yellow]![/yellow] {msg}", highlight=False),
    )


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every external command."),
    no_banner: bool = typer.Option(False, "--no-banner", help="Do not print the banner."),
) -> None:
    setup_logging(verbose)
    _state["banner"] = not no_banner


# --------------------------------------------------------------------------- workflow


@app.command()
def up(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    port: Optional[int] = PortOpt,
    image: Optional[str] = typer.Option(None, "--image", help="Container image for the pod."),
    timeout: Optional[float] = typer.Option(None, "--timeout", min=1, help="Readiness timeout (seconds)."),
    no_machine: bool = typer.Option(False, "--no-machine", help="Do not manage the podman machine."),
    no_forward: bool = typer.Option(False, "--no-forward", help="Skip the port-forward."),
) -> None:
    """Start the machine, create the cluster, deploy the pod and forward SSH."""

    if _state["banner"]:
        print_banner(_console)
    with handle_errors():
        settings = _settings(image=image, ready_timeout_seconds=timeout)
        request = _request(
            settings,
            cluster=cluster,
            pod=pod,
            namespace=namespace,
            port=port,
            manage_machine=not no_machine,
            forward=not no_forward,
        )
        result = workflow.up(
            settings=settings,
            request=request,
            runner=build_runner(settings),
            hooks=_hooks(),
        )
    _console.print(build_up_panel(result))


@app.command()
def down(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    keep_cluster: bool = typer.Option(False, "--keep-cluster", help="Only delete the pod."),
    stop_machine: bool = typer.Option(False, "--stop-machine", help="Also stop the podman machine."),
) -> None:
    """Stop the forward and delete the pod/cluster."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        workflow.down(
            settings=settings,
            request=request,
            runner=build_runner(settings),
            hooks=_hooks(),
            delete_cluster=not keep_cluster,
            stop_machine=stop_machine,
        )
    _console.print("[green]Done.[/green]")


@app.command()
def status(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    no_machine: bool = typer.Option(False, "--no-machine", help="Skip the podman machine check."),
) -> None:
    """Show machine, cluster, pod and forward status."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace, manage_machine=not no_machine)
        report = workflow.status(settings=settings, request=request, runner=build_runner(settings))
    _console.print(build_status_table(report, machine_name=settings.machine_name))
    for warning in report.warnings:
        _console.print(f"[yellow]![/yellow] {warning}", markup=False)


@app.command()
def manifest(
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    image: Optional[str] = typer.Option(None, "--image", help="Container image for the pod."),
) -> None:
    """Print the rendered pod manifest."""

    with handle_errors():
        settings = _settings(image=image)
        request = _request(settings, pod=pod, namespace=namespace)
        typer.echo(render_pod_manifest(request.pod), nl=False)


@app.command()
def ssh(
    cluster: Optional[str] = ClusterOpt,
    port: Optional[int] = PortOpt,
    identity: Optional[Path] = typer.Option(None, "--identity", "-i", help="Private key for ssh."),
    print_only: bool = typer.Option(False, "--print", help="Only print the ssh command."),
) -> None:
    """Open an SSH session to the pod through the forwarded port."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, port=port)
        argv = ssh_command(
            request.forward_spec(),
            user=settings.ssh_user,
            identity_file=identity,
            ssh_bin=settings.ssh_bin,
        )
        if print_only:
            typer.echo(" ".join(argv))
            return
        code = build_runner(settings).interactive(argv)
    raise typer.Exit(code=code)


@app.command()
def inventory(
    port: Optional[int] = PortOpt,
    identity: Optional[Path] = typer.Option(None, "--identity", "-i", help="Private key for ansible."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write to file instead of stdout."),
) -> None:
    """Print an Ansible inventory targeting the forwarded SSH port."""

    settings = _settings()
    host = "localhost" if settings.forward_address in ("127.0.0.1", "0.0.0.0") else settings.forward_address
    text = render_ansible_inventory(
        host=host,
        port=port or settings.local_port,
        user=settings.ssh_user,
        identity_file=identity,
    )
    if output is None:
        typer.echo(text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    _console.print(f"[green]Inventory written to:[/green] {output}")


# --------------------------------------------------------------------------- machine


@machine_app.command("list")
def machine_list() -> None:
    """List podman machines."""

    with handle_errors():
        settings = _settings()
        machines = PodmanMachine(build_runner(settings), settings).list()
    _console.print(build_machines_table(machines))


@machine_app.command("start")
def machine_start(
    name: Optional[str] = typer.Argument(None, help="Machine name (default from settings)."),
) -> None:
    """Start (initialising if needed) a podman machine."""

    with handle_errors():
        settings = _settings()
        name = name or settings.machine_name
        machine = PodmanMachine(build_runner(settings), settings)
        if not machine.exists(name):
            machine.init(
                name,
                cpus=settings.machine_cpus,
                memory_mb=settings.machine_memory_mb,
                rootful=settings.machine_rootful,
            )
        started = machine.start(name)
    _console.print(f"[green]Machine {name} {'started' if started else 'already running'}.[/green]")


@machine_app.command("stop")
def machine_stop(
    name: Optional[str] = typer.Argument(None, help="Machine name (default from settings)."),
) -> None:
    """Stop a podman machine."""

    with handle_errors():
        settings = _settings()
        name = name or settings.machine_name
        stopped = PodmanMachine(build_runner(settings), settings).stop(name)
    _console.print(f"[green]Machine {name} {'stopped' if stopped else 'was not running'}.[/green]")


# --------------------------------------------------------------------------- cluster


@cluster_app.command("list")
def cluster_list() -> None:
    """List kind clusters."""

    with handle_errors():
        settings = _settings()
        names = KindCluster(build_runner(settings), settings).list()
    if not names:
        _console.print("[dim]No kind clusters.[/dim]")
    for name in names:
        typer.echo(name)


@cluster_app.command("create")
def cluster_create(
    name: Optional[str] = typer.Argument(None, help="Cluster name (default from settings)."),
    image: Optional[str] = typer.Option(None, "--image", help="kindest/node image."),
) -> None:
    """Create a kind cluster on the configured provider."""

    with handle_errors():
        settings = _settings(node_image=image)
        name = validate_cluster_name(name or settings.cluster_name)
        kind = KindCluster(build_runner(settings), settings)
        if kind.exists(name):
            _console.print(f"[yellow]Cluster {name} already exists.[/yellow]")
            return
        kind.create(name, image=settings.node_image, wait_seconds=settings.cluster_wait_seconds)
    _console.print(f"[green]Cluster {name} created (context kind-{name}).[/green]")


@cluster_app.command("delete")
def cluster_delete(
    name: Optional[str] = typer.Argument(None, help="Cluster name (default from settings)."),
) -> None:
    """Delete a kind cluster."""

    with handle_errors():
        settings = _settings()
        name = validate_cluster_name(name or settings.cluster_name)
        KindCluster(build_runner(settings), settings).delete(name)
    _console.print(f"[green]Cluster {name} deleted.[/green]")


# --------------------------------------------------------------------------- pod


def _kubectl(settings: AppSettings, cluster: str | None) -> Kubectl:
    return Kubectl(build_runner(settings), settings, cluster_name=cluster or settings.cluster_name)


@pod_app.command("deploy")
def pod_deploy(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    image: Optional[str] = typer.Option(None, "--image", help="Container image for the pod."),
) -> None:
    """Apply the pod manifest (without waiting)."""

    with handle_errors():
        settings = _settings(image=image)
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        output = _kubectl(settings, request.cluster_name).apply(render_pod_manifest(request.pod))
    typer.echo(output)


@pod_app.command("wait")
def pod_wait(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    timeout: Optional[float] = typer.Option(None, "--timeout", min=1, help="Readiness timeout (seconds)."),
) -> None:
    """Wait until the pod is Ready."""

    with handle_errors():
        settings = _settings(ready_timeout_seconds=timeout)
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        pod_status = _kubectl(settings, request.cluster_name).wait_ready(
            request.pod.name,
            request.pod.namespace,
            timeout_seconds=settings.ready_timeout_seconds,
            poll_interval=settings.poll_interval_seconds,
        )
    _console.print(build_pod_table(pod_status))


@pod_app.command("status")
def pod_status_cmd(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
) -> None:
    """Show the pod phase and readiness."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        pod_status = _kubectl(settings, request.cluster_name).get_pod(request.pod.name, request.pod.namespace)
    if pod_status is None:
        _console.print(f"[yellow]Pod {request.pod.name} not found.[/yellow]")
        raise typer.Exit(code=1)
    _console.print(build_pod_table(pod_status))


@pod_app.command("delete")
def pod_delete(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
) -> None:
    """Delete the pod (and its port-forward)."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        runner = build_runner(settings)
        PortForwarder(runner, settings).stop(request.forward_spec())
        deleted = Kubectl(runner, settings, cluster_name=request.cluster_name).delete_pod(
            request.pod.name, request.pod.namespace
        )
    _console.print(f"[green]Pod {request.pod.name} {'deleted' if deleted else 'not found'}.[/green]")


@pod_app.command("logs")
def pod_logs(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    tail: Optional[int] = typer.Option(None, "--tail", min=0, help="Lines from the end."),
) -> None:
    """Print the pod logs."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        text = _kubectl(settings, request.cluster_name).logs(request.pod.name, request.pod.namespace, tail=tail)
    typer.echo(text, nl=False)


@pod_app.command("exec")
def pod_exec(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    command: Optional[list[str]] = typer.Argument(None, help="Command to run (default /bin/bash)."),
) -> None:
    """Open an interactive shell in the pod with `kubectl exec`."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        runner = build_runner(settings)
        argv = Kubectl(runner, settings, cluster_name=request.cluster_name).exec_argv(
            request.pod.name, request.pod.namespace, command or None
        )
        code = runner.interactive(argv)
    raise typer.Exit(code=code)


# --------------------------------------------------------------------------- forward


@forward_app.command("start")
def forward_start(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
    port: Optional[int] = PortOpt,
) -> None:
    """Start (or restart) the background port-forward."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace, port=port)
        spec = request.forward_spec()
        pid = PortForwarder(build_runner(settings), settings).start(spec)
    _console.print(
        f"[green]Forwarding {spec.address}:{spec.local_port} -> pod/{spec.pod_name}:{spec.remote_port} (pid {pid}).[/green]"
    )


@forward_app.command("stop")
def forward_stop(
    cluster: Optional[str] = ClusterOpt,
    pod: Optional[str] = PodOpt,
    namespace: Optional[str] = NamespaceOpt,
) -> None:
    """Stop the background port-forward."""

    with handle_errors():
        settings = _settings()
        request = _request(settings, cluster=cluster, pod=pod, namespace=namespace)
        stopped = PortForwarder(build_runner(settings), settings).stop(request.forward_spec())
    if stopped:
        _console.print("[green]Port-forward stopped.[/green]")
    else:
        _console.print("[dim]No port-forward running.[/dim]")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
