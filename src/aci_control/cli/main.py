"""CLI `aci-control` (Typer + Rich).

Capa de presentación fina sobre `ContainerGroupClient`: configura logging,
traduce `AciError` a mensajes y códigos de salida, y pinta resultados.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.logging import RichHandler

from aci_control.adapters.aci_client import ContainerGroupClient
from aci_control.cli import doctor
from aci_control.cli.ui_components import build_group_panel, build_groups_table, print_error
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import ContainerGroup
from aci_control.core.errors import AciError

app = typer.Typer(no_args_is_help=True, help="Manage Azure container groups through the control plane.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=False, show_path=False)],
        force=True,
    )
    # httpx a INFO loguea URLs completas; nos basta con las nuestras.
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    settings = AppSettings()
    _configure_logging("DEBUG" if verbose else settings.log_level)


def _client() -> ContainerGroupClient:
    try:
        return ContainerGroupClient.from_environment()
    except AciError as exc:
        print_error(_console, str(exc))
        raise typer.Exit(code=2) from None


def _fail(exc: AciError) -> typer.Exit:
    print_error(_console, str(exc))
    return typer.Exit(code=1)


@app.command(name="list")
def list_groups(
    resource_group: str | None = typer.Option(None, "--resource-group", "-g", help="Limit to one resource group."),
) -> None:
    """List container groups."""

    with _client() as client:
        try:
            if resource_group:
                groups = client.list_container_groups(resource_group)
            else:
                groups = client.list_container_groups_in_subscription()
        except AciError as exc:
            raise _fail(exc) from None
    _console.print(build_groups_table(groups))


@app.command()
def show(resource_group: str, name: str) -> None:
    """Show one container group."""

    with _client() as client:
        try:
            group, meta = client.get_container_group(resource_group, name)
        except AciError as exc:
            raise _fail(exc) from None
    _console.print(build_group_panel(group))
    _console.print(f"[dim]HTTP {meta.status_code} request-id={meta.request_id or '-'}[/dim]")


@app.command()
def create(
    resource_group: str,
    name: str,
    file: Path = typer.Option(..., "--file", "-f", exists=True, dir_okay=False, help="JSON definition."),
) -> None:
    """Create or update a container group from a JSON definition.

    The file uses the Python field names (`os_type`, `memory_in_gb`...);
    `location` defaults to the configured default location. The command
    returns once the service accepts the request; provisioning may still be
    in progress.
    """

    try:
        data = json.loads(file.read_text(encoding="utf-8"))
        if isinstance(data, dict):
            data.setdefault("location", AppSettings().default_location)
        definition = ContainerGroup.model_validate(data)
    except (json.JSONDecodeError, PydanticValidationError) as exc:
        raise typer.BadParameter(f"invalid definition: {exc}", param_hint="--file") from None

    with _client() as client:
        try:
            group = client.create_container_group(resource_group, name, definition)
        except AciError as exc:
            raise _fail(exc) from None
    _console.print(build_group_panel(group))


@app.command()
def delete(
    resource_group: str,
    name: str,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
) -> None:
    """Request deletion of a container group."""

    if not yes:
        typer.confirm(f"Delete container group {name!r} in {resource_group!r}?", abort=True)
    with _client() as client:
        try:
            client.delete_container_group(resource_group, name)
        except AciError as exc:
            raise _fail(exc) from None
    _console.print(f"[green]Delete accepted:[/green] {name}")


@app.command()
def logs(
    resource_group: str,
    name: str,
    container: str,
    tail: int | None = typer.Option(None, "--tail", min=1, help="Only the last N lines."),
) -> None:
    """Print the logs of one container."""

    with _client() as client:
        try:
            content = client.get_container_logs(resource_group, name, container, tail=tail)
        except AciError as exc:
            raise _fail(exc) from None
    _console.print(content, markup=False, highlight=False, end="")


def run() -> None:
    app()
