"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de comandos con detalles visuales.
- Permite reutilizar tablas/paneles en múltiples comandos.
"""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from aci_control.core.domain.models import ContainerGroup, ContainerGroupList, ProvisioningState
from aci_control.core.resource_paths import parse_container_group_id


def _state_style(state: str | None) -> str:
    parsed = ProvisioningState.parse(state)
    if parsed is None:
        return "dim"
    if parsed is ProvisioningState.SUCCEEDED:
        return "green"
    if parsed.is_terminal():
        return "red"
    return "yellow"


def resource_group_of(group: ContainerGroup) -> str:
    """Resource group sacado del id ARM; "-" si el servicio no lo dio."""

    if not group.id:
        return "-"
    try:
        return parse_container_group_id(group.id)[1]
    except ValueError:
        return "-"


def build_groups_table(groups: ContainerGroupList) -> Table:
    """Tabla Rich para el resultado de un List (orden del servicio)."""

    table = Table(title="Container Groups")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Resource group", style="white", no_wrap=True)
    table.add_column("Location", style="white")
    table.add_column("OS", style="white")
    table.add_column("Containers", style="magenta")
    table.add_column("State")
    for group in groups.value:
        state = group.provisioning_state or "-"
        table.add_row(
            group.name,
            resource_group_of(group),
            group.location,
            group.os_type.value,
            ", ".join(c.name for c in group.containers) or "-",
            Text(state, style=_state_style(group.provisioning_state)),
        )
    return table


def build_group_panel(group: ContainerGroup) -> Panel:
    """Panel con el detalle de un grupo y sus contenedores."""

    body = Text()
    body.append(f"Location: {group.location}\n")
    body.append(f"OS: {group.os_type.value}\n")
    body.append("State: ")
    body.append(f"{group.provisioning_state or '-'}\n", style=_state_style(group.provisioning_state))
    if group.ip_address is not None and group.ip_address.ip:
        body.append(f"IP: {group.ip_address.ip}")
        if group.ip_address.fqdn:
            body.append(f" ({group.ip_address.fqdn})")
        body.append("\n")

    for container in group.containers:
        body.append(f"\n{container.name}", style="bold")
        body.append(f"  {container.image}\n", style="dim")
        if container.command:
            body.append(f"  command: {' '.join(container.command)}\n")
        if container.ports:
            ports = ", ".join(f"{p.port}/{p.protocol.value if p.protocol else 'TCP'}" for p in container.ports)
            body.append(f"  ports: {ports}\n")
        if container.resources is not None and container.resources.requests is not None:
            req = container.resources.requests
            body.append(f"  requests: cpu={req.cpu:g} memory={req.memory_in_gb:g}GB\n")
        if container.instance_view is not None and container.instance_view.current_state is not None:
            body.append(f"  current: {container.instance_view.current_state.state or '-'}\n")

    return Panel(body, title=Text(group.name or "(unnamed)", style="bold cyan"), border_style="cyan")


def print_error(console: Console, message: str) -> None:
    console.print(f"[red]Error:[/red] {message}")
