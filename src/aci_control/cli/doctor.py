"""Doctor command for environment diagnostics."""

from __future__ import annotations

import time

import typer
from rich.console import Console
from rich.table import Table

from aci_control.adapters.aci_client import ContainerGroupClient
from aci_control.adapters.credential_resolver import resolve_credential
from aci_control.adapters.http_client import build_http_client
from aci_control.adapters.token_provider import TokenProvider
from aci_control.core.config import AppSettings
from aci_control.core.errors import AciError

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


@app.command()
def run(
    skip_token: bool = typer.Option(False, "--skip-token", help="Do not contact the identity endpoint."),
    resource_group: str | None = typer.Option(
        None,
        "--resource-group",
        "-g",
        help="Also check that this resource group exists.",
    ),
) -> None:
    """Run baseline diagnostics and show recommended fixes."""

    settings = AppSettings()

    table = Table(title="aci-control Doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Management endpoint", "OK", settings.management_endpoint)
    table.add_row("API version", "OK", settings.api_version)

    try:
        credential = resolve_credential(settings)
    except AciError as exc:
        table.add_row("Credentials", "FAIL", exc.message)
        _console.print(table)
        raise typer.Exit(code=1) from None
    table.add_row("Credentials", "OK", f"tenant={credential.tenant_id} subscription={credential.subscription_id}")

    if skip_token:
        table.add_row("Token", "SKIPPED", "--skip-token")
        if resource_group:
            table.add_row("Resource group", "SKIPPED", "--skip-token")
        _console.print(table)
        return

    ok = True
    with build_http_client(settings) as http:
        provider = TokenProvider(credential, settings, http_client=http)
        try:
            token = provider.get_token()
            table.add_row("Token", "OK", f"expires in {token.expires_on - time.time():.0f}s")
        except AciError as exc:
            ok = False
            table.add_row("Token", "FAIL", str(exc))

        if ok and resource_group:
            client = ContainerGroupClient(credential, settings, token_provider=provider, http_client=http)
            try:
                client.check_resource_group(resource_group)
                table.add_row("Resource group", "OK", resource_group)
            except AciError as exc:
                ok = False
                table.add_row("Resource group", "FAIL", str(exc))

    _console.print(table)
    if not ok:
        raise typer.Exit(code=1)
