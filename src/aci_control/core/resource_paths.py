"""Construcción de URIs de recursos ARM.

Este módulo vive en `core/` porque es puro: no hace I/O ni valida que el
recurso exista, solo su forma.

Reglas:
- Cada segmento se codifica con `quote(..., safe="")`, así un `/` dentro de un
  nombre nunca crea un segmento extra (inyectivo sobre las tripletas).
- `api-version` siempre va fijado como query param.
"""

from __future__ import annotations

from urllib.parse import quote, unquote, urlencode

CONTAINER_INSTANCE_PROVIDER = "Microsoft.ContainerInstance"


def _segment(value: str, label: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{label} must be a non-empty string")
    return quote(value, safe="")


def _with_query(url: str, api_version: str, extra: dict[str, str] | None = None) -> str:
    params = {"api-version": api_version}
    if extra:
        params.update(extra)
    return f"{url}?{urlencode(params)}"


def build_resource_group_uri(
    subscription_id: str,
    resource_group: str,
    *,
    base_url: str,
    api_version: str,
) -> str:
    root = base_url.rstrip("/")
    path = (
        f"/subscriptions/{_segment(subscription_id, 'subscription_id')}"
        f"/resourceGroups/{_segment(resource_group, 'resource_group')}"
    )
    return _with_query(root + path, api_version)


def build_container_group_uri(
    subscription_id: str,
    resource_group: str,
    name: str | None = None,
    *,
    base_url: str,
    api_version: str,
    provider: str = CONTAINER_INSTANCE_PROVIDER,
) -> str:
    """URI canónica de un grupo de contenedores (o de la colección si `name` es None).

    `/subscriptions/{sub}/resourceGroups/{rg}/providers/{provider}/containerGroups[/{name}]`
    """

    root = base_url.rstrip("/")
    path = (
        f"/subscriptions/{_segment(subscription_id, 'subscription_id')}"
        f"/resourceGroups/{_segment(resource_group, 'resource_group')}"
        f"/providers/{provider}/containerGroups"
    )
    if name is not None:
        path += f"/{_segment(name, 'name')}"
    return _with_query(root + path, api_version)


def build_subscription_container_groups_uri(
    subscription_id: str,
    *,
    base_url: str,
    api_version: str,
    provider: str = CONTAINER_INSTANCE_PROVIDER,
) -> str:
    root = base_url.rstrip("/")
    path = (
        f"/subscriptions/{_segment(subscription_id, 'subscription_id')}"
        f"/providers/{provider}/containerGroups"
    )
    return _with_query(root + path, api_version)


def build_container_logs_uri(
    subscription_id: str,
    resource_group: str,
    name: str,
    container_name: str,
    *,
    base_url: str,
    api_version: str,
    tail: int | None = None,
    provider: str = CONTAINER_INSTANCE_PROVIDER,
) -> str:
    root = base_url.rstrip("/")
    path = (
        f"/subscriptions/{_segment(subscription_id, 'subscription_id')}"
        f"/resourceGroups/{_segment(resource_group, 'resource_group')}"
        f"/providers/{provider}/containerGroups/{_segment(name, 'name')}"
        f"/containers/{_segment(container_name, 'container_name')}/logs"
    )
    extra = {"tail": str(tail)} if tail is not None else None
    return _with_query(root + path, api_version, extra)


def parse_container_group_id(resource_id: str) -> tuple[str, str, str]:
    """Descompone un id ARM en (subscription, resource group, name).

    Acepta ids con cualquier capitalización en las claves (`resourcegroups`
    aparece así en algunas respuestas).
    """

    parts = [p for p in resource_id.split("?", 1)[0].split("/") if p]
    keys = {p.lower(): i for i, p in enumerate(parts) if i % 2 == 0}
    try:
        sub = parts[keys["subscriptions"] + 1]
        rg = parts[keys["resourcegroups"] + 1]
        name = parts[keys["containergroups"] + 1]
    except (KeyError, IndexError) as exc:
        raise ValueError(f"not a container group resource id: {resource_id!r}") from exc
    return unquote(sub), unquote(rg), unquote(name)
