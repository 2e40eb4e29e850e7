from __future__ import annotations

import json
import threading
import time
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest

from aci_control.adapters.aci_client import ContainerGroupClient
from aci_control.adapters.token_provider import TokenProvider
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import (
    Container,
    ContainerGroup,
    ContainerNetworkProtocol,
    ContainerPort,
    Credential,
    OperatingSystemType,
    ResourceLimits,
    ResourceRequests,
    ResourceRequirements,
    ResourceScope,
)

SUBSCRIPTION = "00000000-1111-2222-3333-444444444444"
TENANT = "tenant-abc"
SECRET = "s3cr3t-value-never-logged"
PROVIDER = "Microsoft.ContainerInstance"


def _json(status: int, payload: Any, headers: dict[str, str] | None = None) -> httpx.Response:
    return httpx.Response(status, json=payload, headers=headers)


def _arm_error(status: int, code: str, message: str) -> httpx.Response:
    return _json(status, {"error": {"code": code, "message": message}})


class FakeAzure:
    """Identidad + ARM en memoria, suficiente para ejercitar el cliente.

    Imita la validación remota: un contenedor sin `resources.requests` se
    rechaza con `ResourceSomeRequestsNotSpecified`.
    """

    def __init__(self) -> None:
        self.resource_groups: set[str] = set()
        self.groups: dict[tuple[str, str], dict[str, Any]] = {}
        self.token_calls = 0
        self.token_delay = 0.0
        self.token_lifetime = 3600
        self.arm_calls: list[tuple[str, str]] = []
        self.page_size: int | None = None
        self.auth_headers: list[str | None] = []
        self._lock = threading.Lock()

    # -- transporte ---------------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/oauth2/v2.0/token"):
            return self._token(request)
        with self._lock:
            self.arm_calls.append((request.method, request.url.path))
            self.auth_headers.append(request.headers.get("authorization"))
        return self._arm(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def _token(self, request: httpx.Request) -> httpx.Response:
        form = parse_qs(request.content.decode())
        with self._lock:
            self.token_calls += 1
            n = self.token_calls
        if self.token_delay:
            time.sleep(self.token_delay)
        if form.get("client_secret") != [SECRET]:
            return _json(
                401,
                {"error": "invalid_client", "error_description": "AADSTS7000215: Invalid client secret provided."},
            )
        return _json(
            200,
            {"token_type": "Bearer", "expires_in": self.token_lifetime, "access_token": f"token-{n}"},
        )

    # -- ARM ----------------------------------------------------------------

    def _arm(self, request: httpx.Request) -> httpx.Response:
        parts = [p for p in request.url.path.split("/") if p]
        # subscriptions/{sub}/resourceGroups/{rg}/providers/{provider}/containerGroups[/{name}[/containers/{c}/logs]]
        if len(parts) < 4 or parts[0] != "subscriptions" or parts[2] != "resourceGroups":
            return _arm_error(400, "InvalidResourceType", "unexpected path")
        rg = parts[3]
        if rg not in self.resource_groups:
            return _arm_error(404, "ResourceGroupNotFound", f"Resource group '{rg}' could not be found.")
        if len(parts) == 4 and request.method == "GET":
            return _json(200, {"name": rg, "properties": {"provisioningState": "Succeeded"}})
        if len(parts) < 6:
            return _arm_error(400, "InvalidResourceType", "unexpected path")

        name = parts[7] if len(parts) > 7 else None
        headers = {"x-ms-request-id": "req-123", "x-ms-correlation-request-id": "corr-456"}

        if name is None and request.method == "GET":
            return self._list(request, rg, headers)
        if name is None:
            return _arm_error(405, "MethodNotAllowed", "collection")

        if len(parts) == 11 and parts[10] == "logs":
            if (rg, name) not in self.groups:
                return _arm_error(404, "ResourceNotFound", "missing")
            return _json(200, {"content": "line one\nline two\n"}, headers)

        key = (rg, name)
        if request.method == "PUT":
            return self._put(request, key, headers)
        if request.method == "GET":
            if key not in self.groups:
                return _arm_error(
                    404,
                    "ResourceNotFound",
                    f"The Resource '{PROVIDER}/containerGroups/{name}' under resource group '{rg}' was not found.",
                )
            return _json(200, self.groups[key], headers)
        if request.method == "DELETE":
            if key not in self.groups:
                return httpx.Response(204)
            body = self.groups.pop(key)
            return _json(200, body, headers)
        return _arm_error(405, "MethodNotAllowed", request.method)

    def _put(self, request: httpx.Request, key: tuple[str, str], headers: dict[str, str]) -> httpx.Response:
        body = json.loads(request.content)
        for container in body.get("properties", {}).get("containers", []):
            resources = container.get("properties", {}).get("resources") or {}
            if "requests" not in resources:
                return _arm_error(
                    400,
                    "ResourceSomeRequestsNotSpecified",
                    f"The 'requests' of resource '{container['name']}' are not specified.",
                )
        rg, name = key
        stored = dict(body)
        stored["id"] = f"/subscriptions/{SUBSCRIPTION}/resourceGroups/{rg}/providers/{PROVIDER}/containerGroups/{name}"
        stored["name"] = name
        stored["type"] = f"{PROVIDER}/containerGroups"
        stored["properties"] = dict(body["properties"], provisioningState="Pending")
        created = key not in self.groups
        self.groups[key] = stored
        return _json(201 if created else 200, stored, headers)

    def _list(self, request: httpx.Request, rg: str, headers: dict[str, str]) -> httpx.Response:
        items = [g for (group_rg, _), g in self.groups.items() if group_rg == rg]
        if self.page_size is None:
            return _json(200, {"value": items}, headers)
        skip = int(request.url.params.get("$skip", "0"))
        page = items[skip : skip + self.page_size]
        payload: dict[str, Any] = {"value": page}
        if skip + self.page_size < len(items):
            payload["nextLink"] = str(request.url.copy_set_param("$skip", str(skip + self.page_size)))
        return _json(200, payload, headers)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(_env_file=None, auth_max_retries=2)


@pytest.fixture
def credential() -> Credential:
    return Credential(
        tenant_id=TENANT,
        client_id="client-123",
        client_secret=SECRET,
        subscription_id=SUBSCRIPTION,
    )


@pytest.fixture
def fake() -> FakeAzure:
    return FakeAzure()


@pytest.fixture
def http_client(fake: FakeAzure) -> httpx.Client:
    with httpx.Client(transport=fake.transport()) as client:
        yield client


@pytest.fixture
def scope(fake: FakeAzure) -> ResourceScope:
    created = ResourceScope.generate("aci-control-tests", "eastus")
    fake.resource_groups.add(created.resource_group)
    return created


@pytest.fixture
def client(
    credential: Credential,
    settings: AppSettings,
    http_client: httpx.Client,
) -> ContainerGroupClient:
    tokens = TokenProvider(credential, settings, http_client=http_client, sleep=lambda _: None)
    return ContainerGroupClient(credential, settings, token_provider=tokens, http_client=http_client)


def nginx_group(location: str, *, with_resources: bool = True) -> ContainerGroup:
    resources = None
    if with_resources:
        resources = ResourceRequirements(
            requests=ResourceRequests(cpu=1, memory_in_gb=1),
            limits=ResourceLimits(cpu=1, memory_in_gb=1),
        )
    return ContainerGroup(
        location=location,
        os_type=OperatingSystemType.LINUX,
        containers=[
            Container(
                name="nginx",
                image="nginx",
                command=["nginx", "-g", "daemon off;"],
                ports=[ContainerPort(protocol=ContainerNetworkProtocol.TCP, port=80)],
                resources=resources,
            )
        ],
    )


@pytest.fixture
def make_nginx_group():
    return nginx_group
