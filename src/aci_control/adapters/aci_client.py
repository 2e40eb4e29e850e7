"""Cliente del plano de control de Azure Container Instances.

Responsabilidad:
- Exponer Create/Get/List/Delete de grupos de contenedores (más logs).
- Componer token → URI → codec → transporte → codec en cada operación.

Reglas de diseño:
- Cada operación es un único round trip síncrono (List: uno por página).
- No hay reintentos fuera del token: reintentar un Create a ciegas no es seguro.
- Create es síncrono-hasta-aceptado: `provisioning_state` puede no ser final y
  aquí no se hace polling.
- Nunca se muta el `ContainerGroup` de entrada; cada resultado es nuevo.
- Los logs (DEBUG) nunca incluyen cuerpos ni cabeceras de autorización.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx

from aci_control.adapters.aci_codec import (
    decode,
    decode_container_group,
    decode_container_group_list,
    encode_container_group,
    error_from_response,
)
from aci_control.adapters.credential_resolver import resolve_credential
from aci_control.adapters.http_client import build_http_client
from aci_control.adapters.token_provider import TokenProvider
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import (
    ContainerGroup,
    ContainerGroupList,
    Credential,
    ResponseMetadata,
)
from aci_control.core.errors import DecodeError, TransientError
from aci_control.core.interfaces.token import TokenSource
from aci_control.core.resource_paths import (
    build_container_group_uri,
    build_container_logs_uri,
    build_resource_group_uri,
    build_subscription_container_groups_uri,
)

logger = logging.getLogger(__name__)


class ContainerGroupClient:
    """Superficie pública: una operación de plano de control por método."""

    def __init__(
        self,
        credential: Credential,
        settings: AppSettings | None = None,
        *,
        token_provider: TokenSource | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._credential = credential
        self._settings = settings or AppSettings()
        self._owns_client = http_client is None
        self._http = http_client or build_http_client(self._settings)
        self._tokens: TokenSource = token_provider or TokenProvider(
            credential,
            self._settings,
            http_client=self._http,
        )
        self._base_url = (credential.resource_manager_endpoint or self._settings.management_endpoint).rstrip("/")

    @classmethod
    def from_environment(cls, settings: AppSettings | None = None) -> "ContainerGroupClient":
        """Resuelve la credencial (fichero/env) y construye el cliente."""

        settings = settings or AppSettings()
        return cls(resolve_credential(settings), settings)

    @property
    def subscription_id(self) -> str:
        return self._credential.subscription_id

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def __enter__(self) -> "ContainerGroupClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # -- helpers -----------------------------------------------------------

    def _group_uri(self, resource_group: str, name: str | None = None) -> str:
        return build_container_group_uri(
            self._credential.subscription_id,
            resource_group,
            name,
            base_url=self._base_url,
            api_version=self._settings.api_version,
        )

    def _send(self, method: str, url: str, *, content: bytes | None = None) -> httpx.Response:
        token = self._tokens.get_token()
        headers = {
            "Authorization": f"Bearer {token.token.get_secret_value()}",
            "x-ms-client-request-id": str(uuid.uuid4()),
        }
        if content is not None:
            headers["Content-Type"] = "application/json"

        logger.debug("%s %s", method, httpx.URL(url).path)
        try:
            response = self._http.request(method, url, content=content, headers=headers)
        except httpx.RequestError as exc:
            raise TransientError(f"{method} {httpx.URL(url).path} failed: {exc.__class__.__name__}: {exc}") from exc

        logger.debug(
            "%s %s -> %d (x-ms-request-id=%s)",
            method,
            httpx.URL(url).path,
            response.status_code,
            response.headers.get("x-ms-request-id"),
        )
        return response

    @staticmethod
    def _metadata(response: httpx.Response) -> ResponseMetadata:
        return ResponseMetadata(
            status_code=response.status_code,
            request_id=response.headers.get("x-ms-request-id"),
            correlation_id=response.headers.get("x-ms-correlation-request-id"),
        )

    # -- operaciones -------------------------------------------------------

    def check_resource_group(self, resource_group: str) -> ResponseMetadata:
        """Comprueba que el resource group existe. `NotFoundError` si no."""

        url = build_resource_group_uri(
            self._credential.subscription_id,
            resource_group,
            base_url=self._base_url,
            api_version=self._settings.resource_groups_api_version,
        )
        response = self._send("GET", url)
        decode(response.content, response.status_code, "none")
        return self._metadata(response)

    def create_container_group(
        self,
        resource_group: str,
        name: str,
        container_group: ContainerGroup,
    ) -> ContainerGroup:
        """Create-or-update (PUT). Devuelve lo que el servicio aceptó.

        El servicio valida el cuerpo; p.ej. sin `requests` en un contenedor
        responde `ResourceSomeRequestsNotSpecified` → `ValidationError`.
        """

        payload = container_group.model_copy(update={"name": name})
        response = self._send("PUT", self._group_uri(resource_group, name), content=encode_container_group(payload))
        return decode_container_group(response.content, response.status_code)

    def get_container_group(self, resource_group: str, name: str) -> tuple[ContainerGroup, ResponseMetadata]:
        """Estado remoto actual. `NotFoundError` si no existe."""

        response = self._send("GET", self._group_uri(resource_group, name))
        group = decode_container_group(response.content, response.status_code)
        return group, self._metadata(response)

    def list_container_groups(self, resource_group: str) -> ContainerGroupList:
        """Todos los grupos del resource group, en el orden del servicio."""

        return self._list(self._group_uri(resource_group))

    def list_container_groups_in_subscription(self) -> ContainerGroupList:
        url = build_subscription_container_groups_uri(
            self._credential.subscription_id,
            base_url=self._base_url,
            api_version=self._settings.api_version,
        )
        return self._list(url)

    def _list(self, url: str) -> ContainerGroupList:
        groups: list[ContainerGroup] = []
        seen: set[str] = set()
        next_url: str | None = url
        while next_url:
            if next_url in seen:
                raise DecodeError(f"pagination loop detected at {httpx.URL(next_url).path}")
            seen.add(next_url)
            response = self._send("GET", next_url)
            page = decode_container_group_list(response.content, response.status_code)
            groups.extend(page.value)
            next_url = page.next_link
        return ContainerGroupList(value=groups)

    def delete_container_group(self, resource_group: str, name: str) -> None:
        """Pide el borrado. Éxito = el servicio lo aceptó (puede seguir en curso).

        Un 2xx es éxito (incluido el 204 que ARM devuelve si ya no existía);
        un 404 sube como `NotFoundError` sin traducir.
        """

        response = self._send("DELETE", self._group_uri(resource_group, name))
        decode(response.content, response.status_code, "none")

    def get_container_logs(
        self,
        resource_group: str,
        name: str,
        container_name: str,
        *,
        tail: int | None = None,
    ) -> str:
        url = build_container_logs_uri(
            self._credential.subscription_id,
            resource_group,
            name,
            container_name,
            base_url=self._base_url,
            api_version=self._settings.api_version,
            tail=tail,
        )
        response = self._send("GET", url)
        if not 200 <= response.status_code < 300:
            raise error_from_response(response.status_code, response.content)
        try:
            data: Any = response.json()
        except ValueError:
            raise DecodeError("logs response is not JSON", status_code=response.status_code, body=response.text) from None
        content = data.get("content") if isinstance(data, dict) else None
        if content is not None and not isinstance(content, str):
            raise DecodeError("logs response has no 'content' string", status_code=response.status_code, body=response.text)
        return content or ""
