"""Proveedor de tokens OAuth2 (client credentials) para ARM.

Responsabilidad:
- Intercambiar la credencial del service principal por un bearer token.
- Cachear el token y renovarlo antes de que expire (margen configurable).
- Garantizar una sola renovación en vuelo: los hilos que llegan mientras otro
  renueva esperan al lock y reutilizan el token nuevo.

El secreto solo sale de `SecretStr` para construir el form del POST.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

import httpx

from aci_control.adapters.http_client import build_http_client
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import AccessToken, Credential
from aci_control.core.errors import AuthError
from aci_control.core.interfaces.token import TokenSource

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


def _safe_retry_after_seconds(response: httpx.Response) -> float | None:
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return max(0.0, min(seconds, 60.0))


def _as_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _identity_error(response: httpx.Response) -> tuple[str | None, str]:
    """Extrae (`error`, `error_description`) de una respuesta de identidad."""

    try:
        data: Any = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        code = data.get("error") if isinstance(data.get("error"), str) else None
        description = data.get("error_description")
        if isinstance(description, str) and description.strip():
            return code, description.strip().splitlines()[0]
        if code:
            return code, code
    text = (response.text or "").strip()
    return None, text[:500] or f"identity endpoint returned HTTP {response.status_code}"


class TokenProvider(TokenSource):
    """Cache de token protegida por lock con renovación bajo demanda."""

    def __init__(
        self,
        credential: Credential,
        settings: AppSettings | None = None,
        *,
        http_client: httpx.Client | None = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._credential = credential
        self._settings = settings or AppSettings()
        self._owns_client = http_client is None
        self._http = http_client or build_http_client(self._settings)
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._token: AccessToken | None = None

    @property
    def token_url(self) -> str:
        authority = (self._credential.authority_host or self._settings.authority_host).rstrip("/")
        return f"{authority}/{quote(self._credential.tenant_id, safe='')}/oauth2/v2.0/token"

    @property
    def scope(self) -> str:
        resource = self._credential.resource_manager_endpoint or self._settings.management_endpoint
        return resource.rstrip("/") + "/.default"

    def _is_fresh(self, token: AccessToken) -> bool:
        return not token.expires_within(self._settings.token_refresh_margin_seconds, now=self._clock())

    def get_token(self) -> AccessToken:
        token = self._token
        if token is not None and self._is_fresh(token):
            return token

        with self._lock:
            # Otro hilo pudo renovar mientras esperábamos el lock.
            token = self._token
            if token is not None and self._is_fresh(token):
                return token
            token = self._request_token()
            self._token = token
            return token

    def invalidate(self) -> None:
        """Descarta el token cacheado; la próxima llamada renueva."""

        with self._lock:
            self._token = None

    def close(self) -> None:
        if self._owns_client:
            self._http.close()

    def _request_token(self) -> AccessToken:
        form = {
            "grant_type": "client_credentials",
            "client_id": self._credential.client_id,
            "client_secret": self._credential.client_secret.get_secret_value(),
            "scope": self.scope,
        }
        max_retries = self._settings.auth_max_retries
        last_error = AuthError("token refresh was not attempted")

        for attempt in range(max_retries + 1):
            retry_after: float | None = None
            logger.debug("requesting token for tenant %s (attempt %d)", self._credential.tenant_id, attempt + 1)
            try:
                response = self._http.post(
                    self.token_url,
                    data=form,
                    headers={"Accept": "application/json"},
                )
            except httpx.RequestError as exc:
                last_error = AuthError(f"identity endpoint unreachable: {exc.__class__.__name__}: {exc}")
            else:
                if response.status_code == 200:
                    return self._parse_token_response(response)

                code, description = _identity_error(response)
                message = f"{code}: {description}" if code and code != description else description
                last_error = AuthError(
                    message,
                    status_code=response.status_code,
                    code=code,
                    body=response.text,
                )
                if response.status_code not in _RETRYABLE_STATUS:
                    # Secreto inválido, tenant desconocido...: reintentar no ayuda.
                    raise last_error
                retry_after = _safe_retry_after_seconds(response)

            if attempt >= max_retries:
                break
            base = retry_after if retry_after is not None else (1.25 * (2**attempt))
            self._sleep(base + random.uniform(0.0, 0.35))

        raise AuthError(
            f"token refresh failed after {max_retries + 1} attempts: {last_error.message}",
            status_code=last_error.status_code,
            code=last_error.code,
            body=last_error.body,
        )

    def _parse_token_response(self, response: httpx.Response) -> AccessToken:
        try:
            data: Any = response.json()
        except ValueError:
            raise AuthError(
                "identity endpoint returned a non-JSON token response",
                status_code=response.status_code,
            ) from None

        if not isinstance(data, dict) or not isinstance(data.get("access_token"), str) or not data["access_token"]:
            raise AuthError("identity response is missing access_token", status_code=response.status_code)

        now = self._clock()
        expires_in = _as_float(data.get("expires_in"))
        expires_on = _as_float(data.get("expires_on"))
        if expires_in is not None:
            expiry = now + expires_in
        elif expires_on is not None:
            expiry = expires_on
        else:
            raise AuthError("identity response has no expiry", status_code=response.status_code)

        if expiry <= now:
            raise AuthError("identity endpoint returned an already expired token", status_code=response.status_code)

        logger.debug("token refreshed, valid for %.0fs", expiry - now)
        return AccessToken(token=data["access_token"], expires_on=expiry, issued_on=now)
