"""Resolución de credenciales del service principal.

Orden de resolución:
1) Ruta explícita: `AZURE_AUTH_LOCATION` o `settings.auth_location`.
2) Rutas fijas de fallback: `./credentials.json` y luego
   `<user_config_dir>/credentials.json`.
3) Variables `AZURE_TENANT_ID` / `AZURE_CLIENT_ID` / `AZURE_CLIENT_SECRET` /
   `AZURE_SUBSCRIPTION_ID`.
4) Si nada aplica: `CredentialError` (fail fast al arrancar).

El fichero usa el formato "SDK auth" de Azure (`az ad sp create-for-rbac --sdk-auth`).
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from aci_control.core.config import AppSettings, get_user_config_dir
from aci_control.core.domain.models import Credential
from aci_control.core.errors import CredentialError

logger = logging.getLogger(__name__)

AUTH_LOCATION_ENV = "AZURE_AUTH_LOCATION"
CREDENTIALS_FILENAME = "credentials.json"

_ENV_KEYS = {
    "tenant_id": "AZURE_TENANT_ID",
    "client_id": "AZURE_CLIENT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
    "subscription_id": "AZURE_SUBSCRIPTION_ID",
}


def default_credential_paths() -> list[Path]:
    return [
        Path.cwd() / CREDENTIALS_FILENAME,
        get_user_config_dir() / CREDENTIALS_FILENAME,
    ]


def _read_text(path: Path) -> str:
    raw = path.read_bytes()
    # `az ... --sdk-auth > file` en PowerShell deja UTF-16 con BOM.
    if raw.startswith((b"\xff\xfe", b"\xfe\xff")):
        return raw.decode("utf-16")
    return raw.decode("utf-8-sig")


def load_credential_file(path: Path) -> Credential:
    """Lee un fichero SDK auth y lo normaliza como `Credential`."""

    try:
        data = json.loads(_read_text(path))
    except OSError as exc:
        raise CredentialError(f"cannot read credentials file {path}: {exc}") from exc
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise CredentialError(f"credentials file {path} is not valid JSON") from exc

    if not isinstance(data, dict):
        raise CredentialError(f"credentials file {path} must contain a JSON object")

    required = {
        "tenant_id": data.get("tenantId"),
        "client_id": data.get("clientId"),
        "client_secret": data.get("clientSecret"),
        "subscription_id": data.get("subscriptionId"),
    }
    missing = sorted(k for k, v in required.items() if not isinstance(v, str) or not v.strip())
    if missing:
        raise CredentialError(f"credentials file {path} is missing fields: {', '.join(missing)}")

    try:
        return Credential(
            **required,
            authority_host=data.get("activeDirectoryEndpointUrl") or None,
            resource_manager_endpoint=data.get("resourceManagerEndpointUrl") or None,
        )
    except PydanticValidationError as exc:
        # Solo nombres de campo: el mensaje de pydantic incluiría los valores.
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        raise CredentialError(
            f"credentials file {path} has invalid fields: {', '.join(fields)}"
        ) from None


def _credential_from_env(environ: Mapping[str, str]) -> Credential | None:
    values = {field: (environ.get(key) or "").strip() for field, key in _ENV_KEYS.items()}
    if not all(values.values()):
        return None
    return Credential(**values)


def resolve_credential(
    settings: AppSettings | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    fallback_paths: list[Path] | None = None,
) -> Credential:
    """Resuelve la credencial según el orden documentado en el módulo."""

    settings = settings or AppSettings()
    env = os.environ if environ is None else environ

    explicit = (env.get(AUTH_LOCATION_ENV) or "").strip()
    if explicit:
        path = Path(explicit)
        if not path.is_file():
            raise CredentialError(f"{AUTH_LOCATION_ENV} points to a missing file: {path}")
        logger.debug("loading credentials from %s", path)
        return load_credential_file(path)

    if settings.auth_location is not None:
        if not settings.auth_location.is_file():
            raise CredentialError(f"auth_location points to a missing file: {settings.auth_location}")
        logger.debug("loading credentials from %s", settings.auth_location)
        return load_credential_file(settings.auth_location)

    candidates = default_credential_paths() if fallback_paths is None else fallback_paths
    for candidate in candidates:
        if candidate.is_file():
            logger.debug("loading credentials from fallback %s", candidate)
            return load_credential_file(candidate)

    from_env = _credential_from_env(env)
    if from_env is not None:
        logger.debug("using service principal from environment variables")
        return from_env

    raise CredentialError(
        f"Either set {AUTH_LOCATION_ENV} or add a {CREDENTIALS_FILENAME} file "
        f"({', '.join(str(p) for p in candidates)})."
    )
