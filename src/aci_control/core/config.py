"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (HTTP/token/cliente ACI) lean config de forma consistente.

Nota: las credenciales NO viven aquí; las resuelve
`aci_control.adapters.credential_resolver` para que nunca acaben en un `.env`
compartido por accidente.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "aci-control"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "aci-control"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "aci-control"
    return Path.home() / ".config" / "aci-control"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


class AppSettings(BaseSettings):
    """Configuración central del cliente.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="ACI_CONTROL_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    management_endpoint: str = Field(
        default="https://management.azure.com",
        min_length=8,
        description="Base URL del plano de control (Azure Resource Manager).",
    )
    authority_host: str = Field(
        default="https://login.microsoftonline.com",
        min_length=8,
        description="Host del endpoint de identidad (OAuth2 client credentials).",
    )
    api_version: str = Field(
        default="2018-10-01",
        min_length=1,
        description="Versión de API de Microsoft.ContainerInstance.",
    )
    resource_groups_api_version: str = Field(
        default="2021-04-01",
        min_length=1,
        description="Versión de API de Microsoft.Resources para resource groups.",
    )

    http_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout por request (segundos). Único deadline del transporte.",
    )
    user_agent: str = Field(
        default="aci-control/0.1",
        min_length=1,
        description="User-Agent para peticiones al plano de control.",
    )

    auth_max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Reintentos máximos al pedir token (red, 429, 5xx).",
    )
    token_refresh_margin_seconds: float = Field(
        default=300.0,
        ge=0,
        description="Margen antes de la expiración a partir del cual se renueva el token.",
    )

    auth_location: Path | None = Field(
        default=None,
        description="Ruta explícita al fichero de credenciales (equivale a AZURE_AUTH_LOCATION).",
    )
    default_location: str = Field(
        default="eastus",
        min_length=1,
        description="Región por defecto para grupos de contenedores creados desde la CLI.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Nivel de logging que configura la CLI (DEBUG, INFO, WARNING...).",
    )
