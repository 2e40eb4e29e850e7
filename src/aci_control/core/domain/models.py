"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Nos da validación estricta y documentación autocontenida (Field) sin acoplar
  el Core a librerías de I/O.
- `SecretStr` mantiene secretos fuera de `repr`, logs y `model_dump`.

Nota:
- Estos modelos describen *qué* es un grupo de contenedores, no *cómo* viaja.
  La forma de cable (camelCase, sobre `properties`) vive en
  `aci_control.adapters.aci_codec`.
- `None` significa "no declarado"; `0` es un valor explícito. El codec respeta
  esa diferencia.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, SecretStr
from pydantic.config import ConfigDict


class OperatingSystemType(str, Enum):
    LINUX = "Linux"
    WINDOWS = "Windows"


class ContainerNetworkProtocol(str, Enum):
    TCP = "TCP"
    UDP = "UDP"


class ContainerGroupNetworkProtocol(str, Enum):
    TCP = "TCP"
    UDP = "UDP"


class ContainerGroupRestartPolicy(str, Enum):
    ALWAYS = "Always"
    ON_FAILURE = "OnFailure"
    NEVER = "Never"


class IpAddressType(str, Enum):
    PUBLIC = "Public"
    PRIVATE = "Private"


class ProvisioningState(str, Enum):
    """Estados que reporta el servicio.

    El cliente nunca transiciona estados: solo reporta lo que dice el servicio.
    `ContainerGroup.provisioning_state` es `str` porque el servicio puede
    añadir valores nuevos; este enum sirve para comparar.
    """

    PENDING = "Pending"
    CREATING = "Creating"
    REPAIRING = "Repairing"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    DELETING = "Deleting"
    CANCELED = "Canceled"

    @classmethod
    def parse(cls, value: str | None) -> "ProvisioningState | None":
        """Estado conocido para `value` (sin distinguir mayúsculas) o None."""

        if not value:
            return None
        for state in cls:
            if state.value.lower() == value.lower():
                return state
        return None

    def is_terminal(self) -> bool:
        """True para los estados finales (Succeeded/Failed/Canceled)."""

        return self in {ProvisioningState.SUCCEEDED, ProvisioningState.FAILED, ProvisioningState.CANCELED}


class Credential(BaseModel):
    """Service principal con el que se autentica el cliente.

    Inmutable: se crea una vez al construir el cliente y vive lo mismo que él.
    """

    model_config = ConfigDict(frozen=True)

    tenant_id: str = Field(..., min_length=1, description="Tenant (directorio) de Azure AD.")
    client_id: str = Field(..., min_length=1, description="Application (client) ID.")
    client_secret: SecretStr = Field(..., description="Secreto del service principal.")
    subscription_id: str = Field(..., min_length=1, description="Suscripción sobre la que se opera.")
    authority_host: str | None = Field(
        default=None,
        description="Endpoint de identidad si el fichero de credenciales lo fija.",
    )
    resource_manager_endpoint: str | None = Field(
        default=None,
        description="Endpoint de ARM si el fichero de credenciales lo fija.",
    )


class AccessToken(BaseModel):
    """Token bearer de corta duración. Propiedad exclusiva del TokenProvider."""

    model_config = ConfigDict(frozen=True)

    token: SecretStr
    expires_on: float = Field(..., description="Expiración en Unix time (segundos).")
    issued_on: float | None = Field(default=None, description="Momento en que se obtuvo (Unix time).")

    @property
    def lifetime(self) -> float | None:
        if self.issued_on is None:
            return None
        return self.expires_on - self.issued_on

    def expires_within(self, margin_seconds: float, *, now: float | None = None) -> bool:
        """True si expira dentro de `margin_seconds`.

        El margen efectivo nunca supera la mitad de la vida del token: un
        token de vida corta recién emitido sigue contando como fresco.
        """

        current = time.time() if now is None else now
        lifetime = self.lifetime
        if lifetime is not None:
            margin_seconds = min(margin_seconds, lifetime / 2)
        return self.expires_on - margin_seconds <= current


class ResourceRequests(BaseModel):
    cpu: float = Field(..., ge=0, description="Cores solicitados.")
    memory_in_gb: float = Field(..., ge=0, description="Memoria solicitada (GB).")


class ResourceLimits(BaseModel):
    cpu: float | None = Field(default=None, ge=0)
    memory_in_gb: float | None = Field(default=None, ge=0)


class ResourceRequirements(BaseModel):
    """Requests/limits de un contenedor.

    El servicio exige `requests` en cada contenedor; si faltan responde con
    `ResourceSomeRequestsNotSpecified`. No lo validamos en local a propósito:
    la fuente de verdad es el servicio.
    """

    requests: ResourceRequests | None = None
    limits: ResourceLimits | None = None


class ContainerPort(BaseModel):
    protocol: ContainerNetworkProtocol | None = None
    port: int = Field(..., ge=1, le=65535)


class Port(BaseModel):
    """Puerto expuesto en la IP del grupo."""

    protocol: ContainerGroupNetworkProtocol | None = None
    port: int = Field(..., ge=1, le=65535)


class EnvironmentVariable(BaseModel):
    name: str = Field(..., min_length=1)
    value: str | None = None
    secure_value: SecretStr | None = None


class VolumeMount(BaseModel):
    name: str = Field(..., min_length=1)
    mount_path: str = Field(..., min_length=1)
    read_only: bool | None = None


class AzureFileVolume(BaseModel):
    share_name: str = Field(..., min_length=1)
    storage_account_name: str = Field(..., min_length=1)
    storage_account_key: SecretStr | None = None
    read_only: bool | None = None


class Volume(BaseModel):
    name: str = Field(..., min_length=1)
    azure_file: AzureFileVolume | None = None
    empty_dir: dict[str, object] | None = None
    secret: dict[str, SecretStr] | None = None


class ImageRegistryCredential(BaseModel):
    server: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: SecretStr | None = None


class IpAddress(BaseModel):
    ports: list[Port] = Field(default_factory=list)
    type: IpAddressType = IpAddressType.PUBLIC
    dns_name_label: str | None = None
    ip: str | None = Field(default=None, description="Asignada por el servicio.")
    fqdn: str | None = Field(default=None, description="Asignado por el servicio.")


class Event(BaseModel):
    count: int | None = None
    first_timestamp: datetime | None = None
    last_timestamp: datetime | None = None
    name: str | None = None
    message: str | None = None
    type: str | None = None


class ContainerState(BaseModel):
    state: str | None = None
    start_time: datetime | None = None
    exit_code: int | None = None
    finish_time: datetime | None = None
    detail_status: str | None = None


class ContainerInstanceView(BaseModel):
    restart_count: int | None = None
    current_state: ContainerState | None = None
    previous_state: ContainerState | None = None
    events: list[Event] = Field(default_factory=list)


class ContainerGroupInstanceView(BaseModel):
    state: str | None = None
    events: list[Event] = Field(default_factory=list)


class Container(BaseModel):
    """Contenedor dentro de un grupo. Sin ciclo de vida propio."""

    name: str = Field(..., min_length=1, max_length=63)
    image: str = Field(..., min_length=1)
    command: list[str] = Field(default_factory=list)
    ports: list[ContainerPort] = Field(default_factory=list)
    environment_variables: list[EnvironmentVariable] = Field(default_factory=list)
    resources: ResourceRequirements | None = None
    volume_mounts: list[VolumeMount] = Field(default_factory=list)
    instance_view: ContainerInstanceView | None = Field(
        default=None,
        description="Solo lectura: lo rellena el servicio.",
    )


class ContainerGroup(BaseModel):
    """Estado declarado/observado de un grupo de contenedores remoto.

    Su identidad es la clave (resource group, name); no hay id local.
    """

    name: str = Field(default="", max_length=63, description="Lo fija el cliente al crear.")
    location: str = Field(..., min_length=1)
    os_type: OperatingSystemType = OperatingSystemType.LINUX
    containers: list[Container] = Field(default_factory=list)
    restart_policy: ContainerGroupRestartPolicy | None = None
    ip_address: IpAddress | None = None
    image_registry_credentials: list[ImageRegistryCredential] = Field(default_factory=list)
    volumes: list[Volume] = Field(default_factory=list)
    tags: dict[str, str] | None = None

    # Campos que solo rellena el servicio.
    id: str | None = None
    type: str | None = None
    provisioning_state: str | None = None
    instance_view: ContainerGroupInstanceView | None = None


class ContainerGroupList(BaseModel):
    """Resultado efímero de un List. El orden es el del servicio."""

    value: list[ContainerGroup] = Field(default_factory=list)
    next_link: str | None = None


class ResponseMetadata(BaseModel):
    """Metadatos crudos de una respuesta (status + ids de correlación de ARM)."""

    status_code: int
    request_id: str | None = None
    correlation_id: str | None = None


class ResourceScope(BaseModel):
    """Ámbito explícito (resource group + región) para un llamador o un test.

    Sustituye a variables globales compartidas: cada test/llamador crea el suyo.
    """

    model_config = ConfigDict(frozen=True)

    resource_group: str = Field(..., min_length=1, max_length=90)
    location: str = Field(..., min_length=1)

    @classmethod
    def generate(cls, prefix: str, location: str) -> "ResourceScope":
        """Crea un ámbito con sufijo aleatorio corto (`<prefix>-abc123`)."""

        return cls(resource_group=f"{prefix}-{uuid.uuid4().hex[:6]}", location=location)
