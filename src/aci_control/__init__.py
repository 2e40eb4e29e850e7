"""Cliente del plano de control para grupos de contenedores (Azure Container Instances)."""

from aci_control.adapters.aci_client import ContainerGroupClient
from aci_control.adapters.credential_resolver import resolve_credential
from aci_control.adapters.token_provider import TokenProvider
from aci_control.core.config import AppSettings
from aci_control.core.domain.models import (
    Container,
    ContainerGroup,
    ContainerGroupList,
    ContainerNetworkProtocol,
    ContainerPort,
    Credential,
    OperatingSystemType,
    ResourceLimits,
    ResourceRequests,
    ResourceRequirements,
    ResourceScope,
)
from aci_control.core.errors import (
    AciError,
    AuthError,
    CredentialError,
    DecodeError,
    NotFoundError,
    ServiceError,
    TransientError,
    ValidationError,
)

__all__ = [
    "AciError",
    "AppSettings",
    "AuthError",
    "Container",
    "ContainerGroup",
    "ContainerGroupClient",
    "ContainerGroupList",
    "ContainerNetworkProtocol",
    "ContainerPort",
    "Credential",
    "CredentialError",
    "DecodeError",
    "NotFoundError",
    "OperatingSystemType",
    "ResourceLimits",
    "ResourceRequests",
    "ResourceRequirements",
    "ResourceScope",
    "ServiceError",
    "TokenProvider",
    "TransientError",
    "ValidationError",
    "resolve_credential",
]
