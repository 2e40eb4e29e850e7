"""Taxonomía de errores del cliente.

Por qué una jerarquía propia:
- Los llamadores deciden qué reintentar (`TransientError`) y qué no
  (`ValidationError`) sin inspeccionar códigos HTTP.
- Todas conservan `code`/`message` del servicio tal cual, para poder hacer
  `"ResourceSomeRequestsNotSpecified" in str(exc)`.

Nada aquí termina el proceso: son valores que suben al llamador.
"""

from __future__ import annotations


class AciError(Exception):
    """Error base de `aci_control`."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        code: str | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.body = body

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (HTTP {self.status_code})"


class CredentialError(AciError):
    """No se pudo resolver un conjunto de credenciales válido."""


class AuthError(AciError):
    """Credencial rechazada, identidad inalcanzable o reintentos agotados."""


class ValidationError(AciError):
    """El servicio rechazó el cuerpo de la petición como inválido."""


class NotFoundError(AciError):
    """El grupo de recursos o el grupo de contenedores no existe."""


class TransientError(AciError):
    """Fallo de red o respuesta 5xx/429; el llamador puede reintentar."""


class DecodeError(AciError):
    """La respuesta no encaja con el esquema esperado."""


class ServiceError(AciError):
    """Respuesta no-2xx que no encaja en ninguna de las categorías anteriores."""
