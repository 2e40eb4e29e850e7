"""Contrato de proveedores de token.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- Permite que el cliente ACI use el proveedor OAuth real o un stub en tests
  sin acoplarse a la implementación concreta.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from aci_control.core.domain.models import AccessToken


@runtime_checkable
class TokenSource(Protocol):
    """Contrato mínimo para obtener un bearer token.

    Reglas de diseño:
    - `get_token` es síncrono y seguro ante llamadas concurrentes.
    - Devuelve un token vigente o lanza `AuthError`.
    """

    def get_token(self) -> AccessToken:
        """Devuelve un token vigente, renovándolo si hace falta."""

        ...
