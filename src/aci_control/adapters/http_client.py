"""Wrapper de httpx.

Por qué un wrapper:
- Estandariza timeouts y headers para identidad y plano de control.
- Facilita testeo: los adapters aceptan un cliente inyectado (p.ej. con `httpx.MockTransport`).
"""

from __future__ import annotations

import httpx

from aci_control.core.config import AppSettings


def build_http_client(settings: AppSettings | None = None) -> httpx.Client:
    """Crea un `httpx.Client` síncrono con defaults seguros.

    Por qué un builder:
    - Centraliza timeouts/headers para que token y cliente ACI se comporten igual.
    - El timeout es el único deadline del transporte; el cliente no añade otro.
    """

    settings = settings or AppSettings()
    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    return httpx.Client(
        timeout=httpx.Timeout(settings.http_timeout_seconds),
        follow_redirects=False,
        headers=headers,
    )
