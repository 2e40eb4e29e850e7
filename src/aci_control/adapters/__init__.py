"""Adaptadores de I/O (HTTP, ficheros, variables de entorno).

Por qué un paquete aparte:
- El Core (modelos, errores, rutas) no conoce httpx.
- Aquí viven las piezas que hablan con identidad y con ARM.
"""
