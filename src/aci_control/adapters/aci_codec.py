"""Codec JSON ↔ dominio para Microsoft.ContainerInstance.

Responsabilidad:
- Serializar `ContainerGroup` al esquema de cable de ARM (camelCase y todo
  anidado bajo `properties`).
- Deserializar respuestas 2xx (objeto o `{value: [...], nextLink}`).
- Interpretar sobres de error heterogéneos y clasificarlos.

Reglas de codificación:
- `None` y listas opcionales vacías se omiten; un `0` explícito se envía.
- Los campos que solo rellena el servicio (id, type, provisioningState,
  instanceView, ip, fqdn) nunca se envían.
- Los `SecretStr` solo se revelan aquí, al construir el cuerpo.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic import ValidationError as PydanticValidationError

from aci_control.core.domain.models import (
    Container,
    ContainerGroup,
    ContainerGroupList,
    ResourceRequirements,
    Volume,
)
from aci_control.core.errors import (
    AciError,
    AuthError,
    DecodeError,
    NotFoundError,
    ServiceError,
    TransientError,
    ValidationError,
)

ResponseKind = Literal["group", "list", "none"]

_NOT_FOUND_CODES = {"resourcenotfound", "resourcegroupnotfound", "notfound"}


# ---------------------------------------------------------------------------
# Encode
# ---------------------------------------------------------------------------


def _secret(value: SecretStr | None) -> str | None:
    return value.get_secret_value() if value is not None else None


def _enum(value: Enum | None) -> str | None:
    return value.value if value is not None else None


def _compact(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def _resources_to_wire(resources: ResourceRequirements) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if resources.requests is not None:
        out["requests"] = {
            "cpu": resources.requests.cpu,
            "memoryInGB": resources.requests.memory_in_gb,
        }
    if resources.limits is not None:
        out["limits"] = _compact(
            {
                "cpu": resources.limits.cpu,
                "memoryInGB": resources.limits.memory_in_gb,
            }
        )
    return out


def _container_to_wire(container: Container) -> dict[str, Any]:
    props: dict[str, Any] = {"image": container.image}
    if container.command:
        props["command"] = list(container.command)
    if container.ports:
        props["ports"] = [
            _compact({"protocol": _enum(p.protocol), "port": p.port}) for p in container.ports
        ]
    if container.environment_variables:
        props["environmentVariables"] = [
            _compact({"name": e.name, "value": e.value, "secureValue": _secret(e.secure_value)})
            for e in container.environment_variables
        ]
    if container.resources is not None:
        props["resources"] = _resources_to_wire(container.resources)
    if container.volume_mounts:
        props["volumeMounts"] = [
            _compact({"name": m.name, "mountPath": m.mount_path, "readOnly": m.read_only})
            for m in container.volume_mounts
        ]
    return {"name": container.name, "properties": props}


def _volume_to_wire(volume: Volume) -> dict[str, Any]:
    out: dict[str, Any] = {"name": volume.name}
    if volume.azure_file is not None:
        af = volume.azure_file
        out["azureFile"] = _compact(
            {
                "shareName": af.share_name,
                "storageAccountName": af.storage_account_name,
                "storageAccountKey": _secret(af.storage_account_key),
                "readOnly": af.read_only,
            }
        )
    if volume.empty_dir is not None:
        out["emptyDir"] = dict(volume.empty_dir)
    if volume.secret is not None:
        out["secret"] = {k: v.get_secret_value() for k, v in volume.secret.items()}
    return out


def container_group_to_wire(group: ContainerGroup) -> dict[str, Any]:
    """Construye el documento JSON (dict) que espera el PUT de ARM."""

    props: dict[str, Any] = {
        "containers": [_container_to_wire(c) for c in group.containers],
        "osType": group.os_type.value,
    }
    if group.restart_policy is not None:
        props["restartPolicy"] = group.restart_policy.value
    if group.ip_address is not None:
        ip: dict[str, Any] = {"type": group.ip_address.type.value}
        if group.ip_address.ports:
            ip["ports"] = [
                _compact({"protocol": _enum(p.protocol), "port": p.port})
                for p in group.ip_address.ports
            ]
        if group.ip_address.dns_name_label is not None:
            ip["dnsNameLabel"] = group.ip_address.dns_name_label
        props["ipAddress"] = ip
    if group.image_registry_credentials:
        props["imageRegistryCredentials"] = [
            _compact({"server": c.server, "username": c.username, "password": _secret(c.password)})
            for c in group.image_registry_credentials
        ]
    if group.volumes:
        props["volumes"] = [_volume_to_wire(v) for v in group.volumes]

    body: dict[str, Any] = {"location": group.location, "properties": props}
    if group.name:
        body["name"] = group.name
    if group.tags is not None:
        body["tags"] = dict(group.tags)
    return body


def encode_container_group(group: ContainerGroup) -> bytes:
    return json.dumps(container_group_to_wire(group), ensure_ascii=False).encode("utf-8")


# ---------------------------------------------------------------------------
# Decode (2xx)
# ---------------------------------------------------------------------------


def _items(value: object) -> list[dict[str, Any]]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


class _ShapeError(ValueError):
    """Documento con forma incorrecta en un campo obligatorio."""


def _required_obj(value: object, what: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise _ShapeError(f"'{what}' is not an object")
    return value


def _required_items(value: object, what: str) -> list[dict[str, Any]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, dict) for v in value):
        raise _ShapeError(f"'{what}' is not an array of objects")
    return value


def _event_from_wire(data: dict[str, Any]) -> dict[str, Any]:
    return {
        "count": data.get("count"),
        "first_timestamp": data.get("firstTimestamp"),
        "last_timestamp": data.get("lastTimestamp"),
        "name": data.get("name"),
        "message": data.get("message"),
        "type": data.get("type"),
    }


def _state_from_wire(value: object) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    return {
        "state": value.get("state"),
        "start_time": value.get("startTime"),
        "exit_code": value.get("exitCode"),
        "finish_time": value.get("finishTime"),
        "detail_status": value.get("detailStatus"),
    }


def _resources_from_wire(value: object) -> dict[str, Any] | None:
    if not isinstance(value, dict):
        return None
    out: dict[str, Any] = {}
    if isinstance(value.get("requests"), dict):
        req = value["requests"]
        out["requests"] = {"cpu": req.get("cpu"), "memory_in_gb": req.get("memoryInGB")}
    if isinstance(value.get("limits"), dict):
        lim = value["limits"]
        out["limits"] = {"cpu": lim.get("cpu"), "memory_in_gb": lim.get("memoryInGB")}
    return out


def _container_from_wire(data: dict[str, Any]) -> dict[str, Any]:
    props = _required_obj(data.get("properties"), "containers[].properties")
    out: dict[str, Any] = {
        "name": data.get("name"),
        "image": props.get("image"),
        "command": props.get("command") or [],
        "ports": [{"protocol": p.get("protocol"), "port": p.get("port")} for p in _items(props.get("ports"))],
        "environment_variables": [
            {"name": e.get("name"), "value": e.get("value"), "secure_value": e.get("secureValue")}
            for e in _items(props.get("environmentVariables"))
        ],
        "resources": _resources_from_wire(props.get("resources")),
        "volume_mounts": [
            {"name": m.get("name"), "mount_path": m.get("mountPath"), "read_only": m.get("readOnly")}
            for m in _items(props.get("volumeMounts"))
        ],
    }
    view = props.get("instanceView")
    if isinstance(view, dict):
        out["instance_view"] = {
            "restart_count": view.get("restartCount"),
            "current_state": _state_from_wire(view.get("currentState")),
            "previous_state": _state_from_wire(view.get("previousState")),
            "events": [_event_from_wire(e) for e in _items(view.get("events"))],
        }
    return out


def _volume_from_wire(data: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {"name": data.get("name")}
    af = data.get("azureFile")
    if isinstance(af, dict):
        out["azure_file"] = {
            "share_name": af.get("shareName"),
            "storage_account_name": af.get("storageAccountName"),
            "storage_account_key": af.get("storageAccountKey"),
            "read_only": af.get("readOnly"),
        }
    if isinstance(data.get("emptyDir"), dict):
        out["empty_dir"] = data["emptyDir"]
    if isinstance(data.get("secret"), dict):
        out["secret"] = data["secret"]
    return out


def container_group_from_wire(data: dict[str, Any]) -> ContainerGroup:
    """Valida un documento ARM y devuelve un `ContainerGroup` nuevo.

    Lanza `ValueError` (incluido `pydantic.ValidationError`) si el documento
    no encaja; `decode` lo convierte en `DecodeError`. `name`, `properties` y
    `properties.containers` se validan estrictamente; el resto de campos
    opcionales anidados se leen con tolerancia.
    """

    name = data.get("name")
    if not isinstance(name, str) or not name:
        raise _ShapeError("container group has no 'name'")
    props = _required_obj(data.get("properties"), "properties")
    containers = _required_items(props.get("containers"), "properties.containers")
    out: dict[str, Any] = {
        "name": name,
        "location": data.get("location"),
        "containers": [_container_from_wire(c) for c in containers],
        "image_registry_credentials": [
            {"server": c.get("server"), "username": c.get("username"), "password": c.get("password")}
            for c in _items(props.get("imageRegistryCredentials"))
        ],
        "volumes": [_volume_from_wire(v) for v in _items(props.get("volumes"))],
        "tags": data.get("tags") if isinstance(data.get("tags"), dict) else None,
        "id": data.get("id"),
        "type": data.get("type"),
        "provisioning_state": props.get("provisioningState"),
    }
    if props.get("osType"):
        out["os_type"] = props["osType"]
    if props.get("restartPolicy"):
        out["restart_policy"] = props["restartPolicy"]
    ip = props.get("ipAddress")
    if isinstance(ip, dict):
        out["ip_address"] = {
            "ports": [{"protocol": p.get("protocol"), "port": p.get("port")} for p in _items(ip.get("ports"))],
            "type": ip.get("type") or "Public",
            "dns_name_label": ip.get("dnsNameLabel"),
            "ip": ip.get("ip"),
            "fqdn": ip.get("fqdn"),
        }
    view = props.get("instanceView")
    if isinstance(view, dict):
        out["instance_view"] = {
            "state": view.get("state"),
            "events": [_event_from_wire(e) for e in _items(view.get("events"))],
        }
    return ContainerGroup.model_validate(out)


def _body_text(body: bytes | str | None) -> str:
    if body is None:
        return ""
    if isinstance(body, bytes):
        return body.decode("utf-8", errors="replace")
    return body


def _load_json(text: str, status_code: int, what: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"cannot decode {what} response: {exc.msg}",
            status_code=status_code,
            body=text,
        ) from None


def decode_container_group(body: bytes | str | None, status_code: int) -> ContainerGroup:
    text = _body_text(body)
    if not 200 <= status_code < 300:
        raise error_from_response(status_code, text)
    if not text.strip():
        raise DecodeError("empty container group response", status_code=status_code, body=text)

    data = _load_json(text, status_code, "container group")
    if not isinstance(data, dict):
        raise DecodeError("container group response is not a JSON object", status_code=status_code, body=text)
    try:
        return container_group_from_wire(data)
    except _ShapeError as exc:
        raise DecodeError(
            f"container group response has the wrong shape: {exc}",
            status_code=status_code,
            body=text,
        ) from None
    except PydanticValidationError as exc:
        raise DecodeError(
            f"container group response does not match schema: {exc.error_count()} error(s)",
            status_code=status_code,
            body=text,
        ) from exc


def decode_container_group_list(body: bytes | str | None, status_code: int) -> ContainerGroupList:
    text = _body_text(body)
    if not 200 <= status_code < 300:
        raise error_from_response(status_code, text)
    if not text.strip():
        raise DecodeError("empty container group list response", status_code=status_code, body=text)

    data = _load_json(text, status_code, "container group list")
    if not isinstance(data, dict) or not isinstance(data.get("value"), list):
        raise DecodeError(
            "container group list response has no 'value' array",
            status_code=status_code,
            body=text,
        )
    try:
        groups = [container_group_from_wire(item) for item in _required_items(data["value"], "value")]
    except _ShapeError as exc:
        raise DecodeError(
            f"container group list response has the wrong shape: {exc}",
            status_code=status_code,
            body=text,
        ) from None
    except PydanticValidationError as exc:
        raise DecodeError(
            f"container group list item does not match schema: {exc.error_count()} error(s)",
            status_code=status_code,
            body=text,
        ) from exc
    next_link = data.get("nextLink")
    return ContainerGroupList(value=groups, next_link=next_link if isinstance(next_link, str) and next_link else None)


def decode(
    body: bytes | str | None,
    status_code: int,
    kind: ResponseKind,
) -> ContainerGroup | ContainerGroupList | None:
    """Punto de entrada genérico: éxito tipado o excepción clasificada."""

    if kind == "group":
        return decode_container_group(body, status_code)
    if kind == "list":
        return decode_container_group_list(body, status_code)
    if not 200 <= status_code < 300:
        raise error_from_response(status_code, _body_text(body))
    return None


# ---------------------------------------------------------------------------
# Errores (no-2xx)
# ---------------------------------------------------------------------------


class ErrorEnvelope(BaseModel):
    """Sobre de error normalizado.

    Variantes aceptadas, en este orden:
    - `{"error": {"code": ..., "message": ...}}`
    - `{"code": ..., "message": ...}`
    - cualquier otra cosa: solo `raw`.
    """

    code: str | None = None
    message: str | None = None
    details: list[dict[str, Any]] = Field(default_factory=list)
    raw: str = ""


def _str_or_none(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def parse_error_envelope(body: bytes | str | None) -> ErrorEnvelope:
    """Nunca lanza: un cuerpo vacío o malformado devuelve solo `raw`."""

    text = _body_text(body)
    try:
        data: Any = json.loads(text) if text.strip() else None
    except json.JSONDecodeError:
        data = None

    if not isinstance(data, dict):
        return ErrorEnvelope(raw=text)

    nested = data.get("error")
    if isinstance(nested, dict) and (_str_or_none(nested.get("code")) or _str_or_none(nested.get("message"))):
        return ErrorEnvelope(
            code=_str_or_none(nested.get("code")),
            message=_str_or_none(nested.get("message")),
            details=_items(nested.get("details")),
            raw=text,
        )
    if isinstance(nested, str) and nested.strip():
        # Variante OAuth: {"error": "invalid_client", "error_description": "..."}
        return ErrorEnvelope(
            code=nested,
            message=_str_or_none(data.get("error_description")) or _str_or_none(data.get("message")),
            raw=text,
        )
    if _str_or_none(data.get("code")) or _str_or_none(data.get("message")):
        return ErrorEnvelope(
            code=_str_or_none(data.get("code")),
            message=_str_or_none(data.get("message")),
            details=_items(data.get("details")),
            raw=text,
        )
    return ErrorEnvelope(raw=text)


def _error_message(envelope: ErrorEnvelope) -> str:
    if envelope.code and envelope.message:
        return f"{envelope.code}: {envelope.message}"
    if envelope.code or envelope.message:
        return envelope.code or envelope.message or ""
    raw = envelope.raw.strip()
    return raw if raw else "empty response body"


def classify_error(status_code: int, envelope: ErrorEnvelope) -> AciError:
    """Mapea status (y algunos códigos) a la taxonomía de `core.errors`."""

    message = _error_message(envelope)
    kwargs: dict[str, Any] = {"status_code": status_code, "code": envelope.code, "body": envelope.raw}

    if status_code == 404 or (envelope.code or "").lower() in _NOT_FOUND_CODES:
        return NotFoundError(message, **kwargs)
    if status_code in (400, 422):
        return ValidationError(message, **kwargs)
    if status_code in (401, 403):
        return AuthError(message, **kwargs)
    if status_code in (408, 429) or status_code >= 500:
        return TransientError(message, **kwargs)
    return ServiceError(message, **kwargs)


def error_from_response(status_code: int, body: bytes | str | None) -> AciError:
    return classify_error(status_code, parse_error_envelope(body))
