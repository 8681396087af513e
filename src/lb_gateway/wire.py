"""
Conversion between Kubernetes JSON objects and controller models.

Parsing raises ``ValueError`` on structurally malformed objects; semantic
problems (bad hostnames, unsupported protocols) are left to validation.
"""
from __future__ import annotations

import base64
import binascii
from typing import Any, Mapping

from .models import (
    CertificateRef,
    Condition,
    GatewayClass,
    GatewayIntent,
    GatewayStatus,
    ListenerSpec,
    ListenerStatus,
    ListenerTLS,
    SecretMaterial,
)

GATEWAY_API_GROUP = "gateway.networking.k8s.io"
TLS_CERT_KEY = "tls.crt"
TLS_PRIVATE_KEY = "tls.key"


def object_ref(obj: object, *, namespaced: bool = True) -> tuple[str, str]:
    """Return (namespace, name) from an object's metadata; namespace is "" when cluster scoped."""
    if not isinstance(obj, Mapping):
        raise ValueError("object must be a mapping")
    metadata = _require_mapping(obj, "metadata")
    name = _require_non_empty_str(metadata, "name")
    if not namespaced:
        return "", name
    return _require_non_empty_str(metadata, "namespace"), name


def parse_gateway(obj: object) -> GatewayIntent:
    if not isinstance(obj, Mapping):
        raise ValueError("gateway must be a mapping")
    metadata = _require_mapping(obj, "metadata")
    spec = _require_mapping(obj, "spec")
    listeners_raw = spec.get("listeners") or []
    if not isinstance(listeners_raw, list):
        raise ValueError("spec.listeners must be a list")
    addresses_raw = spec.get("addresses") or []
    if not isinstance(addresses_raw, list):
        raise ValueError("spec.addresses must be a list")
    status_raw = obj.get("status")
    return GatewayIntent(
        namespace=_require_non_empty_str(metadata, "namespace"),
        name=_require_non_empty_str(metadata, "name"),
        gateway_class_name=_require_str(spec, "gatewayClassName"),
        listeners=tuple(parse_listener(item) for item in listeners_raw),
        addresses=tuple(_parse_address(item) for item in addresses_raw),
        generation=_optional_int(metadata, "generation", default=1),
        resource_version=_optional_str(metadata, "resourceVersion") or "",
        status=status_from_wire(status_raw) if isinstance(status_raw, Mapping) else GatewayStatus(),
    )


def parse_listener(obj: object) -> ListenerSpec:
    if not isinstance(obj, Mapping):
        raise ValueError("listener must be a mapping")
    tls_raw = obj.get("tls")
    tls = None
    if tls_raw is not None:
        if not isinstance(tls_raw, Mapping):
            raise ValueError("listener.tls must be a mapping")
        refs_raw = tls_raw.get("certificateRefs") or []
        if not isinstance(refs_raw, list):
            raise ValueError("listener.tls.certificateRefs must be a list")
        tls = ListenerTLS(
            mode=_optional_str(tls_raw, "mode"),
            certificate_refs=tuple(_parse_certificate_ref(ref) for ref in refs_raw),
        )
    return ListenerSpec(
        name=_require_str(obj, "name"),
        port=_require_int(obj, "port"),
        protocol=_require_str(obj, "protocol"),
        hostname=_optional_str(obj, "hostname"),
        tls=tls,
    )


def _parse_certificate_ref(obj: object) -> CertificateRef:
    if not isinstance(obj, Mapping):
        raise ValueError("certificateRef must be a mapping")
    return CertificateRef(
        name=_require_non_empty_str(obj, "name"),
        namespace=_optional_str(obj, "namespace") or None,
        kind=_optional_str(obj, "kind") or "Secret",
        group=_optional_str(obj, "group") or "",
    )


def _parse_address(obj: object) -> str:
    if not isinstance(obj, Mapping):
        raise ValueError("address must be a mapping")
    return _require_str(obj, "value")


def parse_gateway_class(obj: object) -> GatewayClass:
    if not isinstance(obj, Mapping):
        raise ValueError("gateway class must be a mapping")
    metadata = _require_mapping(obj, "metadata")
    spec = _require_mapping(obj, "spec")
    return GatewayClass(
        name=_require_non_empty_str(metadata, "name"),
        controller_name=_require_non_empty_str(spec, "controllerName"),
    )


def parse_secret(obj: object) -> SecretMaterial:
    if not isinstance(obj, Mapping):
        raise ValueError("secret must be a mapping")
    metadata = _require_mapping(obj, "metadata")
    data = obj.get("data") or {}
    string_data = obj.get("stringData") or {}
    if not isinstance(data, Mapping) or not isinstance(string_data, Mapping):
        raise ValueError("secret data must be a mapping")
    return SecretMaterial(
        namespace=_require_non_empty_str(metadata, "namespace"),
        name=_require_non_empty_str(metadata, "name"),
        cert=_secret_value(data, string_data, TLS_CERT_KEY),
        key=_secret_value(data, string_data, TLS_PRIVATE_KEY),
    )


def _secret_value(data: Mapping[str, Any], string_data: Mapping[str, Any], field: str) -> str | None:
    plain = string_data.get(field)
    if isinstance(plain, str):
        return plain
    encoded = data.get(field)
    if encoded is None:
        return None
    if not isinstance(encoded, str):
        raise ValueError(f"secret data.{field} must be a base64 string")
    try:
        return base64.b64decode(encoded, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as exc:
        raise ValueError(f"secret data.{field} is not valid base64 text") from exc


def condition_to_wire(condition: Condition) -> dict[str, Any]:
    return {
        "type": condition.type,
        "status": condition.status,
        "reason": condition.reason,
        "message": condition.message,
        "observedGeneration": condition.observed_generation,
        "lastTransitionTime": condition.last_transition_time,
    }


def condition_from_wire(obj: object) -> Condition:
    if not isinstance(obj, Mapping):
        raise ValueError("condition must be a mapping")
    status = _require_str(obj, "status")
    if status not in ("True", "False", "Unknown"):
        raise ValueError("condition status must be True, False or Unknown")
    return Condition(
        type=_require_str(obj, "type"),
        status=status,  # type: ignore[arg-type]
        reason=_optional_str(obj, "reason") or "",
        message=_optional_str(obj, "message") or "",
        observed_generation=_optional_int(obj, "observedGeneration", default=0),
        last_transition_time=_optional_str(obj, "lastTransitionTime") or "",
    )


def status_to_wire(status: GatewayStatus) -> dict[str, Any]:
    return {
        "conditions": [condition_to_wire(c) for c in status.conditions],
        "listeners": [
            {
                "name": listener.name,
                "supportedKinds": [
                    {"group": GATEWAY_API_GROUP, "kind": kind} for kind in listener.supported_kinds
                ],
                "attachedRoutes": listener.attached_routes,
                "conditions": [condition_to_wire(c) for c in listener.conditions],
            }
            for listener in status.listeners
        ],
        "addresses": [{"type": "IPAddress", "value": value} for value in status.addresses],
    }


def status_from_wire(obj: Mapping[str, Any]) -> GatewayStatus:
    conditions = obj.get("conditions") or []
    listeners = obj.get("listeners") or []
    addresses = obj.get("addresses") or []
    if not isinstance(conditions, list) or not isinstance(listeners, list) or not isinstance(addresses, list):
        raise ValueError("status conditions, listeners and addresses must be lists")
    listener_statuses = []
    for item in listeners:
        if not isinstance(item, Mapping):
            raise ValueError("listener status must be a mapping")
        kinds = item.get("supportedKinds") or []
        listener_statuses.append(
            ListenerStatus(
                name=_require_str(item, "name"),
                conditions=[condition_from_wire(c) for c in item.get("conditions") or []],
                supported_kinds=tuple(
                    str(kind.get("kind")) for kind in kinds if isinstance(kind, Mapping)
                ),
                attached_routes=_optional_int(item, "attachedRoutes", default=0),
            )
        )
    return GatewayStatus(
        conditions=[condition_from_wire(c) for c in conditions],
        listeners=listener_statuses,
        addresses=[_parse_address(item) for item in addresses],
    )


def _require_str(mapping: Mapping[str, object], key: str) -> str:
    value = mapping.get(key)
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _require_non_empty_str(mapping: Mapping[str, object], key: str) -> str:
    value = _require_str(mapping, key)
    if value.strip() == "":
        raise ValueError(f"{key} must be a non-empty string")
    return value


def _require_int(mapping: Mapping[str, object], key: str) -> int:
    value = mapping.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{key} must be an int")
    return value


def _require_mapping(mapping: Mapping[str, object], key: str) -> Mapping[str, object]:
    value = mapping.get(key)
    if not isinstance(value, Mapping):
        raise ValueError(f"{key} must be a mapping")
    return value


def _optional_str(mapping: Mapping[str, object], key: str) -> str | None:
    value = mapping.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _optional_int(mapping: Mapping[str, object], key: str, *, default: int) -> int:
    value = mapping.get(key)
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{key} must be an int")
    return value
