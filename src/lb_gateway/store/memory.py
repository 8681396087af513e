from __future__ import annotations

import copy
from dataclasses import replace
from threading import Lock
from typing import Any, Mapping

from ..models import GatewayClass, GatewayIntent, GatewayStatus, SecretMaterial
from ..wire import parse_gateway, parse_gateway_class, parse_secret
from .base import ObjectKind, StatusConflictError, StoreError


class MemoryStore:
    """
    In-process object cache fed by watch events.

    Mirrors API-server semantics where the controller depends on them:
    every write bumps the resource version, spec changes bump the generation,
    spec writes never touch status, and status patches carrying a stale
    resource version are rejected.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._gateways: dict[str, GatewayIntent] = {}
        self._classes: dict[str, GatewayClass] = {}
        self._secrets: dict[str, SecretMaterial] = {}
        self._revision = 0

    def _next_revision(self) -> str:
        self._revision += 1
        return str(self._revision)

    def get_gateway(self, namespace: str, name: str) -> GatewayIntent | None:
        with self._lock:
            gateway = self._gateways.get(f"{namespace}/{name}")
            return copy.deepcopy(gateway) if gateway is not None else None

    def list_gateways(self) -> list[GatewayIntent]:
        with self._lock:
            return [copy.deepcopy(self._gateways[key]) for key in sorted(self._gateways)]

    def get_gateway_class(self, name: str) -> GatewayClass | None:
        with self._lock:
            return self._classes.get(name)

    def list_gateway_classes(self) -> list[GatewayClass]:
        with self._lock:
            return [self._classes[name] for name in sorted(self._classes)]

    def get_secret(self, namespace: str, name: str) -> SecretMaterial | None:
        with self._lock:
            return self._secrets.get(f"{namespace}/{name}")

    def put_gateway(self, gateway: GatewayIntent) -> GatewayIntent:
        with self._lock:
            existing = self._gateways.get(gateway.key)
            if existing is None:
                stored = replace(gateway, resource_version=self._next_revision())
            else:
                generation = existing.generation
                if _spec_changed(existing, gateway):
                    generation += 1
                stored = replace(
                    gateway,
                    generation=generation,
                    resource_version=self._next_revision(),
                    status=existing.status,
                )
            self._gateways[gateway.key] = stored
            return copy.deepcopy(stored)

    def delete_gateway(self, namespace: str, name: str) -> None:
        with self._lock:
            self._gateways.pop(f"{namespace}/{name}", None)

    def put_gateway_class(self, gateway_class: GatewayClass) -> None:
        with self._lock:
            self._classes[gateway_class.name] = gateway_class

    def delete_gateway_class(self, name: str) -> None:
        with self._lock:
            self._classes.pop(name, None)

    def put_secret(self, secret: SecretMaterial) -> None:
        with self._lock:
            self._secrets[secret.ref_key] = secret

    def delete_secret(self, namespace: str, name: str) -> None:
        with self._lock:
            self._secrets.pop(f"{namespace}/{name}", None)

    def patch_gateway_status(
        self,
        namespace: str,
        name: str,
        status: GatewayStatus,
        *,
        resource_version: str,
    ) -> GatewayIntent:
        with self._lock:
            current = self._gateways.get(f"{namespace}/{name}")
            if current is None:
                raise StoreError(f"gateway not found: {namespace}/{name}")
            if resource_version and current.resource_version != resource_version:
                raise StatusConflictError(
                    f"resource version {resource_version} is stale (current {current.resource_version})"
                )
            stored = replace(
                current,
                status=copy.deepcopy(status),
                resource_version=self._next_revision(),
            )
            self._gateways[stored.key] = stored
            return copy.deepcopy(stored)

    def observe(
        self,
        kind: ObjectKind,
        namespace: str,
        name: str,
        obj: Mapping[str, Any] | None,
    ) -> None:
        if kind == "Gateway":
            if obj is None:
                self.delete_gateway(namespace, name)
            else:
                self.put_gateway(parse_gateway(obj))
        elif kind == "GatewayClass":
            if obj is None:
                self.delete_gateway_class(name)
            else:
                self.put_gateway_class(parse_gateway_class(obj))
        elif kind == "Secret":
            if obj is None:
                self.delete_secret(namespace, name)
            else:
                self.put_secret(parse_secret(obj))
        else:
            raise ValueError(f"unsupported object kind: {kind}")

    def close(self) -> None:
        return None


def _spec_changed(old: GatewayIntent, new: GatewayIntent) -> bool:
    return (
        old.gateway_class_name != new.gateway_class_name
        or old.listeners != new.listeners
        or old.addresses != new.addresses
    )
