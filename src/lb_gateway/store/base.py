from __future__ import annotations

from typing import Any, Literal, Mapping, Protocol

from ..models import GatewayClass, GatewayIntent, GatewayStatus, SecretMaterial

ObjectKind = Literal["Gateway", "GatewayClass", "Secret"]


class StoreError(Exception):
    pass


class StatusConflictError(StoreError):
    """The object changed since it was read; re-read and retry."""


class GatewayStore(Protocol):
    def get_gateway(self, namespace: str, name: str) -> GatewayIntent | None:
        ...

    def list_gateways(self) -> list[GatewayIntent]:
        ...

    def get_gateway_class(self, name: str) -> GatewayClass | None:
        ...

    def list_gateway_classes(self) -> list[GatewayClass]:
        ...

    def get_secret(self, namespace: str, name: str) -> SecretMaterial | None:
        ...

    def patch_gateway_status(
        self,
        namespace: str,
        name: str,
        status: GatewayStatus,
        *,
        resource_version: str,
    ) -> GatewayIntent:
        """
        Merge-patch the status subresource.

        Raises:
            StatusConflictError: ``resource_version`` is stale.
            StoreError: Any other write failure, including a missing object.
        """
        ...

    def observe(
        self,
        kind: ObjectKind,
        namespace: str,
        name: str,
        obj: Mapping[str, Any] | None,
    ) -> None:
        """Feed a watch event; ``obj`` is None for deletions."""
        ...

    def close(self) -> None:
        ...
