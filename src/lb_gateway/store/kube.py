from __future__ import annotations

from typing import Any, Mapping

import httpx

from ..models import GatewayClass, GatewayIntent, GatewayStatus, SecretMaterial
from ..wire import parse_gateway, parse_gateway_class, parse_secret, status_to_wire
from .base import ObjectKind, StatusConflictError, StoreError

GATEWAY_API_PREFIX = "/apis/gateway.networking.k8s.io/v1"
MERGE_PATCH = "application/merge-patch+json"


class KubeStore:
    """Reads Gateway API objects and patches gateway status on the API server."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        verify: bool | str = True,
        timeout_s: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"accept": "application/json"}
        if token:
            headers["authorization"] = f"Bearer {token}"
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers=headers,
            verify=verify,
            timeout=timeout_s,
            transport=transport,
        )

    def get_gateway(self, namespace: str, name: str) -> GatewayIntent | None:
        data = self._get(f"{GATEWAY_API_PREFIX}/namespaces/{namespace}/gateways/{name}")
        return parse_gateway(data) if data is not None else None

    def list_gateways(self) -> list[GatewayIntent]:
        return [parse_gateway(item) for item in self._list(f"{GATEWAY_API_PREFIX}/gateways")]

    def get_gateway_class(self, name: str) -> GatewayClass | None:
        data = self._get(f"{GATEWAY_API_PREFIX}/gatewayclasses/{name}")
        return parse_gateway_class(data) if data is not None else None

    def list_gateway_classes(self) -> list[GatewayClass]:
        return [
            parse_gateway_class(item) for item in self._list(f"{GATEWAY_API_PREFIX}/gatewayclasses")
        ]

    def get_secret(self, namespace: str, name: str) -> SecretMaterial | None:
        data = self._get(f"/api/v1/namespaces/{namespace}/secrets/{name}")
        return parse_secret(data) if data is not None else None

    def patch_gateway_status(
        self,
        namespace: str,
        name: str,
        status: GatewayStatus,
        *,
        resource_version: str,
    ) -> GatewayIntent:
        body: dict[str, Any] = {"status": status_to_wire(status)}
        if resource_version:
            # A stale resourceVersion in a merge patch is rejected with 409.
            body["metadata"] = {"resourceVersion": resource_version}
        try:
            resp = self._client.patch(
                f"{GATEWAY_API_PREFIX}/namespaces/{namespace}/gateways/{name}/status",
                json=body,
                headers={"content-type": MERGE_PATCH},
            )
        except httpx.HTTPError as exc:
            raise StoreError(f"status patch transport error: {exc}") from exc
        if resp.status_code == 409:
            raise StatusConflictError(f"status patch conflict for {namespace}/{name}")
        if resp.status_code >= 400:
            raise StoreError(f"status patch failed ({resp.status_code}): {resp.text[:500]}")
        return parse_gateway(resp.json())

    def observe(
        self,
        kind: ObjectKind,
        namespace: str,
        name: str,
        obj: Mapping[str, Any] | None,
    ) -> None:
        # Reads go to the API server directly; nothing to cache.
        return None

    def close(self) -> None:
        self._client.close()

    def _get(self, path: str) -> Mapping[str, Any] | None:
        try:
            resp = self._client.get(path)
        except httpx.HTTPError as exc:
            raise StoreError(f"read transport error: {exc}") from exc
        if resp.status_code == 404:
            return None
        if resp.status_code >= 400:
            raise StoreError(f"read failed ({resp.status_code}) for {path}")
        data = resp.json()
        if not isinstance(data, Mapping):
            raise StoreError(f"unexpected response for {path}")
        return data

    def _list(self, path: str) -> list[Mapping[str, Any]]:
        data = self._get(path)
        if data is None:
            return []
        items = data.get("items") or []
        if not isinstance(items, list):
            raise StoreError(f"unexpected list response for {path}")
        return items
