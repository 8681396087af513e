from __future__ import annotations

from typing import Any

from lb_gateway.config import ControllerConfig
from lb_gateway.graph.nodes import VirtualServiceNode
from lb_gateway.models import GatewayIntent, GatewayStatus
from lb_gateway.ports.realization_port import RealizationResult
from lb_gateway.providers.errors import RealizationError
from lb_gateway.store.base import StatusConflictError, StoreError
from lb_gateway.store.memory import MemoryStore
from lb_gateway.wire import parse_gateway

CONTROLLER = "ako.vmware.com/avi-lb"


def make_config(**overrides: Any) -> ControllerConfig:
    values: dict[str, Any] = {
        "cluster_name": "cl1",
        "vip_networks": ("vip-net",),
        "workers": 2,
    }
    values.update(overrides)
    return ControllerConfig(**values)


def http_listener(name: str, port: int = 80, hostname: str | None = "foo.example.com") -> dict[str, Any]:
    listener: dict[str, Any] = {"name": name, "port": port, "protocol": "HTTP"}
    if hostname is not None:
        listener["hostname"] = hostname
    return listener


def https_listener(
    name: str,
    *cert_names: str,
    port: int = 443,
    hostname: str | None = "foo.example.com",
    mode: str = "Terminate",
) -> dict[str, Any]:
    listener = http_listener(name, port, hostname)
    listener["protocol"] = "HTTPS"
    listener["tls"] = {
        "mode": mode,
        "certificateRefs": [{"kind": "Secret", "group": "", "name": cert} for cert in cert_names],
    }
    return listener


def gateway_obj(
    name: str = "gw",
    namespace: str = "default",
    *,
    listeners: list[dict[str, Any]] | None = None,
    addresses: tuple[str, ...] = (),
    class_name: str = "avi-lb",
) -> dict[str, Any]:
    spec: dict[str, Any] = {
        "gatewayClassName": class_name,
        "listeners": listeners if listeners is not None else [http_listener("http")],
    }
    if addresses:
        spec["addresses"] = [{"type": "IPAddress", "value": value} for value in addresses]
    return {
        "apiVersion": "gateway.networking.k8s.io/v1",
        "kind": "Gateway",
        "metadata": {"name": name, "namespace": namespace},
        "spec": spec,
    }


def gateway_class_obj(name: str = "avi-lb", controller: str = CONTROLLER) -> dict[str, Any]:
    return {"metadata": {"name": name}, "spec": {"controllerName": controller}}


def secret_obj(name: str, namespace: str = "default", *, cert: str = "CERT", key: str = "KEY") -> dict[str, Any]:
    return {
        "metadata": {"name": name, "namespace": namespace},
        "type": "kubernetes.io/tls",
        "stringData": {"tls.crt": cert, "tls.key": key},
    }


def make_intent(**kwargs: Any) -> GatewayIntent:
    return parse_gateway(gateway_obj(**kwargs))


def seeded_store(*objects: tuple[str, dict[str, Any]]) -> MemoryStore:
    store = MemoryStore()
    store.observe("GatewayClass", "", "avi-lb", gateway_class_obj())
    for kind, obj in objects:
        metadata = obj["metadata"]
        store.observe(kind, metadata.get("namespace", ""), metadata["name"], obj)  # type: ignore[arg-type]
    return store


class RecordingRealizer:
    def __init__(self, vip: str | None = "10.0.0.10") -> None:
        self.vip = vip
        self.pushes: list[tuple[str, str]] = []
        self.deletes: list[tuple[str, str]] = []
        self.fail_with: RealizationError | None = None

    def push(self, key: str, vs: VirtualServiceNode) -> RealizationResult:
        if self.fail_with is not None:
            raise self.fail_with
        self.pushes.append((key, vs.checksum()))
        return RealizationResult("programmed", vip=vs.vip.ip_address or self.vip)

    def delete(self, key: str, vs_name: str) -> RealizationResult:
        self.deletes.append((key, vs_name))
        return RealizationResult("pending")

    def close(self) -> None:
        return None


class FlakyStore(MemoryStore):
    """Memory store whose status patches fail a set number of times."""

    def __init__(self, *, conflicts: int = 0, errors: int = 0) -> None:
        super().__init__()
        self.conflicts = conflicts
        self.errors = errors
        self.patch_calls = 0
        self.patched_versions: list[str] = []

    def patch_gateway_status(
        self,
        namespace: str,
        name: str,
        status: GatewayStatus,
        *,
        resource_version: str,
    ) -> GatewayIntent:
        self.patch_calls += 1
        self.patched_versions.append(resource_version)
        if self.conflicts > 0:
            self.conflicts -= 1
            raise StatusConflictError("conflict")
        if self.errors > 0:
            self.errors -= 1
            raise StoreError("unavailable")
        return super().patch_gateway_status(namespace, name, status, resource_version=resource_version)
