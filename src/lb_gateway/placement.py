"""
Per-namespace network placement for VIPs.

Read-through cache keyed by namespace. When no override is recorded for a
namespace (or overrides are disabled), lookups fall back to the cluster-wide
defaults from configuration.
"""
from __future__ import annotations

from threading import Lock

from .config import ControllerConfig


class NetworkPlacementCache:
    def __init__(
        self,
        *,
        default_networks: tuple[str, ...] = (),
        default_router: str | None = None,
        overrides_enabled: bool = True,
    ) -> None:
        self._default_networks = tuple(default_networks)
        self._default_router = default_router
        self._overrides_enabled = overrides_enabled
        self._lock = Lock()
        self._networks: dict[str, str] = {}
        self._routers: dict[str, str] = {}

    @classmethod
    def from_config(cls, config: ControllerConfig) -> "NetworkPlacementCache":
        return cls(
            default_networks=config.vip_networks,
            default_router=config.tier1_router,
            overrides_enabled=config.vcf_cluster,
        )

    def get(self, namespace: str) -> str | None:
        with self._lock:
            return self._networks.get(namespace)

    def put(self, namespace: str, network_name: str) -> None:
        with self._lock:
            self._networks[namespace] = network_name

    def delete(self, namespace: str) -> None:
        with self._lock:
            self._networks.pop(namespace, None)

    def put_router(self, namespace: str, router: str) -> None:
        with self._lock:
            self._routers[namespace] = router

    def delete_router(self, namespace: str) -> None:
        with self._lock:
            self._routers.pop(namespace, None)

    def networks_for_namespace(self, namespace: str) -> list[str]:
        if self._overrides_enabled:
            network = self.get(namespace)
            if network is not None:
                return [network]
        return list(self._default_networks)

    def router_for_namespace(self, namespace: str) -> str | None:
        if self._overrides_enabled:
            with self._lock:
                router = self._routers.get(namespace)
            if router is not None:
                return router
        return self._default_router
