from __future__ import annotations

from threading import Lock, RLock

from ..config import ControllerConfig
from ..models import GatewayIntent, SecretMaterial
from ..ports.realization_port import RealizationResult
from .builder import GraphBuilder
from .nodes import VirtualServiceNode
from .tls import EncodedKeyIndex, apply_certificate_removal, apply_certificate_upsert


class GatewayModel:
    """
    Derived configuration for one gateway.

    Callers hold ``lock`` across a build or TLS merge and the push that
    follows it; a certificate event and a spec event for the same gateway
    can race.
    """

    def __init__(self, key: str) -> None:
        self.key = key
        self.lock = RLock()
        self.vs: VirtualServiceNode | None = None
        self.tls_index = EncodedKeyIndex()
        self.pushed_checksum: str | None = None
        self.realization: RealizationResult | None = None

    def checksum(self) -> str | None:
        return self.vs.checksum() if self.vs is not None else None

    @property
    def needs_push(self) -> bool:
        return self.vs is not None and self.vs.checksum() != self.pushed_checksum

    def rebuild(self, builder: GraphBuilder, intent: GatewayIntent) -> VirtualServiceNode:
        with self.lock:
            self.vs, self.tls_index = builder.build_virtual_service(intent, key=self.key)
            return self.vs

    def upsert_certificate(
        self, intent: GatewayIntent, secret: SecretMaterial, *, config: ControllerConfig
    ) -> bool:
        with self.lock:
            if self.vs is None:
                return False
            self.vs.tls_nodes = apply_certificate_upsert(
                self.vs.tls_nodes, intent, secret, self.tls_index, config=config, key=self.key
            )
            return self.needs_push

    def remove_certificate(
        self, intent: GatewayIntent, namespace: str, name: str, *, config: ControllerConfig
    ) -> bool:
        with self.lock:
            if self.vs is None:
                return False
            self.vs.tls_nodes = apply_certificate_removal(
                self.vs.tls_nodes, intent, namespace, name, self.tls_index, config=config, key=self.key
            )
            return self.needs_push


class ModelCache:
    def __init__(self) -> None:
        self._lock = Lock()
        self._models: dict[str, GatewayModel] = {}

    def get(self, key: str) -> GatewayModel | None:
        with self._lock:
            return self._models.get(key)

    def get_or_create(self, key: str) -> GatewayModel:
        with self._lock:
            model = self._models.get(key)
            if model is None:
                model = GatewayModel(key)
                self._models[key] = model
            return model

    def pop(self, key: str) -> GatewayModel | None:
        with self._lock:
            return self._models.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._models)

    def __len__(self) -> int:
        with self._lock:
            return len(self._models)
