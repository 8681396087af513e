from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

ConditionStatus = Literal["True", "False", "Unknown"]

SECRET_KIND = "Secret"


@dataclass(frozen=True)
class CertificateRef:
    name: str
    namespace: str | None = None
    kind: str = SECRET_KIND
    group: str = ""

    def resolve_namespace(self, default: str) -> str:
        return self.namespace or default


@dataclass(frozen=True)
class ListenerTLS:
    mode: str | None = None
    certificate_refs: tuple[CertificateRef, ...] = ()


@dataclass(frozen=True)
class ListenerSpec:
    name: str
    port: int
    protocol: str
    hostname: str | None = None
    tls: ListenerTLS | None = None

    @property
    def tls_enabled(self) -> bool:
        return self.tls is not None and len(self.tls.certificate_refs) > 0


@dataclass
class Condition:
    type: str
    status: ConditionStatus
    reason: str
    message: str
    observed_generation: int = 0
    last_transition_time: str = ""


@dataclass
class ListenerStatus:
    name: str
    conditions: list[Condition] = field(default_factory=list)
    supported_kinds: tuple[str, ...] = ("HTTPRoute",)
    attached_routes: int = 0


@dataclass
class GatewayStatus:
    conditions: list[Condition] = field(default_factory=list)
    listeners: list[ListenerStatus] = field(default_factory=list)
    addresses: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class GatewayIntent:
    """Read-only snapshot of a Gateway object taken at processing time."""

    namespace: str
    name: str
    gateway_class_name: str
    listeners: tuple[ListenerSpec, ...] = ()
    addresses: tuple[str, ...] = ()
    generation: int = 1
    resource_version: str = ""
    status: GatewayStatus = field(default_factory=GatewayStatus, compare=False)

    @property
    def key(self) -> str:
        return f"{self.namespace}/{self.name}"


@dataclass(frozen=True)
class GatewayClass:
    name: str
    controller_name: str


@dataclass(frozen=True)
class SecretMaterial:
    namespace: str
    name: str
    cert: str | None = None
    key: str | None = None

    @property
    def ref_key(self) -> str:
        return f"{self.namespace}/{self.name}"
